"""
State Store (SQLite-based).

Lightweight persistent DB for tracking:
- Statement cycles (one per "YYYY-MM")
- Statement records (one per bank and month)
- Vouching sign-off

Enforces uniqueness on (bank_id, statement_month, statement_year).
"""

from .sqlite_store import (
    CycleRecord,
    StatementRecord,
    StatementStatus,
    StatementType,
    StateStore,
)

__all__ = [
    "StateStore",
    "CycleRecord",
    "StatementRecord",
    "StatementStatus",
    "StatementType",
]
