"""
Data schemas for the intake pipeline.

Provides:
- Filename hints (password / account number / bank name)
- Statement period parsing and month-range expansion
- Normalized extraction payloads
- DocumentItem lifecycle and the item arena
"""

from .filename_hints import KNOWN_BANKS, FileHints, detect_file_hints
from .intake import (
    ALLOWED_TRANSITIONS,
    DocumentItem,
    InvalidTransitionError,
    ItemArena,
    ItemStatus,
    PasswordState,
)
from .periods import (
    MonthYear,
    StatementPeriod,
    cycle_key,
    expand_range,
    is_period_contained,
    parse_cycle_key,
    parse_period,
)
from .statement import (
    CURRENCY_ALIASES,
    ExtractedStatement,
    MonthlyBalance,
    normalize_currency,
    parse_currency_amount,
)

__all__ = [
    "KNOWN_BANKS",
    "FileHints",
    "detect_file_hints",
    "ALLOWED_TRANSITIONS",
    "DocumentItem",
    "InvalidTransitionError",
    "ItemArena",
    "ItemStatus",
    "PasswordState",
    "MonthYear",
    "StatementPeriod",
    "cycle_key",
    "expand_range",
    "is_period_contained",
    "parse_cycle_key",
    "parse_period",
    "CURRENCY_ALIASES",
    "ExtractedStatement",
    "MonthlyBalance",
    "normalize_currency",
    "parse_currency_amount",
]
