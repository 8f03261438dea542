"""
SQLite-based state store implementation.

Tables:
- statement_cycles: One row per accounting month ("YYYY-MM"), created lazily
- statements: One row per (bank, month, year); range statements are
  replicated as range_child rows pointing at their parent
"""

import json
import logging
import sqlite3
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from ..schemas.periods import parse_cycle_key

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class StatementType(str, Enum):
    """How a statement record came to exist."""

    MONTHLY = "monthly"  # single-month statement
    RANGE = "range"  # primary record of a multi-month statement
    RANGE_CHILD = "range_child"  # replicated month of a range statement


class StatementStatus(str, Enum):
    """Validation status of a statement record."""

    VALIDATED = "validated"
    PENDING_VALIDATION = "pending_validation"


@dataclass
class CycleRecord:
    """Record of an accounting cycle (one calendar month)."""

    id: int
    month_year: str  # "YYYY-MM"
    cycle_month: int
    cycle_year: int
    status: str
    created_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "CycleRecord":
        """Create from database row."""
        return cls(
            id=row["id"],
            month_year=row["month_year"],
            cycle_month=row["cycle_month"],
            cycle_year=row["cycle_year"],
            status=row["status"],
            created_at=row["created_at"],
        )


@dataclass
class StatementRecord:
    """Record of a persisted bank statement for one month."""

    id: int
    bank_id: int
    company_id: int
    cycle_id: int | None
    statement_month: int
    statement_year: int
    statement_type: StatementType
    parent_statement_id: int | None
    statement_document: dict[str, Any]
    statement_extractions: dict[str, Any] | None
    extraction_performed: bool
    extraction_timestamp: str | None
    validation_status: dict[str, Any]
    status: StatementStatus
    is_vouched: bool
    created_at: str
    updated_at: str
    vouch_notes: str | None = None
    vouched_at: str | None = None
    has_soft_copy: bool = True
    has_hard_copy: bool = False

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "StatementRecord":
        """Create from database row."""
        keys = row.keys()
        return cls(
            id=row["id"],
            bank_id=row["bank_id"],
            company_id=row["company_id"],
            cycle_id=row["cycle_id"],
            statement_month=row["statement_month"],
            statement_year=row["statement_year"],
            statement_type=StatementType(row["statement_type"]),
            parent_statement_id=row["parent_statement_id"],
            statement_document=json.loads(row["statement_document"]) if row["statement_document"] else {},
            statement_extractions=(
                json.loads(row["statement_extractions"]) if row["statement_extractions"] else None
            ),
            extraction_performed=bool(row["extraction_performed"]),
            extraction_timestamp=row["extraction_timestamp"],
            validation_status=json.loads(row["validation_status"]) if row["validation_status"] else {},
            status=StatementStatus(row["status"]),
            is_vouched=bool(row["is_vouched"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            vouch_notes=row["vouch_notes"] if "vouch_notes" in keys else None,
            vouched_at=row["vouched_at"] if "vouched_at" in keys else None,
            has_soft_copy=bool(row["has_soft_copy"]) if "has_soft_copy" in keys else True,
            has_hard_copy=bool(row["has_hard_copy"]) if "has_hard_copy" in keys else False,
        )

    @property
    def month_year(self) -> str:
        return f"{self.statement_year:04d}-{self.statement_month:02d}"


class StateStore:
    """
    SQLite-based state store for the intake pipeline.

    Provides persistent tracking of:
    - Statement cycles
    - Statement records (one per bank and month)
    - Vouching sign-off

    Thread-safe for single-writer scenarios.
    """

    SCHEMA_VERSION = 1

    def __init__(self, db_path: Path | str, run_migrations: bool = True):
        """
        Initialize state store.

        Args:
            db_path: Path to SQLite database file
            run_migrations: Whether to run pending migrations (default True)
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()
        if run_migrations:
            self._run_migrations()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection with row factory."""
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database transactions."""
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        """Initialize database schema."""
        with self._transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY
                )
            """
            )

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS statement_cycles (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    month_year TEXT NOT NULL UNIQUE,  -- YYYY-MM
                    cycle_month INTEGER NOT NULL,
                    cycle_year INTEGER NOT NULL,
                    status TEXT NOT NULL DEFAULT 'active',
                    created_at TEXT NOT NULL
                )
            """
            )

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS statements (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    bank_id INTEGER NOT NULL,
                    company_id INTEGER NOT NULL,
                    cycle_id INTEGER,
                    statement_month INTEGER NOT NULL,
                    statement_year INTEGER NOT NULL,
                    statement_type TEXT NOT NULL,
                    parent_statement_id INTEGER,
                    statement_document TEXT NOT NULL,  -- JSON
                    statement_extractions TEXT,  -- JSON
                    extraction_performed INTEGER NOT NULL DEFAULT 0,
                    extraction_timestamp TEXT,
                    validation_status TEXT NOT NULL,  -- JSON
                    status TEXT NOT NULL,
                    is_vouched INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    UNIQUE (bank_id, statement_month, statement_year),
                    FOREIGN KEY (cycle_id) REFERENCES statement_cycles(id),
                    FOREIGN KEY (parent_statement_id) REFERENCES statements(id) ON DELETE SET NULL
                )
            """
            )

            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_statements_cycle_id ON statements(cycle_id)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_statements_company_id ON statements(company_id)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_statements_parent ON statements(parent_statement_id)"
            )

            conn.execute(
                "INSERT OR REPLACE INTO schema_version (version) VALUES (?)", (self.SCHEMA_VERSION,)
            )

    def _run_migrations(self) -> None:
        """Run pending database migrations."""
        from .migrations import MigrationRunner

        conn = self._get_connection()
        try:
            runner = MigrationRunner(conn)
            runner.run_pending()
        finally:
            conn.close()

    # Cycle methods

    def find_cycle(self, month_year: str) -> CycleRecord | None:
        """Get a cycle by its "YYYY-MM" key."""
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM statement_cycles WHERE month_year = ?", (month_year,)
            ).fetchone()
            return CycleRecord.from_row(row) if row else None

    def create_cycle(self, month_year: str) -> CycleRecord:
        """
        Create a cycle, or return the existing one.

        A concurrent insert of the same key surfaces as an IntegrityError,
        which is treated as "already exists" and re-read.

        Raises:
            ValueError: If month_year is not a valid "YYYY-MM" key
        """
        month = parse_cycle_key(month_year)
        try:
            with self._transaction() as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO statement_cycles (month_year, cycle_month, cycle_year, status, created_at)
                    VALUES (?, ?, ?, 'active', ?)
                """,
                    (month.key, month.month, month.year, _now()),
                )
                cycle_id = cursor.lastrowid
                row = conn.execute(
                    "SELECT * FROM statement_cycles WHERE id = ?", (cycle_id,)
                ).fetchone()
                logger.info("Created statement cycle %s", month.key)
                return CycleRecord.from_row(row)
        except sqlite3.IntegrityError:
            existing = self.find_cycle(month.key)
            if existing is None:
                raise
            logger.debug("Cycle %s already exists", month.key)
            return existing

    def resolve_cycle(self, month_year: str) -> CycleRecord:
        """Find a cycle, creating it if missing."""
        existing = self.find_cycle(month_year)
        if existing is not None:
            return existing
        return self.create_cycle(month_year)

    def list_cycles(self) -> list[CycleRecord]:
        """All cycles, newest first."""
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT * FROM statement_cycles ORDER BY cycle_year DESC, cycle_month DESC"
            ).fetchall()
            return [CycleRecord.from_row(row) for row in rows]

    # Statement methods

    def upsert_statement(
        self,
        bank_id: int,
        month: int,
        year: int,
        payload: dict[str, Any],
    ) -> StatementRecord:
        """
        Insert or update the statement record at (bank_id, month, year).

        Payload keys: company_id (required), cycle_id, statement_type,
        parent_statement_id, statement_document, statement_extractions,
        extraction_performed, extraction_timestamp, validation_status,
        status, has_soft_copy, has_hard_copy.

        Overwriting an existing record keeps its id and creation time and
        clears its vouching sign-off.
        """
        if "company_id" not in payload:
            raise ValueError("payload must include company_id")

        now = _now()
        statement_type = StatementType(payload.get("statement_type", StatementType.MONTHLY))
        status = StatementStatus(payload.get("status", StatementStatus.PENDING_VALIDATION))
        values = (
            payload["company_id"],
            payload.get("cycle_id"),
            statement_type.value,
            payload.get("parent_statement_id"),
            json.dumps(payload.get("statement_document") or {}),
            json.dumps(payload["statement_extractions"])
            if payload.get("statement_extractions") is not None
            else None,
            1 if payload.get("extraction_performed") else 0,
            payload.get("extraction_timestamp"),
            json.dumps(payload.get("validation_status") or {}),
            status.value,
            1 if payload.get("has_soft_copy", True) else 0,
            1 if payload.get("has_hard_copy", False) else 0,
        )

        with self._transaction() as conn:
            existing = conn.execute(
                """
                SELECT id FROM statements
                WHERE bank_id = ? AND statement_month = ? AND statement_year = ?
            """,
                (bank_id, month, year),
            ).fetchone()

            if existing:
                statement_id = existing["id"]
                conn.execute(
                    """
                    UPDATE statements
                    SET company_id = ?, cycle_id = ?, statement_type = ?, parent_statement_id = ?,
                        statement_document = ?, statement_extractions = ?, extraction_performed = ?,
                        extraction_timestamp = ?, validation_status = ?, status = ?,
                        has_soft_copy = ?, has_hard_copy = ?,
                        is_vouched = 0, vouch_notes = NULL, vouched_at = NULL, updated_at = ?
                    WHERE id = ?
                """,
                    (*values, now, statement_id),
                )
                logger.debug("Updated statement %d (bank %d, %02d/%d)", statement_id, bank_id, month, year)
            else:
                cursor = conn.execute(
                    """
                    INSERT INTO statements
                    (company_id, cycle_id, statement_type, parent_statement_id,
                     statement_document, statement_extractions, extraction_performed,
                     extraction_timestamp, validation_status, status,
                     has_soft_copy, has_hard_copy,
                     bank_id, statement_month, statement_year, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                    (*values, bank_id, month, year, now, now),
                )
                statement_id = cursor.lastrowid
                logger.debug("Inserted statement %d (bank %d, %02d/%d)", statement_id, bank_id, month, year)

            row = conn.execute("SELECT * FROM statements WHERE id = ?", (statement_id,)).fetchone()
            return StatementRecord.from_row(row)

    def get_statement(self, statement_id: int) -> StatementRecord | None:
        """Get a statement record by ID."""
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM statements WHERE id = ?", (statement_id,)).fetchone()
            return StatementRecord.from_row(row) if row else None

    def find_statement(self, bank_id: int, month: int, year: int) -> StatementRecord | None:
        """Get the statement record at (bank_id, month, year)."""
        with self._transaction() as conn:
            row = conn.execute(
                """
                SELECT * FROM statements
                WHERE bank_id = ? AND statement_month = ? AND statement_year = ?
            """,
                (bank_id, month, year),
            ).fetchone()
            return StatementRecord.from_row(row) if row else None

    def get_children(self, parent_id: int) -> list[StatementRecord]:
        """Range-child records replicated from a parent, oldest month first."""
        with self._transaction() as conn:
            rows = conn.execute(
                """
                SELECT * FROM statements WHERE parent_statement_id = ?
                ORDER BY statement_year, statement_month
            """,
                (parent_id,),
            ).fetchall()
            return [StatementRecord.from_row(row) for row in rows]

    def list_statements(
        self,
        month: int | None = None,
        year: int | None = None,
        company_id: int | None = None,
    ) -> list[StatementRecord]:
        """List statement records with optional filters."""
        query = "SELECT * FROM statements WHERE 1=1"
        params: list[Any] = []
        if month is not None:
            query += " AND statement_month = ?"
            params.append(month)
        if year is not None:
            query += " AND statement_year = ?"
            params.append(year)
        if company_id is not None:
            query += " AND company_id = ?"
            params.append(company_id)
        query += " ORDER BY statement_year, statement_month, company_id, bank_id"

        with self._transaction() as conn:
            rows = conn.execute(query, params).fetchall()
            return [StatementRecord.from_row(row) for row in rows]

    def set_vouched(
        self,
        statement_ids: Iterable[int],
        vouched: bool,
        notes: str | None = None,
    ) -> int:
        """
        Set or clear the vouched flag on several records in one transaction.

        Returns:
            Number of records updated
        """
        ids = list(dict.fromkeys(statement_ids))
        if not ids:
            return 0

        vouched_at = _now() if vouched else None
        with self._transaction() as conn:
            updated = 0
            for statement_id in ids:
                cursor = conn.execute(
                    """
                    UPDATE statements
                    SET is_vouched = ?, vouch_notes = ?, vouched_at = ?, updated_at = ?
                    WHERE id = ?
                """,
                    (1 if vouched else 0, notes, vouched_at, _now(), statement_id),
                )
                updated += cursor.rowcount
            return updated

    # Statistics

    def get_stats(self) -> dict[str, Any]:
        """Get intake statistics."""
        with self._transaction() as conn:
            cycles = conn.execute("SELECT COUNT(*) as count FROM statement_cycles").fetchone()
            statements = conn.execute("SELECT COUNT(*) as count FROM statements").fetchone()
            children = conn.execute(
                "SELECT COUNT(*) as count FROM statements WHERE statement_type = ?",
                (StatementType.RANGE_CHILD.value,),
            ).fetchone()
            validated = conn.execute(
                "SELECT COUNT(*) as count FROM statements WHERE status = ?",
                (StatementStatus.VALIDATED.value,),
            ).fetchone()
            vouched = conn.execute(
                "SELECT COUNT(*) as count FROM statements WHERE is_vouched = 1"
            ).fetchone()

            return {
                "cycles_total": cycles["count"] if cycles else 0,
                "statements_total": statements["count"] if statements else 0,
                "range_children": children["count"] if children else 0,
                "statements_validated": validated["count"] if validated else 0,
                "statements_vouched": vouched["count"] if vouched else 0,
            }
