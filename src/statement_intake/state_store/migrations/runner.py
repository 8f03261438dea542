"""
Versioned schema migrations for the state store.

Migration modules live next to this file and are named NNN_name.py.
Each one defines VERSION (int), NAME (str) and upgrade(conn).
Applied versions are recorded in the `migrations` table, so a database
can be opened repeatedly and only new migrations run.
"""

import importlib
import logging
import sqlite3
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)

MIGRATION_GLOB = "[0-9][0-9][0-9]_*.py"


@dataclass(frozen=True)
class Migration:
    """A single schema migration."""

    version: int
    name: str
    upgrade: Callable[[sqlite3.Connection], None]


def get_all_migrations() -> list[Migration]:
    """Discover migration modules, ordered by version.

    Raises:
        RuntimeError: If two modules declare the same version
    """
    found: dict[int, Migration] = {}
    for path in sorted(Path(__file__).parent.glob(MIGRATION_GLOB)):
        module = importlib.import_module(f"{__package__}.{path.stem}")
        migration = Migration(version=module.VERSION, name=module.NAME, upgrade=module.upgrade)
        if migration.version in found:
            raise RuntimeError(
                f"Duplicate migration version {migration.version}: "
                f"{found[migration.version].name} and {migration.name}"
            )
        found[migration.version] = migration
    return [found[v] for v in sorted(found)]


class MigrationRunner:
    """Applies pending migrations on one connection."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS migrations (
                version INTEGER PRIMARY KEY,
                name TEXT NOT NULL,
                applied_at TEXT NOT NULL
            )
        """
        )
        self.conn.commit()

    def get_applied_versions(self) -> set[int]:
        rows = self.conn.execute("SELECT version FROM migrations").fetchall()
        return {row[0] for row in rows}

    def get_current_version(self) -> int:
        row = self.conn.execute("SELECT MAX(version) FROM migrations").fetchone()
        return row[0] or 0

    def pending(self) -> list[Migration]:
        applied = self.get_applied_versions()
        return [m for m in get_all_migrations() if m.version not in applied]

    def apply(self, migration: Migration) -> None:
        """Run one migration and record it, atomically."""
        logger.info("Applying migration %03d_%s", migration.version, migration.name)
        try:
            migration.upgrade(self.conn)
            self.conn.execute(
                "INSERT INTO migrations (version, name, applied_at) VALUES (?, ?, ?)",
                (
                    migration.version,
                    migration.name,
                    datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
                ),
            )
            self.conn.commit()
        except sqlite3.Error:
            self.conn.rollback()
            logger.exception("Migration %03d_%s failed", migration.version, migration.name)
            raise

    def run_pending(self) -> list[int]:
        """Apply every pending migration in version order.

        Returns:
            Versions applied by this call
        """
        applied = []
        for migration in self.pending():
            self.apply(migration)
            applied.append(migration.version)
        if applied:
            logger.info("Applied %d migration(s): %s", len(applied), applied)
        return applied
