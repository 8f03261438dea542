"""
Migration 002: Track soft/hard copy availability per statement.

Every uploaded statement is a soft copy; hard copies are recorded
separately when the paper original is received.
"""

import sqlite3

VERSION = 2
NAME = "copy_flags"


def upgrade(conn: sqlite3.Connection) -> None:
    """Add has_soft_copy and has_hard_copy columns."""
    cursor = conn.execute("PRAGMA table_info(statements)")
    columns = [row[1] for row in cursor.fetchall()]

    if "has_soft_copy" not in columns:
        conn.execute("ALTER TABLE statements ADD COLUMN has_soft_copy INTEGER NOT NULL DEFAULT 1")
    if "has_hard_copy" not in columns:
        conn.execute("ALTER TABLE statements ADD COLUMN has_hard_copy INTEGER NOT NULL DEFAULT 0")
