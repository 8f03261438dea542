"""
Migration 001: Add vouching detail columns to statements.

vouch_notes holds the reviewer's note, vouched_at the sign-off time.
"""

import sqlite3

VERSION = 1
NAME = "vouching_columns"


def upgrade(conn: sqlite3.Connection) -> None:
    """Add vouch_notes and vouched_at columns."""
    cursor = conn.execute("PRAGMA table_info(statements)")
    columns = [row[1] for row in cursor.fetchall()]

    if "vouch_notes" not in columns:
        conn.execute("ALTER TABLE statements ADD COLUMN vouch_notes TEXT")
    if "vouched_at" not in columns:
        conn.execute("ALTER TABLE statements ADD COLUMN vouched_at TEXT")
