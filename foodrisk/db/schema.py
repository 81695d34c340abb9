"""Database schema definitions and migration helpers."""

from __future__ import annotations

import sqlite3
from pathlib import Path

_SCHEMA_VERSION = 1

_DDL = """
CREATE TABLE IF NOT EXISTS scan_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    product_name TEXT NOT NULL,
    score INTEGER NOT NULL,
    risk_level TEXT NOT NULL,
    source TEXT NOT NULL DEFAULT '',
    scanned_at TEXT NOT NULL DEFAULT (datetime('now', 'localtime'))
);

CREATE INDEX IF NOT EXISTS idx_scan_history_scanned_at ON scan_history(scanned_at);

CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER NOT NULL
);
"""


def ensure_schema(db_path: str | Path) -> sqlite3.Connection:
    """Open (or create) the database and ensure the schema is up to date.

    Args:
        db_path: Path to the SQLite database file.

    Returns:
        An open sqlite3.Connection with the schema applied.
    """
    db_path = Path(db_path).expanduser()
    db_path.parent.mkdir(parents=True, exist_ok=True)

    # The API serves requests from a threadpool, the connection is guarded
    # by ScanHistoryDB's lock
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")

    try:
        row = conn.execute("SELECT version FROM schema_version").fetchone()
        current_version = row["version"] if row else 0
    except sqlite3.OperationalError:
        current_version = 0

    if current_version < _SCHEMA_VERSION:
        conn.executescript(_DDL)
        conn.execute("DELETE FROM schema_version")
        conn.execute(
            "INSERT INTO schema_version (version) VALUES (?)",
            (_SCHEMA_VERSION,),
        )
        conn.commit()

    return conn
