"""Bounded scan history for recently scored products."""

from __future__ import annotations

import sqlite3
import threading
from pathlib import Path

from ..scoring.models import ScoreResult
from .schema import ensure_schema


class ScanHistoryDB:
    """Keeps the most recent ``max_entries`` scans, newest first.

    Only a projection of each result is stored: name, score, risk level,
    source and timestamp.
    """

    def __init__(
        self,
        db_path: str | Path = "~/.config/foodrisk/history.db",
        max_entries: int = 10,
    ) -> None:
        if max_entries < 1:
            raise ValueError(f"max_entries must be at least 1, got {max_entries}")
        self._db_path = db_path
        self._max_entries = max_entries
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()

    @property
    def max_entries(self) -> int:
        return self._max_entries

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = ensure_schema(self._db_path)
        return self._conn

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def add(self, result: ScoreResult, source: str = "") -> int:
        """Record a scan and evict entries beyond the cap.

        Returns:
            The inserted row ID.
        """
        with self._lock:
            conn = self._get_conn()
            cur = conn.execute(
                """INSERT INTO scan_history (product_name, score, risk_level, source)
                   VALUES (?, ?, ?, ?)""",
                (result.product_name, result.score, result.risk_level.value, source),
            )
            # ids grow monotonically, so the largest ids are the newest scans
            conn.execute(
                """DELETE FROM scan_history WHERE id NOT IN (
                       SELECT id FROM scan_history ORDER BY id DESC LIMIT ?
                   )""",
                (self._max_entries,),
            )
            conn.commit()
            return cur.lastrowid

    def get_recent(self, limit: int | None = None) -> list[dict]:
        """Return stored scans, newest first."""
        with self._lock:
            conn = self._get_conn()
            rows = conn.execute(
                """SELECT id, product_name, score, risk_level, source, scanned_at
                   FROM scan_history ORDER BY id DESC LIMIT ?""",
                (limit if limit is not None else self._max_entries,),
            ).fetchall()
        return [dict(r) for r in rows]

    def clear(self) -> int:
        """Delete every entry. Returns the number of rows removed."""
        with self._lock:
            conn = self._get_conn()
            cur = conn.execute("DELETE FROM scan_history")
            conn.commit()
            return cur.rowcount
