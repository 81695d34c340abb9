"""SQLite storage for scan history."""

from .scan_history import ScanHistoryDB
from .schema import ensure_schema

__all__ = [
    "ScanHistoryDB",
    "ensure_schema",
]
