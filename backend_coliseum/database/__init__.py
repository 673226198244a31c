"""
Persistence layer: Passport event log (SQLite or REST) and published snapshot repository.

The event log uses Database and get_database(); the backend is swappable.
Snapshots go through SQLAlchemy on any database URL.
"""

from backend_coliseum.database.database import (
    Database,
    EventLogBackend,
    SQLiteBackend,
    get_database,
)
from backend_coliseum.database.rest_reader import RestEventLogReader
from backend_coliseum.database.snapshot_repository import SnapshotRepository

__all__ = [
    "Database",
    "EventLogBackend",
    "RestEventLogReader",
    "SQLiteBackend",
    "SnapshotRepository",
    "get_database",
]
