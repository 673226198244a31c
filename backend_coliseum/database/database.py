"""
Local Passport event log: append-only store of engagement events.

MVP uses SQLite; designed so the backend can be swapped for another store via
a different EventLogBackend implementation. The engine only depends on the
reader contract fetch(since, until) -> list[Event].
"""

from __future__ import annotations

import json
import sqlite3
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator

from backend_coliseum.coliseum_logging import get_logger
from backend_coliseum.core.exceptions import EventLogError
from backend_coliseum.scoring.models import Event

logger = get_logger(__name__)

# -----------------------------------------------------------------------------
# Schema (SQLite)
# -----------------------------------------------------------------------------

SCHEMA_PASSPORT_ENTRIES = """
CREATE TABLE IF NOT EXISTS passport_entries (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL DEFAULT '',
    event_type TEXT NOT NULL,
    timestamp REAL NOT NULL,
    metadata_json TEXT
);
CREATE INDEX IF NOT EXISTS ix_passport_entries_timestamp ON passport_entries(timestamp);
CREATE INDEX IF NOT EXISTS ix_passport_entries_event_type ON passport_entries(event_type);
"""


# -----------------------------------------------------------------------------
# Abstract backend
# -----------------------------------------------------------------------------


class EventLogBackend(ABC):
    """Abstract interface for the event log; implement for SQLite or another store."""

    @abstractmethod
    def ensure_schema(self) -> None:
        """Create tables and indexes if they do not exist."""
        ...

    @abstractmethod
    def insert_events(self, events: list[Event]) -> int:
        """Insert events; rows whose id already exists are ignored. Returns number inserted."""
        ...

    @abstractmethod
    def fetch(self, since: float | None = None, until: float | None = None) -> list[Event]:
        """Return events with since <= timestamp < until (either bound may be None)."""
        ...

    @abstractmethod
    def count(self) -> int:
        ...


# -----------------------------------------------------------------------------
# SQLite backend
# -----------------------------------------------------------------------------


class SQLiteBackend(EventLogBackend):
    """SQLite implementation; single file, one connection per operation."""

    def __init__(self, path: str | Path, *, timeout_sec: float = 5.0) -> None:
        self._path = Path(path)
        self._timeout_sec = timeout_sec

    def _connect(self) -> sqlite3.Connection:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self._path), timeout=self._timeout_sec)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode = WAL")
        return conn

    @contextmanager
    def _cursor(self) -> Iterator[sqlite3.Cursor]:
        """Connection-scoped cursor; sqlite3 errors surface as EventLogError."""
        try:
            conn = self._connect()
        except sqlite3.Error as e:
            raise EventLogError(f"cannot open event log {self._path}: {e}") from e
        try:
            cur = conn.cursor()
            yield cur
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise EventLogError(f"event log {self._path}: {e}") from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def ensure_schema(self) -> None:
        with self._cursor() as cur:
            cur.executescript(SCHEMA_PASSPORT_ENTRIES)

    def insert_events(self, events: list[Event]) -> int:
        if not events:
            return 0
        with self._cursor() as cur:
            before = cur.connection.total_changes
            cur.executemany(
                """
                INSERT OR IGNORE INTO passport_entries (id, user_id, event_type, timestamp, metadata_json)
                VALUES (?, ?, ?, ?, ?)
                """,
                [
                    (
                        e.id,
                        e.user_id,
                        e.event_type,
                        e.timestamp,
                        json.dumps(dict(e.metadata), default=str) if e.metadata else None,
                    )
                    for e in events
                ],
            )
            return cur.connection.total_changes - before

    def fetch(self, since: float | None = None, until: float | None = None) -> list[Event]:
        clauses: list[str] = []
        params: list[float] = []
        if since is not None:
            clauses.append("timestamp >= ?")
            params.append(since)
        if until is not None:
            clauses.append("timestamp < ?")
            params.append(until)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        with self._cursor() as cur:
            cur.execute(
                f"""
                SELECT id, user_id, event_type, timestamp, metadata_json
                FROM passport_entries {where}
                ORDER BY timestamp ASC, id ASC
                """,
                params,
            )
            rows = cur.fetchall()
        out: list[Event] = []
        for r in rows:
            try:
                metadata = json.loads(r["metadata_json"]) if r["metadata_json"] else {}
            except json.JSONDecodeError:
                logger.warning("event_log_metadata_invalid", event_id=r["id"])
                metadata = {}
            out.append(
                Event(
                    id=r["id"],
                    user_id=r["user_id"] or "",
                    event_type=r["event_type"],
                    timestamp=float(r["timestamp"]),
                    metadata=metadata if isinstance(metadata, dict) else {},
                )
            )
        return out

    def count(self) -> int:
        with self._cursor() as cur:
            cur.execute("SELECT COUNT(*) AS n FROM passport_entries")
            row = cur.fetchone()
        return int(row["n"]) if row else 0


# -----------------------------------------------------------------------------
# Database facade: single entrypoint; backend is swappable.
# -----------------------------------------------------------------------------


class Database:
    """
    Event log facade used by the engine (reader) and the API (ingest).

    Uses a Backend (SQLite for MVP).
    """

    def __init__(self, backend: EventLogBackend) -> None:
        self._backend = backend

    def ensure_schema(self) -> None:
        self._backend.ensure_schema()

    def insert_events(self, events: Iterable[Event]) -> tuple[int, int]:
        """Insert events, ignoring duplicate ids. Returns (inserted, duplicates)."""
        batch = list(events)
        inserted = self._backend.insert_events(batch)
        duplicates = len(batch) - inserted
        logger.info("event_log_insert", received=len(batch), inserted=inserted, duplicates=duplicates)
        return inserted, duplicates

    def fetch(self, since: float | None = None, until: float | None = None) -> list[Event]:
        """Reader contract: events with since <= timestamp < until."""
        return self._backend.fetch(since, until)

    def count(self) -> int:
        return self._backend.count()


def get_database(path: str | Path | None = None) -> Database:
    """
    Return a Database instance (SQLite) with schema ensured.

    path: SQLite file; default "coliseum.db" in cwd.
    """
    if path is None:
        path = Path("coliseum.db")
    db = Database(SQLiteBackend(path))
    db.ensure_schema()
    return db
