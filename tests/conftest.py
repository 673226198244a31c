"""
Pytest fixtures for Coliseum tests. Uses temporary SQLite files for the event log
and the snapshot repository, and a fixed evaluation instant.
"""

from __future__ import annotations

import sqlite3
from typing import Any

import pytest

from backend_coliseum.scoring.models import SECONDS_PER_DAY, Event

# 2023-11-14T22:13:20Z
NOW_TS = 1_700_000_000.0


@pytest.fixture
def now_ts() -> float:
    return NOW_TS


@pytest.fixture
def make_event():
    """Factory: make_event("e1", "player.track_played", artist_id="a1", days_ago=7, city="Lima")."""
    counter = {"n": 0}

    def _make(
        event_id: str | None = None,
        event_type: str = "player.track_played",
        *,
        artist_id: str | None = "artist-1",
        user_id: str = "user-1",
        days_ago: float = 0.0,
        **metadata: Any,
    ) -> Event:
        counter["n"] += 1
        meta = dict(metadata)
        if artist_id is not None:
            meta["artist_id"] = artist_id
        return Event(
            id=event_id or f"evt-{counter['n']}",
            user_id=user_id,
            event_type=event_type,
            timestamp=NOW_TS - days_ago * SECONDS_PER_DAY,
            metadata=meta,
        )

    return _make


@pytest.fixture
def event_log(tmp_path):
    """Local SQLite event log in a temp dir."""
    from backend_coliseum.database import get_database

    return get_database(tmp_path / "events.db")


@pytest.fixture
def broken_event_log(event_log, tmp_path):
    """The temp event log with its passport_entries table dropped underneath it."""
    conn = sqlite3.connect(str(tmp_path / "events.db"))
    try:
        conn.execute("DROP TABLE passport_entries")
        conn.commit()
    finally:
        conn.close()
    return event_log


@pytest.fixture
def snapshot_repo(tmp_path):
    """SQLAlchemy snapshot repository on a temp SQLite file."""
    from backend_coliseum.database import SnapshotRepository

    repo = SnapshotRepository(f"sqlite:///{tmp_path / 'snapshots.db'}")
    repo.init_db()
    yield repo
    repo.dispose()


@pytest.fixture
def engine(event_log, snapshot_repo):
    """Engine over the temp event log, persisting to the temp repository, clock fixed at NOW_TS."""
    from backend_coliseum.engine import ColiseumEngine

    return ColiseumEngine(event_log, sink=snapshot_repo, clock=lambda: NOW_TS)


@pytest.fixture
def client(engine, event_log):
    """FastAPI TestClient with injected engine and event log; periodic runner disabled."""
    from fastapi.testclient import TestClient

    from backend_coliseum.api_server.server import create_app

    app = create_app(engine=engine, event_log=event_log, start_runner=False)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def clean_env(monkeypatch):
    """Unset every Coliseum env var and reset the settings cache."""
    from backend_coliseum.config.settings import get_settings

    for name in (
        "COLISEUM_DB_PATH",
        "DB_PATH",
        "COLISEUM_SNAPSHOT_DB_URL",
        "DATABASE_URL",
        "COLISEUM_WEIGHTS_PATH",
        "EVENT_LOG_URL",
        "EVENT_LOG_API_KEY",
        "REFRESH_INTERVAL_SEC",
        "AGGREGATION_WORKERS",
        "API_HOST",
        "API_PORT",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield monkeypatch
    get_settings.cache_clear()
