"""
Application settings.

Typed, immutable view of the environment for the engine, worker and API.
Built once per process by get_settings(); tests call get_settings.cache_clear()
after changing env.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from backend_coliseum.config.env import (
    env_float,
    env_int,
    get_db_path,
    get_event_log_api_key,
    get_event_log_url,
    get_snapshot_db_url,
    get_weights_path,
    load_coliseum_env,
)

DEFAULT_REFRESH_INTERVAL_SEC = 300.0
DEFAULT_AGGREGATION_WORKERS = 4
MIN_REFRESH_INTERVAL_SEC = 1.0


@dataclass(frozen=True)
class Settings:
    """
    Service configuration.

    db_path: SQLite event log used when no REST event log is configured.
    snapshot_db_url: SQLAlchemy URL where published snapshots are persisted.
    weights_path: Optional JSON override for weight/decay tables.
    event_log_url: Optional REST event log base URL; takes precedence over db_path.
    refresh_interval_sec: Seconds between periodic full-window refreshes.
    aggregation_workers: Worker threads used for the sharded fold.
    """

    db_path: Path
    snapshot_db_url: str
    weights_path: Path | None
    event_log_url: str | None
    event_log_api_key: str | None
    refresh_interval_sec: float
    aggregation_workers: int
    api_host: str
    api_port: int
    log_level: str


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the current application settings (cached)."""
    load_coliseum_env()
    return Settings(
        db_path=get_db_path(),
        snapshot_db_url=get_snapshot_db_url(),
        weights_path=get_weights_path(),
        event_log_url=get_event_log_url(),
        event_log_api_key=get_event_log_api_key(),
        refresh_interval_sec=max(
            MIN_REFRESH_INTERVAL_SEC,
            env_float("REFRESH_INTERVAL_SEC", DEFAULT_REFRESH_INTERVAL_SEC),
        ),
        aggregation_workers=max(1, env_int("AGGREGATION_WORKERS", DEFAULT_AGGREGATION_WORKERS)),
        api_host=(os.getenv("API_HOST") or "0.0.0.0").strip(),
        api_port=env_int("API_PORT", 8000),
        log_level=(os.getenv("LOG_LEVEL") or "info").strip().lower(),
    )
