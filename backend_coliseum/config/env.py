"""
Environment variable loading for Coliseum.

- COLISEUM_DB_PATH: SQLite event log file (default: coliseum.db)
- COLISEUM_SNAPSHOT_DB_URL: SQLAlchemy URL for published snapshots (default: SQLite next to the event log)
- COLISEUM_WEIGHTS_PATH: optional JSON override for weight/decay tables
- EVENT_LOG_URL / EVENT_LOG_API_KEY: optional REST event log (PostgREST-style)
- Loads .env from project root when available.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Project root: config is backend_coliseum/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_BACKEND_DIR = _CONFIG_DIR.parent
_ROOT = _BACKEND_DIR.parent
_ENV_PATH = _ROOT / ".env"

DEFAULT_DB_PATH = "coliseum.db"
DEFAULT_SNAPSHOT_DB_PATH = "coliseum_snapshots.db"


def load_coliseum_env() -> None:
    """Load .env from project root. Safe to call multiple times; real env wins."""
    if _ENV_PATH.is_file():
        load_dotenv(_ENV_PATH, override=False)


def get_db_path() -> Path:
    """Return COLISEUM_DB_PATH (falls back to DB_PATH, then coliseum.db)."""
    load_coliseum_env()
    raw = (os.getenv("COLISEUM_DB_PATH") or os.getenv("DB_PATH") or "").strip()
    return Path(raw or DEFAULT_DB_PATH)


def get_snapshot_db_url() -> str:
    """
    Resolve the snapshot store URL.
    Order: COLISEUM_SNAPSHOT_DB_URL > DATABASE_URL > sqlite file in cwd.
    """
    load_coliseum_env()
    url = (os.getenv("COLISEUM_SNAPSHOT_DB_URL") or os.getenv("DATABASE_URL") or "").strip()
    if url:
        return url
    return f"sqlite:///{DEFAULT_SNAPSHOT_DB_PATH}"


def get_weights_path() -> Path | None:
    """Return COLISEUM_WEIGHTS_PATH if set, else None (built-in tables)."""
    load_coliseum_env()
    raw = (os.getenv("COLISEUM_WEIGHTS_PATH") or "").strip()
    return Path(raw) if raw else None


def get_event_log_url() -> str | None:
    """Return EVENT_LOG_URL (REST event log base URL) or None for the local SQLite log."""
    load_coliseum_env()
    raw = (os.getenv("EVENT_LOG_URL") or "").strip()
    return raw.rstrip("/") if raw else None


def get_event_log_api_key() -> str | None:
    load_coliseum_env()
    raw = (os.getenv("EVENT_LOG_API_KEY") or "").strip()
    return raw or None


def env_float(name: str, default: float) -> float:
    """Read a float env var; empty or unparsable values fall back to default."""
    load_coliseum_env()
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def env_int(name: str, default: int) -> int:
    """Read an int env var; empty or unparsable values fall back to default."""
    load_coliseum_env()
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default
