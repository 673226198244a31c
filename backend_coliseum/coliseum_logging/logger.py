"""
Structured logging for the scoring engine, worker and API.

structlog, JSON by default (LOG_FORMAT=console for local work). Every record
carries event_type, level, ISO timestamp and the module logger name. Context
that spans many calls is bound rather than repeated:

- bind_artist(): artist_id on per-artist logs (generator skips, rank lookups)
- refresh_scope(): window and evaluated_at on everything logged during one
  aggregation pass, including the aggregator's own records

Domain and TimeWindow members are rendered by value ("A", "7d").

No backend_coliseum imports here; this module is imported first.
"""

from __future__ import annotations

import logging
import os
import sys
from contextlib import contextmanager
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterator

import structlog

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_LEVEL_VALUE = getattr(logging, LOG_LEVEL, logging.INFO)
LOG_FORMAT = os.getenv("LOG_FORMAT", "json").strip().lower()

ROOT_LOGGER_NAME = "backend_coliseum"


def _add_timestamp(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    if "timestamp" not in event_dict:
        event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def _normalize_event(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """structlog's 'event' becomes event_type; message mirrors it for log shippers."""
    if "event" in event_dict and "event_type" not in event_dict:
        event_dict["event_type"] = event_dict.pop("event")
    if "message" not in event_dict and "event_type" in event_dict:
        event_dict["message"] = str(event_dict["event_type"])
    return event_dict


def _enum_values(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Render enum members (Domain, TimeWindow) by value, including inside lists."""
    for key, value in event_dict.items():
        if isinstance(value, Enum):
            event_dict[key] = value.value
        elif isinstance(value, (list, tuple)) and any(isinstance(v, Enum) for v in value):
            event_dict[key] = [v.value if isinstance(v, Enum) else v for v in value]
    return event_dict


def configure_structlog(level: str | None = None, fmt: str | None = None) -> None:
    """(Re)configure structlog. Defaults come from LOG_LEVEL and LOG_FORMAT."""
    level_value = getattr(logging, (level or LOG_LEVEL).upper(), LOG_LEVEL_VALUE)
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _add_timestamp,
        _enum_values,
        _normalize_event,
    ]
    if (fmt or LOG_FORMAT) == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level_value),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


if not structlog.is_configured():
    configure_structlog()


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Module logger. First positional arg is the event_type:
        logger = get_logger(__name__)
        logger.info("aggregates_refreshed", window="7d", rows=120)
    """
    return structlog.get_logger(name).bind(logger=name)


def bind_artist(artist_id: str, name: str = ROOT_LOGGER_NAME) -> structlog.BoundLogger:
    """Logger for name with artist_id bound to every record."""
    return get_logger(name).bind(artist_id=artist_id)


@contextmanager
def refresh_scope(window: str, evaluated_at: float) -> Iterator[None]:
    """Bind window and evaluated_at to every record logged in this thread until exit."""
    with structlog.contextvars.bound_contextvars(window=window, evaluated_at=evaluated_at):
        yield
