"""
Tests for coliseum_logging: import without circular imports, processors and bound context.
"""

from __future__ import annotations


def test_logging_import():
    """Import get_logger from coliseum_logging and use the logger."""
    from backend_coliseum.coliseum_logging import bind_artist, get_logger

    logger = get_logger("test")
    assert logger is not None
    assert hasattr(logger, "info")
    assert hasattr(logger, "debug")
    assert hasattr(logger, "warning")
    assert hasattr(logger, "error")
    # Smoke test: call info (should not raise)
    logger.info("test_message", key="value")
    bind_artist("artist-1").info("artist_scoped_message", window="7d")


def test_normalize_event_renames_event_key():
    from backend_coliseum.coliseum_logging.logger import _normalize_event

    out = _normalize_event(None, "info", {"event": "aggregates_refreshed", "window": "7d"})
    assert out["event_type"] == "aggregates_refreshed"
    assert out["message"] == "aggregates_refreshed"
    assert "event" not in out


def test_enum_values_render_by_value():
    from backend_coliseum.coliseum_logging.logger import _enum_values
    from backend_coliseum.scoring.models import Domain, TimeWindow

    out = _enum_values(None, "info", {"domain": Domain.ECONOMIC, "windows": [TimeWindow.ALL_TIME, "x"], "n": 3})
    assert out == {"domain": "G", "windows": ["alltime", "x"], "n": 3}


def test_refresh_scope_binds_window_context():
    import structlog

    from backend_coliseum.coliseum_logging import refresh_scope

    with refresh_scope("7d", 1_700_000_000.0):
        ctx = structlog.contextvars.get_contextvars()
        assert ctx["window"] == "7d"
        assert ctx["evaluated_at"] == 1_700_000_000.0
    assert "window" not in structlog.contextvars.get_contextvars()


def test_bind_artist_uses_module_logger_name():
    from structlog.testing import capture_logs

    from backend_coliseum.coliseum_logging import bind_artist

    with capture_logs() as logs:
        bind_artist("artist-9", "backend_coliseum.engine").info("entity_rank_unranked", domain="G")
    (record,) = logs
    assert record["event"] == "entity_rank_unranked"
    assert record["artist_id"] == "artist-9"
    assert record["logger"] == "backend_coliseum.engine"
