"""
Periodic aggregation runner.

run_periodic_worker(): every interval_sec, recompute and publish each window.
Started by the FastAPI lifespan in a background thread; never blocks the API.
A failed window (event log down, publish failure) is logged and retried on the
next tick; the loop itself never exits until stop_event is set.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field

from backend_coliseum.coliseum_logging import get_logger
from backend_coliseum.core.exceptions import ColiseumError
from backend_coliseum.engine import ColiseumEngine
from backend_coliseum.scoring.models import TimeWindow

logger = get_logger(__name__)

DEFAULT_PERIODIC_INTERVAL_SEC = 300.0
SHUTDOWN_JOIN_TIMEOUT_SEC = 15.0


@dataclass
class PeriodicRunnerConfig:
    """Config for the periodic background runner (event log -> aggregate -> publish)."""

    interval_sec: float = DEFAULT_PERIODIC_INTERVAL_SEC
    windows: tuple[TimeWindow, ...] = field(default_factory=lambda: tuple(TimeWindow))


def refresh_all_windows(
    engine: ColiseumEngine,
    windows: tuple[TimeWindow, ...],
    stop_event: threading.Event | None = None,
) -> tuple[int, int]:
    """Refresh each window once at a shared instant. Returns (refreshed, errors)."""
    now_ts = time.time()
    refreshed = 0
    errors = 0
    for window in windows:
        if stop_event is not None and stop_event.is_set():
            break
        try:
            engine.refresh_aggregates(window, now_ts)
            refreshed += 1
        except ColiseumError as e:
            errors += 1
            logger.warning("periodic_window_failed", window=window.value, error=str(e))
        except Exception as e:
            errors += 1
            logger.exception("periodic_window_crashed", window=window.value, error=str(e))
    return refreshed, errors


def run_periodic_worker(
    engine: ColiseumEngine,
    config: PeriodicRunnerConfig,
    stop_event: threading.Event,
) -> None:
    """
    Run the periodic refresh loop until stop_event is set. Crashes in a single
    tick are caught and logged; the loop continues. Intended to run in a
    background thread (e.g. from FastAPI lifespan).
    """
    interval = max(1.0, config.interval_sec)
    logger.info(
        "periodic_runner_started",
        interval_sec=interval,
        windows=[w.value for w in config.windows],
    )
    tick_count = 0
    while not stop_event.is_set():
        tick_start = time.monotonic()
        tick_count += 1
        try:
            refreshed, errors = refresh_all_windows(engine, config.windows, stop_event)
            logger.info(
                "periodic_tick_done",
                tick=tick_count,
                refreshed=refreshed,
                errors=errors,
                duration_ms=round((time.monotonic() - tick_start) * 1000, 2),
            )
        except Exception as e:
            logger.exception("periodic_tick_failed", tick=tick_count, error=str(e))
        # Sleep until next tick; wake periodically to check stop_event
        deadline = tick_start + interval
        while not stop_event.is_set() and time.monotonic() < deadline:
            stop_event.wait(timeout=min(1.0, max(0, deadline - time.monotonic())))
    logger.info("periodic_runner_stopped", tick_count=tick_count)
