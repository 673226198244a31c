"""
Application-level exceptions.

One base class so API and worker error handling can catch engine failures
without swallowing programming errors.
"""

from __future__ import annotations


class ColiseumError(Exception):
    """Base class for all Coliseum engine errors."""


class ConfigError(ColiseumError):
    """Scoring configuration (weights, decay) is invalid."""


class InvalidEventError(ColiseumError):
    """Raw event record cannot be normalized (missing id, type or timestamp)."""


class EventLogError(ColiseumError):
    """Event log could not be read or written."""


class PublishError(ColiseumError):
    """
    Aggregation snapshot could not be published.

    The in-progress snapshot is discarded; the previously published snapshot
    stays visible and the pass is retried on the next cycle.
    """

    def __init__(self, window: str, message: str) -> None:
        super().__init__(f"publish failed for window={window}: {message}")
        self.window = window
