"""
Structured logging for Backend Coliseum.

JSON logs keyed by event_type, with artist_id / window / evaluated_at bound
where they apply. Use get_logger(__name__) in every module.
"""

from backend_coliseum.coliseum_logging.logger import bind_artist, get_logger, refresh_scope

__all__ = ["bind_artist", "get_logger", "refresh_scope"]
