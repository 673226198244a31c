"""
Configuration management for the Coliseum engine.

Loads settings from environment variables and an optional .env file.
Exposes a single source of truth for service configuration.
"""

from backend_coliseum.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
