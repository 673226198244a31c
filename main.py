"""
Main entrypoint: FastAPI server in the main thread; the periodic aggregation
runner is started by the app lifespan in a daemon thread.

On SIGINT/SIGTERM the server shuts down, the runner is signalled to stop and
the process exits.

Env: COLISEUM_DB_PATH, COLISEUM_SNAPSHOT_DB_URL, EVENT_LOG_URL, REFRESH_INTERVAL_SEC,
API_HOST, API_PORT, LOG_LEVEL, etc. (see backend_coliseum.config).

API only: uvicorn backend_coliseum.api_server.app:app --host 0.0.0.0 --port 8000
"""

# Configure structured JSON logging before other imports that may log
from backend_coliseum.coliseum_logging import get_logger
from backend_coliseum.coliseum_logging.logger import configure_structlog

logger = get_logger("main")


def main() -> None:
    """Run the FastAPI server (engine and runner are wired in the app lifespan)."""
    from backend_coliseum.config import get_settings

    settings = get_settings()
    configure_structlog(level=settings.log_level)

    from backend_coliseum.api_server.app import app
    import uvicorn

    logger.info(
        "main_server_starting",
        host=settings.api_host,
        port=settings.api_port,
        event_log="rest" if settings.event_log_url else str(settings.db_path),
        refresh_interval_sec=settings.refresh_interval_sec,
    )
    uvicorn.run(app, host=settings.api_host, port=settings.api_port, log_level=settings.log_level)


if __name__ == "__main__":
    main()
