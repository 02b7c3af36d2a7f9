"""Process entry point: logging setup and the ASGI server."""

from __future__ import annotations

import logging

import uvicorn

from termgate.api.app import create_app
from termgate.config import Settings, get_settings

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(settings: Settings) -> None:
    """Log to stdout and, when ``log_file`` is set, append to that file too."""
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)

    if settings.log_file:
        handler = logging.FileHandler(settings.log_file, encoding="utf-8")
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logging.getLogger().addHandler(handler)
        logger.info("logging to %s", settings.log_file)


def main() -> None:
    """Entry point for ``python -m termgate.server``."""
    settings = get_settings()
    configure_logging(settings)
    logger.info("starting termgate on %s:%d", settings.host, settings.port)
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_config=None,
        ws_ping_interval=settings.keepalive_interval_seconds,
        ws_ping_timeout=settings.read_deadline_seconds,
    )


if __name__ == "__main__":
    main()
