"""structlog configuration."""

from __future__ import annotations

import logging

import structlog

from .config import settings


def configure_logging(level: str | None = None, log_format: str | None = None) -> None:
    """Configure structlog and the standard-library root logger.

    Args:
        level: Log level name (defaults to settings.LOG_LEVEL)
        log_format: 'json' or 'console' (defaults to settings.LOG_FORMAT)
    """
    level_name = (level or settings.LOG_LEVEL).upper()
    numeric_level = logging.getLevelName(level_name)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    logging.basicConfig(format="%(message)s", level=numeric_level)

    renderer: structlog.types.Processor
    if (log_format or settings.LOG_FORMAT).lower() == "console":
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        cache_logger_on_first_use=True,
    )
