"""
Structured logging setup.
"""
import logging

import structlog

from .config import Settings


def configure_logging(settings: Settings) -> None:
    """Configure structlog once per process from ``settings``."""
    renderer = (
        structlog.dev.ConsoleRenderer()
        if settings.DEBUG or not settings.LOG_JSON
        else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, settings.LOG_LEVEL)),
        logger_factory=structlog.WriteLoggerFactory(),
        cache_logger_on_first_use=settings.is_production,
    )
