"""structlog setup for the client and the maintenance scripts."""

import logging
from typing import Optional

import structlog

from procurement_lifecycle.config import settings


def log_level(name: Optional[str] = None) -> int:
    return getattr(logging, (name or settings.LOG_LEVEL).upper(), logging.INFO)


def setup_logging(level: Optional[str] = None, json_output: Optional[bool] = None):
    """
    Console lines in development, JSON elsewhere. Every event is tagged with
    the client name and version so it can be matched against portal logs.
    """
    if json_output is None:
        json_output = settings.ENVIRONMENT != "development"
    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level(level)),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    structlog.contextvars.bind_contextvars(client=settings.APP_NAME, client_version=settings.APP_VERSION)
