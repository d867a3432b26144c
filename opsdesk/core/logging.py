"""Logging and observability configuration using Pydantic Logfire.

Modules log through ``logging.getLogger(__name__)`` with structured
``extra={...}`` fields; :func:`configure_logfire` routes those records into
Logfire next to the spans opened by :func:`span`.
"""

import logging

import logfire
from fastapi import FastAPI

from opsdesk.core.config import settings


logger = logging.getLogger(__name__)


def configure_logfire(level: int = logging.INFO) -> None:
    """Configure Logfire and attach it to the root logger.

    Without LOGFIRE_TOKEN nothing is sent; records are still printed by
    Logfire's console exporter.
    """
    logfire.configure(
        token=settings.logfire_token,
        service_name="opsdesk",
        service_version="0.1.0",
        environment=settings.environment,
        send_to_logfire="if-token-present",
    )

    root = logging.getLogger()
    if not any(isinstance(handler, logfire.LogfireLoggingHandler) for handler in root.handlers):
        root.addHandler(logfire.LogfireLoggingHandler())
    root.setLevel(level)

    logger.info("Logfire configured", extra={"environment": settings.environment})


def instrument_fastapi(app: FastAPI) -> None:
    """Add Logfire request spans to a FastAPI application."""
    logfire.instrument_fastapi(app)
    logger.debug("FastAPI instrumentation configured")


def span(name: str, **attributes: object) -> logfire.LogfireSpan:
    """Open a span around a service operation.

    Usage:
        with span("scheduling.create_task"):
            ...
    """
    return logfire.span(name, **attributes)
