"""
Structured logging setup for Vocali.

Configures structlog for structured logging across the service. Every
log line includes timestamp, level, service name, and event. Production
renders JSON lines for log shippers; other environments use the
human-readable console renderer.
"""

from __future__ import annotations

import logging
from typing import Any

import structlog

SERVICE_NAME = "vocali-api"


def _add_service(
    logger: Any, method_name: str, event_dict: dict[str, Any],
) -> dict[str, Any]:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def configure_logging(level: str = "INFO", *, json_logs: bool = False) -> None:
    """Configure structlog processors and the minimum log level.

    Args:
        level: Level name (``DEBUG``, ``INFO``, ``WARNING``, ``ERROR``, ``CRITICAL``).
            Unknown names fall back to ``INFO``.
        json_logs: Render JSON lines instead of the console format.
    """
    numeric_level = logging.getLevelName(level.strip().upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    renderer: Any = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            _add_service,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )
