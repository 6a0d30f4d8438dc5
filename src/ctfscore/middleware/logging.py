"""Structured logging configuration with structlog.

Domain events (``flag_submitted``, ``solve_recorded``, ...) are logged with
structlog; stdlib loggers used by the gamification helpers go through the
same root handler at the configured level.
"""

import logging
from collections.abc import MutableMapping
from typing import Any

import structlog

from ctfscore.config import Settings

# Chatty third-party loggers capped at WARNING
_QUIET_LOGGERS = ("aiosqlite", "asyncio", "sqlalchemy.engine")


def _service_context(settings: Settings) -> structlog.types.Processor:
    def add_service(_logger: Any, _method: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:  # noqa: ANN401
        event_dict.setdefault("service", "ctfscore")
        event_dict.setdefault("environment", settings.environment)
        return event_dict

    return add_service


def setup_logging(settings: Settings) -> None:
    """Configure structlog for JSON or console output."""
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if settings.log_format == "json" else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            _service_context(settings),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
