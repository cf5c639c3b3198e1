"""Structured logging configuration."""

import logging
import sys
from typing import Any

import structlog
from structlog.processors import JSONRenderer, TimeStamper, add_log_level
from structlog.stdlib import add_logger_name

from app.core.config import Settings


def setup_logging(settings: Settings) -> None:
    """Configure structlog and route stdlib logging to stdout at the same level."""
    log_level = settings.app.log_level.value

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        add_log_level,
        add_logger_name,
        TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if settings.observability.log_record_format == "json":
        processors.append(JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(log_level)),
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger for a module."""
    return structlog.get_logger(name)


def bind_actor(user_id: str, ip_address: str | None = None) -> None:
    """Attach the acting user to every log line emitted in this request context."""
    structlog.contextvars.bind_contextvars(actor_id=user_id, ip_address=ip_address)


def clear_actor() -> None:
    structlog.contextvars.clear_contextvars()


def start_request_context(request_id: str) -> None:
    """Drop context left by a previous request and tag new log lines with its ID."""
    clear_actor()
    structlog.contextvars.bind_contextvars(request_id=request_id)
