"""structlog setup for the SaveAI backend.

Request-scoped values (request id, method, path, caller) are bound once per
request through ``structlog.contextvars`` and merged into every event logged
while that request is handled, including from worker threads started with
``asyncio.to_thread``.
"""

from __future__ import annotations

import logging
from typing import Any

import structlog

from config import Settings, get_settings

SERVICE_NAME = "saveai"

# Keys whose values must never reach a log sink.
REDACTED_KEYS = frozenset({"authorization", "token", "access_token", "api_key", "password", "cookie"})
REDACTED = "[redacted]"


def redact_secrets(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    for key in list(event_dict):
        if key.lower() in REDACTED_KEYS:
            event_dict[key] = REDACTED
    return event_dict


def configure_logging(settings: Settings | None = None) -> None:
    """Configure structlog and the stdlib root logger used by uvicorn."""

    settings = settings or get_settings()
    level = logging.getLevelName(settings.log_level.upper())

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        redact_secrets,
        structlog.processors.format_exc_info,
    ]
    if settings.log_json:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(level=level, format="%(message)s")


def get_logger(name: str = SERVICE_NAME, **initial_values: Any) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name, service=SERVICE_NAME, **initial_values)


def bind_request_context(**values: Any) -> None:
    structlog.contextvars.bind_contextvars(**values)


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()


__all__ = [
    "REDACTED",
    "bind_request_context",
    "clear_request_context",
    "configure_logging",
    "get_logger",
    "redact_secrets",
]
