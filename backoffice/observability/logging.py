"""
Structured Logging with Structlog.

Every entry carries the service name and version. Inside a request it also
carries ``request_id``, plus ``caller_id`` and ``caller_role`` once the
credential is verified. Credential fields are masked before rendering.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from backoffice.config import settings
from backoffice.models.domain import Identity

REDACTED_KEYS = frozenset({"password", "token", "access_token", "session", "authorization"})


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict["service"] = settings.service_name
    event_dict["version"] = settings.api_version
    return event_dict


def redact_secrets(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Mask credentials passed as log fields."""
    for key in REDACTED_KEYS.intersection(event_dict):
        event_dict[key] = "***"
    return event_dict


def _renderer() -> Processor:
    if settings.log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def setup_logging() -> None:
    """
    Route structlog through stdlib logging at ``LOG_LEVEL``.

    With ``LOG_FORMAT=json`` a quota rejection renders as:
    {"event": "quota_exceeded", "kind": "storage", "owner_id": "...",
     "request_id": "...", "caller_role": "client", "level": "warning", ...}
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level.upper()),
    )

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_app_context,
        redact_secrets,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _renderer(),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)  # type: ignore[no-any-return]


@contextmanager
def log_context(**context: Any) -> Iterator[None]:
    """
    Bind fields to every entry logged inside the block.

    Usage:
        with log_context(request_id=request_id):
            logger.info("request_started")
    """
    with structlog.contextvars.bound_contextvars(**context):
        yield


def bind_caller(identity: Identity) -> None:
    """Attach the verified caller to the rest of the request's log entries."""
    structlog.contextvars.bind_contextvars(caller_id=identity.id, caller_role=identity.role)
