"""Structured logging for GLOBEMARK using structlog.

Every log event emitted while a GlobeController is serving a request carries
two correlation fields:

- ``session_id``: the controller session (one globe view)
- ``request_id``: the fetch, upload or search currently in flight

``request_scope`` binds both for the duration of one request and restores
the previous values afterwards, so interleaved async requests on the same
event loop do not leak ids into each other's logs.
"""

import logging
import sys
from collections.abc import Iterator, MutableMapping
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, cast

import structlog
from structlog.types import Processor

from globemark.config import settings

_session_id: ContextVar[str | None] = ContextVar("session_id", default=None)
_request_id: ContextVar[int | None] = ContextVar("request_id", default=None)

_CORRELATION_FIELDS: tuple[tuple[str, ContextVar[Any]], ...] = (
    ("session_id", _session_id),
    ("request_id", _request_id),
)

# Client libraries that log every request at INFO
_CHATTY_LOGGERS = ("httpx", "httpcore")


def set_correlation_context(
    session_id: str | None = None,
    request_id: int | None = None,
) -> None:
    """Set correlation ids for the current context; None leaves a field as is."""
    if session_id is not None:
        _session_id.set(session_id)
    if request_id is not None:
        _request_id.set(request_id)


def clear_correlation_context() -> None:
    """Clear all correlation context variables."""
    for _, var in _CORRELATION_FIELDS:
        var.set(None)


@contextmanager
def request_scope(session_id: str, request_id: int) -> Iterator[int]:
    """Bind session and request ids until the block exits.

    Yields:
        The bound request id.
    """
    session_token = _session_id.set(session_id)
    request_token = _request_id.set(request_id)
    try:
        yield request_id
    finally:
        _request_id.reset(request_token)
        _session_id.reset(session_token)


def _add_correlation_ids(
    logger: logging.Logger,
    method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Structlog processor copying bound correlation ids into the event."""
    _ = logger, method_name  # Required by structlog processor signature
    for key, var in _CORRELATION_FIELDS:
        value = var.get()
        if value is not None:
            event_dict[key] = value
    return event_dict


def _renderer_processors(log_format: str) -> list[Processor]:
    if log_format == "json":
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())]


def configure_logging(
    level: str | None = None,
    log_format: str | None = None,
) -> None:
    """Configure structlog and the stdlib root logger.

    Log lines go to stderr; stdout is reserved for command output.

    Args:
        level: Log level name. Defaults to settings.LOG_LEVEL.
        log_format: "console" or "json". Defaults to settings.LOG_FORMAT.
    """
    level = (level or settings.LOG_LEVEL).upper()
    log_format = log_format or settings.LOG_FORMAT

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        _add_correlation_ids,
        *_renderer_processors(log_format),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    numeric_level = getattr(logging, level)
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=numeric_level)

    # Per-request transport lines only at DEBUG
    transport_level = logging.DEBUG if numeric_level <= logging.DEBUG else logging.WARNING
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(transport_level)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger bound to ``name`` (the caller's module if None)."""
    return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name))
