"""
Structured Logging Module

JSON logging through structlog with a per-request correlation ID.

Every event carries timestamp, level, `logger_name` and, inside a request,
the correlation ID assigned by RequestLoggingMiddleware. Values under
credential keys (authorization, token, password, ...) are masked before
rendering, so bearer tokens never reach the log sink.

Configured once from the application lifespan; `get_logger` returns lazy
proxies, so module-level loggers follow whatever configuration is active.
"""

import contextvars
import logging
import sys
from contextlib import contextmanager
from typing import Generator, Optional, TextIO

import structlog
from structlog.types import EventDict, Processor, WrappedLogger


_is_configured: bool = False

CREDENTIAL_KEYS = frozenset({"authorization", "token", "jwt", "password", "secret"})
REDACTED = "[REDACTED]"


# =============================================================================
# Correlation ID Context
# =============================================================================

_request_correlation_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "task_manager_correlation_id", default=None
)


def set_correlation_id(correlation_id: str) -> None:
    _request_correlation_id.set(correlation_id)


def get_correlation_id() -> Optional[str]:
    """Return the correlation ID of the current request, if any."""
    return _request_correlation_id.get()


def clear_correlation_id() -> None:
    _request_correlation_id.set(None)


@contextmanager
def correlation_id_context(correlation_id: str) -> Generator[None, None, None]:
    """
    Scope a correlation ID to one request; the previous value is restored
    on exit.

    Example:
        >>> with correlation_id_context("0f8fad5bd9cb469fa16570867728950e"):
        ...     logger.info("task created")
    """
    reset_token = _request_correlation_id.set(correlation_id)
    try:
        yield
    finally:
        _request_correlation_id.reset(reset_token)


# =============================================================================
# Processors
# =============================================================================


def add_correlation_id(
    _logger: WrappedLogger, _method_name: str, event_dict: EventDict
) -> EventDict:
    """Attach the request correlation ID when inside a request."""
    correlation_id = _request_correlation_id.get()
    if correlation_id is not None:
        event_dict.setdefault("correlation_id", correlation_id)
    return event_dict


def mask_credentials(
    _logger: WrappedLogger, _method_name: str, event_dict: EventDict
) -> EventDict:
    """Replace values of credential-bearing keys (case-insensitive)."""
    for key in [k for k in event_dict if k.lower() in CREDENTIAL_KEYS]:
        event_dict[key] = REDACTED
    return event_dict


# =============================================================================
# Configuration
# =============================================================================


def configure_logging(
    level: str = "INFO",
    stream: Optional[TextIO] = None,
    force: bool = False,
) -> None:
    """
    Configure structlog for the service.

    Args:
        level: Minimum log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        stream: Sink for rendered JSON lines (default: sys.stdout)
        force: Reconfigure even if already configured (lifespan and tests)
    """
    global _is_configured

    if _is_configured and not force:
        return

    processors: list[Processor] = [
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        add_correlation_id,
        mask_credentials,
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(_level_to_int(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream or sys.stdout),
        cache_logger_on_first_use=False,
    )
    _is_configured = True


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Get a logger bound to a component name.

    Falls back to default configuration when the application has not
    configured logging yet (e.g. in unit tests).

    Example:
        >>> logger = get_logger("task_manager.auth")
        >>> logger.warning("authentication rejected", reason="expired")
    """
    configure_logging()
    return structlog.get_logger(logger_name=name)


def _level_to_int(level: str) -> int:
    value = logging.getLevelName(level.upper())
    return value if isinstance(value, int) else logging.INFO
