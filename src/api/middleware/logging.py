"""
Request Logging Middleware

Outermost gate: assigns a correlation ID to each request and logs method,
path, status and duration once the pipeline returns.

- Honors an incoming X-Request-ID, otherwise generates one
- Echoes the correlation ID in the X-Request-ID response header
- Redacts credential headers before they are logged
- Renders any exception escaping the inner gates as the 500 error envelope
"""

import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from src.api.middleware.errors import INTERNAL_ERROR_MESSAGE
from src.api.responses import error_response
from src.observability.logging import correlation_id_context, get_logger


logger = get_logger("task_manager.requests")

REQUEST_ID_HEADER = "X-Request-ID"

# Headers that should be redacted (case-insensitive substring match)
SENSITIVE_HEADER_PATTERNS = [
    "authorization",
    "api-key",
    "x-auth-token",
    "cookie",
]


def redact_sensitive_headers(headers: dict[str, str]) -> dict[str, str]:
    """
    Redact sensitive headers from a headers dictionary.

    Args:
        headers: Dictionary of HTTP headers

    Returns:
        Dictionary with sensitive values replaced with [REDACTED]
    """
    redacted = {}
    for key, value in headers.items():
        key_lower = key.lower()
        is_sensitive = any(pattern in key_lower for pattern in SENSITIVE_HEADER_PATTERNS)
        redacted[key] = "[REDACTED]" if is_sensitive else value
    return redacted


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request with a correlation ID and its duration."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        correlation_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        method = request.method
        path = request.url.path
        client_host = request.client.host if request.client else "unknown"

        with correlation_id_context(correlation_id):
            start_time = time.perf_counter()
            logger.debug(
                "request received",
                method=method,
                path=path,
                client=client_host,
                headers=redact_sensitive_headers(dict(request.headers)),
            )

            try:
                response = await call_next(request)
            except Exception as e:
                # Gates outside ErrorTranslationMiddleware land here
                duration_ms = (time.perf_counter() - start_time) * 1000
                logger.error(
                    "request failed",
                    method=method,
                    path=path,
                    client=client_host,
                    error_type=type(e).__name__,
                    duration_ms=round(duration_ms, 2),
                    exc_info=True,
                )
                response = error_response(500, INTERNAL_ERROR_MESSAGE)
            else:
                duration_ms = (time.perf_counter() - start_time) * 1000
                log = logger.warning if response.status_code >= 400 else logger.info
                log(
                    "request completed",
                    method=method,
                    path=path,
                    status=response.status_code,
                    client=client_host,
                    duration_ms=round(duration_ms, 2),
                )

        response.headers[REQUEST_ID_HEADER] = correlation_id
        return response
