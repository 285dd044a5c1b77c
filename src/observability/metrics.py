"""
Prometheus Metrics Module

Request counters plus gate-specific counters for rate-limit decisions and
authentication failures.

Path labels are normalized so task IDs do not explode label cardinality.
"""

import re
import time
from typing import Iterable

from prometheus_client import (
    REGISTRY,
    Counter,
    Histogram,
    generate_latest,
)
from starlette.types import ASGIApp, Message, Receive, Scope, Send

# Order matters: more specific patterns first
_PATH_PATTERNS = [
    # UUID: 8-4-4-4-12 hex pattern
    (re.compile(r"/[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}"), "/{id}"),
    # Bare hex IDs (uuid4().hex, ObjectId)
    (re.compile(r"/[0-9a-fA-F]{16,}(?=/|$)"), "/{id}"),
    (re.compile(r"/\d+(?=/|$)"), "/{id}"),
]


def normalize_path(path: str) -> str:
    """
    Replace dynamic path segments with an {id} placeholder.

    Examples:
        >>> normalize_path("/api/tasks")
        '/api/tasks'
        >>> normalize_path("/api/tasks/0f8fad5bd9cb469fa16570867728950e")
        '/api/tasks/{id}'
    """
    if path == "/":
        return path

    normalized = path
    for pattern, replacement in _PATH_PATTERNS:
        normalized = pattern.sub(replacement, normalized)
    return normalized


# =============================================================================
# Metric Definitions
# =============================================================================

REQUESTS_TOTAL = Counter(
    name="task_manager_requests_total",
    documentation="Total number of HTTP requests",
    labelnames=["method", "path", "status"],
)

REQUEST_DURATION_SECONDS = Histogram(
    name="task_manager_request_duration_seconds",
    documentation="HTTP request duration in seconds",
    labelnames=["method", "path"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

RATE_LIMIT_DECISIONS_TOTAL = Counter(
    name="task_manager_rate_limit_decisions_total",
    documentation="Rate limiter decisions on limited routes",
    labelnames=["decision"],
)

AUTH_FAILURES_TOTAL = Counter(
    name="task_manager_auth_failures_total",
    documentation="Rejected authentication attempts by reason",
    labelnames=["reason"],
)


def record_rate_limit_decision(allowed: bool) -> None:
    """Count one limiter decision (admitted or rejected)."""
    RATE_LIMIT_DECISIONS_TOTAL.labels(
        decision="admitted" if allowed else "rejected"
    ).inc()


def record_auth_failure(reason: str) -> None:
    """
    Count one rejected authentication attempt.

    Args:
        reason: Error code of the rejection (e.g. INVALID_CREDENTIAL)
    """
    AUTH_FAILURES_TOTAL.labels(reason=reason).inc()


# =============================================================================
# MetricsMiddleware ASGI Middleware
# =============================================================================


class MetricsMiddleware:
    """
    ASGI middleware counting requests per method/path/status and latency.

    Requests to the scrape path are not counted.
    """

    def __init__(self, app: ASGIApp, skip_paths: Iterable[str] = ("/metrics",)) -> None:
        self.app = app
        self.skip_paths = frozenset(skip_paths)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["path"] in self.skip_paths:
            await self.app(scope, receive, send)
            return

        labels = {"method": scope["method"], "path": normalize_path(scope["path"])}
        response_status = 500
        started = time.perf_counter()

        async def capture_status(message: Message) -> None:
            nonlocal response_status
            if message["type"] == "http.response.start":
                response_status = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, capture_status)
        finally:
            REQUESTS_TOTAL.labels(status=str(response_status), **labels).inc()
            REQUEST_DURATION_SECONDS.labels(**labels).observe(
                time.perf_counter() - started
            )


def generate_metrics() -> str:
    """Generate Prometheus metrics text format."""
    return generate_latest(REGISTRY).decode("utf-8")
