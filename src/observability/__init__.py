"""
Observability Package

- Structured JSON logging with correlation IDs
- Prometheus metrics for requests and gate decisions
"""

from src.observability.logging import (
    clear_correlation_id,
    configure_logging,
    correlation_id_context,
    get_correlation_id,
    get_logger,
    set_correlation_id,
)

from src.observability.metrics import (
    MetricsMiddleware,
    generate_metrics,
    record_auth_failure,
    record_rate_limit_decision,
)

__all__ = [
    # Logging
    "configure_logging",
    "get_logger",
    "set_correlation_id",
    "get_correlation_id",
    "clear_correlation_id",
    "correlation_id_context",
    # Metrics
    "MetricsMiddleware",
    "generate_metrics",
    "record_rate_limit_decision",
    "record_auth_failure",
]
