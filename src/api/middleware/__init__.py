"""
API Middleware Package

Gates composed in front of the router, outermost first:

- logging: correlation IDs and request/response logging
- rate_limit: per-client token bucket throttling for selected routes
- auth: bearer token authentication with a public route allow-list
- errors: translation of handler exceptions into structured responses
- pipeline: ordering and composition of the gates
"""

from src.api.middleware.auth import (
    AuthMiddleware,
    Authenticator,
    Identity,
    get_identity,
)
from src.api.middleware.errors import (
    ErrorTranslationMiddleware,
    register_exception_handlers,
)
from src.api.middleware.logging import RequestLoggingMiddleware, redact_sensitive_headers
from src.api.middleware.pipeline import build_pipeline, compose
from src.api.middleware.rate_limit import (
    InMemoryRateLimiter,
    RateLimiter,
    RateLimitMiddleware,
    RateLimitResult,
    TokenBucket,
)

__all__ = [
    # Logging
    "RequestLoggingMiddleware",
    "redact_sensitive_headers",
    # Rate Limiting
    "RateLimitMiddleware",
    "RateLimiter",
    "InMemoryRateLimiter",
    "RateLimitResult",
    "TokenBucket",
    # Authentication
    "AuthMiddleware",
    "Authenticator",
    "Identity",
    "get_identity",
    # Errors
    "ErrorTranslationMiddleware",
    "register_exception_handlers",
    # Pipeline
    "build_pipeline",
    "compose",
]
