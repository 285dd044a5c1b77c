"""
Middleware Pipeline

Gates are listed outermost first. Each gate wraps the next one, so the first
gate's logic runs first and any gate may answer the request itself without
calling the rest of the chain.

Production order:

    RequestLogging -> Metrics -> RateLimit -> Auth -> ErrorTranslation -> router

Rate limiting runs before authentication so abusive traffic is throttled
before any signature is verified. Error translation sits closest to the
business handlers; failures raised by the gates themselves are rendered as the
500 envelope by RequestLogging.
"""

from starlette.middleware import Middleware
from starlette.types import ASGIApp

from src.api.middleware.auth import AuthMiddleware, Authenticator
from src.api.middleware.errors import ErrorTranslationMiddleware
from src.api.middleware.logging import RequestLoggingMiddleware
from src.api.middleware.rate_limit import RateLimiter, RateLimitMiddleware
from src.observability.metrics import MetricsMiddleware


def compose(app: ASGIApp, *gates: Middleware) -> ASGIApp:
    """
    Wrap an ASGI application in gates.

    Args:
        app: Terminal application (router or handler)
        *gates: Middleware definitions, outermost first

    Returns:
        ASGI application whose outermost layer is gates[0]
    """
    for gate in reversed(gates):
        cls, args, kwargs = gate
        app = cls(app, *args, **kwargs)
    return app


def build_pipeline(
    rate_limiter: RateLimiter,
    authenticator: Authenticator,
    trust_forwarded_for: bool = False,
) -> list[Middleware]:
    """
    Build the production gate list, outermost first.

    The returned list can be passed to FastAPI(middleware=...) or compose().
    """
    return [
        Middleware(RequestLoggingMiddleware),
        Middleware(MetricsMiddleware),
        Middleware(
            RateLimitMiddleware,
            rate_limiter=rate_limiter,
            trust_forwarded_for=trust_forwarded_for,
        ),
        Middleware(AuthMiddleware, authenticator=authenticator),
        Middleware(ErrorTranslationMiddleware),
    ]
