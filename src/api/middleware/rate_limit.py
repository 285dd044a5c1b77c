"""
Rate Limiting Middleware

Per-client continuous-time token bucket rate limiting for an exact-match set
of routes.

Pattern: Strategy pattern for the limiter (RateLimiter / InMemoryRateLimiter)
Pattern: BaseHTTPMiddleware for request interception

- Each client identity owns a bucket of at most `capacity` tokens
- Buckets refill continuously at `refill_rate` tokens per second
- Each admitted request consumes one token
- Routes outside the limited set never touch a bucket or the lock
- One lock guards the whole client -> bucket map; the critical section is O(1)
- Buckets idle long enough to be full again are evicted
"""

import asyncio
import math
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response

from src.api.responses import error_response
from src.core.exceptions import ClientIdentityError, RateLimitError
from src.observability.logging import get_logger
from src.observability.metrics import record_rate_limit_decision


logger = get_logger("task_manager.rate_limit")

Clock = Callable[[], float]


# =============================================================================
# Token Bucket
# =============================================================================


@dataclass
class TokenBucket:
    """
    Token bucket state for one client.

    Attributes:
        tokens: Current fill level, always within [0, capacity]
        last_refill: Clock reading of the last refill
    """

    tokens: float
    last_refill: float

    def try_consume(self, now: float, capacity: float, refill_rate: float) -> bool:
        """
        Refill for the elapsed time, then take one token if available.

        A clock that went backwards counts as zero elapsed time.

        Returns:
            True if a token was consumed (admit), False otherwise (reject)
        """
        elapsed = max(0.0, now - self.last_refill)
        self.tokens = min(capacity, self.tokens + elapsed * refill_rate)
        self.last_refill = now

        if self.tokens >= 1:
            self.tokens -= 1
            return True
        return False


# =============================================================================
# Rate Limit Result
# =============================================================================


@dataclass
class RateLimitResult:
    """
    Result of a rate limit check.

    Attributes:
        allowed: Whether the request is allowed
        limit: Bucket capacity
        remaining: Whole tokens left after this request
        retry_after: Seconds to wait before retrying (if blocked)
    """

    allowed: bool
    limit: int
    remaining: int
    retry_after: Optional[int] = None


# =============================================================================
# Rate Limiter Interface
# =============================================================================


class RateLimiter(ABC):
    """
    Abstract interface for rate limiting strategies.

    Implementations decide admit/reject for a client identity on a path.
    Only paths in `limited_paths` are subject to throttling.
    """

    def __init__(self, limited_paths: Iterable[str]) -> None:
        self.limited_paths = frozenset(limited_paths)

    def is_limited(self, path: str) -> bool:
        """Return True if `path` is subject to throttling (exact match)."""
        return path in self.limited_paths

    @abstractmethod
    async def admit(self, client_id: str, path: str) -> RateLimitResult:
        """
        Decide whether a request from client_id to path may proceed.

        Args:
            client_id: Unique identifier for the client (peer IP)
            path: Request path

        Returns:
            RateLimitResult with the decision
        """


# =============================================================================
# In-Memory Rate Limiter
# =============================================================================


class InMemoryRateLimiter(RateLimiter):
    """
    In-memory token bucket limiter for single-instance deployments.

    Constructed once at startup and injected into RateLimitMiddleware.
    The clock is injectable so tests can drive refills deterministically.

    Example:
        >>> limiter = InMemoryRateLimiter(capacity=1, refill_rate=2.0,
        ...                               limited_paths={"/api/auth/login"})
        >>> result = await limiter.admit("10.0.0.1", "/api/auth/login")
    """

    def __init__(
        self,
        capacity: int,
        refill_rate: float,
        limited_paths: Iterable[str],
        clock: Clock = time.monotonic,
        idle_ttl: float = 300.0,
    ) -> None:
        """
        Initialize the rate limiter.

        Args:
            capacity: Maximum tokens per bucket (burst size)
            refill_rate: Tokens added per second
            limited_paths: Exact paths subject to throttling
            clock: Monotonic time source in seconds
            idle_ttl: Seconds of inactivity before a bucket may be evicted
        """
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        if refill_rate <= 0:
            raise ValueError("refill_rate must be positive")

        super().__init__(limited_paths)
        self.capacity = capacity
        self.refill_rate = refill_rate
        self._clock = clock
        # Never evict a bucket that could still be below capacity
        self._idle_ttl = max(idle_ttl, capacity / refill_rate)
        self._buckets: dict[str, TokenBucket] = {}
        self._lock = asyncio.Lock()
        self._last_sweep = clock()

    @property
    def tracked_clients(self) -> int:
        """Number of client buckets currently held."""
        return len(self._buckets)

    async def admit(self, client_id: str, path: str) -> RateLimitResult:
        """
        Check the client's bucket for a limited path.

        Unlimited paths are admitted without taking the lock or creating a
        bucket; their result reports the full capacity as remaining.
        """
        if not self.is_limited(path):
            return RateLimitResult(
                allowed=True, limit=self.capacity, remaining=self.capacity
            )

        # The section below never awaits, so on one event loop it already runs
        # atomically; the lock keeps it correct if the bucket store turns async.
        async with self._lock:
            now = self._clock()
            self._evict_idle(now)

            bucket = self._buckets.get(client_id)
            if bucket is None:
                bucket = TokenBucket(tokens=float(self.capacity), last_refill=now)
                self._buckets[client_id] = bucket

            allowed = bucket.try_consume(now, self.capacity, self.refill_rate)
            remaining = int(bucket.tokens)
            retry_after = None
            if not allowed:
                retry_after = max(1, math.ceil((1 - bucket.tokens) / self.refill_rate))

        record_rate_limit_decision(allowed)
        return RateLimitResult(
            allowed=allowed,
            limit=self.capacity,
            remaining=remaining,
            retry_after=retry_after,
        )

    def _evict_idle(self, now: float) -> None:
        """Drop idle buckets; runs at most once per idle TTL. Caller holds the lock."""
        if now - self._last_sweep < self._idle_ttl:
            return
        self._last_sweep = now
        cutoff = now - self._idle_ttl
        idle = [cid for cid, b in self._buckets.items() if b.last_refill <= cutoff]
        for client_id in idle:
            del self._buckets[client_id]
        if idle:
            logger.debug("evicted idle rate limit buckets", count=len(idle))


# =============================================================================
# Client Identity
# =============================================================================


def resolve_client_id(request: Request, trust_forwarded_for: bool = False) -> str:
    """
    Derive the rate-limit key for a request.

    Uses the peer host of the connection. When running behind a trusted
    proxy, the first X-Forwarded-For hop may be used instead.

    Raises:
        ClientIdentityError: If no usable peer address is available
    """
    if trust_forwarded_for:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            first_hop = forwarded.split(",")[0].strip()
            if first_hop:
                return first_hop

    if request.client is None or not request.client.host:
        raise ClientIdentityError()
    return request.client.host


# =============================================================================
# Rate Limit Middleware
# =============================================================================


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Gate that throttles limited routes per client.

    - 429 Too Many Requests (plain text) when the bucket is empty
    - Retry-After and X-RateLimit-* headers on limited routes
    - Generic 500 when the client identity cannot be derived (fail closed)
    """

    def __init__(
        self,
        app,
        rate_limiter: RateLimiter,
        trust_forwarded_for: bool = False,
    ) -> None:
        """
        Args:
            app: Next ASGI application in the pipeline
            rate_limiter: Limiter instance shared across requests
            trust_forwarded_for: Key on X-Forwarded-For instead of the peer
        """
        super().__init__(app)
        self.rate_limiter = rate_limiter
        self.trust_forwarded_for = trust_forwarded_for

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if not self.rate_limiter.is_limited(path):
            return await call_next(request)

        try:
            client_id = resolve_client_id(request, self.trust_forwarded_for)
        except ClientIdentityError as e:
            logger.error("cannot resolve client identity", path=path)
            return error_response(e.status_code, e.message)

        result = await self.rate_limiter.admit(client_id, path)
        headers = {
            "X-RateLimit-Limit": str(result.limit),
            "X-RateLimit-Remaining": str(result.remaining),
        }

        if not result.allowed:
            error = RateLimitError(retry_after=result.retry_after, limit=result.limit)
            logger.warning(
                "rate limit exceeded",
                client_id=client_id,
                path=path,
                retry_after=error.retry_after,
            )
            headers["Retry-After"] = str(error.retry_after)
            return PlainTextResponse(
                error.message, status_code=error.status_code, headers=headers
            )

        response = await call_next(request)
        response.headers.update(headers)
        return response
