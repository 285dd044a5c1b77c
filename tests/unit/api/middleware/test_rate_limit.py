"""
Tests for Rate Limiting Middleware

Covers the token bucket arithmetic, the in-memory limiter (route scoping,
isolation, concurrency, eviction) and the gate that turns decisions into
HTTP responses.
"""

import asyncio
import random

import httpx
import pytest
from fastapi import FastAPI, status
from fastapi.testclient import TestClient

from src.api.middleware.rate_limit import (
    InMemoryRateLimiter,
    RateLimiter,
    RateLimitMiddleware,
    TokenBucket,
)


LOGIN = "/api/auth/login"


def make_limiter(clock, capacity: int = 1, refill_rate: float = 2.0, **kwargs):
    return InMemoryRateLimiter(
        capacity=capacity,
        refill_rate=refill_rate,
        limited_paths={LOGIN},
        clock=clock,
        **kwargs,
    )


# =============================================================================
# Token Bucket
# =============================================================================


class TestTokenBucket:
    """Refill-then-consume arithmetic of a single bucket."""

    def test_full_bucket_admits_and_decrements(self):
        bucket = TokenBucket(tokens=1.0, last_refill=0.0)

        assert bucket.try_consume(0.0, capacity=1, refill_rate=2.0) is True
        assert bucket.tokens == 0.0

    def test_empty_bucket_rejects_without_going_negative(self):
        bucket = TokenBucket(tokens=0.0, last_refill=0.0)

        assert bucket.try_consume(0.0, capacity=1, refill_rate=2.0) is False
        assert bucket.tokens == 0.0

    def test_refill_is_capped_at_capacity(self):
        bucket = TokenBucket(tokens=0.0, last_refill=0.0)

        bucket.try_consume(3600.0, capacity=3, refill_rate=10.0)

        # Capped at 3, then one consumed
        assert bucket.tokens == 2.0

    def test_clock_going_backwards_adds_no_tokens(self):
        bucket = TokenBucket(tokens=0.5, last_refill=100.0)

        assert bucket.try_consume(90.0, capacity=1, refill_rate=2.0) is False
        assert bucket.tokens == 0.5
        assert bucket.last_refill == 90.0

    def test_tokens_stay_within_bounds_for_random_sequences(self):
        """Tokens never exceed capacity and never go negative."""
        rng = random.Random(1234)
        for _ in range(50):
            capacity = rng.randint(1, 5)
            refill_rate = rng.uniform(0.1, 5.0)
            bucket = TokenBucket(tokens=float(capacity), last_refill=0.0)
            now = 0.0
            for _ in range(200):
                # Mostly forward, occasionally backwards
                now += rng.uniform(-0.2, 1.0)
                bucket.try_consume(now, capacity, refill_rate)
                assert 0.0 <= bucket.tokens <= capacity


# =============================================================================
# In-Memory Rate Limiter
# =============================================================================


class TestInMemoryRateLimiter:
    """Admit/reject decisions driven by a fake clock."""

    def test_is_a_rate_limiter(self, fake_clock):
        assert isinstance(make_limiter(fake_clock), RateLimiter)

    @pytest.mark.parametrize(
        "capacity,refill_rate",
        [(0, 1.0), (1, 0.0), (1, -1.0)],
    )
    def test_rejects_invalid_parameters(self, fake_clock, capacity, refill_rate):
        with pytest.raises(ValueError):
            make_limiter(fake_clock, capacity=capacity, refill_rate=refill_rate)

    @pytest.mark.asyncio
    async def test_burst_then_throttle(self, fake_clock):
        """capacity=1, refill 2/s: admit, reject, admit again after 0.5s."""
        limiter = make_limiter(fake_clock)

        first = await limiter.admit("10.0.0.1", LOGIN)
        second = await limiter.admit("10.0.0.1", LOGIN)
        fake_clock.advance(0.5)
        third = await limiter.admit("10.0.0.1", LOGIN)

        assert first.allowed is True
        assert second.allowed is False
        assert third.allowed is True

    @pytest.mark.asyncio
    async def test_not_yet_refilled_is_still_rejected(self, fake_clock):
        limiter = make_limiter(fake_clock)

        await limiter.admit("10.0.0.1", LOGIN)
        fake_clock.advance(0.4)
        result = await limiter.admit("10.0.0.1", LOGIN)

        assert result.allowed is False

    @pytest.mark.asyncio
    async def test_capacity_two_scenario(self, fake_clock):
        """
        capacity=2, refill 1/s: t=0, 0.1, 0.2 -> admit, admit, reject;
        t=2.2 -> admit with one token left.
        """
        limiter = make_limiter(fake_clock, capacity=2, refill_rate=1.0)
        start = fake_clock.now
        decisions = []

        for t in (0.0, 0.1, 0.2):
            fake_clock.now = start + t
            decisions.append(await limiter.admit("10.0.0.1", LOGIN))

        assert [d.allowed for d in decisions] == [True, True, False]
        assert [d.remaining for d in decisions] == [1, 0, 0]

        fake_clock.now = start + 2.2
        later = await limiter.admit("10.0.0.1", LOGIN)

        assert later.allowed is True
        assert later.remaining == 1

    @pytest.mark.asyncio
    async def test_rejection_reports_retry_after(self, fake_clock):
        limiter = make_limiter(fake_clock, capacity=1, refill_rate=0.25)

        await limiter.admit("10.0.0.1", LOGIN)
        result = await limiter.admit("10.0.0.1", LOGIN)

        assert result.allowed is False
        assert result.limit == 1
        assert result.remaining == 0
        assert result.retry_after == 4

    @pytest.mark.asyncio
    async def test_retry_after_is_at_least_one_second(self, fake_clock):
        limiter = make_limiter(fake_clock, capacity=1, refill_rate=100.0)

        await limiter.admit("10.0.0.1", LOGIN)
        result = await limiter.admit("10.0.0.1", LOGIN)

        assert result.retry_after == 1

    @pytest.mark.asyncio
    async def test_clients_are_isolated(self, fake_clock):
        """Exhausting one client's bucket does not affect another."""
        limiter = make_limiter(fake_clock)

        await limiter.admit("10.0.0.1", LOGIN)
        exhausted = await limiter.admit("10.0.0.1", LOGIN)
        other = await limiter.admit("10.0.0.2", LOGIN)

        assert exhausted.allowed is False
        assert other.allowed is True

    @pytest.mark.asyncio
    async def test_unlimited_path_never_touches_a_bucket(self, fake_clock):
        limiter = make_limiter(fake_clock)

        results = [await limiter.admit("10.0.0.1", "/api/tasks") for _ in range(100)]

        assert all(r.allowed for r in results)
        assert {(r.limit, r.remaining, r.retry_after) for r in results} == {(1, 1, None)}
        assert limiter.tracked_clients == 0

    def test_path_matching_is_exact(self, fake_clock):
        limiter = make_limiter(fake_clock)

        assert limiter.is_limited(LOGIN) is True
        assert limiter.is_limited(LOGIN + "/") is False
        assert limiter.is_limited("/api/auth") is False

    @pytest.mark.asyncio
    async def test_concurrent_requests_do_not_overdraw(self, fake_clock):
        """With a frozen clock, exactly `capacity` of N concurrent requests pass."""
        limiter = make_limiter(fake_clock, capacity=5, refill_rate=1.0)

        results = await asyncio.gather(
            *(limiter.admit("10.0.0.1", LOGIN) for _ in range(50))
        )

        assert sum(r.allowed for r in results) == 5

    @pytest.mark.asyncio
    async def test_idle_buckets_are_evicted(self, fake_clock):
        limiter = make_limiter(fake_clock, idle_ttl=60.0)

        await limiter.admit("10.0.0.1", LOGIN)
        await limiter.admit("10.0.0.2", LOGIN)
        assert limiter.tracked_clients == 2

        fake_clock.advance(61.0)
        await limiter.admit("10.0.0.3", LOGIN)

        assert limiter.tracked_clients == 1

    @pytest.mark.asyncio
    async def test_eviction_keeps_buckets_that_could_still_be_refilling(self, fake_clock):
        """TTL is never shorter than the time to refill a bucket completely."""
        limiter = make_limiter(fake_clock, capacity=10, refill_rate=0.1, idle_ttl=1.0)

        for _ in range(10):
            await limiter.admit("10.0.0.1", LOGIN)
        fake_clock.advance(50.0)
        await limiter.admit("10.0.0.2", LOGIN)

        assert limiter.tracked_clients == 2

    @pytest.mark.asyncio
    async def test_evicted_client_starts_with_full_bucket(self, fake_clock):
        limiter = make_limiter(fake_clock, idle_ttl=10.0)

        await limiter.admit("10.0.0.1", LOGIN)
        fake_clock.advance(11.0)
        result = await limiter.admit("10.0.0.1", LOGIN)

        assert result.allowed is True


# =============================================================================
# Rate Limit Middleware
# =============================================================================


def make_app(limiter: RateLimiter, trust_forwarded_for: bool = False) -> FastAPI:
    app = FastAPI()
    app.add_middleware(
        RateLimitMiddleware,
        rate_limiter=limiter,
        trust_forwarded_for=trust_forwarded_for,
    )

    @app.post(LOGIN)
    async def login():
        return {"ok": True}

    @app.get("/api/tasks")
    async def tasks():
        return {"ok": True}

    return app


class TestRateLimitMiddleware:
    """HTTP behavior of the rate limit gate."""

    def test_admitted_request_has_rate_limit_headers(self, fake_clock):
        client = TestClient(make_app(make_limiter(fake_clock, capacity=3)))

        response = client.post(LOGIN)

        assert response.status_code == status.HTTP_200_OK
        assert response.headers["X-RateLimit-Limit"] == "3"
        assert response.headers["X-RateLimit-Remaining"] == "2"

    def test_rejected_request_is_plain_text_429(self, fake_clock):
        client = TestClient(make_app(make_limiter(fake_clock)))

        client.post(LOGIN)
        response = client.post(LOGIN)

        assert response.status_code == status.HTTP_429_TOO_MANY_REQUESTS
        assert response.text == "Too Many Requests"
        assert response.headers["content-type"].startswith("text/plain")
        assert response.headers["Retry-After"] == "1"
        assert response.headers["X-RateLimit-Limit"] == "1"
        assert response.headers["X-RateLimit-Remaining"] == "0"

    def test_recovers_after_refill(self, fake_clock):
        client = TestClient(make_app(make_limiter(fake_clock)))

        client.post(LOGIN)
        assert client.post(LOGIN).status_code == 429
        fake_clock.advance(0.5)

        assert client.post(LOGIN).status_code == 200

    def test_unlimited_route_has_no_rate_limit_headers(self, fake_clock):
        limiter = make_limiter(fake_clock)
        client = TestClient(make_app(limiter))

        for _ in range(20):
            response = client.get("/api/tasks")
            assert response.status_code == 200
            assert "X-RateLimit-Limit" not in response.headers

        assert limiter.tracked_clients == 0

    def test_forwarded_for_ignored_by_default(self, fake_clock):
        client = TestClient(make_app(make_limiter(fake_clock)))

        client.post(LOGIN, headers={"X-Forwarded-For": "1.1.1.1"})
        response = client.post(LOGIN, headers={"X-Forwarded-For": "2.2.2.2"})

        assert response.status_code == 429

    def test_forwarded_for_used_when_trusted(self, fake_clock):
        client = TestClient(
            make_app(make_limiter(fake_clock), trust_forwarded_for=True)
        )

        client.post(LOGIN, headers={"X-Forwarded-For": "1.1.1.1, 10.0.0.1"})
        response = client.post(LOGIN, headers={"X-Forwarded-For": "2.2.2.2"})

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_unresolvable_client_fails_closed(self, fake_clock):
        limiter = make_limiter(fake_clock)
        transport = httpx.ASGITransport(app=make_app(limiter), client=None)

        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.post(LOGIN)

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json() == {
            "success": False,
            "message": "Internal server error",
            "errors": None,
        }
        assert limiter.tracked_clients == 0
