"""
Pytest configuration and shared fixtures.

This configuration sets up:
- Test markers for categorization
- Settings with a fixed signing secret
- An Authenticator and bearer header factory for two test users
- A controllable clock for the token bucket limiter
- An outbox standing in for email delivery
- An application built from the test settings
"""

import io
import json
import re
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import jwt
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.api.middleware.auth import Authenticator, Identity
from src.core.config import Settings
from src.core.exceptions import EmailDeliveryError
from src.observability.logging import configure_logging
from src.services.email import EmailMessage, EmailSender


TEST_SECRET = "test-signing-secret-with-enough-entropy"


# =============================================================================
# Test Markers
# =============================================================================


def pytest_configure(config):
    """
    Register custom markers for test categorization.

    - unit: tests for individual components
    - integration: tests that go through the whole application
    """
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line("markers", "integration: Tests that exercise the full application")


# =============================================================================
# Settings
# =============================================================================


@pytest.fixture
def test_settings() -> Settings:
    """
    Settings with a fixed secret and the default route tables.

    The limiter keeps its production defaults (capacity 1, refill 2/s);
    bcrypt runs at its minimum cost.
    """
    return Settings(
        service_name="task-manager-test",
        environment="development",
        log_level="DEBUG",
        jwt_secret=TEST_SECRET,
        password_hash_rounds=4,
    )


# =============================================================================
# Fake Clock
# =============================================================================


class FakeClock:
    """Manually advanced clock for deterministic refill tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


# =============================================================================
# Authentication
# =============================================================================


@pytest.fixture
def alice() -> Identity:
    return Identity(subject="user-alice", email="alice@example.com", username="alice")


@pytest.fixture
def bob() -> Identity:
    return Identity(subject="user-bob", email="bob@example.com", username="bob")


@pytest.fixture
def authenticator(test_settings: Settings) -> Authenticator:
    return Authenticator(
        secret=test_settings.jwt_secret.get_secret_value(),
        public_paths=test_settings.public_routes,
        token_ttl=timedelta(seconds=test_settings.jwt_ttl_seconds),
    )


@pytest.fixture
def auth_headers(authenticator: Authenticator) -> Callable[[Identity], dict[str, str]]:
    """Factory returning an Authorization header for an identity."""

    def _headers(identity: Identity) -> dict[str, str]:
        return {"Authorization": f"Bearer {authenticator.issue_token(identity)}"}

    return _headers


def _make_token(
    claims: Optional[dict] = None,
    secret: str = TEST_SECRET,
    algorithm: str = "HS256",
    expires_in: timedelta = timedelta(hours=1),
    drop: tuple[str, ...] = (),
) -> str:
    """
    Encode a token with arbitrary claims for negative-path tests.

    Args:
        claims: Claims overriding the defaults
        secret: Signing secret
        algorithm: Signing algorithm
        expires_in: Offset of exp from now (negative for expired tokens)
        drop: Claim names to remove
    """
    now = datetime.now(timezone.utc)
    payload = {
        "user_id": "user-alice",
        "email": "alice@example.com",
        "username": "alice",
        "iat": int(now.timestamp()),
        "exp": int((now + expires_in).timestamp()),
    }
    payload.update(claims or {})
    for name in drop:
        payload.pop(name, None)
    return jwt.encode(payload, secret, algorithm=algorithm)


@pytest.fixture
def make_token() -> Callable[..., str]:
    """Factory encoding tokens with arbitrary claims, secrets and algorithms."""
    return _make_token


# =============================================================================
# Email Outbox
# =============================================================================


class Outbox(EmailSender):
    """Records sent messages; set `failing` to simulate a provider outage."""

    def __init__(self) -> None:
        self.messages: list[EmailMessage] = []
        self.failing = False

    async def send(self, message: EmailMessage) -> None:
        if self.failing:
            raise EmailDeliveryError("provider unavailable")
        self.messages.append(message)

    def last_token(self) -> str:
        """Token from the link in the most recent message."""
        return re.search(r"token=([0-9a-f]+)", self.messages[-1].body).group(1)


@pytest.fixture
def outbox() -> Outbox:
    return Outbox()


# =============================================================================
# Application
# =============================================================================


@pytest.fixture
def app(test_settings: Settings, outbox: Outbox) -> FastAPI:
    from src.main import create_app

    return create_app(test_settings, email_sender=outbox)


@pytest.fixture
def client(app: FastAPI):
    """TestClient with lifespan events."""
    with TestClient(app) as test_client:
        yield test_client


# =============================================================================
# Log Capture
# =============================================================================


@pytest.fixture
def log_stream():
    """
    Route structlog output into a buffer for the duration of a test.

    Yields a callable returning the JSON events written so far.
    """
    buffer = io.StringIO()
    configure_logging(level="DEBUG", stream=buffer, force=True)

    def _events() -> list[dict]:
        return [json.loads(line) for line in buffer.getvalue().splitlines() if line]

    yield _events
    configure_logging(force=True)
