"""
Bearer Token Authentication

Stateless authentication gate: every request to a non-public path must carry
`Authorization: Bearer <token>` where the token is an HMAC-signed JWT issued
by this service.

Pattern: BaseHTTPMiddleware for request interception
Pattern: Typed request scope (request.state.identity) with a single accessor

Checks, in order:
1. Public path -> bypass, no identity attached
2. Header present and non-empty
3. "Bearer " prefix
4. Signing algorithm is in the HMAC family (rejects "none", RS*, ES*, ...)
5. Signature, expiry and claim structure
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

import jwt
from pydantic import BaseModel, ValidationError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from src.api.responses import error_response
from src.core.exceptions import (
    BadCredentialFormatError,
    InvalidCredentialError,
    UnauthorizedError,
)
from src.observability.logging import get_logger
from src.observability.metrics import record_auth_failure


logger = get_logger("task_manager.auth")

BEARER_PREFIX = "Bearer "

# Only symmetric HMAC signatures are accepted
ALLOWED_ALGORITHMS = ("HS256", "HS384", "HS512")
SIGNING_ALGORITHM = "HS256"

REQUIRED_CLAIMS = ("exp", "iat", "user_id", "email", "username")


# =============================================================================
# Identity and Claims
# =============================================================================


@dataclass(frozen=True)
class Identity:
    """Authenticated caller attached to the request scope."""

    subject: str
    email: str
    username: str


class TokenClaims(BaseModel):
    """Claims embedded in a bearer token."""

    user_id: str
    email: str
    username: str
    iat: int
    exp: int

    def to_identity(self) -> Identity:
        return Identity(subject=self.user_id, email=self.email, username=self.username)


# =============================================================================
# Authenticator
# =============================================================================


class Authenticator:
    """
    Verifies bearer credentials and issues tokens.

    The secret is loaded once at startup and never changes for the lifetime
    of the instance. No server-side session state is kept: each request is
    verified independently.

    Attributes:
        public_paths: Exact paths that bypass authentication
        token_ttl: Lifetime of issued tokens
    """

    def __init__(
        self,
        secret: str,
        public_paths: Iterable[str],
        token_ttl: timedelta = timedelta(hours=24),
    ) -> None:
        if not secret:
            raise ValueError("secret must not be empty")
        self._secret = secret
        self.public_paths = frozenset(public_paths)
        self.token_ttl = token_ttl

    def is_public(self, path: str) -> bool:
        """Return True if `path` bypasses authentication (exact match)."""
        return path in self.public_paths

    def authorize(self, path: str, authorization: Optional[str]) -> Optional[Identity]:
        """
        Decide admit/reject/bypass for a request.

        Args:
            path: Request path
            authorization: Raw Authorization header value (None if absent)

        Returns:
            Identity for authenticated requests, None for public paths

        Raises:
            BadCredentialFormatError: Header missing or not a Bearer credential
            InvalidCredentialError: Token failed verification
        """
        if self.is_public(path):
            return None

        if not authorization:
            raise BadCredentialFormatError("Missing authorization header")

        if not authorization.startswith(BEARER_PREFIX):
            raise BadCredentialFormatError("Invalid authorization header format")

        token = authorization[len(BEARER_PREFIX):].strip()
        return self.verify(token)

    def verify(self, token: str) -> Identity:
        """
        Verify a raw token and extract the identity.

        Raises:
            InvalidCredentialError: On any signature, algorithm, expiry or
                claim failure
        """
        try:
            header = jwt.get_unverified_header(token)
            if header.get("alg") not in ALLOWED_ALGORITHMS:
                raise jwt.InvalidAlgorithmError(
                    f"unexpected signing method: {header.get('alg')}"
                )

            payload = jwt.decode(
                token,
                self._secret,
                algorithms=list(ALLOWED_ALGORITHMS),
                options={"require": list(REQUIRED_CLAIMS)},
            )
            claims = TokenClaims.model_validate(payload)
        except (jwt.InvalidTokenError, ValidationError) as e:
            logger.warning("token verification failed", error_type=type(e).__name__)
            raise InvalidCredentialError("Invalid or expired token") from e

        return claims.to_identity()

    def issue_token(self, identity: Identity, now: Optional[datetime] = None) -> str:
        """
        Sign a token for an identity.

        Args:
            identity: Authenticated user
            now: Issue time (defaults to current UTC time)

        Returns:
            Encoded HS256 JWT
        """
        issued_at = now or datetime.now(timezone.utc)
        payload = {
            "user_id": identity.subject,
            "email": identity.email,
            "username": identity.username,
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + self.token_ttl).timestamp()),
        }
        return jwt.encode(payload, self._secret, algorithm=SIGNING_ALGORITHM)


# =============================================================================
# Request Scope Accessor
# =============================================================================


def get_identity(request: Request) -> Identity:
    """
    Return the identity attached by AuthMiddleware.

    Usable directly or as a FastAPI dependency. Business handlers on
    protected routes rely on this instead of reading request.state.

    Raises:
        UnauthorizedError: If the request carries no identity
    """
    identity = getattr(request.state, "identity", None)
    if not isinstance(identity, Identity):
        raise UnauthorizedError("Unauthorized access")
    return identity


# =============================================================================
# Auth Middleware
# =============================================================================


class AuthMiddleware(BaseHTTPMiddleware):
    """
    Gate that authenticates every non-public request.

    Rejections are written as 401 structured errors and never reach the
    downstream handler.
    """

    def __init__(self, app, authenticator: Authenticator) -> None:
        super().__init__(app)
        self.authenticator = authenticator

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        try:
            identity = self.authenticator.authorize(
                path, request.headers.get("Authorization")
            )
        except UnauthorizedError as e:
            record_auth_failure(e.code)
            logger.warning("authentication rejected", path=path, reason=e.message)
            return error_response(
                e.status_code,
                e.message,
                headers={"WWW-Authenticate": "Bearer"},
            )

        if identity is not None:
            request.state.identity = identity
        return await call_next(request)
