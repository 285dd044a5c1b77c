"""
User Service

Account lifecycle behind the /api/auth routes: sign-up with email
verification, login issuing a bearer token, and password reset.

Pattern: Service class with async methods; the store is in memory, password
hashing and email delivery are injected collaborators.

One-time tokens (verification, password reset) are random hex strings that
expire and are cleared once used. Emails are compared case-insensitively.
"""

import asyncio
import secrets
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from src.api.middleware.auth import Authenticator, Identity
from src.core.exceptions import (
    BadRequestError,
    EmailDeliveryError,
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
)
from src.core.security import PasswordHasher
from src.models.requests import LoginRequest, ResetPasswordRequest, SignUpRequest
from src.observability.logging import get_logger
from src.services.email import EmailMessage, EmailSender


logger = get_logger("task_manager.users")

INVALID_LOGIN_MESSAGE = "Invalid email or password"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_token() -> str:
    return secrets.token_hex(32)


@dataclass
class User:
    """Stored account."""

    username: str
    email: str
    password_hash: str
    verified: bool = False
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    verification_token: Optional[str] = None
    verification_expires_at: Optional[datetime] = None
    reset_token: Optional[str] = None
    reset_expires_at: Optional[datetime] = None

    def to_identity(self) -> Identity:
        return Identity(subject=self.id, email=self.email, username=self.username)

    def public_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "verified": self.verified,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass(frozen=True)
class SignUpResult:
    """Created account and whether its verification email went out."""

    user: User
    email_sent: bool


class UserService:
    """
    In-memory account store.

    Example:
        >>> service = UserService(authenticator, BcryptPasswordHasher(), LoggingEmailSender())
        >>> result = await service.sign_up(SignUpRequest(...))
    """

    def __init__(
        self,
        authenticator: Authenticator,
        hasher: PasswordHasher,
        email_sender: EmailSender,
        base_url: str = "http://localhost:8080",
        verification_ttl: timedelta = timedelta(hours=24),
        reset_ttl: timedelta = timedelta(minutes=10),
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._authenticator = authenticator
        self._hasher = hasher
        self._email_sender = email_sender
        self._base_url = base_url.rstrip("/")
        self._verification_ttl = verification_ttl
        self._reset_ttl = reset_ttl
        self._clock = clock
        self._users: dict[str, User] = {}
        self._lock = asyncio.Lock()

    # -------------------------------------------------------------------------
    # Sign-up and login
    # -------------------------------------------------------------------------

    async def sign_up(self, request: SignUpRequest) -> SignUpResult:
        """
        Create an unverified account and send its verification email.

        A failed email does not undo the account; the result reports it so
        the caller can point the user at resend-verification.

        Raises:
            BadRequestError: Email already registered
        """
        email = _normalize(request.email)
        password_hash = await asyncio.to_thread(self._hasher.hash, request.password)
        now = self._clock()

        async with self._lock:
            if email in self._users:
                raise BadRequestError("Email already exists")
            user = User(
                username=request.username,
                email=email,
                password_hash=password_hash,
                created_at=now,
                updated_at=now,
                verification_token=_new_token(),
                verification_expires_at=now + self._verification_ttl,
            )
            self._users[email] = user

        logger.info("user signed up", user_id=user.id)
        try:
            await self._send_verification(user)
        except EmailDeliveryError:
            logger.warning("verification email not sent", user_id=user.id)
            return SignUpResult(user=user, email_sent=False)
        return SignUpResult(user=user, email_sent=True)

    async def login(self, request: LoginRequest) -> tuple[str, User]:
        """
        Check credentials and issue a bearer token.

        The password is checked before the verification state, so an
        unverified account is only revealed to someone who knows its password.

        Raises:
            UnauthorizedError: Unknown email or wrong password
            ForbiddenError: Email not verified yet
        """
        user = self._users.get(_normalize(request.email))
        if user is None:
            raise UnauthorizedError(INVALID_LOGIN_MESSAGE)

        matches = await asyncio.to_thread(
            self._hasher.verify, request.password, user.password_hash
        )
        if not matches:
            logger.info("login rejected", user_id=user.id)
            raise UnauthorizedError(INVALID_LOGIN_MESSAGE)
        if not user.verified:
            raise ForbiddenError("Please verify your email before logging in")

        token = self._authenticator.issue_token(user.to_identity())
        logger.info("user logged in", user_id=user.id)
        return token, user

    # -------------------------------------------------------------------------
    # Email verification
    # -------------------------------------------------------------------------

    async def verify_email(self, token: Optional[str]) -> User:
        """
        Mark the account owning a live verification token as verified.

        Raises:
            BadRequestError: Missing, unknown or expired token
        """
        if not token:
            raise BadRequestError("Missing email verification token")

        now = self._clock()
        async with self._lock:
            user = self._find(lambda u: u.verification_token == token)
            if user is None or user.verification_expires_at <= now:
                raise BadRequestError("Invalid or expired verification token")
            user.verified = True
            user.verification_token = None
            user.verification_expires_at = None
            user.updated_at = now

        logger.info("email verified", user_id=user.id)
        return user

    async def resend_verification(self, email: str) -> None:
        """
        Issue a fresh verification token and email it.

        Raises:
            BadRequestError: Empty email, or account already verified
            NotFoundError: No such account
            EmailDeliveryError: Email could not be sent
        """
        user = self._require_user(email, "User not found. Please signup before verification")
        if user.verified:
            raise BadRequestError("Email already verified")

        now = self._clock()
        async with self._lock:
            user.verification_token = _new_token()
            user.verification_expires_at = now + self._verification_ttl

        try:
            await self._send_verification(user)
        except EmailDeliveryError as e:
            raise EmailDeliveryError("Error sending verification email") from e

    # -------------------------------------------------------------------------
    # Password reset
    # -------------------------------------------------------------------------

    async def forgot_password(self, email: str) -> None:
        """
        Issue a password reset token and email it.

        Raises:
            BadRequestError: Empty email
            NotFoundError: No such account
            EmailDeliveryError: Email could not be sent
        """
        user = self._require_user(email, "User not found")

        token = _new_token()
        now = self._clock()
        async with self._lock:
            user.reset_token = token
            user.reset_expires_at = now + self._reset_ttl

        link = f"{self._base_url}/api/auth/reset-password?token={token}"
        message = EmailMessage(
            to=user.email,
            subject="Reset your password",
            body=f"Use the link below to reset your password:\n{link}",
        )
        try:
            await self._email_sender.send(message)
        except EmailDeliveryError as e:
            raise EmailDeliveryError("Error sending email") from e
        logger.info("password reset requested", user_id=user.id)

    async def reset_password(
        self, token: Optional[str], request: ResetPasswordRequest
    ) -> None:
        """
        Replace the password of the account owning a live reset token.

        Raises:
            BadRequestError: Missing, unknown or expired token
        """
        if not token:
            raise BadRequestError("Missing reset password token")

        password_hash = await asyncio.to_thread(self._hasher.hash, request.password)
        now = self._clock()
        async with self._lock:
            user = self._find(lambda u: u.reset_token == token)
            if user is None or user.reset_expires_at <= now:
                raise BadRequestError("Invalid or expired token")
            user.password_hash = password_hash
            user.reset_token = None
            user.reset_expires_at = None
            user.updated_at = now

        logger.info("password reset", user_id=user.id)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def _send_verification(self, user: User) -> None:
        link = f"{self._base_url}/api/auth/verify-email?token={user.verification_token}"
        await self._email_sender.send(
            EmailMessage(
                to=user.email,
                subject="Verify your email",
                body=f"Use the link below to verify your email:\n{link}",
            )
        )

    def _require_user(self, email: str, not_found_message: str) -> User:
        if not email or not email.strip():
            raise BadRequestError("Email is required")
        user = self._users.get(_normalize(email))
        if user is None:
            raise NotFoundError(not_found_message)
        return user

    def _find(self, predicate: Callable[[User], bool]) -> Optional[User]:
        return next((u for u in self._users.values() if predicate(u)), None)


def _normalize(email: str) -> str:
    return email.strip().lower()
