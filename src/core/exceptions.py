"""
Custom exceptions for the Task Manager API.

This module provides a hierarchy of application exceptions. All exceptions
inherit from TaskManagerException and carry an HTTP status, a client-safe
message, an optional list of field-level errors and an error code, so that
gates and the error translation middleware can render them uniformly.

Reference:
- Specific exceptions, always capture with 'as e'
- Never echo internal failure details to clients
"""

from enum import Enum
from typing import Any, Optional


# =============================================================================
# Error Codes Enum
# =============================================================================


class ErrorCode(str, Enum):
    """
    Error codes for Task Manager exceptions.

    These codes identify error types consistently across responses and logs.
    """

    TASK_MANAGER_ERROR = "TASK_MANAGER_ERROR"
    BAD_REQUEST = "BAD_REQUEST"
    BAD_CREDENTIAL_FORMAT = "BAD_CREDENTIAL_FORMAT"
    INVALID_CREDENTIAL = "INVALID_CREDENTIAL"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    RATE_LIMITED = "RATE_LIMITED"
    CLIENT_IDENTITY_UNRESOLVABLE = "CLIENT_IDENTITY_UNRESOLVABLE"
    EMAIL_DELIVERY_FAILED = "EMAIL_DELIVERY_FAILED"


# =============================================================================
# Base Exception
# =============================================================================


class TaskManagerException(Exception):
    """
    Base exception for all known application errors.

    Attributes:
        message: Human-readable, client-safe error message.
        status_code: HTTP status the error maps to.
        errors: Optional field-level error details.
        error_code: Machine-readable error code from ErrorCode enum.
    """

    status_code: int = 500
    error_code: str = ErrorCode.TASK_MANAGER_ERROR

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        errors: Optional[list[dict[str, Any]]] = None,
        error_code: Optional[str] = None,
    ) -> None:
        """
        Initialize the exception.

        Args:
            message: Human-readable error message.
            status_code: HTTP status (defaults to the class status).
            errors: Optional field-level errors, e.g. [{"path": ..., "message": ...}].
            error_code: Machine-readable error code (defaults to the class code).
        """
        super().__init__(message)
        self.message = message
        self.errors = errors
        if status_code is not None:
            self.status_code = status_code
        if error_code is not None:
            self.error_code = error_code

    @property
    def code(self) -> str:
        """Error code as a plain string (for logs, metrics and headers)."""
        return getattr(self.error_code, "value", self.error_code)


# =============================================================================
# Request Errors
# =============================================================================


class BadRequestError(TaskManagerException):
    """Raised when a request is syntactically valid but cannot be processed."""

    status_code = 400
    error_code = ErrorCode.BAD_REQUEST


class NotFoundError(TaskManagerException):
    """Raised when a requested resource does not exist."""

    status_code = 404
    error_code = ErrorCode.NOT_FOUND


# =============================================================================
# Authentication Errors
# =============================================================================


class UnauthorizedError(TaskManagerException):
    """
    Raised when a caller is not allowed to perform an operation.

    Used by business handlers when the request scope carries no identity
    or when the caller does not own the resource.
    """

    status_code = 401
    error_code = ErrorCode.UNAUTHORIZED


class BadCredentialFormatError(UnauthorizedError):
    """Raised when the Authorization header is missing or not a Bearer credential."""

    error_code = ErrorCode.BAD_CREDENTIAL_FORMAT


class InvalidCredentialError(UnauthorizedError):
    """
    Raised when a bearer token fails verification.

    Covers bad signatures, disallowed signing algorithms, expiry and
    malformed claims. The message never says which check failed.
    """

    error_code = ErrorCode.INVALID_CREDENTIAL


class ForbiddenError(TaskManagerException):
    """Raised when an authenticated or identified user may not proceed yet."""

    status_code = 403
    error_code = ErrorCode.FORBIDDEN


# =============================================================================
# Rate Limiting Errors
# =============================================================================


class RateLimitError(TaskManagerException):
    """
    Raised when a client exhausts its token bucket.

    Attributes:
        retry_after: Seconds until a token is available again.
        limit: Bucket capacity that was exceeded.
    """

    status_code = 429
    error_code = ErrorCode.RATE_LIMITED

    def __init__(
        self,
        message: str = "Too Many Requests",
        retry_after: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.retry_after = retry_after
        self.limit = limit


class ClientIdentityError(TaskManagerException):
    """
    Raised when no rate-limit key can be derived from the request.

    The limiter fails closed: the request is rejected with a generic
    internal error and no bucket is created.
    """

    status_code = 500
    error_code = ErrorCode.CLIENT_IDENTITY_UNRESOLVABLE

    def __init__(self, message: str = "Internal server error") -> None:
        super().__init__(message)


# =============================================================================
# Collaborator Errors
# =============================================================================


class EmailDeliveryError(TaskManagerException):
    """Raised by an EmailSender when a message could not be handed off."""

    status_code = 500
    error_code = ErrorCode.EMAIL_DELIVERY_FAILED

    def __init__(self, message: str = "Error sending email") -> None:
        super().__init__(message)
