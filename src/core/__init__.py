"""
Core module for the Task Manager API.

This module contains configuration, the application exception hierarchy and
password hashing (src.core.security).
"""

from src.core.config import Settings, get_settings
from src.core.exceptions import (
    BadCredentialFormatError,
    BadRequestError,
    ClientIdentityError,
    EmailDeliveryError,
    ErrorCode,
    ForbiddenError,
    InvalidCredentialError,
    NotFoundError,
    RateLimitError,
    TaskManagerException,
    UnauthorizedError,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Exceptions
    "ErrorCode",
    "TaskManagerException",
    "BadRequestError",
    "NotFoundError",
    "UnauthorizedError",
    "BadCredentialFormatError",
    "InvalidCredentialError",
    "RateLimitError",
    "ClientIdentityError",
    "ForbiddenError",
    "EmailDeliveryError",
]
