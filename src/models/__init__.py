"""
Models Package - request and response schemas for the Task Manager API.
"""

from src.models.requests import (
    EmailRequest,
    LoginRequest,
    ResetPasswordRequest,
    SignUpRequest,
    TaskCreateRequest,
    TaskQuery,
    TaskUpdateRequest,
)
from src.models.responses import (
    ErrorResponse,
    FieldError,
    LoginResponse,
    SuccessResponse,
    TaskListResponse,
    TaskResponse,
    UserResponse,
)

__all__ = [
    # Requests
    "TaskCreateRequest",
    "TaskUpdateRequest",
    "TaskQuery",
    "SignUpRequest",
    "LoginRequest",
    "EmailRequest",
    "ResetPasswordRequest",
    # Responses
    "SuccessResponse",
    "ErrorResponse",
    "FieldError",
    "TaskResponse",
    "TaskListResponse",
    "UserResponse",
    "LoginResponse",
]
