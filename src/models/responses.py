"""
Response Models

Pydantic models for the JSON envelopes returned by every endpoint and gate.

Success: {"success": true, "message": ..., "data": ...}
Error:   {"success": false, "message": ..., "errors": [...] | null}
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


# =============================================================================
# Envelopes
# =============================================================================


class FieldError(BaseModel):
    """Single field-level validation error."""

    path: str = Field(..., description="Name of the offending field")
    message: str = Field(..., description="Human-readable problem description")


class SuccessResponse(BaseModel):
    """Envelope for successful responses."""

    success: bool = True
    message: str
    data: Optional[Any] = None


class ErrorResponse(BaseModel):
    """
    Envelope for error responses.

    The errors key is always present; it is null unless the failure carries
    field-level details.
    """

    success: bool = False
    message: str
    errors: Optional[list[FieldError]] = None


# =============================================================================
# Task Payloads
# =============================================================================


class TaskResponse(BaseModel):
    """Serialized task owned by the authenticated user."""

    id: str
    user_id: str
    title: str
    description: str
    category: str
    priority: int
    status: str
    due_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class TaskListResponse(BaseModel):
    """Page of tasks returned by GET /api/tasks."""

    count: int
    tasks: list[TaskResponse]


# =============================================================================
# Account Payloads
# =============================================================================


class UserResponse(BaseModel):
    """Public view of an account; never includes the password hash or tokens."""

    id: str
    username: str
    email: str
    verified: bool
    created_at: datetime
    updated_at: datetime


class LoginResponse(BaseModel):
    """Bearer token issued by POST /api/auth/login."""

    token: str
    user: UserResponse
