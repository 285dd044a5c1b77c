"""
Request Models

Pydantic models for task and account request validation. Unknown fields are
rejected so typos in client payloads surface as validation errors instead of
being silently dropped.
"""

from typing import Literal, Optional

from pydantic import (
    AwareDatetime,
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
)

TaskStatus = Literal["pending", "in_progress", "completed"]

SortField = Literal[
    "title",
    "category",
    "priority",
    "status",
    "due_date",
    "created_at",
    "updated_at",
]


class TaskCreateRequest(BaseModel):
    """
    Body of POST /api/tasks.

    Attributes:
        title: Task title (at least 3 characters)
        description: Free-form description
        category: Caller-defined grouping
        priority: 1 (lowest) to 5 (highest)
        status: Workflow state
        due_date: Optional RFC 3339 timestamp
    """

    model_config = ConfigDict(extra="forbid")

    title: str = Field(..., min_length=3)
    description: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    priority: int = Field(default=1, ge=1, le=5)
    status: TaskStatus
    due_date: Optional[AwareDatetime] = None


class TaskUpdateRequest(BaseModel):
    """Body of PUT /api/tasks/{task_id}; every field is optional."""

    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(default=None, min_length=3)
    description: Optional[str] = None
    category: Optional[str] = None
    priority: Optional[int] = Field(default=None, ge=1, le=5)
    status: Optional[TaskStatus] = None
    due_date: Optional[AwareDatetime] = None

    def has_updates(self) -> bool:
        """Return True if at least one field was supplied."""
        return bool(self.model_dump(exclude_unset=True, exclude_none=True))


class TaskQuery(BaseModel):
    """Filtering, sorting and pagination parameters for GET /api/tasks."""

    category: Optional[str] = None
    status: Optional[TaskStatus] = None
    search: Optional[str] = None
    sort: Optional[SortField] = None
    order: Literal["asc", "desc"] = "asc"
    limit: int = Field(default=20, ge=1, le=100)
    page: int = Field(default=1, ge=1)


# =============================================================================
# Account Requests
# =============================================================================

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class SignUpRequest(BaseModel):
    """Body of POST /api/auth/sign-up."""

    model_config = ConfigDict(extra="forbid")

    username: str = Field(..., min_length=3, max_length=20)
    email: str = Field(..., pattern=EMAIL_PATTERN, max_length=254)
    password: str = Field(..., min_length=6, max_length=72)


class LoginRequest(BaseModel):
    """Body of POST /api/auth/login."""

    model_config = ConfigDict(extra="forbid")

    email: str = Field(..., pattern=EMAIL_PATTERN, max_length=254)
    password: str = Field(..., min_length=1)


class EmailRequest(BaseModel):
    """
    Body of forgot-password and resend-verification.

    An empty email is accepted here and rejected by the service with
    "Email is required".
    """

    model_config = ConfigDict(extra="forbid")

    email: str = ""


class ResetPasswordRequest(BaseModel):
    """Body of POST /api/auth/reset-password."""

    model_config = ConfigDict(extra="forbid")

    password: str = Field(..., min_length=6, max_length=72)
    confirm_password: str

    @field_validator("confirm_password")
    @classmethod
    def passwords_match(cls, v: str, info: ValidationInfo) -> str:
        if "password" in info.data and v != info.data["password"]:
            raise ValueError("passwords do not match")
        return v
