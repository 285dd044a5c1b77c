"""
API Dependencies

FastAPI dependency functions for the API layer. Components are constructed
once in create_app() and stored on app.state; these functions hand them to
route handlers and can be overridden in tests via app.dependency_overrides.
"""

from typing import Annotated

from fastapi import Depends, Request

from src.api.middleware.auth import Identity, get_identity
from src.core.config import Settings
from src.services.tasks import TaskService
from src.services.users import UserService


def get_settings(request: Request) -> Settings:
    """Get the settings the application was built with."""
    return request.app.state.settings


def get_task_service(request: Request) -> TaskService:
    """Get the TaskService instance owned by the application."""
    return request.app.state.task_service


def get_user_service(request: Request) -> UserService:
    return request.app.state.user_service


CurrentIdentity = Annotated[Identity, Depends(get_identity)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
TaskServiceDep = Annotated[TaskService, Depends(get_task_service)]
UserServiceDep = Annotated[UserService, Depends(get_user_service)]

__all__ = [
    "get_settings",
    "get_task_service",
    "get_user_service",
    "get_identity",
    "CurrentIdentity",
    "SettingsDep",
    "TaskServiceDep",
    "UserServiceDep",
]
