"""
Services Package - business logic behind the API routes.
"""

from src.services.email import EmailMessage, EmailSender, LoggingEmailSender
from src.services.tasks import Task, TaskService
from src.services.users import SignUpResult, User, UserService

__all__ = [
    "Task",
    "TaskService",
    "User",
    "UserService",
    "SignUpResult",
    "EmailMessage",
    "EmailSender",
    "LoggingEmailSender",
]
