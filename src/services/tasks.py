"""
Task Service

Per-user task CRUD with filtering, sorting and pagination.

Pattern: Service class with async methods so a document-store backed
implementation can replace the in-memory one without touching the router.

Ownership: every operation is scoped to the caller's identity. A task that
belongs to someone else is reported as "Unauthorized access".
"""

import asyncio
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from src.api.middleware.auth import Identity
from src.core.exceptions import BadRequestError, NotFoundError, UnauthorizedError
from src.models.requests import TaskCreateRequest, TaskQuery, TaskUpdateRequest
from src.observability.logging import get_logger


logger = get_logger("task_manager.tasks")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Task:
    """Stored task document."""

    user_id: str
    title: str
    description: str
    category: str
    priority: int
    status: str
    due_date: Optional[datetime] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class TaskService:
    """
    In-memory task store.

    A single lock serializes writes; reads take a snapshot under the same
    lock so listing never observes a half-applied update.
    """

    def __init__(self) -> None:
        self._tasks: dict[str, Task] = {}
        self._lock = asyncio.Lock()

    async def create_task(self, identity: Identity, request: TaskCreateRequest) -> Task:
        """Create a task owned by the caller."""
        task = Task(
            user_id=identity.subject,
            title=request.title,
            description=request.description,
            category=request.category,
            priority=request.priority,
            status=request.status,
            due_date=request.due_date,
        )
        async with self._lock:
            self._tasks[task.id] = task
        logger.info("task created", task_id=task.id, user_id=identity.subject)
        return task

    async def list_tasks(self, identity: Identity, query: TaskQuery) -> list[Task]:
        """
        Return one page of the caller's tasks.

        Filters are exact matches on category and status; search is a
        case-insensitive substring match on title or description. Without a
        sort field tasks come back in creation order.
        """
        async with self._lock:
            tasks = [t for t in self._tasks.values() if t.user_id == identity.subject]

        if query.category:
            tasks = [t for t in tasks if t.category == query.category]
        if query.status:
            tasks = [t for t in tasks if t.status == query.status]
        if query.search:
            needle = query.search.lower()
            tasks = [
                t
                for t in tasks
                if needle in t.title.lower() or needle in t.description.lower()
            ]

        if query.sort:
            sort_key = query.sort
            # Tasks without a value for the sort field go last in both orders
            present = [t for t in tasks if getattr(t, sort_key) is not None]
            missing = [t for t in tasks if getattr(t, sort_key) is None]
            present.sort(
                key=lambda t: getattr(t, sort_key), reverse=query.order == "desc"
            )
            tasks = present + missing

        start = (query.page - 1) * query.limit
        return tasks[start:start + query.limit]

    async def update_task(
        self, identity: Identity, task_id: str, request: TaskUpdateRequest
    ) -> Task:
        """
        Apply a partial update to one of the caller's tasks.

        Raises:
            BadRequestError: No fields supplied
            NotFoundError: Unknown task
            UnauthorizedError: Task owned by another user
        """
        if not request.has_updates():
            raise BadRequestError("no fields to update")

        changes = request.model_dump(exclude_unset=True, exclude_none=True)
        async with self._lock:
            task = self._get_owned(identity, task_id)
            for name, value in changes.items():
                setattr(task, name, value)
            task.updated_at = _utcnow()

        logger.info("task updated", task_id=task_id, fields=sorted(changes))
        return task

    async def delete_task(self, identity: Identity, task_id: str) -> None:
        """Delete one of the caller's tasks."""
        async with self._lock:
            self._get_owned(identity, task_id)
            del self._tasks[task_id]
        logger.info("task deleted", task_id=task_id)

    def _get_owned(self, identity: Identity, task_id: str) -> Task:
        task = self._tasks.get(task_id)
        if task is None:
            raise NotFoundError("Task not found")
        if task.user_id != identity.subject:
            raise UnauthorizedError("Unauthorized access")
        return task
