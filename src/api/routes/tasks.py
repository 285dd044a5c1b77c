"""
Tasks Router

CRUD over the authenticated user's tasks. Every route here is protected:
AuthMiddleware attaches the caller's identity and handlers read it through
the CurrentIdentity dependency, which fails with 401 if it is absent.

Errors raised by the service (BadRequestError, NotFoundError,
UnauthorizedError) propagate to ErrorTranslationMiddleware.
"""

from typing import Literal, Optional

from fastapi import APIRouter, Query, status
from fastapi.responses import JSONResponse

from src.api.deps import CurrentIdentity, TaskServiceDep
from src.api.responses import success_response
from src.models.requests import (
    SortField,
    TaskCreateRequest,
    TaskQuery,
    TaskStatus,
    TaskUpdateRequest,
)
from src.models.responses import TaskListResponse, TaskResponse


router = APIRouter(
    prefix="/api/tasks",
    tags=["Tasks"],
)


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Create a task",
)
async def create_task(
    request: TaskCreateRequest,
    identity: CurrentIdentity,
    service: TaskServiceDep,
) -> JSONResponse:
    """Create a task owned by the caller."""
    task = await service.create_task(identity, request)
    return success_response(
        status.HTTP_201_CREATED,
        "Task created",
        TaskResponse(**task.to_dict()).model_dump(mode="json"),
    )


@router.get(
    "",
    summary="List tasks",
    description="Filter, search, sort and paginate the caller's tasks.",
)
async def list_tasks(
    identity: CurrentIdentity,
    service: TaskServiceDep,
    category: Optional[str] = None,
    task_status: Optional[TaskStatus] = Query(default=None, alias="status"),
    search: Optional[str] = None,
    sort: Optional[SortField] = None,
    order: Literal["asc", "desc"] = "asc",
    limit: int = Query(default=20, ge=1, le=100),
    page: int = Query(default=1, ge=1),
) -> JSONResponse:
    """
    List the caller's tasks.

    Query parameters mirror TaskQuery: category, status, search, sort,
    order, limit and page.
    """
    query = TaskQuery(
        category=category,
        status=task_status,
        search=search,
        sort=sort,
        order=order,
        limit=limit,
        page=page,
    )
    tasks = await service.list_tasks(identity, query)
    payload = TaskListResponse(
        count=len(tasks),
        tasks=[TaskResponse(**task.to_dict()) for task in tasks],
    )
    return success_response(status.HTTP_200_OK, "Tasks", payload.model_dump(mode="json"))


@router.put(
    "/{task_id}",
    summary="Update a task",
)
async def update_task(
    task_id: str,
    request: TaskUpdateRequest,
    identity: CurrentIdentity,
    service: TaskServiceDep,
) -> JSONResponse:
    """Apply a partial update to one of the caller's tasks."""
    task = await service.update_task(identity, task_id, request)
    return success_response(
        status.HTTP_200_OK,
        "Task updated",
        TaskResponse(**task.to_dict()).model_dump(mode="json"),
    )


@router.delete(
    "/{task_id}",
    summary="Delete a task",
)
async def delete_task(
    task_id: str,
    identity: CurrentIdentity,
    service: TaskServiceDep,
) -> JSONResponse:
    """Delete one of the caller's tasks."""
    await service.delete_task(identity, task_id)
    return success_response(status.HTTP_200_OK, "Task deleted")
