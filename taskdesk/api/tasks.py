"""Task CRUD, filtered listing, and statistics endpoints for the current user."""

from __future__ import annotations

from fastapi import APIRouter, Query, status
from sqlmodel.ext.asyncio.session import AsyncSession

from taskdesk.api.deps import AUTH_DEP, SESSION_DEP
from taskdesk.core.auth import AuthContext
from taskdesk.schemas.errors import ErrorResponse, ValidationErrorResponse
from taskdesk.schemas.tasks import (
    PaginationRead,
    TaskCreate,
    TaskDeleteResponse,
    TaskListResponse,
    TaskRead,
    TaskStatsRead,
    TaskUpdate,
)
from taskdesk.services import task_stats as stats_service
from taskdesk.services import tasks as task_service
from taskdesk.services.task_queries import parse_task_list_params

router = APIRouter(prefix="/tasks", tags=["tasks"])

NOT_FOUND_RESPONSE = {
    status.HTTP_404_NOT_FOUND: {
        "model": ErrorResponse,
        "description": "No task with this id belongs to the caller.",
    },
}
VALIDATION_RESPONSE = {
    status.HTTP_422_UNPROCESSABLE_ENTITY: {
        "model": ValidationErrorResponse,
        "description": "One or more fields failed validation.",
    },
}


@router.get(
    "",
    response_model=TaskListResponse,
    responses=VALIDATION_RESPONSE,
    summary="List Tasks",
)
async def list_tasks(
    status_filter: str | None = Query(default=None, alias="status"),
    priority: str | None = Query(default=None),
    search: str | None = Query(default=None),
    page: str | None = Query(default=None, description="Page number, 1 or greater."),
    limit: str | None = Query(default=None, description="Page size, 1 to 100."),
    sort_by: str | None = Query(default=None, alias="sortBy"),
    sort_order: str | None = Query(
        default=None,
        alias="sortOrder",
        description="`desc` sorts descending; any other value sorts ascending.",
    ),
    auth: AuthContext = AUTH_DEP,
    session: AsyncSession = SESSION_DEP,
) -> TaskListResponse:
    """List the caller's tasks with optional filters, search, paging, and ordering."""
    supplied = {
        "status": status_filter,
        "priority": priority,
        "search": search,
        "page": page,
        "limit": limit,
        "sortBy": sort_by,
        "sortOrder": sort_order,
    }
    params = parse_task_list_params(
        {key: value for key, value in supplied.items() if value is not None},
    )
    result = await task_service.list_tasks(session, owner_id=auth.owner_id, params=params)
    return TaskListResponse(
        tasks=[TaskRead.from_task(task) for task in result.tasks],
        pagination=PaginationRead(current=result.page, pages=result.pages, total=result.total),
    )


@router.post(
    "",
    response_model=TaskRead,
    status_code=status.HTTP_201_CREATED,
    responses=VALIDATION_RESPONSE,
)
async def create_task(
    payload: TaskCreate,
    auth: AuthContext = AUTH_DEP,
    session: AsyncSession = SESSION_DEP,
) -> TaskRead:
    """Create a task owned by the caller."""
    task = await task_service.create_task(session, owner_id=auth.owner_id, payload=payload)
    return TaskRead.from_task(task)


@router.get("/stats/overview", response_model=TaskStatsRead, summary="Task Statistics")
async def get_task_stats(
    auth: AuthContext = AUTH_DEP,
    session: AsyncSession = SESSION_DEP,
) -> TaskStatsRead:
    """Count the caller's tasks overall and grouped by status and priority."""
    stats = await stats_service.compute_task_stats(session, owner_id=auth.owner_id)
    return TaskStatsRead(
        total=stats.total,
        by_status=stats.by_status,
        by_priority=stats.by_priority,
    )


@router.get("/{task_id}", response_model=TaskRead, responses=NOT_FOUND_RESPONSE)
async def get_task(
    task_id: str,
    auth: AuthContext = AUTH_DEP,
    session: AsyncSession = SESSION_DEP,
) -> TaskRead:
    """Get one of the caller's tasks by id."""
    task = await task_service.get_task(session, owner_id=auth.owner_id, task_id=task_id)
    return TaskRead.from_task(task)


@router.patch(
    "/{task_id}",
    response_model=TaskRead,
    responses={**NOT_FOUND_RESPONSE, **VALIDATION_RESPONSE},
)
async def update_task(
    task_id: str,
    payload: TaskUpdate,
    auth: AuthContext = AUTH_DEP,
    session: AsyncSession = SESSION_DEP,
) -> TaskRead:
    """Change only the supplied fields of one of the caller's tasks."""
    task = await task_service.update_task(
        session,
        owner_id=auth.owner_id,
        task_id=task_id,
        payload=payload,
    )
    return TaskRead.from_task(task)


router.add_api_route(
    "/{task_id}",
    update_task,
    methods=["PUT"],
    response_model=TaskRead,
    responses={**NOT_FOUND_RESPONSE, **VALIDATION_RESPONSE},
    summary="Update Task (PUT)",
    description="Alias of PATCH with the same partial-update semantics.",
)


@router.delete("/{task_id}", response_model=TaskDeleteResponse, responses=NOT_FOUND_RESPONSE)
async def delete_task(
    task_id: str,
    auth: AuthContext = AUTH_DEP,
    session: AsyncSession = SESSION_DEP,
) -> TaskDeleteResponse:
    """Delete one of the caller's tasks."""
    await task_service.delete_task(session, owner_id=auth.owner_id, task_id=task_id)
    return TaskDeleteResponse()
