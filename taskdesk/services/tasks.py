"""Owner-scoped task persistence: create, read, list, partial update, delete.

Every operation takes the requesting owner's id explicitly. A task owned by
someone else is reported exactly like a task that does not exist.
"""

from __future__ import annotations

import math
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import col, select

from taskdesk.core.errors import (
    FieldError,
    StoreFailureError,
    TaskNotFoundError,
    TaskValidationError,
)
from taskdesk.core.logging import get_logger
from taskdesk.core.time import utcnow
from taskdesk.models.tasks import (
    DESCRIPTION_MAX_LENGTH,
    TASK_PRIORITIES,
    TASK_STATUSES,
    TITLE_MAX_LENGTH,
    Task,
)
from taskdesk.schemas.tasks import (
    DESCRIPTION_TOO_LONG,
    INVALID_PRIORITY,
    INVALID_STATUS,
    TITLE_EMPTY,
    TITLE_TOO_LONG,
)
from taskdesk.services.task_queries import build_task_query

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlmodel.ext.asyncio.session import AsyncSession

    from taskdesk.schemas.tasks import TaskCreate, TaskUpdate
    from taskdesk.services.task_queries import TaskListParams

logger = get_logger(__name__)


@dataclass(frozen=True)
class TaskPage:
    """One page of a filtered listing plus totals over the full match set."""

    tasks: list[Task]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit)


@asynccontextmanager
async def store_operation(session: AsyncSession, operation: str) -> AsyncIterator[None]:
    """Translate driver/database errors into ``StoreFailureError`` after rolling back."""
    try:
        yield
    except SQLAlchemyError as exc:
        try:
            await session.rollback()
        except SQLAlchemyError:
            logger.exception("task.store.rollback_failed operation=%s", operation)
        raise StoreFailureError(operation) from exc


def check_task_fields(
    *,
    title: str | None,
    description: str | None,
    status: str,
    priority: str,
) -> list[FieldError]:
    """Return constraint violations for a complete task field set."""
    errors: list[FieldError] = []
    if title is None or not title.strip():
        errors.append(FieldError("title", TITLE_EMPTY))
    elif len(title.strip()) > TITLE_MAX_LENGTH:
        errors.append(FieldError("title", TITLE_TOO_LONG))
    if description is not None and len(description.strip()) > DESCRIPTION_MAX_LENGTH:
        errors.append(FieldError("description", DESCRIPTION_TOO_LONG))
    if status not in TASK_STATUSES:
        errors.append(FieldError("status", INVALID_STATUS))
    if priority not in TASK_PRIORITIES:
        errors.append(FieldError("priority", INVALID_PRIORITY))
    return errors


def _coerce_task_id(task_id: UUID | str) -> UUID | None:
    if isinstance(task_id, UUID):
        return task_id
    try:
        return UUID(str(task_id))
    except ValueError:
        return None


async def _owned_task(
    session: AsyncSession,
    *,
    owner_id: UUID,
    task_id: UUID | str,
) -> Task:
    parsed_id = _coerce_task_id(task_id)
    if parsed_id is None:
        raise TaskNotFoundError
    task = (
        await session.exec(
            select(Task).where(
                col(Task.id) == parsed_id,
                col(Task.owner_id) == owner_id,
            ),
        )
    ).first()
    if task is None:
        raise TaskNotFoundError
    return task


async def create_task(
    session: AsyncSession,
    *,
    owner_id: UUID,
    payload: TaskCreate,
) -> Task:
    """Persist a new task for ``owner_id`` with defaults for omitted fields."""
    task = Task(
        owner_id=owner_id,
        title=payload.title,
        description=payload.description,
        status=payload.status.value,
        priority=payload.priority.value,
        due_date=payload.due_date,
    )
    errors = check_task_fields(
        title=task.title,
        description=task.description,
        status=task.status,
        priority=task.priority,
    )
    if errors:
        raise TaskValidationError(errors)
    async with store_operation(session, "create"):
        session.add(task)
        await session.commit()
        await session.refresh(task)
    logger.info("task.create owner_id=%s task_id=%s", owner_id, task.id)
    return task


async def get_task(
    session: AsyncSession,
    *,
    owner_id: UUID,
    task_id: UUID | str,
) -> Task:
    """Return one of the owner's tasks or raise ``TaskNotFoundError``."""
    async with store_operation(session, "get"):
        return await _owned_task(session, owner_id=owner_id, task_id=task_id)


async def list_tasks(
    session: AsyncSession,
    *,
    owner_id: UUID,
    params: TaskListParams,
) -> TaskPage:
    """Return the requested page of the owner's matching tasks and the match total."""
    query = build_task_query(owner_id, params)
    async with store_operation(session, "list"):
        total = int((await session.exec(query.count_statement())).one())
        tasks: list[Task] = []
        if params.offset < total:
            tasks = list(await session.exec(query.page_statement()))
    logger.debug(
        "task.list owner_id=%s page=%s limit=%s returned=%s total=%s",
        owner_id,
        params.page,
        params.limit,
        len(tasks),
        total,
    )
    return TaskPage(tasks=tasks, total=total, page=params.page, limit=params.limit)


async def update_task(
    session: AsyncSession,
    *,
    owner_id: UUID,
    task_id: UUID | str,
    payload: TaskUpdate,
) -> Task:
    """Apply the explicitly supplied fields of ``payload`` to an owned task.

    The merged result is validated before anything is written, and
    ``updated_at`` is refreshed even when no field changes.
    """
    updates = payload.changes()
    async with store_operation(session, "update"):
        task = await _owned_task(session, owner_id=owner_id, task_id=task_id)
        merged = {
            "title": updates.get("title", task.title),
            "description": updates.get("description", task.description),
            "status": updates.get("status", task.status),
            "priority": updates.get("priority", task.priority),
        }
        errors = check_task_fields(**merged)
        if errors:
            raise TaskValidationError(errors)
        for key, value in updates.items():
            setattr(task, key, value)
        task.updated_at = utcnow()
        session.add(task)
        await session.commit()
        await session.refresh(task)
    logger.info(
        "task.update owner_id=%s task_id=%s fields=%s",
        owner_id,
        task.id,
        ",".join(sorted(updates)) or "-",
    )
    return task


async def delete_task(
    session: AsyncSession,
    *,
    owner_id: UUID,
    task_id: UUID | str,
) -> None:
    """Hard-delete an owned task or raise ``TaskNotFoundError``."""
    async with store_operation(session, "delete"):
        task = await _owned_task(session, owner_id=owner_id, task_id=task_id)
        await session.delete(task)
        await session.commit()
    logger.info("task.delete owner_id=%s task_id=%s", owner_id, task.id)
