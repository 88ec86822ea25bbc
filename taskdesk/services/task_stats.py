"""Per-owner task counts grouped by status and by priority."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sqlalchemy import func
from sqlmodel import col, select

from taskdesk.models.tasks import Task
from taskdesk.services.tasks import store_operation

if TYPE_CHECKING:
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession


@dataclass(frozen=True)
class TaskStats:
    """Counts for one owner; values with no tasks are absent from the mappings."""

    total: int
    by_status: dict[str, int] = field(default_factory=dict)
    by_priority: dict[str, int] = field(default_factory=dict)


async def _grouped_counts(
    session: AsyncSession,
    *,
    owner_id: UUID,
    column: object,
) -> dict[str, int]:
    grouped = col(column)
    rows = (
        await session.exec(
            select(grouped, func.count())
            .where(col(Task.owner_id) == owner_id)
            .group_by(grouped),
        )
    ).all()
    return {str(value): int(count) for value, count in rows}


async def compute_task_stats(session: AsyncSession, *, owner_id: UUID) -> TaskStats:
    """Count the owner's tasks fresh from the store."""
    async with store_operation(session, "stats"):
        total = (
            await session.exec(
                select(func.count()).select_from(Task).where(col(Task.owner_id) == owner_id),
            )
        ).one()
        by_status = await _grouped_counts(session, owner_id=owner_id, column=Task.status)
        by_priority = await _grouped_counts(session, owner_id=owner_id, column=Task.priority)
    return TaskStats(total=int(total), by_status=by_status, by_priority=by_priority)
