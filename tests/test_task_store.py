# ruff: noqa: INP001
"""Owner-scoped task store behaviour against an in-memory SQLite database."""

from __future__ import annotations

from datetime import UTC, date
from uuid import uuid4

import pytest
from pydantic import ValidationError
from sqlalchemy.exc import OperationalError
from sqlmodel import select

from taskdesk.core.errors import StoreFailureError, TaskNotFoundError, TaskValidationError
from taskdesk.core.time import utcnow
from taskdesk.models.tasks import Task
from taskdesk.models.users import User
from taskdesk.schemas.tasks import TaskCreate, TaskUpdate
from taskdesk.services import task_stats, tasks
from taskdesk.services.task_queries import MAX_PAGE, parse_task_list_params
from tests.factories import create_user, insert_tasks


@pytest.mark.asyncio
async def test_create_applies_defaults_and_owner(session) -> None:
    owner = await create_user(session)

    task = await tasks.create_task(
        session,
        owner_id=owner.id,
        payload=TaskCreate(title="  Write report  "),
    )

    assert task.id is not None
    assert task.owner_id == owner.id
    assert task.title == "Write report"
    assert task.status == "pending"
    assert task.priority == "medium"
    assert task.due_date is None
    assert task.created_at is not None
    assert task.updated_at is not None


@pytest.mark.asyncio
async def test_create_keeps_supplied_status_and_priority(session) -> None:
    owner = await create_user(session)

    task = await tasks.create_task(
        session,
        owner_id=owner.id,
        payload=TaskCreate.model_validate(
            {
                "title": "Ship",
                "description": "Release notes",
                "status": "in-progress",
                "priority": "high",
                "dueDate": "2024-12-31",
            },
        ),
    )

    assert task.status == "in-progress"
    assert task.priority == "high"
    assert task.due_date == date(2024, 12, 31)
    assert task.description == "Release notes"


@pytest.mark.asyncio
async def test_blank_title_is_rejected_and_nothing_is_persisted(session) -> None:
    owner = await create_user(session)

    with pytest.raises(ValidationError):
        TaskCreate(title="   ")

    bypassed = TaskCreate.model_construct(title="   ")
    with pytest.raises(TaskValidationError) as exc:
        await tasks.create_task(session, owner_id=owner.id, payload=bypassed)

    assert [error.field for error in exc.value.errors] == ["title"]
    assert (await session.exec(select(Task))).all() == []


@pytest.mark.asyncio
async def test_get_is_scoped_to_owner(session) -> None:
    owner = await create_user(session)
    stranger = await create_user(session, name="Stranger")
    [task] = await insert_tasks(session, owner, [{"title": "Mine"}])

    found = await tasks.get_task(session, owner_id=owner.id, task_id=task.id)
    assert found.id == task.id

    with pytest.raises(TaskNotFoundError) as foreign:
        await tasks.get_task(session, owner_id=stranger.id, task_id=task.id)
    with pytest.raises(TaskNotFoundError) as missing:
        await tasks.get_task(session, owner_id=owner.id, task_id=uuid4())
    with pytest.raises(TaskNotFoundError):
        await tasks.get_task(session, owner_id=owner.id, task_id="not-a-uuid")

    assert str(foreign.value) == str(missing.value) == "Task not found"


@pytest.mark.asyncio
async def test_list_filters_by_status_only_within_owner(session) -> None:
    owner = await create_user(session)
    other = await create_user(session, name="Other")
    await insert_tasks(
        session,
        owner,
        [
            {"title": "Task 1", "status": "pending"},
            {"title": "Task 2", "status": "in-progress"},
            {"title": "Task 3", "status": "pending"},
        ],
    )
    await insert_tasks(
        session,
        other,
        [{"title": "Foreign", "status": "pending"} for _ in range(4)],
    )

    page = await tasks.list_tasks(
        session,
        owner_id=owner.id,
        params=parse_task_list_params({"status": "pending"}),
    )

    assert page.total == 2
    assert {task.title for task in page.tasks} == {"Task 1", "Task 3"}
    assert all(task.owner_id == owner.id for task in page.tasks)


@pytest.mark.asyncio
async def test_list_pagination_metadata(session) -> None:
    owner = await create_user(session)
    await insert_tasks(session, owner, [{"title": f"Task {i}"} for i in range(1, 4)])

    first = await tasks.list_tasks(
        session,
        owner_id=owner.id,
        params=parse_task_list_params({"page": "1", "limit": "2"}),
    )
    second = await tasks.list_tasks(
        session,
        owner_id=owner.id,
        params=parse_task_list_params({"page": "2", "limit": "2"}),
    )

    assert len(first.tasks) == 2
    assert (first.page, first.pages, first.total) == (1, 2, 3)
    assert len(second.tasks) == 1
    assert {t.title for t in first.tasks} | {t.title for t in second.tasks} == {
        "Task 1",
        "Task 2",
        "Task 3",
    }


@pytest.mark.asyncio
async def test_list_with_no_matches_has_zero_pages(session) -> None:
    owner = await create_user(session)

    page = await tasks.list_tasks(session, owner_id=owner.id, params=parse_task_list_params({}))

    assert page.tasks == []
    assert (page.pages, page.total) == (0, 0)


@pytest.mark.asyncio
async def test_list_sorts_by_created_at_desc_by_default(session) -> None:
    owner = await create_user(session)
    await insert_tasks(session, owner, [{"title": "old"}, {"title": "mid"}, {"title": "new"}])

    newest_first = await tasks.list_tasks(
        session,
        owner_id=owner.id,
        params=parse_task_list_params({}),
    )
    oldest_first = await tasks.list_tasks(
        session,
        owner_id=owner.id,
        params=parse_task_list_params({"sortOrder": "banana"}),
    )

    assert [t.title for t in newest_first.tasks] == ["new", "mid", "old"]
    assert [t.title for t in oldest_first.tasks] == ["old", "mid", "new"]


@pytest.mark.asyncio
async def test_list_sorts_by_title(session) -> None:
    owner = await create_user(session)
    await insert_tasks(session, owner, [{"title": "b"}, {"title": "c"}, {"title": "a"}])

    page = await tasks.list_tasks(
        session,
        owner_id=owner.id,
        params=parse_task_list_params({"sortBy": "title", "sortOrder": "asc"}),
    )

    assert [t.title for t in page.tasks] == ["a", "b", "c"]


@pytest.mark.asyncio
async def test_search_is_case_insensitive_over_title_or_description(session) -> None:
    owner = await create_user(session)
    await insert_tasks(
        session,
        owner,
        [
            {"title": "Quarterly REPORT"},
            {"title": "Groceries", "description": "also print the report"},
            {"title": "Gym"},
            {"title": "100% done"},
        ],
    )

    page = await tasks.list_tasks(
        session,
        owner_id=owner.id,
        params=parse_task_list_params({"search": "rEpOrT"}),
    )
    literal = await tasks.list_tasks(
        session,
        owner_id=owner.id,
        params=parse_task_list_params({"search": "%"}),
    )

    assert {t.title for t in page.tasks} == {"Quarterly REPORT", "Groceries"}
    assert [t.title for t in literal.tasks] == ["100% done"]


@pytest.mark.asyncio
async def test_filters_combine_with_and(session) -> None:
    owner = await create_user(session)
    await insert_tasks(
        session,
        owner,
        [
            {"title": "Report A", "status": "pending", "priority": "high"},
            {"title": "Report B", "status": "pending", "priority": "low"},
            {"title": "Other", "status": "pending", "priority": "high"},
            {"title": "Report C", "status": "completed", "priority": "high"},
        ],
    )

    page = await tasks.list_tasks(
        session,
        owner_id=owner.id,
        params=parse_task_list_params(
            {"status": "pending", "priority": "high", "search": "report"},
        ),
    )

    assert [t.title for t in page.tasks] == ["Report A"]
    assert page.total == 1


@pytest.mark.asyncio
async def test_update_only_changes_supplied_fields(session) -> None:
    owner = await create_user(session)
    [task] = await insert_tasks(
        session,
        owner,
        [
            {
                "title": "Original",
                "description": "Keep me",
                "status": "in-progress",
                "priority": "high",
                "due_date": date(2026, 5, 1),
            },
        ],
    )
    before = task.updated_at

    updated = await tasks.update_task(
        session,
        owner_id=owner.id,
        task_id=task.id,
        payload=TaskUpdate.model_validate({"title": "Renamed", "owner": str(uuid4())}),
    )

    assert updated.title == "Renamed"
    assert updated.description == "Keep me"
    assert updated.status == "in-progress"
    assert updated.priority == "high"
    assert updated.due_date == date(2026, 5, 1)
    assert updated.owner_id == owner.id
    assert updated.updated_at != before


@pytest.mark.asyncio
async def test_update_clears_nullable_fields(session) -> None:
    owner = await create_user(session)
    [task] = await insert_tasks(
        session,
        owner,
        [{"title": "Dated", "description": "Notes", "due_date": date(2026, 5, 1)}],
    )

    updated = await tasks.update_task(
        session,
        owner_id=owner.id,
        task_id=task.id,
        payload=TaskUpdate.model_validate({"dueDate": "", "description": None}),
    )

    assert updated.due_date is None
    assert updated.description is None
    assert updated.title == "Dated"


@pytest.mark.asyncio
async def test_update_rejects_invalid_values_without_writing(session) -> None:
    owner = await create_user(session)
    [task] = await insert_tasks(session, owner, [{"title": "Stable"}])

    with pytest.raises(ValidationError):
        TaskUpdate.model_validate({"title": "", "status": "invalid-status"})

    corrupt = TaskUpdate.model_construct(title="x" * 101, _fields_set={"title"})
    with pytest.raises(TaskValidationError):
        await tasks.update_task(session, owner_id=owner.id, task_id=task.id, payload=corrupt)

    await session.refresh(task)
    assert task.title == "Stable"


@pytest.mark.asyncio
async def test_update_and_delete_of_foreign_task_are_not_found(session) -> None:
    owner = await create_user(session)
    stranger = await create_user(session, name="Stranger")
    [task] = await insert_tasks(session, owner, [{"title": "Mine"}])

    with pytest.raises(TaskNotFoundError):
        await tasks.update_task(
            session,
            owner_id=stranger.id,
            task_id=task.id,
            payload=TaskUpdate(title="Hijacked"),
        )
    with pytest.raises(TaskNotFoundError):
        await tasks.delete_task(session, owner_id=stranger.id, task_id=task.id)

    still_there = await tasks.get_task(session, owner_id=owner.id, task_id=task.id)
    assert still_there.title == "Mine"


@pytest.mark.asyncio
async def test_delete_then_get_is_not_found(session) -> None:
    owner = await create_user(session)
    [task] = await insert_tasks(session, owner, [{"title": "Temporary"}])

    await tasks.delete_task(session, owner_id=owner.id, task_id=task.id)

    with pytest.raises(TaskNotFoundError):
        await tasks.get_task(session, owner_id=owner.id, task_id=task.id)
    with pytest.raises(TaskNotFoundError):
        await tasks.delete_task(session, owner_id=owner.id, task_id=task.id)


@pytest.mark.asyncio
async def test_stats_group_by_status_and_priority(session) -> None:
    owner = await create_user(session)
    other = await create_user(session, name="Other")
    await insert_tasks(
        session,
        owner,
        [
            {"title": "Task 1", "status": "pending", "priority": "high"},
            {"title": "Task 2", "status": "pending", "priority": "medium"},
            {"title": "Task 3", "status": "in-progress", "priority": "high"},
            {"title": "Task 4", "status": "completed", "priority": "low"},
        ],
    )
    await insert_tasks(session, other, [{"title": "Noise", "status": "completed"}])

    stats = await task_stats.compute_task_stats(session, owner_id=owner.id)

    assert stats.total == 4
    assert stats.by_status == {"pending": 2, "in-progress": 1, "completed": 1}
    assert stats.by_priority == {"high": 2, "medium": 1, "low": 1}


@pytest.mark.asyncio
async def test_stats_omit_zero_counts(session) -> None:
    owner = await create_user(session)
    await insert_tasks(session, owner, [{"title": "Only", "status": "completed"}])

    stats = await task_stats.compute_task_stats(session, owner_id=owner.id)

    assert stats.total == 1
    assert stats.by_status == {"completed": 1}
    assert stats.by_priority == {"medium": 1}
    assert "pending" not in stats.by_status


@pytest.mark.asyncio
async def test_database_errors_surface_as_store_failures(session, monkeypatch) -> None:
    owner = await create_user(session)

    async def _broken_exec(*_args: object, **_kwargs: object) -> None:
        raise OperationalError("SELECT 1", {}, Exception("database is unavailable"))

    monkeypatch.setattr(session, "exec", _broken_exec)

    with pytest.raises(StoreFailureError) as exc:
        await tasks.list_tasks(session, owner_id=owner.id, params=parse_task_list_params({}))

    assert exc.value.operation == "list"
    assert isinstance(exc.value.__cause__, OperationalError)


@pytest.mark.asyncio
async def test_page_past_the_end_is_empty_with_totals(session) -> None:
    owner = await create_user(session)
    await insert_tasks(session, owner, [{"title": "Task 1"}, {"title": "Task 2"}])

    page = await tasks.list_tasks(
        session,
        owner_id=owner.id,
        params=parse_task_list_params({"page": str(MAX_PAGE), "limit": "100"}),
    )

    assert page.tasks == []
    assert (page.page, page.pages, page.total) == (MAX_PAGE, 1, 2)


@pytest.mark.asyncio
async def test_timestamps_are_timezone_aware_columns(session) -> None:
    owner = await create_user(session)

    task = await tasks.create_task(session, owner_id=owner.id, payload=TaskCreate(title="Now"))

    assert utcnow().tzinfo is UTC
    for column in ("created_at", "updated_at"):
        assert Task.__table__.c[column].type.timezone is True
    assert User.__table__.c["created_at"].type.timezone is True
    assert task.created_at is not None
