"""Task API schemas for create, update, read, list, and statistics payloads."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

from taskdesk.models.tasks import (
    DESCRIPTION_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    Task,
    TaskPriority,
    TaskStatus,
)

RUNTIME_ANNOTATION_TYPES = (date, datetime, UUID)

TITLE_REQUIRED = "Title is required"
TITLE_EMPTY = "Title cannot be empty"
TITLE_TOO_LONG = f"Title cannot exceed {TITLE_MAX_LENGTH} characters"
DESCRIPTION_TOO_LONG = f"Description cannot exceed {DESCRIPTION_MAX_LENGTH} characters"
INVALID_STATUS = "Invalid status"
INVALID_PRIORITY = "Invalid priority"
INVALID_DUE_DATE = "Invalid date format"


class CamelModel(BaseModel):
    """Base for wire payloads: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _clean_title(value: object, *, empty_message: str) -> str:
    if value is None:
        raise PydanticCustomError("title_empty", empty_message)
    if not isinstance(value, str):
        raise PydanticCustomError("title_type", "Title must be a string")
    title = value.strip()
    if not title:
        raise PydanticCustomError("title_empty", empty_message)
    if len(title) > TITLE_MAX_LENGTH:
        raise PydanticCustomError("title_too_long", TITLE_TOO_LONG)
    return title


def _clean_description(value: object) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise PydanticCustomError("description_type", "Description must be a string")
    description = value.strip()
    if len(description) > DESCRIPTION_MAX_LENGTH:
        raise PydanticCustomError("description_too_long", DESCRIPTION_TOO_LONG)
    return description or None


def _clean_enum(
    value: object,
    *,
    allowed: type[TaskStatus] | type[TaskPriority],
    message: str,
) -> Any:
    if isinstance(value, allowed):
        return value
    if isinstance(value, str):
        try:
            return allowed(value)
        except ValueError:
            pass
    raise PydanticCustomError("invalid_choice", message)


def parse_due_date(value: object) -> date | None:
    """Accept an ISO-8601 date or datetime and keep only the calendar date.

    ``None`` and blank strings mean "no due date".
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise PydanticCustomError("invalid_due_date", INVALID_DUE_DATE)
    text = value.strip()
    if not text:
        return None
    try:
        if len(text) == 10:
            return date.fromisoformat(text)
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError as exc:
        raise PydanticCustomError("invalid_due_date", INVALID_DUE_DATE) from exc


class TaskCreate(CamelModel):
    """Payload for creating a task."""

    title: str
    description: str | None = None
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: date | None = None

    @model_validator(mode="before")
    @classmethod
    def _require_title(cls, data: Any) -> Any:
        if isinstance(data, dict) and "title" not in data:
            return {**data, "title": None}
        return data

    @field_validator("title", mode="before")
    @classmethod
    def _title(cls, value: object) -> str:
        return _clean_title(value, empty_message=TITLE_REQUIRED)

    @field_validator("description", mode="before")
    @classmethod
    def _description(cls, value: object) -> str | None:
        return _clean_description(value)

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, value: object) -> TaskStatus:
        return _clean_enum(value, allowed=TaskStatus, message=INVALID_STATUS)

    @field_validator("priority", mode="before")
    @classmethod
    def _priority(cls, value: object) -> TaskPriority:
        return _clean_enum(value, allowed=TaskPriority, message=INVALID_PRIORITY)

    @field_validator("due_date", mode="before")
    @classmethod
    def _due_date(cls, value: object) -> date | None:
        return parse_due_date(value)


class TaskUpdate(CamelModel):
    """Partial update payload.

    Only fields present in the request are applied. ``description`` and
    ``dueDate`` may be sent as ``null`` or ``""`` to clear them; ``title``,
    ``status`` and ``priority`` cannot be cleared.
    """

    title: str | None = None
    description: str | None = None
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    due_date: date | None = None

    @field_validator("title", mode="before")
    @classmethod
    def _title(cls, value: object) -> str:
        return _clean_title(value, empty_message=TITLE_EMPTY)

    @field_validator("description", mode="before")
    @classmethod
    def _description(cls, value: object) -> str | None:
        return _clean_description(value)

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, value: object) -> TaskStatus:
        return _clean_enum(value, allowed=TaskStatus, message=INVALID_STATUS)

    @field_validator("priority", mode="before")
    @classmethod
    def _priority(cls, value: object) -> TaskPriority:
        return _clean_enum(value, allowed=TaskPriority, message=INVALID_PRIORITY)

    @field_validator("due_date", mode="before")
    @classmethod
    def _due_date(cls, value: object) -> date | None:
        return parse_due_date(value)

    def changes(self) -> dict[str, object]:
        """Return explicitly supplied fields as storable column values."""
        updates = self.model_dump(exclude_unset=True)
        for key in ("status", "priority"):
            if key in updates:
                updates[key] = updates[key].value
        return updates


class TaskRead(CamelModel):
    """Task record returned by read, create, and update endpoints."""

    id: UUID
    title: str
    description: str | None = None
    status: TaskStatus
    priority: TaskPriority
    due_date: date | None = None
    owner: UUID = Field(description="Id of the user that owns the task.")
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_task(cls, task: Task) -> TaskRead:
        return cls(
            id=task.id,
            title=task.title,
            description=task.description,
            status=TaskStatus(task.status),
            priority=TaskPriority(task.priority),
            due_date=task.due_date,
            owner=task.owner_id,
            created_at=task.created_at,
            updated_at=task.updated_at,
        )


class PaginationRead(CamelModel):
    """Page position and totals for a filtered task listing."""

    current: int = Field(description="Requested page number (1-based).", examples=[1])
    pages: int = Field(description="Total page count, ceil(total / limit).", examples=[2])
    total: int = Field(description="Number of tasks matching the filters.", examples=[3])


class TaskListResponse(CamelModel):
    """Envelope returned by the task listing endpoint."""

    tasks: list[TaskRead]
    pagination: PaginationRead


class TaskStatsRead(CamelModel):
    """Per-owner task counts. Values with zero tasks are omitted from the mappings."""

    total: int
    by_status: dict[str, int] = Field(
        default_factory=dict,
        examples=[{"pending": 2, "in-progress": 1, "completed": 1}],
    )
    by_priority: dict[str, int] = Field(
        default_factory=dict,
        examples=[{"high": 2, "medium": 1, "low": 1}],
    )


class TaskDeleteResponse(BaseModel):
    """Confirmation payload for task deletion."""

    message: str = "Task deleted successfully"
