"""Parse task listing parameters and build owner-scoped list/count statements.

Query strings arrive untyped. ``parse_task_list_params`` turns them into a
``TaskListParams`` or raises ``TaskValidationError`` listing every bad field,
so nothing reaches the database until the whole request is valid.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_core import PydanticCustomError
from sqlalchemy import func, or_
from sqlmodel import col, select

from taskdesk.core.errors import FieldError, TaskValidationError
from taskdesk.models.tasks import Task, TaskPriority, TaskStatus
from taskdesk.schemas.tasks import INVALID_PRIORITY, INVALID_STATUS

if TYPE_CHECKING:
    from uuid import UUID

    from sqlalchemy.sql.elements import ColumnElement
    from sqlmodel.sql.expression import SelectOfScalar

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100
# Largest page whose row offset still fits a signed 64-bit integer at any limit.
MAX_PAGE = (2**63 - 1) // MAX_LIMIT + 1
DESCENDING = "desc"
PAGE_INVALID = "Page must be a positive integer"
LIMIT_INVALID = f"Limit must be between 1 and {MAX_LIMIT}"
SORT_FIELD_INVALID = "Invalid sort field"
SEARCH_INVALID = "Search must be a string"
_LIKE_ESCAPE = "\\"
_MAX_INT_DIGITS = 19


class TaskSortField(str, Enum):
    """Columns a task listing may be ordered by, named as on the wire."""

    CREATED_AT = "createdAt"
    UPDATED_AT = "updatedAt"
    DUE_DATE = "dueDate"
    TITLE = "title"
    STATUS = "status"
    PRIORITY = "priority"

    @property
    def column(self) -> Any:
        return _SORT_COLUMNS[self]


_SORT_COLUMNS = {
    TaskSortField.CREATED_AT: col(Task.created_at),
    TaskSortField.UPDATED_AT: col(Task.updated_at),
    TaskSortField.DUE_DATE: col(Task.due_date),
    TaskSortField.TITLE: col(Task.title),
    TaskSortField.STATUS: col(Task.status),
    TaskSortField.PRIORITY: col(Task.priority),
}
_SORT_FIELD_SPELLINGS = {
    **{field.value: field for field in TaskSortField},
    "created_at": TaskSortField.CREATED_AT,
    "updated_at": TaskSortField.UPDATED_AT,
    "due_date": TaskSortField.DUE_DATE,
}


def _bounded_int(value: object, *, minimum: int, maximum: int | None, message: str) -> int:
    if isinstance(value, bool):
        raise PydanticCustomError("int_invalid", message)
    if isinstance(value, int):
        number = value
    elif isinstance(value, str):
        text = value.strip()
        digits = text[1:] if text[:1] in {"+", "-"} else text
        if not (digits.isascii() and digits.isdecimal()):
            raise PydanticCustomError("int_invalid", message)
        if len(digits) > _MAX_INT_DIGITS:
            raise PydanticCustomError("int_out_of_range", message)
        number = int(text)
    else:
        raise PydanticCustomError("int_invalid", message)
    if number < minimum or (maximum is not None and number > maximum):
        raise PydanticCustomError("int_out_of_range", message)
    return number


class TaskListParams(BaseModel):
    """Validated task listing filters, paging, and ordering."""

    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    search: str | None = None
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT
    sort_by: TaskSortField = Field(default=TaskSortField.CREATED_AT, alias="sortBy")
    # Anything other than "desc" sorts ascending, including unrecognised values.
    sort_order: str = Field(default=DESCENDING, alias="sortOrder")

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, value: object) -> TaskStatus | None:
        if isinstance(value, TaskStatus):
            return value
        if isinstance(value, str) and value in {s.value for s in TaskStatus}:
            return TaskStatus(value)
        raise PydanticCustomError("invalid_status", INVALID_STATUS)

    @field_validator("priority", mode="before")
    @classmethod
    def _priority(cls, value: object) -> TaskPriority | None:
        if isinstance(value, TaskPriority):
            return value
        if isinstance(value, str) and value in {p.value for p in TaskPriority}:
            return TaskPriority(value)
        raise PydanticCustomError("invalid_priority", INVALID_PRIORITY)

    @field_validator("search", mode="before")
    @classmethod
    def _search(cls, value: object) -> str | None:
        if value is None:
            return None
        if not isinstance(value, str):
            raise PydanticCustomError("search_invalid", SEARCH_INVALID)
        return value or None

    @field_validator("page", mode="before")
    @classmethod
    def _page(cls, value: object) -> int:
        return _bounded_int(value, minimum=1, maximum=MAX_PAGE, message=PAGE_INVALID)

    @field_validator("limit", mode="before")
    @classmethod
    def _limit(cls, value: object) -> int:
        return _bounded_int(value, minimum=1, maximum=MAX_LIMIT, message=LIMIT_INVALID)

    @field_validator("sort_by", mode="before")
    @classmethod
    def _sort_by(cls, value: object) -> TaskSortField:
        if isinstance(value, TaskSortField):
            return value
        if isinstance(value, str) and value in _SORT_FIELD_SPELLINGS:
            return _SORT_FIELD_SPELLINGS[value]
        raise PydanticCustomError("sort_field_invalid", SORT_FIELD_INVALID)

    @field_validator("sort_order", mode="before")
    @classmethod
    def _sort_order(cls, value: object) -> str:
        return value if isinstance(value, str) else str(value)

    @property
    def descending(self) -> bool:
        return self.sort_order == DESCENDING

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def parse_task_list_params(raw: Mapping[str, Any]) -> TaskListParams:
    """Validate raw query parameters, collecting every field error at once."""
    try:
        return TaskListParams.model_validate(dict(raw))
    except ValidationError as exc:
        errors = [
            FieldError(
                field=".".join(str(part) for part in error["loc"]) or "query",
                message=error["msg"],
            )
            for error in exc.errors()
        ]
        raise TaskValidationError(errors) from exc


def _escape_like(term: str) -> str:
    return (
        term.replace(_LIKE_ESCAPE, _LIKE_ESCAPE * 2)
        .replace("%", f"{_LIKE_ESCAPE}%")
        .replace("_", f"{_LIKE_ESCAPE}_")
    )


@dataclass(frozen=True)
class TaskQuery:
    """Owner-scoped listing query derived from validated parameters."""

    owner_id: UUID
    params: TaskListParams

    def conditions(self) -> list[ColumnElement[bool]]:
        clauses: list[ColumnElement[bool]] = [col(Task.owner_id) == self.owner_id]
        if self.params.status is not None:
            clauses.append(col(Task.status) == self.params.status.value)
        if self.params.priority is not None:
            clauses.append(col(Task.priority) == self.params.priority.value)
        if self.params.search:
            pattern = f"%{_escape_like(self.params.search)}%"
            clauses.append(
                or_(
                    col(Task.title).ilike(pattern, escape=_LIKE_ESCAPE),
                    col(Task.description).ilike(pattern, escape=_LIKE_ESCAPE),
                ),
            )
        return clauses

    def order_by(self) -> list[Any]:
        column = self.params.sort_by.column
        if self.params.descending:
            return [column.desc().nulls_last(), col(Task.id).desc()]
        return [column.asc().nulls_first(), col(Task.id).asc()]

    def page_statement(self) -> SelectOfScalar[Task]:
        return (
            select(Task)
            .where(*self.conditions())
            .order_by(*self.order_by())
            .offset(self.params.offset)
            .limit(self.params.limit)
        )

    def count_statement(self) -> SelectOfScalar[int]:
        return select(func.count()).select_from(Task).where(*self.conditions())


def build_task_query(owner_id: UUID, params: TaskListParams) -> TaskQuery:
    """Scope validated listing parameters to a single owner."""
    return TaskQuery(owner_id=owner_id, params=params)
