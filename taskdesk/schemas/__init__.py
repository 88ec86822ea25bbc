"""Public schema exports shared across API route modules."""

from taskdesk.schemas.errors import ErrorResponse, FieldErrorRead, ValidationErrorResponse
from taskdesk.schemas.health import HealthStatusResponse
from taskdesk.schemas.tasks import (
    PaginationRead,
    TaskCreate,
    TaskDeleteResponse,
    TaskListResponse,
    TaskRead,
    TaskStatsRead,
    TaskUpdate,
)
from taskdesk.schemas.users import UserRead

__all__ = [
    "ErrorResponse",
    "FieldErrorRead",
    "HealthStatusResponse",
    "PaginationRead",
    "TaskCreate",
    "TaskDeleteResponse",
    "TaskListResponse",
    "TaskRead",
    "TaskStatsRead",
    "TaskUpdate",
    "UserRead",
    "ValidationErrorResponse",
]
