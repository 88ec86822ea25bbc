"""Model exports for SQLAlchemy/SQLModel metadata discovery."""

from taskdesk.models.tasks import Task
from taskdesk.models.users import User

__all__ = [
    "Task",
    "User",
]
