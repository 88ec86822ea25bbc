"""Domain exceptions translated to HTTP responses by the error-handling layer."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class FieldError:
    """One field-level validation message."""

    field: str
    message: str

    def as_dict(self) -> dict[str, str]:
        return {"field": self.field, "message": self.message}


class TaskdeskError(Exception):
    """Base exception for taskdesk domain failures."""


class TaskValidationError(TaskdeskError):
    """Input failed validation; carries every field-level message."""

    def __init__(self, errors: list[FieldError]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(f"{e.field}: {e.message}" for e in self.errors))


class TaskNotFoundError(TaskdeskError):
    """No task with that id exists for the requesting owner."""

    def __init__(self, message: str = "Task not found") -> None:
        self.message = message
        super().__init__(message)


class StoreFailureError(TaskdeskError):
    """The persistence layer failed for infrastructure reasons."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(f"Store operation failed: {operation}")
