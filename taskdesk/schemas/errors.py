"""Structured error payload schemas used by API responses."""

from __future__ import annotations

from pydantic import Field
from sqlmodel import SQLModel


class ErrorResponse(SQLModel):
    """Error envelope for not-found, auth, and server failures."""

    detail: str = Field(examples=["Task not found"])
    request_id: str | None = Field(
        default=None,
        description="Request correlation identifier, also sent as `X-Request-Id`.",
    )
    code: str | None = Field(
        default=None,
        description="Optional machine-readable error code.",
        examples=["store_failure"],
    )


class FieldErrorRead(SQLModel):
    """One rejected input field and the reason."""

    field: str = Field(examples=["status"])
    message: str = Field(examples=["Invalid status"])


class ValidationErrorResponse(SQLModel):
    """Every field-level failure for a rejected request."""

    detail: list[FieldErrorRead]
    request_id: str | None = None
