"""User API schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import Field
from sqlmodel import SQLModel

RUNTIME_ANNOTATION_TYPES = (datetime, UUID)


class UserRead(SQLModel):
    """Authenticated user profile returned by identity endpoints."""

    id: UUID = Field(
        description="Internal user UUID; tasks reference it as their owner.",
        examples=["11111111-1111-1111-1111-111111111111"],
    )
    auth_subject: str = Field(
        description="Identity-provider subject the user was resolved from.",
        examples=["user_2abcXYZ"],
    )
    email: str | None = Field(default=None, examples=["alex@example.com"])
    name: str | None = Field(default=None, examples=["Alex Chen"])
    created_at: datetime
