"""Read-only endpoints for the current user."""

from __future__ import annotations

from fastapi import APIRouter

from taskdesk.api.deps import AUTH_DEP
from taskdesk.core.auth import AuthContext
from taskdesk.schemas.users import UserRead

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserRead)
async def get_me(auth: AuthContext = AUTH_DEP) -> UserRead:
    """Return the authenticated user's profile."""
    return UserRead.model_validate(auth.user, from_attributes=True)
