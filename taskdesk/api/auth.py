"""Authentication bootstrap endpoint."""

from __future__ import annotations

from fastapi import APIRouter, status

from taskdesk.api.deps import AUTH_DEP
from taskdesk.core.auth import AuthContext
from taskdesk.schemas.errors import ErrorResponse
from taskdesk.schemas.users import UserRead

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post(
    "/bootstrap",
    response_model=UserRead,
    summary="Bootstrap Authenticated User Context",
    description=(
        "Resolve caller identity from auth headers and return the user profile, "
        "creating it on first sign-in. This endpoint does not accept a request body."
    ),
    responses={status.HTTP_401_UNAUTHORIZED: {"model": ErrorResponse}},
)
async def bootstrap_user(auth: AuthContext = AUTH_DEP) -> UserRead:
    """Return the authenticated user profile."""
    return UserRead.model_validate(auth.user, from_attributes=True)
