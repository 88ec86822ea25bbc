"""Resolve the requesting user from Clerk session tokens or the local shared token."""

from __future__ import annotations

from dataclasses import dataclass
from hmac import compare_digest
from typing import TYPE_CHECKING

import httpx
from clerk_backend_api import Clerk
from clerk_backend_api.security.types import AuthenticateRequestOptions, AuthStatus, RequestState
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, ValidationError
from starlette.concurrency import run_in_threadpool

from taskdesk.core.auth_mode import AuthMode
from taskdesk.core.config import settings
from taskdesk.core.logging import get_logger
from taskdesk.db import crud
from taskdesk.db.session import get_session
from taskdesk.models.users import User

if TYPE_CHECKING:
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession

logger = get_logger(__name__)
security = HTTPBearer(auto_error=False)
SECURITY_DEP = Depends(security)
SESSION_DEP = Depends(get_session)
LOCAL_AUTH_SUBJECT = "local-auth-user"
LOCAL_AUTH_EMAIL = "owner@home.local"
LOCAL_AUTH_NAME = "Local User"


class ClerkTokenPayload(BaseModel):
    """JWT claims required from Clerk session tokens."""

    sub: str


@dataclass(frozen=True)
class AuthContext:
    """Identity of the caller, passed explicitly into every task operation."""

    user: User

    @property
    def owner_id(self) -> UUID:
        return self.user.id


def _extract_bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    value = authorization.strip()
    if not value.lower().startswith("bearer "):
        return None
    token = value.split(" ", maxsplit=1)[1].strip()
    return token or None


def _claim_str(claims: dict[str, object], *keys: str) -> str | None:
    for key in keys:
        value = claims.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


async def _authenticate_clerk_request(request: Request) -> RequestState:
    # The Clerk SDK authenticates an httpx.Request; rebuild one from the ASGI request.
    httpx_request = httpx.Request(
        request.method,
        str(request.url),
        headers=dict(request.headers),
    )
    options = AuthenticateRequestOptions(
        secret_key=settings.clerk_secret_key.strip(),
        clock_skew_in_ms=int(settings.clerk_leeway * 1000),
        accepts_token=["session_token"],
    )
    sdk = Clerk(bearer_auth=options.secret_key or "")
    return await run_in_threadpool(sdk.authenticate_request, httpx_request, options)


async def _get_or_sync_user(
    session: AsyncSession,
    *,
    subject: str,
    claims: dict[str, object],
) -> User:
    email = _claim_str(claims, "email", "email_address", "primary_email_address")
    name = _claim_str(claims, "name", "full_name")
    user, created = await crud.get_or_create(
        session,
        User,
        auth_subject=subject,
        defaults={"email": email.lower() if email else None, "name": name},
    )
    changed = False
    if email and user.email != email.lower():
        user.email = email.lower()
        changed = True
    if name and not user.name:
        user.name = name
        changed = True
    if changed:
        session.add(user)
        await session.commit()
        await session.refresh(user)
    logger.info(
        "auth.user.sync subject=%s created=%s updated=%s",
        subject[-6:],
        created,
        changed,
    )
    return user


async def _resolve_local_user(request: Request, session: AsyncSession) -> User:
    token = _extract_bearer_token(request.headers.get("Authorization"))
    expected = settings.local_auth_token.strip()
    if token is None or not expected or not compare_digest(token, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    user, _created = await crud.get_or_create(
        session,
        User,
        auth_subject=LOCAL_AUTH_SUBJECT,
        defaults={"email": LOCAL_AUTH_EMAIL, "name": LOCAL_AUTH_NAME},
    )
    return user


async def _resolve_clerk_user(request: Request, session: AsyncSession) -> User:
    request_state = await _authenticate_clerk_request(request)
    if request_state.status != AuthStatus.SIGNED_IN or not isinstance(request_state.payload, dict):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    claims: dict[str, object] = {str(k): v for k, v in request_state.payload.items()}
    try:
        subject = ClerkTokenPayload.model_validate(claims).sub
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED) from exc
    if not subject:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    return await _get_or_sync_user(session, subject=subject, claims=claims)


async def get_auth_context(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = SECURITY_DEP,
    session: AsyncSession = SESSION_DEP,
) -> AuthContext:
    """Resolve the authenticated user for the configured auth mode or raise 401."""
    _ = credentials
    if settings.auth_mode == AuthMode.LOCAL:
        user = await _resolve_local_user(request, session)
    else:
        user = await _resolve_clerk_user(request, session)
    return AuthContext(user=user)
