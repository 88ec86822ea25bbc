"""Shared FastAPI dependencies for routes that act on behalf of a user."""

from __future__ import annotations

from fastapi import Depends

from taskdesk.core.auth import get_auth_context
from taskdesk.db.session import get_session

AUTH_DEP = Depends(get_auth_context)
SESSION_DEP = Depends(get_session)
