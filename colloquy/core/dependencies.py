"""
FastAPI dependency injection functions.
Provides get_db, get_optional_user and get_current_user.

A session is carried either as a bearer token or in the session cookie set
at login, so both API clients and plain HTML form posts authenticate.
"""
from __future__ import annotations

import logging
import uuid
from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from colloquy.core.config import settings
from colloquy.core.exceptions import InvalidTokenException, UnauthorizedException
from colloquy.core.security import decode_access_token
from colloquy.crud.user import crud_user
from colloquy.db.session import get_db
from colloquy.models.user import User

# Re-export get_db so routes can import from one place
__all__ = [
    "get_db",
    "get_optional_user",
    "get_current_user",
    "DBSession",
    "CurrentUser",
    "OptionalUser",
]

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def _extract_token(
    request: Request, credentials: HTTPAuthorizationCredentials | None
) -> str | None:
    if credentials is not None:
        return credentials.credentials
    return request.cookies.get(settings.SESSION_COOKIE_NAME)


async def get_optional_user(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(bearer_scheme)
    ] = None,
) -> User | None:
    """
    Resolve the session to an active User, or None.
    Never raises: a missing, malformed or expired token is simply no session.
    """
    token = _extract_token(request, credentials)
    if not token:
        return None

    try:
        payload = decode_access_token(token)
    except JWTError:
        logger.debug("Rejected invalid session token")
        return None

    try:
        user_id = uuid.UUID(str(payload.get("sub")))
    except ValueError:
        return None

    user = await crud_user.get(db, user_id)
    if user is None or not user.is_active:
        return None
    return user


async def get_current_user(
    request: Request,
    user: Annotated[User | None, Depends(get_optional_user)],
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(bearer_scheme)
    ] = None,
) -> User:
    """Require an authenticated user."""
    if user is None:
        if _extract_token(request, credentials):
            raise InvalidTokenException()
        raise UnauthorizedException("Missing session")
    return user


# Convenience type aliases for route signatures
DBSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUser = Annotated[User, Depends(get_current_user)]
OptionalUser = Annotated[User | None, Depends(get_optional_user)]
