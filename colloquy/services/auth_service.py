"""
Authentication service.
Handles registration and login. Comment routes only consume the resulting
session; business logic lives here and routes only call these methods.
"""
from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from colloquy.core.exceptions import ConflictException, UnauthorizedException
from colloquy.core.security import create_access_token, hash_password, verify_password
from colloquy.crud.user import crud_user
from colloquy.models.user import User
from colloquy.schemas.user import Token, UserCreate

logger = logging.getLogger(__name__)


class AuthService:

    async def register_user(
        self, db: AsyncSession, *, user_in: UserCreate
    ) -> User:
        """
        Register a new user.
        Validates email/username uniqueness, hashes password, creates user.
        """
        if await crud_user.exists(db, email=user_in.email):
            raise ConflictException("A user with this email already exists")

        if await crud_user.exists(db, username=user_in.username):
            raise ConflictException("A user with this username already exists")

        user = await crud_user.create_user(
            db,
            email=user_in.email,
            username=user_in.username,
            hashed_password=hash_password(user_in.password),
            full_name=user_in.full_name,
            avatar_url=user_in.avatar_url,
        )
        logger.info("Registered user %s", user.id)
        return user

    async def authenticate_user(
        self, db: AsyncSession, *, email: str, password: str
    ) -> Token:
        """Verify credentials and issue a session token."""
        user = await crud_user.get_active_by_email(db, email)
        if user is None or not verify_password(password, user.hashed_password):
            logger.warning("Failed login for %s", email)
            raise UnauthorizedException("Invalid email or password")

        return Token(access_token=create_access_token(str(user.id)))


auth_service = AuthService()
