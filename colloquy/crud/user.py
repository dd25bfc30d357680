"""
User CRUD operations.
Extends CRUDBase with user-specific queries.
"""
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from colloquy.crud.base import CRUDBase
from colloquy.models.user import User
from colloquy.schemas.user import UserCreate


class CRUDUser(CRUDBase[User, UserCreate, UserCreate]):

    async def get_active_by_email(self, db: AsyncSession, email: str) -> User | None:
        result = await db.execute(
            select(User).where(User.email == email, User.is_active.is_(True))
        )
        return result.scalar_one_or_none()

    async def create_user(
        self,
        db: AsyncSession,
        *,
        email: str,
        username: str,
        hashed_password: str,
        full_name: str | None = None,
        avatar_url: str | None = None,
    ) -> User:
        return await self.create_from_dict(
            db,
            obj_in={
                "email": email,
                "username": username,
                "hashed_password": hashed_password,
                "full_name": full_name,
                "avatar_url": avatar_url,
            },
        )


crud_user = CRUDUser(User)
