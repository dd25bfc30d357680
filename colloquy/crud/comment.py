"""
Comment and rating CRUD operations.
Raw persistence only; validation and authorization live in the comment service.
"""
from __future__ import annotations

import uuid

from sqlalchemy import func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from colloquy.crud.base import CRUDBase
from colloquy.db.base import utcnow
from colloquy.models.comment import Comment, CommentRating
from colloquy.schemas.comment import CommentCreate, CommentUpdate

# Dialects with a native INSERT ... ON CONFLICT DO UPDATE
_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class CRUDComment(CRUDBase[Comment, CommentCreate, CommentUpdate]):

    async def create_comment(
        self, db: AsyncSession, *, obj_in: CommentCreate
    ) -> Comment:
        return await self.create_from_dict(db, obj_in=obj_in.model_dump())

    async def get_active(self, db: AsyncSession, comment_id: int) -> Comment | None:
        """Fetch a comment unless it has been soft-deleted."""
        result = await db.execute(
            select(Comment).where(
                Comment.id == comment_id,
                Comment.is_deleted.is_(False),
            )
        )
        return result.scalar_one_or_none()

    async def list_by_entity(
        self,
        db: AsyncSession,
        *,
        entity_id: str,
        entity_type: str,
    ) -> list[Comment]:
        """
        Non-deleted comments for one entity, newest first, with author and
        ratings loaded. Ratings of deleted comments never load because their
        comments are filtered out here.
        """
        result = await db.execute(
            select(Comment)
            .options(selectinload(Comment.author), selectinload(Comment.ratings))
            .where(
                Comment.entity_id == entity_id,
                Comment.entity_type == entity_type,
                Comment.is_deleted.is_(False),
            )
            .order_by(Comment.created_at.desc(), Comment.id.desc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def count_by_entity(
        self, db: AsyncSession, *, entity_id: str, entity_type: str
    ) -> int:
        result = await db.execute(
            select(func.count())
            .select_from(Comment)
            .where(
                Comment.entity_id == entity_id,
                Comment.entity_type == entity_type,
                Comment.is_deleted.is_(False),
            )
        )
        return result.scalar_one()

    async def get_rating(
        self, db: AsyncSession, *, comment_id: int, user_id: uuid.UUID
    ) -> CommentRating | None:
        result = await db.execute(
            select(CommentRating)
            .where(
                CommentRating.comment_id == comment_id,
                CommentRating.user_id == user_id,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def upsert_rating(
        self,
        db: AsyncSession,
        *,
        comment_id: int,
        user_id: uuid.UUID,
        rating: int,
    ) -> None:
        """
        Record a user's vote, replacing any earlier vote on the same comment.
        Runs as one atomic statement where the dialect supports it, so two
        identical requests racing each other still leave a single row.
        """
        insert = _UPSERT_INSERTS.get(db.get_bind().dialect.name)
        if insert is not None:
            stmt = insert(CommentRating).values(
                comment_id=comment_id,
                user_id=user_id,
                rating=rating,
                created_at=utcnow(),
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["comment_id", "user_id"],
                set_={"rating": stmt.excluded.rating},
            )
            await db.execute(stmt)
            return

        await self._upsert_rating_in_savepoint(
            db, comment_id=comment_id, user_id=user_id, rating=rating
        )

    async def _upsert_rating_in_savepoint(
        self,
        db: AsyncSession,
        *,
        comment_id: int,
        user_id: uuid.UUID,
        rating: int,
    ) -> None:
        existing = await self.get_rating(db, comment_id=comment_id, user_id=user_id)
        if existing is not None:
            existing.rating = rating
            await db.flush()
            return

        try:
            async with db.begin_nested():
                db.add(CommentRating(comment_id=comment_id, user_id=user_id, rating=rating))
        except IntegrityError:
            # A concurrent request inserted first; the unique constraint held
            await db.execute(
                update(CommentRating)
                .where(
                    CommentRating.comment_id == comment_id,
                    CommentRating.user_id == user_id,
                )
                .values(rating=rating)
            )


crud_comment = CRUDComment(Comment)
