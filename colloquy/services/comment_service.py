"""
Comment store service.
The only code path that reads or writes the comments and comment_ratings
tables. Every mutation returns a MutationResult instead of raising; domain
errors are raised internally and folded into the result at the method edge.
"""
from __future__ import annotations

import logging
import uuid

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from colloquy.core.config import settings
from colloquy.core.exceptions import (
    ColloquyException,
    NotAuthorizedException,
    NotFoundException,
    StorageFailureException,
    ValidationException,
)
from colloquy.crud.comment import crud_comment
from colloquy.models.comment import (
    ENTITY_ID_MAX_LENGTH,
    ENTITY_TYPE_MAX_LENGTH,
    Comment,
)
from colloquy.schemas.comment import CommentCreate, CommentRead, CommentUpdate, MutationResult

logger = logging.getLogger(__name__)

VALID_VOTES = (1, -1)


def normalize_entity(entity_id: str | int, entity_type: str) -> tuple[str, str]:
    """
    Return the (entity_id, entity_type) key as stored.
    Numeric ids are kept in their string form.
    """
    key_id = str(entity_id).strip()
    key_type = (entity_type or "").strip()
    if not key_id or len(key_id) > ENTITY_ID_MAX_LENGTH:
        raise ValidationException("Invalid entity id")
    if not key_type or len(key_type) > ENTITY_TYPE_MAX_LENGTH:
        raise ValidationException("Invalid entity type")
    return key_id, key_type


def normalize_text(text: str | None, max_length: int | None = None) -> str:
    """Trim comment text and enforce the 1..max_length bound."""
    limit = max_length or settings.COMMENT_MAX_LENGTH
    cleaned = (text or "").strip()
    if not cleaned:
        raise ValidationException("Comment cannot be empty")
    if len(cleaned) > limit:
        raise ValidationException(f"Comment is too long (maximum {limit} characters)")
    return cleaned


class CommentService:

    async def get_comments(
        self,
        db: AsyncSession,
        *,
        entity_id: str | int,
        entity_type: str,
    ) -> list[CommentRead]:
        """Non-deleted comments of an entity, newest first, authors and votes embedded."""
        key_id, key_type = normalize_entity(entity_id, entity_type)
        comments = await crud_comment.list_by_entity(
            db, entity_id=key_id, entity_type=key_type
        )
        return [CommentRead.from_model(c) for c in comments]

    async def get_comment_count(
        self,
        db: AsyncSession,
        *,
        entity_id: str | int,
        entity_type: str,
    ) -> int:
        key_id, key_type = normalize_entity(entity_id, entity_type)
        return await crud_comment.count_by_entity(
            db, entity_id=key_id, entity_type=key_type
        )

    async def add_comment(
        self,
        db: AsyncSession,
        *,
        entity_id: str | int,
        entity_type: str,
        author_id: uuid.UUID,
        text: str,
        parent_id: int | None = None,
    ) -> MutationResult:
        """
        Persist a new comment or reply.
        A reply always hangs off a root comment of the same entity: a reply
        target that is itself a reply is redirected to that reply's root.
        """
        try:
            key_id, key_type = normalize_entity(entity_id, entity_type)
            cleaned = normalize_text(text)
            if parent_id is not None:
                parent_id = await self._resolve_root(
                    db, parent_id=parent_id, entity_id=key_id, entity_type=key_type
                )

            comment = await crud_comment.create_comment(
                db,
                obj_in=CommentCreate(
                    entity_id=key_id,
                    entity_type=key_type,
                    author_id=author_id,
                    text=cleaned,
                    parent_id=parent_id,
                ),
            )
        except ColloquyException as exc:
            return MutationResult.failure(exc)
        except SQLAlchemyError:
            return await self._storage_failure(db, "adding comment")

        logger.info(
            "Comment %s added on %s:%s by %s (parent=%s)",
            comment.id, key_type, key_id, author_id, parent_id,
        )
        return MutationResult.ok(comment.id)

    async def delete_comment(
        self,
        db: AsyncSession,
        *,
        comment_id: int,
        requester_id: uuid.UUID,
    ) -> MutationResult:
        """
        Soft-delete a comment. Only its author may do so; a missing comment
        and a foreign one are reported identically.
        """
        try:
            comment = await crud_comment.get_active(db, comment_id)
            if comment is None or comment.author_id != requester_id:
                logger.warning(
                    "Refused delete of comment %s by %s", comment_id, requester_id
                )
                raise NotAuthorizedException(
                    "Comment not found or you are not allowed to delete it"
                )
            await crud_comment.update(
                db, db_obj=comment, obj_in=CommentUpdate(is_deleted=True)
            )
        except ColloquyException as exc:
            return MutationResult.failure(exc)
        except SQLAlchemyError:
            return await self._storage_failure(db, "deleting comment")

        logger.info("Comment %s soft-deleted by %s", comment_id, requester_id)
        return MutationResult.ok(comment_id)

    async def rate_comment(
        self,
        db: AsyncSession,
        *,
        comment_id: int,
        user_id: uuid.UUID,
        rating: int,
    ) -> MutationResult:
        """Record or flip a user's +1/-1 vote on a comment."""
        try:
            if rating not in VALID_VOTES:
                raise ValidationException("Rating must be 1 or -1")
            comment = await crud_comment.get_active(db, comment_id)
            if comment is None:
                logger.warning("Vote on missing comment %s by %s", comment_id, user_id)
                raise NotFoundException("Comment", str(comment_id))
            await crud_comment.upsert_rating(
                db, comment_id=comment_id, user_id=user_id, rating=rating
            )
        except ColloquyException as exc:
            return MutationResult.failure(exc)
        except SQLAlchemyError:
            return await self._storage_failure(db, "rating comment")

        logger.info("Comment %s rated %+d by %s", comment_id, rating, user_id)
        return MutationResult.ok(comment_id)

    # ── Internals ─────────────────────────────────────────────────────────────

    async def _resolve_root(
        self,
        db: AsyncSession,
        *,
        parent_id: int,
        entity_id: str,
        entity_type: str,
    ) -> int:
        parent = await crud_comment.get_active(db, parent_id)
        if parent is None or (parent.entity_id, parent.entity_type) != (entity_id, entity_type):
            raise NotFoundException("Parent comment", str(parent_id))

        # Walk up to the root; chains deeper than one level can only come
        # from rows written before replies were pinned to roots.
        seen: set[int] = {parent.id}
        node: Comment = parent
        while not node.is_root:
            ancestor = await crud_comment.get(db, node.parent_id)
            if ancestor is None or ancestor.is_deleted or ancestor.id in seen:
                raise NotFoundException("Parent comment", str(parent_id))
            seen.add(ancestor.id)
            node = ancestor
        return node.id

    async def _storage_failure(self, db: AsyncSession, operation: str) -> MutationResult:
        logger.exception("Storage failure while %s", operation)
        await db.rollback()
        return MutationResult.failure(StorageFailureException())


comment_service = CommentService()
