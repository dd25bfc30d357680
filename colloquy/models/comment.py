"""
Comment and CommentRating ORM models.

A comment is attached to an opaque (entity_id, entity_type) pair rather than
a foreign key, so one table serves deals, forum topics and anything else.
Readers must always filter on both columns together.
"""
from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    SmallInteger,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from colloquy.db.base import Base, TimestampMixin, utcnow

ENTITY_ID_MAX_LENGTH = 64
ENTITY_TYPE_MAX_LENGTH = 50


class Comment(TimestampMixin, Base):
    __tablename__ = "comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    entity_id: Mapped[str] = mapped_column(String(ENTITY_ID_MAX_LENGTH), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(ENTITY_TYPE_MAX_LENGTH), nullable=False)
    author_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    parent_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("comments.id"),
        nullable=True,
    )
    text: Mapped[str] = mapped_column(Text, nullable=False)
    is_deleted: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="false"
    )

    # ── Relationships ─────────────────────────────────────────────────────────
    author: Mapped["User"] = relationship(  # type: ignore[name-defined]  # noqa: F821
        "User",
        back_populates="comments",
    )
    ratings: Mapped[list["CommentRating"]] = relationship(
        "CommentRating",
        back_populates="comment",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_comments_entity", "entity_id", "entity_type", "is_deleted"),
        Index("ix_comments_parent_id", "parent_id"),
        Index("ix_comments_author_id", "author_id"),
    )

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    def __repr__(self) -> str:
        return (
            f"<Comment id={self.id} entity={self.entity_type}:{self.entity_id} "
            f"parent_id={self.parent_id}>"
        )


class CommentRating(Base):
    __tablename__ = "comment_ratings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    comment_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("comments.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    rating: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    # ── Relationships ─────────────────────────────────────────────────────────
    comment: Mapped[Comment] = relationship("Comment", back_populates="ratings")
    user: Mapped["User"] = relationship(  # type: ignore[name-defined]  # noqa: F821
        "User",
        back_populates="comment_ratings",
    )

    __table_args__ = (
        UniqueConstraint("comment_id", "user_id", name="uq_comment_ratings_comment_user"),
        CheckConstraint("rating IN (-1, 1)", name="rating_is_vote"),
        Index("ix_comment_ratings_user_id", "user_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<CommentRating comment_id={self.comment_id} user_id={self.user_id} "
            f"rating={self.rating}>"
        )
