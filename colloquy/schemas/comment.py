"""
Comment Pydantic schemas.
Wire names are camelCase; Python attribute names stay snake_case.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, StrictBool, computed_field, field_validator
from pydantic.alias_generators import to_camel

from colloquy.core.exceptions import ColloquyException
from colloquy.schemas.rating import RatingSummary, RatingValue
from colloquy.services.rating import aggregate_ratings

if TYPE_CHECKING:
    from colloquy.models.comment import Comment


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CommentCreate(BaseModel):
    entity_id: str
    entity_type: str
    author_id: uuid.UUID
    text: str
    parent_id: int | None = None


class CommentUpdate(BaseModel):
    is_deleted: bool | None = None


class CommentAuthor(CamelModel):
    id: uuid.UUID
    name: str
    image: str | None = None


class CommentRead(CamelModel):
    """A non-deleted comment with its author and vote list embedded."""

    id: int
    text: str
    created_at: datetime
    parent_id: int | None = None
    is_deleted: bool = False
    user: CommentAuthor
    ratings: list[RatingValue] = Field(default_factory=list)

    @field_validator("created_at")
    @classmethod
    def ensure_aware(cls, v: datetime) -> datetime:
        # SQLite hands back naive values; everything is stored as UTC
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @computed_field  # type: ignore[misc]
    @property
    def summary(self) -> RatingSummary:
        return aggregate_ratings(self.ratings)

    @classmethod
    def from_model(cls, comment: "Comment") -> "CommentRead":
        return cls(
            id=comment.id,
            text=comment.text,
            created_at=comment.created_at,
            parent_id=comment.parent_id,
            is_deleted=comment.is_deleted,
            user=CommentAuthor(
                id=comment.author.id,
                name=comment.author.display_name,
                image=comment.author.avatar_url,
            ),
            ratings=[RatingValue(rating=r.rating) for r in comment.ratings],
        )


class CommentCount(CamelModel):
    entity_id: str
    entity_type: str
    count: int


class MutationResult(BaseModel):
    """Outcome of a comment store mutation."""

    success: bool
    comment_id: int | None = None
    error: str | None = None
    error_code: str | None = None
    status_code: int = 200

    @classmethod
    def ok(cls, comment_id: int | None = None) -> "MutationResult":
        return cls(success=True, comment_id=comment_id)

    @classmethod
    def failure(cls, exc: ColloquyException) -> "MutationResult":
        return cls(
            success=False,
            error=exc.detail,
            error_code=exc.error_code,
            status_code=exc.status_code,
        )


class CommentMutationResponse(CamelModel):
    """Uniform response envelope of the comment mutation endpoint."""

    success: StrictBool
    message: str | None = None
    error: str | None = None
    comment_id: int | None = None
