"""
Rating Pydantic schemas.
"""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class RatingValue(BaseModel):
    rating: int

    model_config = ConfigDict(from_attributes=True)


class RatingSummary(BaseModel):
    likes: int = 0
    dislikes: int = 0
    rating: int = 0
    total_votes: int = 0

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
