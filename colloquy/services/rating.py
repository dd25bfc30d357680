"""
Rating aggregation.
The same function backs server-side summaries and the client thread views,
so both always agree on the numbers they show.
"""
from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from colloquy.schemas.rating import RatingSummary

LIKE = 1
DISLIKE = -1


def _vote_of(entry: Any) -> int:
    if isinstance(entry, Mapping):
        return entry.get("rating", 0)
    return getattr(entry, "rating", 0)


def aggregate_ratings(ratings: Iterable[Any] | None) -> RatingSummary:
    """
    Summarise per-user votes into likes, dislikes, net rating and total votes.
    Accepts rating rows, RatingValue models or plain {"rating": n} mappings.
    Values other than +1/-1 are ignored.
    """
    likes = 0
    dislikes = 0
    for entry in ratings or ():
        vote = _vote_of(entry)
        if vote == LIKE:
            likes += 1
        elif vote == DISLIKE:
            dislikes += 1
    return RatingSummary(
        likes=likes,
        dislikes=dislikes,
        rating=likes - dislikes,
        total_votes=likes + dislikes,
    )
