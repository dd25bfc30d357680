"""
Two-level comment threads.

The store hands out a flat list; this module groups it into root comments,
each carrying its replies. There is no third level: a reply is always listed
under a root, even if its stored parent is another reply.
"""
from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from typing import Literal

from pydantic import Field

from colloquy.schemas.comment import CommentRead

SortMode = Literal["newest", "rating"]


class ReplyComment(CommentRead):
    root_id: int


class RootComment(CommentRead):
    replies: list[ReplyComment] = Field(default_factory=list)

    @property
    def reply_count(self) -> int:
        return len(self.replies)


def _fields(comment: CommentRead) -> dict:
    return comment.model_dump(exclude={"summary"})


def find_root_id(comment: CommentRead, by_id: dict[int, CommentRead]) -> int | None:
    """
    Id of the root a comment belongs to, or None when the chain breaks
    (an ancestor is missing from the list, e.g. soft-deleted).
    """
    seen: set[int] = set()
    node = comment
    while node.parent_id is not None:
        if node.id in seen:
            return None
        seen.add(node.id)
        parent = by_id.get(node.parent_id)
        if parent is None:
            return None
        node = parent
    return node.id


def sort_roots(roots: Iterable[CommentRead], sort_by: SortMode = "newest") -> list:
    """
    "newest": created_at descending.
    "rating": net rating descending, ties broken by created_at descending.
    """
    if sort_by == "rating":
        return sorted(
            roots,
            key=lambda c: (c.summary.rating, c.created_at, c.id),
            reverse=True,
        )
    return sorted(roots, key=lambda c: (c.created_at, c.id), reverse=True)


def sort_replies(replies: Iterable[CommentRead]) -> list:
    """Replies read as a conversation: oldest first, whatever the root order."""
    return sorted(replies, key=lambda c: (c.created_at, c.id))


def build_thread(
    comments: Sequence[CommentRead], sort_by: SortMode = "newest"
) -> list[RootComment]:
    by_id = {c.id: c for c in comments}
    grouped: dict[int, list[CommentRead]] = defaultdict(list)
    roots: list[CommentRead] = []

    for comment in comments:
        if comment.parent_id is None:
            roots.append(comment)
            continue
        root_id = find_root_id(comment, by_id)
        if root_id is not None:
            grouped[root_id].append(comment)

    return [
        RootComment(
            **_fields(root),
            replies=[
                ReplyComment(**_fields(reply), root_id=root.id)
                for reply in sort_replies(grouped.get(root.id, ()))
            ],
        )
        for root in sort_roots(roots, sort_by)
    ]
