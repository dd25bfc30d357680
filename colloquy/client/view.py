"""
Flat, render-ready rows for a comment thread.
"""
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict

from colloquy.client.formatting import avatar_urls, format_time_ago
from colloquy.client.state import ThreadViewState
from colloquy.client.thread import RootComment
from colloquy.schemas.comment import CommentRead
from colloquy.schemas.rating import RatingSummary


class CommentView(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    root_id: int
    depth: int
    author_name: str
    avatar_url: str | None
    placeholder_url: str
    time_ago: str
    text: str
    summary: RatingSummary
    highlighted: bool
    can_vote: bool
    can_reply: bool
    can_delete: bool
    vote_pending: bool
    reply_form_open: bool
    reply_count: int = 0
    expanded: bool = False


def _row(
    comment: CommentRead,
    *,
    root_id: int,
    depth: int,
    state: ThreadViewState,
    current_user_id: uuid.UUID | None,
    now: datetime,
    reply_count: int = 0,
) -> CommentView:
    avatar = avatar_urls(comment.user.image, comment.user.name)
    signed_in = current_user_id is not None
    return CommentView(
        id=comment.id,
        root_id=root_id,
        depth=depth,
        author_name=comment.user.name,
        avatar_url=avatar.avatar_url,
        placeholder_url=avatar.placeholder_url,
        time_ago=format_time_ago(comment.created_at, now),
        text=comment.text,
        summary=comment.summary,
        highlighted=state.is_highlighted(comment.id, now),
        can_vote=signed_in,
        can_reply=signed_in,
        can_delete=signed_in and comment.user.id == current_user_id,
        vote_pending=state.rating_pending == comment.id,
        reply_form_open=signed_in and state.replying_to == comment.id,
        reply_count=reply_count,
        expanded=depth == 0 and state.is_expanded(comment.id),
    )


def project_thread(
    roots: list[RootComment],
    state: ThreadViewState,
    current_user_id: uuid.UUID | None,
    now: datetime,
) -> list[CommentView]:
    """Rows in display order; replies only appear under expanded roots."""
    rows: list[CommentView] = []
    for root in roots:
        rows.append(
            _row(
                root,
                root_id=root.id,
                depth=0,
                state=state,
                current_user_id=current_user_id,
                now=now,
                reply_count=root.reply_count,
            )
        )
        if not state.is_expanded(root.id):
            continue
        for reply in root.replies:
            rows.append(
                _row(
                    reply,
                    root_id=root.id,
                    depth=1,
                    state=state,
                    current_user_id=current_user_id,
                    now=now,
                )
            )
    return rows
