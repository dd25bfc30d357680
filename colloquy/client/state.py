"""
View state of one rendered comment thread.

ThreadViewState is an immutable snapshot. Every user action or server
outcome is a pure transition returning the next snapshot plus the commands
the rendering layer should carry out (scroll, focus, toast). Nothing here
touches a timer or the page: highlights expire by timestamp and are purged
on the next tick.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Literal, NamedTuple, Union

from pydantic import BaseModel, ConfigDict

from colloquy.client.thread import SortMode


class Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


# ── Commands ──────────────────────────────────────────────────────────────────

class ScrollTo(Frozen):
    comment_id: int


class FocusReplyForm(Frozen):
    comment_id: int
    prefill: str = ""


class FocusComposer(Frozen):
    pass


class ClearComposer(Frozen):
    pass


class Notify(Frozen):
    level: Literal["success", "error"]
    message: str


Command = Union[ScrollTo, FocusReplyForm, FocusComposer, ClearComposer, Notify]

# how long a freshly added comment stays highlighted
DEFAULT_HIGHLIGHT_SECONDS = 3


# ── State ─────────────────────────────────────────────────────────────────────

class HighlightMarker(Frozen):
    comment_id: int
    expires_at: datetime


class ThreadViewState(Frozen):
    sort_by: SortMode = "newest"
    expanded: frozenset[int] = frozenset()
    # comment whose reply form is open, and the root the reply will land under
    replying_to: int | None = None
    reply_root: int | None = None
    composer_open: bool = False
    submitting: bool = False
    rating_pending: int | None = None
    highlights: tuple[HighlightMarker, ...] = ()
    processed_ids: frozenset[int] = frozenset()

    def is_expanded(self, root_id: int) -> bool:
        return root_id in self.expanded

    def is_highlighted(self, comment_id: int, now: datetime) -> bool:
        return any(
            m.comment_id == comment_id and m.expires_at > now for m in self.highlights
        )


class Transition(NamedTuple):
    state: ThreadViewState
    commands: tuple[Command, ...] = ()


def _update(state: ThreadViewState, **changes) -> ThreadViewState:
    return state.model_copy(update=changes)


# ── Local interactions ────────────────────────────────────────────────────────

def toggle_replies(state: ThreadViewState, root_id: int) -> Transition:
    return Transition(_update(state, expanded=state.expanded ^ {root_id}))


def start_reply(
    state: ThreadViewState,
    comment_id: int,
    root_id: int,
    author_name: str,
) -> Transition:
    """Open the reply form under a comment; opening the open one closes it."""
    if state.replying_to == comment_id:
        return cancel_reply(state)
    return Transition(
        _update(state, replying_to=comment_id, reply_root=root_id),
        (FocusReplyForm(comment_id=comment_id, prefill=f"@{author_name}, "),),
    )


def cancel_reply(state: ThreadViewState) -> Transition:
    return Transition(_update(state, replying_to=None, reply_root=None))


def set_sort(state: ThreadViewState, sort_by: SortMode) -> Transition:
    return Transition(_update(state, sort_by=sort_by))


def open_composer(state: ThreadViewState) -> Transition:
    return Transition(_update(state, composer_open=True), (FocusComposer(),))


def close_composer(state: ThreadViewState) -> Transition:
    return Transition(_update(state, composer_open=False))


# ── Server round trips ────────────────────────────────────────────────────────

def submission_started(state: ThreadViewState) -> Transition:
    return Transition(_update(state, submitting=True))


def comment_added(
    state: ThreadViewState,
    comment_id: int,
    message: str,
    now: datetime,
    highlight_seconds: int = DEFAULT_HIGHLIGHT_SECONDS,
) -> Transition:
    """
    Confirmed add: highlight the new comment, expand the root it was posted
    under, close the forms and scroll to it. A response already seen for the
    same comment id is ignored.
    """
    if comment_id in state.processed_ids:
        return Transition(_update(state, submitting=False))

    marker = HighlightMarker(
        comment_id=comment_id, expires_at=now + timedelta(seconds=highlight_seconds)
    )
    expanded = state.expanded
    if state.reply_root is not None:
        expanded = expanded | {state.reply_root}

    return Transition(
        _update(
            state,
            submitting=False,
            processed_ids=state.processed_ids | {comment_id},
            highlights=state.highlights + (marker,),
            expanded=expanded,
            replying_to=None,
            reply_root=None,
            composer_open=False,
        ),
        (
            Notify(level="success", message=message),
            ScrollTo(comment_id=comment_id),
            ClearComposer(),
        ),
    )


def comment_deleted(state: ThreadViewState, comment_id: int, message: str) -> Transition:
    replying_to = None if state.replying_to == comment_id else state.replying_to
    return Transition(
        _update(
            state,
            submitting=False,
            expanded=state.expanded - {comment_id},
            highlights=tuple(m for m in state.highlights if m.comment_id != comment_id),
            replying_to=replying_to,
            reply_root=state.reply_root if replying_to is not None else None,
        ),
        (Notify(level="success", message=message),),
    )


def rating_started(state: ThreadViewState, comment_id: int) -> Transition:
    return Transition(_update(state, rating_pending=comment_id))


def rating_finished(state: ThreadViewState, message: str) -> Transition:
    return Transition(
        _update(state, rating_pending=None),
        (Notify(level="success", message=message),),
    )


def mutation_failed(state: ThreadViewState, error: str) -> Transition:
    """Any refused or failed request: re-enable inputs and show the error as given."""
    return Transition(
        _update(state, submitting=False, rating_pending=None),
        (Notify(level="error", message=error),),
    )


def purge_highlights(state: ThreadViewState, now: datetime) -> Transition:
    live = tuple(m for m in state.highlights if m.expires_at > now)
    if len(live) == len(state.highlights):
        return Transition(state)
    return Transition(_update(state, highlights=live))
