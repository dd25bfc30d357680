"""
Comment thread controller.

Drives one rendered thread: keeps the server-confirmed comment list and the
view state, posts mutations to the comment endpoint and folds the outcomes
back in. Nothing is applied optimistically; the list only changes after the
endpoint answers success and the loader has fetched fresh data.
"""
from __future__ import annotations

import logging
import uuid
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime, timezone
from typing import Protocol

import httpx
from pydantic import TypeAdapter, ValidationError

from colloquy.client.state import (
    DEFAULT_HIGHLIGHT_SECONDS,
    Command,
    Notify,
    ThreadViewState,
    Transition,
    cancel_reply,
    close_composer,
    comment_added,
    comment_deleted,
    mutation_failed,
    open_composer,
    purge_highlights,
    rating_finished,
    rating_started,
    set_sort,
    start_reply,
    submission_started,
    toggle_replies,
)
from colloquy.client.thread import RootComment, SortMode, build_thread, find_root_id
from colloquy.client.view import CommentView, project_thread
from colloquy.schemas.comment import CommentMutationResponse, CommentRead

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Something went wrong, please try again later"

Loader = Callable[[], Awaitable[Sequence[CommentRead]]]
Clock = Callable[[], datetime]

_comment_list = TypeAdapter(list[CommentRead])


class Notifier(Protocol):
    """Toast sink. Fire-and-forget."""

    def success(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


class LoggingNotifier:
    def success(self, message: str) -> None:
        logger.info("%s", message)

    def error(self, message: str) -> None:
        logger.warning("%s", message)


def http_loader(
    http: httpx.AsyncClient, list_url: str, entity_id: str | int, entity_type: str
) -> Loader:
    """Loader that re-reads the thread from the comment list route."""

    async def load() -> list[CommentRead]:
        response = await http.get(
            list_url, params={"entityId": str(entity_id), "entityType": entity_type}
        )
        response.raise_for_status()
        return _comment_list.validate_python(response.json())

    return load


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CommentThreadController:

    def __init__(
        self,
        *,
        http: httpx.AsyncClient,
        action_url: str,
        entity_id: str | int,
        entity_type: str,
        comments: Sequence[CommentRead] = (),
        current_user_id: uuid.UUID | str | None = None,
        notifier: Notifier | None = None,
        loader: Loader | None = None,
        clock: Clock = _utcnow,
        highlight_seconds: int = DEFAULT_HIGHLIGHT_SECONDS,
    ) -> None:
        self.http = http
        self.action_url = action_url
        self.entity_id = str(entity_id)
        self.entity_type = entity_type
        self.comments: list[CommentRead] = list(comments)
        self.current_user_id = (
            uuid.UUID(str(current_user_id)) if current_user_id is not None else None
        )
        self.notifier: Notifier = notifier or LoggingNotifier()
        self.loader = loader
        self.clock = clock
        self.highlight_seconds = highlight_seconds
        self.state = ThreadViewState()
        self._commands: list[Command] = []
        self._generation = 0

    # ── Read side ─────────────────────────────────────────────────────────────

    @property
    def roots(self) -> list[RootComment]:
        return build_thread(self.comments, self.state.sort_by)

    def views(self) -> list[CommentView]:
        return project_thread(self.roots, self.state, self.current_user_id, self.clock())

    def drain_commands(self) -> list[Command]:
        """Hand pending scroll/focus/clear commands to the rendering layer."""
        commands, self._commands = self._commands, []
        return commands

    # ── Local interactions ────────────────────────────────────────────────────

    def toggle_replies(self, root_id: int) -> None:
        self._apply(toggle_replies(self.state, root_id))

    def start_reply(self, comment_id: int) -> None:
        comment = self._find(comment_id)
        if comment is None:
            return
        root_id = find_root_id(comment, {c.id: c for c in self.comments})
        if root_id is None:
            return
        self._apply(start_reply(self.state, comment_id, root_id, comment.user.name))

    def cancel_reply(self) -> None:
        self._apply(cancel_reply(self.state))

    def set_sort(self, sort_by: SortMode) -> None:
        self._apply(set_sort(self.state, sort_by))

    def open_composer(self) -> None:
        self._apply(open_composer(self.state))

    def close_composer(self) -> None:
        self._apply(close_composer(self.state))

    def tick(self, now: datetime | None = None) -> None:
        """Drop highlight markers that have run out."""
        self._apply(purge_highlights(self.state, now or self.clock()))

    def discard_pending(self) -> None:
        """The view went away; responses still in flight will be ignored."""
        self._generation += 1
        self.state = self.state.model_copy(
            update={"submitting": False, "rating_pending": None}
        )

    # ── Mutations ─────────────────────────────────────────────────────────────

    async def add_comment(
        self, text: str, parent_id: int | None = None
    ) -> CommentMutationResponse | None:
        """
        Post a new comment, or a reply when parent_id is given. Replies are
        always sent against the root of the targeted comment. Returns None
        when another submission is still in flight.
        """
        if self.state.submitting:
            return None

        payload = {
            "action": "add",
            "entityId": self.entity_id,
            "entityType": self.entity_type,
            "text": text,
        }
        root_id = None
        if parent_id is not None:
            root_id = self._root_of(parent_id)
            payload["parentId"] = str(root_id)
        self.state = self.state.model_copy(update={"reply_root": root_id})

        self._apply(submission_started(self.state))
        generation = self._generation
        response = await self._post(payload)
        if generation != self._generation:
            return response

        if response.success is True and response.comment_id is not None:
            await self._reload()
            self._apply(
                comment_added(
                    self.state,
                    response.comment_id,
                    response.message or "Comment added",
                    self.clock(),
                    self.highlight_seconds,
                )
            )
        else:
            self._apply(mutation_failed(self.state, response.error or GENERIC_ERROR))
        return response

    async def delete_comment(self, comment_id: int) -> CommentMutationResponse | None:
        if self.state.submitting:
            return None

        self._apply(submission_started(self.state))
        generation = self._generation
        response = await self._post(
            {
                "action": "delete",
                "commentId": str(comment_id),
                "entityId": self.entity_id,
                "entityType": self.entity_type,
            }
        )
        if generation != self._generation:
            return response

        if response.success is True:
            await self._reload()
            self._apply(
                comment_deleted(self.state, comment_id, response.message or "Comment deleted")
            )
        else:
            self._apply(mutation_failed(self.state, response.error or GENERIC_ERROR))
        return response

    async def rate_comment(
        self, comment_id: int, rating: int
    ) -> CommentMutationResponse | None:
        if self.state.rating_pending is not None:
            return None

        self._apply(rating_started(self.state, comment_id))
        generation = self._generation
        response = await self._post(
            {
                "action": "rate",
                "commentId": str(comment_id),
                "rating": str(rating),
                "entityId": self.entity_id,
                "entityType": self.entity_type,
            }
        )
        if generation != self._generation:
            return response

        if response.success is True:
            await self._reload()
            self._apply(rating_finished(self.state, response.message or "Vote counted"))
        else:
            self._apply(mutation_failed(self.state, response.error or GENERIC_ERROR))
        return response

    # ── Internals ─────────────────────────────────────────────────────────────

    def _find(self, comment_id: int) -> CommentRead | None:
        return next((c for c in self.comments if c.id == comment_id), None)

    def _root_of(self, comment_id: int) -> int:
        comment = self._find(comment_id)
        if comment is None:
            return comment_id
        root_id = find_root_id(comment, {c.id: c for c in self.comments})
        return comment_id if root_id is None else root_id

    def _apply(self, transition: Transition) -> None:
        self.state = transition.state
        for command in transition.commands:
            if isinstance(command, Notify):
                if command.level == "success":
                    self.notifier.success(command.message)
                else:
                    self.notifier.error(command.message)
            else:
                self._commands.append(command)

    async def _post(self, payload: dict[str, str]) -> CommentMutationResponse:
        try:
            response = await self.http.post(self.action_url, data=payload)
        except httpx.HTTPError as exc:
            logger.warning("Comment %s request failed: %s", payload["action"], exc)
            return CommentMutationResponse(success=False, error=GENERIC_ERROR)

        try:
            body = CommentMutationResponse.model_validate(response.json())
        except (ValueError, ValidationError):
            logger.warning(
                "Unreadable comment %s response (HTTP %s)",
                payload["action"],
                response.status_code,
            )
            return CommentMutationResponse(success=False, error=GENERIC_ERROR)

        if body.success is not True:
            logger.warning(
                "Comment %s refused (HTTP %s): %s",
                payload["action"],
                response.status_code,
                body.error,
            )
        return body

    async def _reload(self) -> None:
        if self.loader is None:
            return
        try:
            self.comments = list(await self.loader())
        except (httpx.HTTPError, ValueError, ValidationError) as exc:
            logger.warning("Could not reload comments: %s", exc)
