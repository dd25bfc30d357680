"""
Comment thread controller tests.
The controller talks to the real application over an ASGI transport; network
failures and late responses are simulated with httpx.MockTransport.
"""
from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timedelta, timezone

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from colloquy.client.controller import GENERIC_ERROR, CommentThreadController, http_loader
from colloquy.client.state import ClearComposer, ScrollTo
from colloquy.main import app
from colloquy.models.user import User
from colloquy.services.comment_service import comment_service

pytestmark = pytest.mark.asyncio

URL = "/api/v1/comments"


class RecordingNotifier:
    def __init__(self) -> None:
        self.successes: list[str] = []
        self.errors: list[str] = []

    def success(self, message: str) -> None:
        self.successes.append(message)

    def error(self, message: str) -> None:
        self.errors.append(message)


@pytest_asyncio.fixture
async def session_http(
    client: AsyncClient,
) -> AsyncGenerator[Callable[[dict[str, str]], AsyncClient], None]:
    """Open clients that carry a user's session; requires the DB override of `client`."""
    opened: list[AsyncClient] = []

    def open_for(headers: dict[str, str]) -> AsyncClient:
        http = AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test", headers=headers
        )
        opened.append(http)
        return http

    yield open_for
    for http in opened:
        await http.aclose()


async def _controller(
    http: AsyncClient, user: User, notifier: RecordingNotifier
) -> CommentThreadController:
    loader = http_loader(http, URL, "10", "deal")
    return CommentThreadController(
        http=http,
        action_url=URL,
        entity_id="10",
        entity_type="deal",
        comments=await loader(),
        current_user_id=user.id,
        notifier=notifier,
        loader=loader,
    )


def _mock_controller(handler, notifier: RecordingNotifier) -> CommentThreadController:
    http = AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test")
    return CommentThreadController(
        http=http, action_url=URL, entity_id="10", entity_type="deal", notifier=notifier
    )


async def test_add_highlights_and_scrolls(session_http, alice: User, alice_headers: dict) -> None:
    notifier = RecordingNotifier()
    controller = await _controller(session_http(alice_headers), alice, notifier)

    response = await controller.add_comment("first!")

    assert response.success is True
    assert notifier.successes == ["Comment added"]
    assert [c.text for c in controller.comments] == ["first!"]
    assert controller.drain_commands() == [
        ScrollTo(comment_id=response.comment_id),
        ClearComposer(),
    ]
    [row] = controller.views()
    assert row.highlighted
    assert row.can_delete
    assert not controller.state.submitting


async def test_reply_expands_its_root(
    session_http, alice: User, bob: User, alice_headers: dict, bob_headers: dict
) -> None:
    alice_view = await _controller(session_http(alice_headers), alice, RecordingNotifier())
    root = (await alice_view.add_comment("root")).comment_id

    bob_view = await _controller(session_http(bob_headers), bob, RecordingNotifier())
    bob_view.start_reply(root)
    assert bob_view.state.replying_to == root

    reply = (await bob_view.add_comment("@Alice Example, hi", parent_id=root)).comment_id

    assert bob_view.state.is_expanded(root)
    assert bob_view.state.replying_to is None
    rows = bob_view.views()
    assert [(r.id, r.depth) for r in rows] == [(root, 0), (reply, 1)]
    assert rows[0].reply_count == 1


async def test_reply_to_reply_is_sent_against_root(
    session_http, alice: User, alice_headers: dict
) -> None:
    controller = await _controller(session_http(alice_headers), alice, RecordingNotifier())
    root = (await controller.add_comment("root")).comment_id
    reply = (await controller.add_comment("reply", parent_id=root)).comment_id

    nested = (await controller.add_comment("nested", parent_id=reply)).comment_id

    by_id = {c.id: c for c in controller.comments}
    assert by_id[nested].parent_id == root


async def test_server_error_is_shown_verbatim(
    session_http, alice: User, alice_headers: dict
) -> None:
    notifier = RecordingNotifier()
    controller = await _controller(session_http(alice_headers), alice, notifier)

    response = await controller.add_comment("   ")

    assert response.success is False
    assert notifier.errors == ["Comment cannot be empty"]
    assert controller.comments == []
    assert not controller.state.submitting


async def test_second_submit_while_in_flight_is_dropped(
    session_http, alice: User, alice_headers: dict
) -> None:
    controller = await _controller(session_http(alice_headers), alice, RecordingNotifier())
    controller.state = controller.state.model_copy(update={"submitting": True})

    assert await controller.add_comment("again") is None
    assert await controller.delete_comment(1) is None


async def test_rate_refreshes_summary(
    session_http, db: AsyncSession, alice: User, bob: User, bob_headers: dict
) -> None:
    added = await comment_service.add_comment(
        db, entity_id="10", entity_type="deal", author_id=alice.id, text="vote me"
    )
    notifier = RecordingNotifier()
    controller = await _controller(session_http(bob_headers), bob, notifier)

    await controller.rate_comment(added.comment_id, -1)

    assert notifier.successes == ["Vote counted"]
    [row] = controller.views()
    assert row.summary.dislikes == 1
    assert row.summary.rating == -1
    assert controller.state.rating_pending is None


async def test_delete_by_other_user_is_refused(
    session_http, db: AsyncSession, alice: User, bob: User, bob_headers: dict
) -> None:
    added = await comment_service.add_comment(
        db, entity_id="10", entity_type="deal", author_id=alice.id, text="mine"
    )
    notifier = RecordingNotifier()
    controller = await _controller(session_http(bob_headers), bob, notifier)
    [row] = controller.views()
    assert not row.can_delete

    await controller.delete_comment(added.comment_id)

    assert notifier.errors == ["Comment not found or you are not allowed to delete it"]
    assert [c.id for c in controller.comments] == [added.comment_id]


async def test_author_deletes(session_http, alice: User, alice_headers: dict) -> None:
    notifier = RecordingNotifier()
    controller = await _controller(session_http(alice_headers), alice, notifier)
    comment_id = (await controller.add_comment("oops")).comment_id

    await controller.delete_comment(comment_id)

    assert notifier.successes == ["Comment added", "Comment deleted"]
    assert controller.comments == []


async def test_response_after_discard_is_ignored() -> None:
    notifier = RecordingNotifier()
    controller: CommentThreadController

    async def handler(request: httpx.Request) -> httpx.Response:
        controller.discard_pending()
        return httpx.Response(200, json={"success": True, "message": "Comment added", "commentId": 1})

    controller = _mock_controller(handler, notifier)
    response = await controller.add_comment("hello")

    assert response.success is True
    assert notifier.successes == []
    assert controller.drain_commands() == []
    assert controller.state.highlights == ()
    assert not controller.state.submitting


async def test_network_failure_reports_generic_error() -> None:
    notifier = RecordingNotifier()

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    controller = _mock_controller(handler, notifier)
    response = await controller.rate_comment(1, 1)

    assert response.success is False
    assert notifier.errors == [GENERIC_ERROR]
    assert controller.state.rating_pending is None


async def test_unreadable_response_reports_generic_error() -> None:
    notifier = RecordingNotifier()

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="<html>Bad gateway</html>")

    controller = _mock_controller(handler, notifier)
    await controller.add_comment("hello")

    assert notifier.errors == [GENERIC_ERROR]
    assert not controller.state.submitting


async def test_form_fields_sent() -> None:
    seen: list[dict[str, str]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(dict(httpx.QueryParams(request.content.decode())))
        return httpx.Response(200, json={"success": True, "message": "Vote counted"})

    controller = _mock_controller(handler, RecordingNotifier())
    await controller.rate_comment(7, -1)

    assert seen == [
        {
            "action": "rate",
            "commentId": "7",
            "rating": "-1",
            "entityId": "10",
            "entityType": "deal",
        }
    ]


@pytest.mark.parametrize("list_body", [b"not json", b'[{"id": "x"}]'])
async def test_failed_reload_still_finishes_the_mutation(list_body: bytes) -> None:
    notifier = RecordingNotifier()

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return httpx.Response(200, content=list_body)
        action = httpx.QueryParams(request.content.decode())["action"]
        if action == "add":
            return httpx.Response(200, json={"success": True, "message": "Comment added", "commentId": 1})
        return httpx.Response(200, json={"success": True, "message": "Vote counted"})

    http = AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test")
    controller = CommentThreadController(
        http=http,
        action_url=URL,
        entity_id="10",
        entity_type="deal",
        notifier=notifier,
        loader=http_loader(http, URL, "10", "deal"),
    )

    await controller.add_comment("hello")
    assert not controller.state.submitting
    assert controller.state.is_highlighted(1, datetime.now(timezone.utc))

    await controller.rate_comment(1, 1)
    assert controller.state.rating_pending is None

    assert await controller.add_comment("again") is not None
    assert notifier.successes == ["Comment added", "Vote counted", "Comment added"]


async def test_highlight_duration_is_a_controller_setting() -> None:
    now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": True, "message": "Comment added", "commentId": 5})

    http = AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test")
    controller = CommentThreadController(
        http=http,
        action_url=URL,
        entity_id="10",
        entity_type="deal",
        notifier=RecordingNotifier(),
        clock=lambda: now,
        highlight_seconds=10,
    )
    await controller.add_comment("hello")

    [marker] = controller.state.highlights
    assert marker.expires_at == now + timedelta(seconds=10)
    assert controller.state.is_highlighted(5, now + timedelta(seconds=9))
