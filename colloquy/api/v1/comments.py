"""
Comment routes.
POST /comments        form-encoded add / delete / rate, uniform JSON envelope
GET  /comments        comments of one entity (page loaders)
GET  /comments/count  number of visible comments of one entity
"""
import logging
import re
from typing import Annotated

from fastapi import APIRouter, Form, Query, Request, status
from fastapi.responses import JSONResponse, Response
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from colloquy.core.config import settings
from colloquy.core.dependencies import DBSession, OptionalUser
from colloquy.core.exceptions import ColloquyException, ValidationException
from colloquy.core.rate_limit import limiter
from colloquy.schemas.comment import CommentCount, CommentMutationResponse, CommentRead
from colloquy.services.comment_service import (
    comment_service,
    normalize_entity,
    normalize_text,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Comments"])

FormField = Annotated[str | None, Form()]

_INT_RE = re.compile(r"[+-]?[0-9]+")
INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1


def _envelope(
    body: CommentMutationResponse, status_code: int = status.HTTP_200_OK
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(by_alias=True, exclude_none=True, mode="json"),
    )


def _failure(error: str, status_code: int) -> JSONResponse:
    return _envelope(CommentMutationResponse(success=False, error=error), status_code)


def rate_limit_exceeded(request: Request, exc: RateLimitExceeded) -> Response:
    """Throttled comment posts still answer with the envelope; other routes get slowapi's body."""
    if request.method == "POST" and request.url.path == f"{settings.API_V1_STR}/comments":
        logger.warning("Comment rate limit hit by %s: %s", get_remote_address(request), exc.detail)
        return _failure(
            "Too many requests, please try again later",
            status.HTTP_429_TOO_MANY_REQUESTS,
        )
    return _rate_limit_exceeded_handler(request, exc)


def _parse_int(raw: str | None, error: str, *, required: bool = True) -> int | None:
    """Parse a form id: ASCII digits only, within the INTEGER column range."""
    if raw is None or not raw.strip():
        if required:
            raise ValidationException(error)
        return None
    if not _INT_RE.fullmatch(raw.strip()):
        raise ValidationException(error)
    value = int(raw.strip())
    if not INT32_MIN <= value <= INT32_MAX:
        raise ValidationException(error)
    return value


@router.get(
    "/comments",
    response_model=list[CommentRead],
    summary="List visible comments of an entity",
)
async def list_comments(
    db: DBSession,
    entity_id: Annotated[str, Query(alias="entityId")],
    entity_type: Annotated[str, Query(alias="entityType")],
) -> list[CommentRead]:
    return await comment_service.get_comments(
        db, entity_id=entity_id, entity_type=entity_type
    )


@router.get(
    "/comments/count",
    response_model=CommentCount,
    summary="Count visible comments of an entity",
)
async def count_comments(
    db: DBSession,
    entity_id: Annotated[str, Query(alias="entityId")],
    entity_type: Annotated[str, Query(alias="entityType")],
) -> CommentCount:
    key_id, key_type = normalize_entity(entity_id, entity_type)
    count = await comment_service.get_comment_count(
        db, entity_id=key_id, entity_type=key_type
    )
    return CommentCount(entity_id=key_id, entity_type=key_type, count=count)


@router.post(
    "/comments",
    response_model=CommentMutationResponse,
    summary="Add, delete or rate a comment",
)
@limiter.limit(settings.RATE_LIMIT_COMMENTS)
async def mutate_comment(
    request: Request,
    db: DBSession,
    user: OptionalUser,
    action: FormField = None,
    entity_id: Annotated[str | None, Form(alias="entityId")] = None,
    entity_type: Annotated[str | None, Form(alias="entityType")] = None,
    text: FormField = None,
    parent_id: Annotated[str | None, Form(alias="parentId")] = None,
    comment_id: Annotated[str | None, Form(alias="commentId")] = None,
    rating: FormField = None,
) -> JSONResponse:
    if user is None:
        return _failure("Not authenticated", status.HTTP_401_UNAUTHORIZED)

    try:
        if action == "add":
            if not entity_id or not entity_type:
                raise ValidationException("Missing entity reference")
            cleaned = normalize_text(text)
            parent = _parse_int(parent_id, "Invalid parent comment id", required=False)
            result = await comment_service.add_comment(
                db,
                entity_id=entity_id,
                entity_type=entity_type,
                author_id=user.id,
                text=cleaned,
                parent_id=parent,
            )
            message = "Comment added"
        elif action == "delete":
            target = _parse_int(comment_id, "Invalid comment id")
            result = await comment_service.delete_comment(
                db, comment_id=target, requester_id=user.id
            )
            message = "Comment deleted"
        elif action == "rate":
            target = _parse_int(comment_id, "Invalid rating parameters")
            vote = _parse_int(rating, "Invalid rating parameters")
            if vote not in (1, -1):
                raise ValidationException("Invalid rating parameters")
            result = await comment_service.rate_comment(
                db, comment_id=target, user_id=user.id, rating=vote
            )
            message = "Vote counted"
        else:
            raise ValidationException("Unknown action")
    except ColloquyException as exc:
        logger.warning("Rejected comment %s from %s: %s", action, user.id, exc.detail)
        return _failure(exc.detail, exc.status_code)
    except Exception:
        logger.exception("Unexpected error handling comment %s", action)
        return _failure(
            "Something went wrong, please try again later",
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    if not result.success:
        return _failure(result.error or "Request failed", result.status_code)

    return _envelope(
        CommentMutationResponse(
            success=True,
            message=message,
            comment_id=result.comment_id if action == "add" else None,
        )
    )
