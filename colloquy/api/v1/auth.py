"""
Authentication routes.
POST /auth/register, /auth/login, GET /auth/me
"""
from fastapi import APIRouter, Request, Response, status

from colloquy.core.config import settings
from colloquy.core.dependencies import CurrentUser, DBSession
from colloquy.core.rate_limit import limiter
from colloquy.schemas.user import LoginRequest, Token, UserCreate, UserRead
from colloquy.services.auth_service import auth_service

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post(
    "/register",
    response_model=UserRead,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user account",
)
async def register(
    user_in: UserCreate,
    db: DBSession,
) -> UserRead:
    user = await auth_service.register_user(db, user_in=user_in)
    return UserRead.model_validate(user)


@router.post(
    "/login",
    response_model=Token,
    summary="Authenticate and receive a session token",
)
@limiter.limit(settings.RATE_LIMIT_LOGIN)
async def login(
    request: Request,
    response: Response,
    credentials: LoginRequest,
    db: DBSession,
) -> Token:
    token = await auth_service.authenticate_user(
        db, email=credentials.email, password=credentials.password
    )
    # Browser form posts authenticate through this cookie
    response.set_cookie(
        settings.SESSION_COOKIE_NAME,
        token.access_token,
        max_age=settings.access_token_expire_seconds,
        httponly=True,
        samesite="lax",
    )
    return token


@router.get(
    "/me",
    response_model=UserRead,
    summary="Return the user behind the current session",
)
async def me(current_user: CurrentUser) -> UserRead:
    return UserRead.model_validate(current_user)
