"""
Test configuration and shared fixtures.
Every test gets its own in-memory SQLite database, so tests never share rows.
"""
from __future__ import annotations

import os

# Must be set before the application modules read their settings
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import uuid  # noqa: E402
from collections.abc import AsyncGenerator, Awaitable, Callable  # noqa: E402

import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from colloquy.core.security import create_access_token  # noqa: E402
from colloquy.db.base import Base  # noqa: E402
from colloquy.db.session import get_db  # noqa: E402
from colloquy.main import app  # noqa: E402
from colloquy.models.user import User  # noqa: E402

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

UserFactory = Callable[..., Awaitable[User]]


@pytest_asyncio.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    """Provide a session on a fresh schema; everything is dropped afterwards."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.close()
    await engine.dispose()


@pytest_asyncio.fixture
async def client(db: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Provide an async HTTP test client with the test DB injected."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


# ── Helper fixtures ───────────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def make_user(db: AsyncSession) -> UserFactory:
    """Create users straight in the DB; credentials are not needed for comments."""

    async def factory(username: str, **kwargs) -> User:
        user = User(
            email=f"{username}@example.com",
            username=username,
            hashed_password="unused",
            **kwargs,
        )
        db.add(user)
        await db.flush()
        await db.refresh(user)
        return user

    return factory


@pytest_asyncio.fixture
async def alice(make_user: UserFactory) -> User:
    return await make_user("alice", full_name="Alice Example")


@pytest_asyncio.fixture
async def bob(make_user: UserFactory) -> User:
    return await make_user("bob", avatar_url="/avatars/bob.png")


def headers_for(user_id: uuid.UUID) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(str(user_id))}"}


@pytest_asyncio.fixture
async def alice_headers(alice: User) -> dict[str, str]:
    return headers_for(alice.id)


@pytest_asyncio.fixture
async def bob_headers(bob: User) -> dict[str, str]:
    return headers_for(bob.id)
