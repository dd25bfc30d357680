"""
Authentication endpoint tests.
Covers: register, login, session cookie, duplicate email/username, /auth/me.
"""
from __future__ import annotations

import pytest
from httpx import AsyncClient

from colloquy.core.config import settings

pytestmark = pytest.mark.asyncio


async def _register(client: AsyncClient, **overrides: str) -> dict:
    payload = {
        "email": "newuser@example.com",
        "username": "newuser",
        "password": "NewPass1",
        "full_name": "New User",
        **overrides,
    }
    response = await client.post("/api/v1/auth/register", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


class TestRegister:
    async def test_register_success(self, client: AsyncClient) -> None:
        data = await _register(client)
        assert data["email"] == "newuser@example.com"
        assert data["username"] == "newuser"
        assert "hashed_password" not in data
        assert "id" in data

    async def test_register_duplicate_email(self, client: AsyncClient) -> None:
        await _register(client)
        response = await client.post(
            "/api/v1/auth/register",
            json={
                "email": "newuser@example.com",
                "username": "differentuser",
                "password": "TestPass1",
            },
        )
        assert response.status_code == 409
        assert response.json()["error"] == "CONFLICT"

    async def test_register_duplicate_username(self, client: AsyncClient) -> None:
        await _register(client)
        response = await client.post(
            "/api/v1/auth/register",
            json={
                "email": "different@example.com",
                "username": "newuser",
                "password": "TestPass1",
            },
        )
        assert response.status_code == 409

    async def test_register_weak_password(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/auth/register",
            json={
                "email": "weak@example.com",
                "username": "weakuser",
                "password": "short",
            },
        )
        assert response.status_code == 422
        assert response.json()["error"] == "VALIDATION_ERROR"


class TestLogin:
    async def test_login_returns_token_and_cookie(self, client: AsyncClient) -> None:
        await _register(client)
        response = await client.post(
            "/api/v1/auth/login",
            json={"email": "newuser@example.com", "password": "NewPass1"},
        )
        assert response.status_code == 200, response.text
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["access_token"]
        assert response.cookies.get(settings.SESSION_COOKIE_NAME) == data["access_token"]

    async def test_login_wrong_password(self, client: AsyncClient) -> None:
        await _register(client)
        response = await client.post(
            "/api/v1/auth/login",
            json={"email": "newuser@example.com", "password": "WrongPass1"},
        )
        assert response.status_code == 401
        assert response.json()["error"] == "UNAUTHORIZED"


class TestMe:
    async def test_me_with_bearer_token(
        self, client: AsyncClient, alice_headers: dict
    ) -> None:
        response = await client.get("/api/v1/auth/me", headers=alice_headers)
        assert response.status_code == 200
        assert response.json()["username"] == "alice"

    async def test_me_with_session_cookie(self, client: AsyncClient) -> None:
        await _register(client)
        await client.post(
            "/api/v1/auth/login",
            json={"email": "newuser@example.com", "password": "NewPass1"},
        )
        # the client keeps the cookie set by login
        response = await client.get("/api/v1/auth/me")
        assert response.status_code == 200
        assert response.json()["username"] == "newuser"

    async def test_me_without_session(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/auth/me")
        assert response.status_code == 401
        assert response.json()["error"] == "UNAUTHORIZED"

    async def test_me_with_garbage_token(self, client: AsyncClient) -> None:
        response = await client.get(
            "/api/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"}
        )
        assert response.status_code == 401
        assert response.json()["error"] == "INVALID_TOKEN"
