# tests/test_auth.py — Authentication tests
import pytest
from httpx import AsyncClient

from tests.conftest import get_auth_headers, TEST_PASSWORD


@pytest.mark.asyncio
class TestRegistration:
    async def test_register_success(self, client: AsyncClient):
        res = await client.post("/api/v1/auth/register", json={
            "name": "New User",
            "email": "newuser@test.com",
            "password": "SecurePass123!",
        })
        assert res.status_code == 201
        data = res.json()
        assert "access_token" in data
        assert "refresh_token" in data
        assert data["user"]["email"] == "newuser@test.com"
        assert data["user"]["theme"] == "light"

    async def test_register_weak_password(self, client: AsyncClient):
        res = await client.post("/api/v1/auth/register", json={
            "name": "Weak",
            "email": "weak@test.com",
            "password": "short",
        })
        assert res.status_code == 422

    async def test_register_password_needs_special_character(self, client: AsyncClient):
        res = await client.post("/api/v1/auth/register", json={
            "name": "Plain",
            "email": "plain@test.com",
            "password": "SecurePass123",
        })
        assert res.status_code == 422

    async def test_register_duplicate_email(self, client: AsyncClient):
        body = {"name": "Dupe", "email": "dupe@test.com", "password": "SecurePass123!"}
        await client.post("/api/v1/auth/register", json=body)
        res = await client.post("/api/v1/auth/register", json=body)
        assert res.status_code == 409

    async def test_register_invalid_email(self, client: AsyncClient):
        res = await client.post("/api/v1/auth/register", json={
            "name": "Nobody",
            "email": "not-an-email",
            "password": "SecurePass123!",
        })
        assert res.status_code == 422


@pytest.mark.asyncio
class TestLogin:
    async def test_login_success(self, client: AsyncClient, test_user):
        res = await client.post("/api/v1/auth/login", json={
            "email": "testuser@taskboard.dev",
            "password": TEST_PASSWORD,
        })
        assert res.status_code == 200
        data = res.json()
        assert "access_token" in data
        assert data["user"]["email"] == "testuser@taskboard.dev"

    async def test_login_wrong_password(self, client: AsyncClient, test_user):
        res = await client.post("/api/v1/auth/login", json={
            "email": "testuser@taskboard.dev",
            "password": "WrongPassword1!",
        })
        assert res.status_code == 401

    async def test_login_unknown_user(self, client: AsyncClient):
        res = await client.post("/api/v1/auth/login", json={
            "email": "ghost@taskboard.dev",
            "password": TEST_PASSWORD,
        })
        assert res.status_code == 401


@pytest.mark.asyncio
class TestTokens:
    async def test_me(self, client: AsyncClient, test_user):
        res = await client.get("/api/v1/auth/me", headers=get_auth_headers(test_user))
        assert res.status_code == 200
        assert res.json() == {"id": test_user.id, "name": "Test User", "email": "testuser@taskboard.dev"}

    async def test_refresh_issues_new_tokens(self, client: AsyncClient, test_user):
        login = await client.post("/api/v1/auth/login", json={
            "email": "testuser@taskboard.dev",
            "password": TEST_PASSWORD,
        })
        res = await client.post("/api/v1/auth/refresh", json={"refresh_token": login.json()["refresh_token"]})
        assert res.status_code == 200
        assert res.json()["user"]["id"] == test_user.id

    async def test_refresh_rejects_access_token(self, client: AsyncClient, test_user):
        access = get_auth_headers(test_user)["Authorization"].split(" ", 1)[1]
        res = await client.post("/api/v1/auth/refresh", json={"refresh_token": access})
        assert res.status_code == 401

    async def test_logout_revokes_token(self, client: AsyncClient, test_user):
        headers = get_auth_headers(test_user)
        res = await client.post("/api/v1/auth/logout", headers=headers)
        assert res.status_code == 200
        assert res.json()["status"] == "logged_out"

        res = await client.get("/api/v1/auth/me", headers=headers)
        assert res.status_code == 401

    async def test_invalid_token_rejected(self, client: AsyncClient):
        res = await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer invalid-token-here"})
        assert res.status_code == 401

    async def test_missing_token_rejected(self, client: AsyncClient):
        res = await client.get("/api/v1/auth/me")
        assert res.status_code in (401, 403)
