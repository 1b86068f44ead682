# tests/test_users.py — Profile, theme and account removal tests
import pytest
from httpx import AsyncClient

import card_service
import cascade
import column_service
from tests.conftest import get_auth_headers, TEST_PASSWORD


@pytest.mark.asyncio
class TestProfile:
    async def test_update_name_and_email(self, client: AsyncClient, test_user):
        res = await client.put("/api/v1/users/profile", json={
            "name": "Renamed User",
            "email": "renamed@taskboard.dev",
        }, headers=get_auth_headers(test_user))
        assert res.status_code == 200
        data = res.json()
        assert data["id"] == test_user.id
        assert data["name"] == "Renamed User"
        assert data["email"] == "renamed@taskboard.dev"
        assert "password_hash" not in data

        me = await client.get("/api/v1/auth/me", headers=get_auth_headers(test_user))
        assert me.json()["email"] == "renamed@taskboard.dev"

    async def test_update_password_changes_login(self, client: AsyncClient, test_user):
        res = await client.put("/api/v1/users/profile", json={"password": "BrandNew456$"},
                               headers=get_auth_headers(test_user))
        assert res.status_code == 200

        old = await client.post("/api/v1/auth/login", json={
            "email": "testuser@taskboard.dev", "password": TEST_PASSWORD,
        })
        assert old.status_code == 401
        new = await client.post("/api/v1/auth/login", json={
            "email": "testuser@taskboard.dev", "password": "BrandNew456$",
        })
        assert new.status_code == 200

    async def test_weak_password_rejected(self, client: AsyncClient, test_user):
        res = await client.put("/api/v1/users/profile", json={"password": "weakpass"},
                               headers=get_auth_headers(test_user))
        assert res.status_code == 422

    async def test_email_taken_by_other_user(self, client: AsyncClient, test_user, other_user):
        res = await client.put("/api/v1/users/profile", json={"email": "other@taskboard.dev"},
                               headers=get_auth_headers(test_user))
        assert res.status_code == 409

        me = await client.get("/api/v1/auth/me", headers=get_auth_headers(test_user))
        assert me.json()["email"] == "testuser@taskboard.dev"

    async def test_keeping_own_email_is_allowed(self, client: AsyncClient, test_user):
        res = await client.put("/api/v1/users/profile", json={"email": "testuser@taskboard.dev", "name": "Same"},
                               headers=get_auth_headers(test_user))
        assert res.status_code == 200
        assert res.json()["name"] == "Same"

    async def test_short_name_rejected(self, client: AsyncClient, test_user):
        res = await client.put("/api/v1/users/profile", json={"name": "x"}, headers=get_auth_headers(test_user))
        assert res.status_code == 422

    async def test_profile_requires_auth(self, client: AsyncClient):
        res = await client.put("/api/v1/users/profile", json={"name": "Anon"})
        assert res.status_code in (401, 403)


@pytest.mark.asyncio
class TestTheme:
    async def test_default_theme_is_light(self, client: AsyncClient, test_user):
        res = await client.get("/api/v1/users/theme", headers=get_auth_headers(test_user))
        assert res.status_code == 200
        assert res.json() == {"theme": "light"}

    async def test_set_and_read_theme(self, client: AsyncClient, test_user):
        headers = get_auth_headers(test_user)
        res = await client.patch("/api/v1/users/theme", json={"theme": "violet"}, headers=headers)
        assert res.status_code == 200
        assert res.json() == {"theme": "violet"}

        assert (await client.get("/api/v1/users/theme", headers=headers)).json() == {"theme": "violet"}
        login = await client.post("/api/v1/auth/login", json={
            "email": "testuser@taskboard.dev", "password": TEST_PASSWORD,
        })
        assert login.json()["user"]["theme"] == "violet"

    async def test_unknown_theme_rejected(self, client: AsyncClient, test_user):
        headers = get_auth_headers(test_user)
        res = await client.patch("/api/v1/users/theme", json={"theme": "neon"}, headers=headers)
        assert res.status_code == 422
        assert (await client.get("/api/v1/users/theme", headers=headers)).json() == {"theme": "light"}


@pytest.mark.asyncio
class TestDeleteAccount:
    async def test_delete_account_removes_boards(self, client: AsyncClient, test_user, test_board):
        headers = get_auth_headers(test_user)
        col = await client.post("/api/v1/columns", json={"board_id": test_board.id, "title": "To Do"}, headers=headers)
        card = await client.post("/api/v1/cards", json={"column_id": col.json()["id"], "title": "Task"},
                                 headers=headers)
        assert card.status_code == 201

        res = await client.delete("/api/v1/users/account", headers=headers)
        assert res.status_code == 204
        assert res.content == b""

        # the token now points at a user that no longer exists
        assert (await client.get(f"/api/v1/boards/{test_board.id}", headers=headers)).status_code == 401
        login = await client.post("/api/v1/auth/login", json={
            "email": "testuser@taskboard.dev", "password": TEST_PASSWORD,
        })
        assert login.status_code == 401

    async def test_delete_account_after_logout(self, client: AsyncClient, test_user):
        login = await client.post("/api/v1/auth/login", json={
            "email": "testuser@taskboard.dev", "password": TEST_PASSWORD,
        })
        tokens = login.json()
        await client.post("/api/v1/auth/logout", headers={"Authorization": f"Bearer {tokens['access_token']}"})

        res = await client.delete("/api/v1/users/account", headers=get_auth_headers(test_user))
        assert res.status_code == 204

    async def test_other_users_boards_survive(self, client: AsyncClient, test_user, other_user, test_board):
        other_headers = get_auth_headers(other_user)
        theirs = await client.post("/api/v1/boards", json={"title": "Theirs"}, headers=other_headers)

        res = await client.delete("/api/v1/users/account", headers=get_auth_headers(test_user))
        assert res.status_code == 204

        kept = await client.get(f"/api/v1/boards/{theirs.json()['id']}", headers=other_headers)
        assert kept.status_code == 200


@pytest.mark.asyncio
async def test_cascade_delete_account_counts(db_session, test_user, test_board):
    user_id, board_id = test_user.id, test_board.id
    todo = await column_service.create_column(db_session, user_id, board_id, "To Do")
    await column_service.create_column(db_session, user_id, board_id, "Done")
    for title in ("a", "b"):
        await card_service.create_card(db_session, user_id, todo.id, title)

    counts = await cascade.delete_account(db_session, user_id)

    assert counts == {"boards_deleted": 1, "columns_deleted": 2, "cards_deleted": 2}
