"""Integration tests for login links, magic login and logout."""

from __future__ import annotations

import pytest


def _token_from_link(link: str) -> str:
    return link.split("token=", 1)[1]


@pytest.mark.integration
class TestLoginLinks:
    async def test_admin_issues_link_for_operator(self, client, login) -> None:
        login("u-admin")
        response = await client.post("/api/admin/login-links", json={"user_id": "u-operator"})
        assert response.status_code == 200
        data = response.json()
        assert data["link"].startswith("http://localhost:3000/secure-login?token=")
        assert len(_token_from_link(data["link"])) == 64
        assert data["expires_at"]

    async def test_cannot_issue_for_self(self, client, login) -> None:
        login("u-admin")
        response = await client.post("/api/admin/login-links", json={"user_id": "u-admin"})
        assert response.status_code == 400

    async def test_admin_roles_not_eligible(self, client, login) -> None:
        login("u-admin")
        response = await client.post("/api/admin/login-links", json={"user_id": "u-super"})
        assert response.status_code == 400
        assert response.json()["detail"] == "This user is not eligible for secure login link."

    async def test_unknown_user(self, client, login) -> None:
        login("u-admin")
        response = await client.post("/api/admin/login-links", json={"user_id": "ghost"})
        assert response.status_code == 404

    async def test_requires_tenant_admin(self, client, login) -> None:
        login("u-operator")
        response = await client.post("/api/admin/login-links", json={"user_id": "u-viewer"})
        assert response.status_code == 403
        assert response.json() == {"detail": "Forbidden"}


@pytest.mark.integration
class TestMagicLogin:
    async def test_link_logs_user_in_once(self, client, login, session_auth) -> None:
        login("u-admin")
        link = (
            await client.post("/api/admin/login-links", json={"user_id": "u-operator"})
        ).json()["link"]
        client.cookies.clear()

        response = await client.post(
            "/api/auth/magic-login", json={"token": _token_from_link(link)}
        )
        assert response.status_code == 200
        assert response.json() == {"ok": True}

        set_cookie = response.headers["set-cookie"]
        assert set_cookie.startswith("session=")
        assert "httponly" in set_cookie.lower()
        session_token = set_cookie.split(";", 1)[0].split("=", 1)[1]
        assert session_auth.validate_session(session_token)["user_id"] == "u-operator"

        reused = await client.post(
            "/api/auth/magic-login", json={"token": _token_from_link(link)}
        )
        assert reused.status_code == 400

    async def test_invalid_token(self, client) -> None:
        response = await client.post("/api/auth/magic-login", json={"token": "bogus"})
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid, used or expired token"

    async def test_deactivated_user(self, client, token_store, store) -> None:
        issued = await token_store.issue("u-operator", created_by="u-admin", ttl_seconds=60)
        await store.deactivate_user("u-operator")
        response = await client.post("/api/auth/magic-login", json={"token": issued.token})
        assert response.status_code == 404


@pytest.mark.integration
class TestLogout:
    async def test_logout_destroys_session(self, client, login, session_auth) -> None:
        token = login("u-admin")
        response = await client.post("/api/auth/logout")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
        assert session_auth.validate_session(token) is None

    async def test_logout_without_session(self, client) -> None:
        response = await client.post("/api/auth/logout")
        assert response.status_code == 200
