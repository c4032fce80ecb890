"""Integration tests for company listing and product catalog routes."""

from __future__ import annotations

import pytest

from leadhub.types import DenialReason

ALPHA = "c-alpha"
BRAVO = "c-bravo"
CHARLIE = "c-charlie"


def _ids(response) -> list[str]:
    assert response.status_code == 200, response.text
    return [c["id"] for c in response.json()]


@pytest.mark.integration
class TestListCompanies:
    async def test_own_companies(self, client, login) -> None:
        login("u-admin")
        response = await client.get("/api/admin/companies")
        assert _ids(response) == [ALPHA, BRAVO]
        assert response.json()[1] == {
            "id": BRAVO,
            "name": "Bravo",
            "code": "BRAVO",
            "active": True,
            "policy_mode": "receiver",
        }

    async def test_global_scope_downgraded_for_regular_users(self, client, login) -> None:
        login("u-admin")
        own = _ids(await client.get("/api/admin/companies", params={"scope": "own"}))
        glob = _ids(await client.get("/api/admin/companies", params={"scope": "global"}))
        assert own == glob

    async def test_global_scope_for_super_admin(self, client, login) -> None:
        login("u-super")
        response = await client.get("/api/admin/companies", params={"scope": "global"})
        assert _ids(response) == [ALPHA, BRAVO, CHARLIE]

        own = await client.get("/api/admin/companies")
        assert _ids(own) == [ALPHA]

    async def test_only_active(self, client, login) -> None:
        login("u-super")
        response = await client.get(
            "/api/admin/companies", params={"scope": "global", "active": "true"}
        )
        assert _ids(response) == [ALPHA, BRAVO]

    async def test_need_with_tenant_admin_or(self, client, login) -> None:
        login("u-admin")
        response = await client.get("/api/admin/companies", params={"need": "distribute_leads"})
        assert _ids(response) == [ALPHA]

    async def test_need_with_flag_only(self, client, login) -> None:
        login("u-admin")
        response = await client.get(
            "/api/admin/companies", params={"need": "distribute_leads", "mode": "flag_only"}
        )
        assert _ids(response) == []

        login("u-operator")
        response = await client.get(
            "/api/admin/companies", params={"need": "distribute_leads", "mode": "flag_only"}
        )
        assert _ids(response) == [BRAVO]

    async def test_unknown_capability_rejected(self, client, login) -> None:
        login("u-admin")
        response = await client.get("/api/admin/companies", params={"need": "fly"})
        assert response.status_code == 422

    async def test_requires_login(self, client) -> None:
        assert (await client.get("/api/admin/companies")).status_code == 401


@pytest.mark.integration
class TestReceiverCompanies:
    async def test_tenant_admin_sees_receiving_companies(self, client, login, store) -> None:
        await store.set_policy_mode(ALPHA, "uploader")
        login("u-admin")
        response = await client.get("/api/admin/receiver/companies")
        assert _ids(response) == [BRAVO]

    async def test_non_admin_forbidden(self, client, login) -> None:
        login("u-operator")
        response = await client.get("/api/admin/receiver/companies")
        assert response.status_code == 403
        assert response.json() == {"detail": "Forbidden"}

    async def test_no_active_tenant_reason_audited(self, client, login, monkeypatch) -> None:
        recorded: list[dict] = []

        async def capture(**kwargs) -> None:
            recorded.append(kwargs)

        monkeypatch.setattr("leadhub.web.auth.policy.audit_denial", capture)
        login("u-lonely")
        response = await client.get("/api/admin/receiver/companies")
        assert response.status_code == 403
        assert response.json() == {"detail": "Forbidden"}
        assert recorded[0]["decision"].reason == DenialReason.NO_ACTIVE_TENANT

    async def test_admin_on_other_active_company_forbidden(self, client, login) -> None:
        login("u-admin")
        await client.post("/api/session/active-company", json={"company_id": BRAVO})
        response = await client.get("/api/admin/receiver/companies")
        assert response.status_code == 403


@pytest.mark.integration
class TestProducts:
    async def test_add_and_list(self, client, login) -> None:
        login("u-admin")
        response = await client.post(
            f"/api/admin/companies/{ALPHA}/products", json={"name": "  Loans  "}
        )
        assert response.status_code == 200
        assert response.json() == {"ok": True, "products": ["Loans"]}

        # Adding the same product twice is a no-op
        await client.post(f"/api/admin/companies/{ALPHA}/products", json={"name": "Loans"})
        listed = await client.get(f"/api/admin/companies/{ALPHA}/products")
        assert listed.json() == {"products": ["Loans"]}

    async def test_long_names_are_truncated(self, client, login) -> None:
        login("u-admin")
        response = await client.post(
            f"/api/admin/companies/{ALPHA}/products", json={"name": "x" * 200}
        )
        assert response.json()["products"] == ["x" * 80]

    async def test_blank_name_rejected(self, client, login) -> None:
        login("u-admin")
        response = await client.post(
            f"/api/admin/companies/{ALPHA}/products", json={"name": "   "}
        )
        assert response.status_code == 400

    async def test_replace_and_remove(self, client, login) -> None:
        login("u-admin")
        response = await client.put(
            f"/api/admin/companies/{ALPHA}/products",
            json={"products": ["Cards", " Loans ", "Cards", ""]},
        )
        assert response.json()["products"] == ["Cards", "Loans"]

        response = await client.request(
            "DELETE", f"/api/admin/companies/{ALPHA}/products", json={"name": "Cards"}
        )
        assert response.status_code == 200
        assert response.json()["products"] == ["Loans"]

    async def test_member_without_grant_cannot_edit(self, client, login) -> None:
        login("u-admin")
        response = await client.post(
            f"/api/admin/companies/{BRAVO}/products", json={"name": "Loans"}
        )
        assert response.status_code == 403
        assert response.json() == {"detail": "Forbidden"}

    async def test_any_member_can_read(self, client, login) -> None:
        login("u-operator")
        response = await client.get(f"/api/admin/companies/{BRAVO}/products")
        assert response.status_code == 200
        assert response.json() == {"products": []}

    async def test_non_member_cannot_read(self, client, login) -> None:
        login("u-admin")
        response = await client.get(f"/api/admin/companies/{CHARLIE}/products")
        assert response.status_code == 403

    async def test_unknown_company(self, client, login) -> None:
        login("u-super")
        response = await client.post(
            "/api/admin/companies/missing/products", json={"name": "Loans"}
        )
        assert response.status_code == 404
