"""Shared test fixtures."""

from __future__ import annotations

import json
from collections.abc import Callable

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlmodel import SQLModel

import leadhub.models.database  # noqa: F401  (register tables)
from leadhub.integrations.distribution import DistributionClient
from leadhub.models.domain import RawGrants
from leadhub.storage.repositories.login_tokens import InMemoryLoginTokenStore
from leadhub.storage.repositories.memberships import InMemoryMembershipStore
from leadhub.types import MembershipRole, PolicyMode
from leadhub.web.app import create_app
from leadhub.web.auth.session import SessionAuth, get_session_auth
from leadhub.web.dependencies import get_distribution_client, get_login_token_store, get_store

ALPHA = "c-alpha"
BRAVO = "c-bravo"
CHARLIE = "c-charlie"


@pytest.fixture()
async def store() -> InMemoryMembershipStore:
    """Three companies and a handful of users with different roles.

    - Alpha: hybrid, active
    - Bravo: receiver, active
    - Charlie: uploader, inactive

    - u-super: super-tenant-admin at Alpha
    - u-admin: tenant-admin at Alpha, lead operator at Bravo (can receive)
    - u-operator: lead operator at Bravo (upload + receive + distribute)
    - u-viewer: analytics viewer at Charlie, no grants
    - u-lonely: no memberships
    """
    s = InMemoryMembershipStore()
    await s.create_company("Alpha", "ALPHA", PolicyMode.HYBRID, company_id=ALPHA)
    await s.create_company("Bravo", "BRAVO", PolicyMode.RECEIVER, company_id=BRAVO)
    await s.create_company(
        "Charlie", "CHARLIE", PolicyMode.UPLOADER, active=False, company_id=CHARLIE
    )

    await s.create_user("super@example.com", "Super", user_id="u-super")
    await s.upsert_membership("u-super", ALPHA, MembershipRole.SUPER_TENANT_ADMIN, RawGrants())

    await s.create_user("admin@example.com", "Admin", user_id="u-admin")
    await s.upsert_membership("u-admin", ALPHA, MembershipRole.TENANT_ADMIN, RawGrants())
    await s.upsert_membership(
        "u-admin",
        BRAVO,
        MembershipRole.LEAD_OPERATOR,
        RawGrants(can_receive_leads=True),
    )

    await s.create_user("operator@example.com", "Operator", user_id="u-operator")
    await s.upsert_membership(
        "u-operator",
        BRAVO,
        MembershipRole.LEAD_OPERATOR,
        RawGrants(can_upload_leads=True, can_receive_leads=True, can_distribute_leads=True),
    )

    await s.create_user("viewer@example.com", "Viewer", user_id="u-viewer")
    await s.upsert_membership("u-viewer", CHARLIE, MembershipRole.FB_ANALYTICS_VIEWER, RawGrants())

    await s.create_user("lonely@example.com", "Lonely", user_id="u-lonely")
    return s


@pytest.fixture()
def session_auth() -> SessionAuth:
    return SessionAuth(secret_key="test-secret", max_age=3600)


@pytest.fixture()
def token_store() -> InMemoryLoginTokenStore:
    return InMemoryLoginTokenStore()


@pytest.fixture()
def upstream_requests() -> list[httpx.Request]:
    """Requests the fake distribution engine received."""
    return []


@pytest.fixture()
def distribution_client(upstream_requests: list[httpx.Request]) -> DistributionClient:
    def handler(request: httpx.Request) -> httpx.Response:
        upstream_requests.append(request)
        if request.url.path.endswith("/toggle"):
            payload = json.loads(request.content)
            return httpx.Response(200, json={"ok": True, "active": payload["active"]})
        return httpx.Response(200, json={"active": False, "date": "2026-01-01"})

    return DistributionClient("http://engine.test", transport=httpx.MockTransport(handler))


@pytest.fixture()
def app(store, session_auth, token_store, distribution_client):
    """A fresh app wired to the in-memory stores above."""
    application = create_app()
    application.dependency_overrides[get_store] = lambda: store
    application.dependency_overrides[get_session_auth] = lambda: session_auth
    application.dependency_overrides[get_login_token_store] = lambda: token_store
    application.dependency_overrides[get_distribution_client] = lambda: distribution_client
    return application


@pytest.fixture()
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture()
def login(client: AsyncClient, session_auth: SessionAuth) -> Callable[[str], str]:
    """Start a session for ``user_id`` and attach its cookie to ``client``."""

    def _login(user_id: str) -> str:
        token = session_auth.create_session(user_id)
        client.cookies.set("session", token)
        return token

    return _login


@pytest.fixture()
async def async_engine():
    """In-memory SQLite engine with all tables created."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()
