"""Unit tests for one-time login token stores."""

from __future__ import annotations

import asyncio
import time
from datetime import UTC, datetime
from unittest.mock import patch

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from leadhub.models.database import LoginToken
from leadhub.storage.database import init_db
from leadhub.storage.repositories.login_tokens import (
    DatabaseLoginTokenStore,
    InMemoryLoginTokenStore,
)


@pytest.mark.unit
class TestInMemoryLoginTokenStore:
    async def test_issue_and_redeem(self) -> None:
        store = InMemoryLoginTokenStore()
        issued = await store.issue("u1", created_by="admin", ttl_seconds=60)
        assert len(issued.token) == 64
        assert issued.expires_at > datetime.now(UTC)
        assert await store.redeem(issued.token) == "u1"

    async def test_token_is_single_use(self) -> None:
        store = InMemoryLoginTokenStore()
        issued = await store.issue("u1", created_by="admin", ttl_seconds=60)
        await store.redeem(issued.token)
        assert await store.redeem(issued.token) is None

    async def test_unknown_token(self) -> None:
        assert await InMemoryLoginTokenStore().redeem("nope") is None

    async def test_expired_token(self) -> None:
        store = InMemoryLoginTokenStore()
        issued = await store.issue("u1", created_by="admin", ttl_seconds=1)
        with patch.object(time, "time", return_value=time.time() + 5):
            assert await store.redeem(issued.token) is None

    async def test_cleanup_removes_expired(self) -> None:
        store = InMemoryLoginTokenStore()
        old = await store.issue("u1", created_by="admin", ttl_seconds=60)
        store._store[old.token] = ("u1", time.time() - 10)

        await store.issue("u2", created_by="admin", ttl_seconds=60)
        assert old.token not in store._store

    async def test_tokens_are_unique(self) -> None:
        store = InMemoryLoginTokenStore()
        tokens = {(await store.issue("u1", "admin", 60)).token for _ in range(20)}
        assert len(tokens) == 20


@pytest.mark.unit
class TestDatabaseLoginTokenStore:
    async def test_issue_and_redeem_once(self, async_engine) -> None:
        store = DatabaseLoginTokenStore(async_engine)
        issued = await store.issue("u1", created_by="admin", ttl_seconds=60)
        assert issued.expires_at.tzinfo is not None
        assert await store.redeem(issued.token) == "u1"
        assert await store.redeem(issued.token) is None

    async def test_expired_token(self, async_engine) -> None:
        store = DatabaseLoginTokenStore(async_engine)
        issued = await store.issue("u1", created_by="admin", ttl_seconds=-1)
        assert await store.redeem(issued.token) is None

    async def test_unknown_token(self, async_engine) -> None:
        assert await DatabaseLoginTokenStore(async_engine).redeem("nope") is None

    async def test_redeemed_token_kept_as_used(self, async_engine) -> None:
        store = DatabaseLoginTokenStore(async_engine)
        issued = await store.issue("u1", created_by="admin", ttl_seconds=60)
        await store.redeem(issued.token)

        async with AsyncSession(async_engine) as session:
            stmt = select(LoginToken).where(col(LoginToken.token) == issued.token)
            row = (await session.execute(stmt)).scalars().one()
        assert row.used is True
        assert row.created_by == "admin"

    async def test_expired_token_not_marked_used(self, async_engine) -> None:
        store = DatabaseLoginTokenStore(async_engine)
        issued = await store.issue("u1", created_by="admin", ttl_seconds=-1)
        await store.redeem(issued.token)

        async with AsyncSession(async_engine) as session:
            stmt = select(LoginToken).where(col(LoginToken.token) == issued.token)
            row = (await session.execute(stmt)).scalars().one()
        assert row.used is False

    async def test_concurrent_redeem_has_one_winner(self, tmp_path) -> None:
        # File-backed database so each session gets its own connection
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'tokens.db'}")
        try:
            await init_db(engine)
            store = DatabaseLoginTokenStore(engine)
            issued = await store.issue("u1", created_by="admin", ttl_seconds=60)
            results = await asyncio.gather(*(store.redeem(issued.token) for _ in range(5)))
        finally:
            await engine.dispose()
        assert results.count("u1") == 1
        assert results.count(None) == 4
