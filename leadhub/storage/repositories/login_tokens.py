"""One-time login tokens for secure login links."""

from __future__ import annotations

import secrets
import time
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol

import structlog

from leadhub.models.database import LoginToken, _utc_now

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class IssuedToken:
    token: str
    user_id: str
    expires_at: datetime


class LoginTokenStore(Protocol):
    async def issue(self, user_id: str, created_by: str, ttl_seconds: int) -> IssuedToken: ...

    async def redeem(self, token: str) -> str | None: ...


def _new_token() -> str:
    return secrets.token_hex(32)


class InMemoryLoginTokenStore:
    """Stores login tokens with TTL expiry.

    Tokens are one-time-use: ``redeem`` returns the user id and forgets the token.
    Expired entries are lazily cleaned on ``issue`` and ``redeem``.
    """

    def __init__(self) -> None:
        self._store: dict[str, tuple[str, float]] = {}  # token -> (user_id, expires_at)

    async def issue(self, user_id: str, created_by: str, ttl_seconds: int) -> IssuedToken:
        self._cleanup()
        token = _new_token()
        expires_at = time.time() + ttl_seconds
        self._store[token] = (user_id, expires_at)
        logger.info("login_token_issued", user_id=user_id, created_by=created_by)
        return IssuedToken(
            token=token,
            user_id=user_id,
            expires_at=datetime.fromtimestamp(expires_at, UTC),
        )

    async def redeem(self, token: str) -> str | None:
        self._cleanup()
        entry = self._store.pop(token, None)
        if entry is None:
            return None
        user_id, expires_at = entry
        if time.time() > expires_at:
            return None
        return user_id

    def _cleanup(self) -> None:
        now = time.time()
        expired = [k for k, (_, exp) in self._store.items() if now > exp]
        for k in expired:
            del self._store[k]


class DatabaseLoginTokenStore:
    """PostgreSQL-backed login token store. Used tokens are kept for the audit trail."""

    def __init__(self, engine: Any) -> None:
        self._engine = engine

    async def issue(self, user_id: str, created_by: str, ttl_seconds: int) -> IssuedToken:
        from sqlmodel.ext.asyncio.session import AsyncSession

        row = LoginToken(
            token=_new_token(),
            user_id=user_id,
            created_by=created_by,
            expires_at=_utc_now() + timedelta(seconds=ttl_seconds),
        )
        token, expires_at = row.token, row.expires_at
        async with AsyncSession(self._engine) as session:
            session.add(row)
            await session.commit()
        logger.info("login_token_issued", user_id=user_id, created_by=created_by)
        return IssuedToken(token=token, user_id=user_id, expires_at=expires_at)

    async def redeem(self, token: str) -> str | None:
        """Mark ``token`` used and return its user id.

        A single conditional UPDATE claims the token, so when two requests race
        on the same token only one of them gets the user id back.
        """
        from sqlalchemy import update
        from sqlmodel import col
        from sqlmodel.ext.asyncio.session import AsyncSession

        stmt = (
            update(LoginToken)
            .where(
                col(LoginToken.token) == token,
                col(LoginToken.used).is_(False),
                col(LoginToken.expires_at) >= _utc_now(),
            )
            .values(used=True)
            .returning(col(LoginToken.user_id))
        )
        async with AsyncSession(self._engine) as session:
            user_id = (await session.execute(stmt)).scalar_one_or_none()
            await session.commit()
        if user_id is not None:
            logger.info("login_token_redeemed", user_id=user_id)
        return user_id
