"""Cookie-based session authentication."""

from __future__ import annotations

import hashlib
import hmac
import secrets
import time
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

import structlog
from fastapi import Depends, HTTPException, Request

from leadhub.config.settings import get_settings

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class ActorSession:
    """The authenticated caller plus the active-company hint from the last cycle."""

    token: str
    user_id: str
    active_company_id: str | None = None


class SessionAuth:
    """Server-side sessions keyed by HMAC-signed opaque tokens.

    A session stores the user id and the active company chosen by the last
    resolution cycle. That company id is only a hint; it is re-validated on
    every request.
    """

    def __init__(self, secret_key: str, max_age: int = 86400) -> None:
        self._secret = secret_key.encode()
        self._max_age = max_age
        self._sessions: dict[str, dict[str, Any]] = {}

    def create_session(self, user_id: str) -> str:
        """Create a new session and return the token."""
        token = secrets.token_urlsafe(32)
        signature = self._sign(token)
        signed_token = f"{token}.{signature}"

        self._sessions[signed_token] = {
            "user_id": user_id,
            "active_company_id": None,
            "created_at": time.time(),
        }
        logger.info("session_created", user_id=user_id)
        return signed_token

    def validate_session(self, token: str) -> dict[str, Any] | None:
        """Validate a session token and return its data."""
        if not token or "." not in token:
            return None

        raw_token, signature = token.rsplit(".", 1)
        expected_sig = self._sign(raw_token)

        if not hmac.compare_digest(signature, expected_sig):
            return None

        session = self._sessions.get(token)
        if not session:
            return None

        if time.time() - session["created_at"] > self._max_age:
            self.destroy_session(token)
            return None

        return session

    def set_active_company(self, token: str, company_id: str | None) -> None:
        """Persist the resolved active company as the next cycle's hint."""
        session = self._sessions.get(token)
        if session is not None:
            session["active_company_id"] = company_id

    def destroy_session(self, token: str) -> None:
        """Remove a session."""
        self._sessions.pop(token, None)
        logger.info("session_destroyed")

    def _sign(self, data: str) -> str:
        """Create HMAC signature for a token."""
        return hmac.new(self._secret, data.encode(), hashlib.sha256).hexdigest()[:32]


@lru_cache
def get_session_auth() -> SessionAuth:
    """Return the process-wide session manager."""
    settings = get_settings()
    return SessionAuth(secret_key=settings.secret_key, max_age=settings.session_max_age)


def read_actor_session(request: Request, auth: SessionAuth) -> ActorSession | None:
    """Resolve the session cookie to an ActorSession, or None if absent/invalid."""
    settings = get_settings()
    token = request.cookies.get(settings.session_cookie_name, "")
    session = auth.validate_session(token)
    if session is None:
        return None
    return ActorSession(
        token=token,
        user_id=session["user_id"],
        active_company_id=session.get("active_company_id"),
    )


def require_actor(
    request: Request,
    auth: SessionAuth = Depends(get_session_auth),
) -> ActorSession:
    """FastAPI dependency: the authenticated actor, or 401."""
    actor = read_actor_session(request, auth)
    if actor is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    structlog.contextvars.bind_contextvars(user_id=actor.user_id)
    return actor
