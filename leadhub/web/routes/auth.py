"""Authentication routes: one-time login links, magic login, logout."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel, Field

from leadhub.audit.logger import audit
from leadhub.config.settings import get_settings
from leadhub.policy.snapshot import SessionPolicySnapshot, parse_role
from leadhub.storage.repositories.login_tokens import LoginTokenStore
from leadhub.storage.repositories.memberships import MembershipStore
from leadhub.types import NARROW_ROLES
from leadhub.web.auth.policy import require_active_tenant_admin
from leadhub.web.auth.session import SessionAuth, get_session_auth, read_actor_session
from leadhub.web.dependencies import get_login_token_store, get_store

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["auth"])


class LoginLinkRequest(BaseModel):
    user_id: str = Field(min_length=1)


class MagicLoginRequest(BaseModel):
    token: str = Field(min_length=1)


@router.post("/api/admin/login-links")
async def create_login_link(
    body: LoginLinkRequest,
    request: Request,
    snapshot: SessionPolicySnapshot = Depends(require_active_tenant_admin),
    store: MembershipStore = Depends(get_store),
    tokens: LoginTokenStore = Depends(get_login_token_store),
) -> dict[str, Any]:
    """Issue a one-time login link for a narrower-role user."""
    if body.user_id == snapshot.user_id:
        raise HTTPException(
            status_code=400,
            detail="You cannot generate a secure login link for yourself.",
        )

    user = await store.get_user(body.user_id)
    if user is None or not user.is_active:
        raise HTTPException(status_code=404, detail="User not found")

    if not any(parse_role(m.role) in NARROW_ROLES for m in user.memberships):
        raise HTTPException(
            status_code=400,
            detail="This user is not eligible for secure login link.",
        )

    settings = get_settings()
    issued = await tokens.issue(
        user_id=user.id,
        created_by=snapshot.user_id,
        ttl_seconds=settings.login_link_ttl_seconds,
    )
    await audit(
        company_id=snapshot.active_company_id or "",
        user_id=snapshot.user_id,
        action="auth.login_link",
        resource_type="user",
        resource_id=user.id,
        request_id=request.headers.get("x-request-id", ""),
    )
    base_url = settings.public_base_url.rstrip("/")
    return {
        "link": f"{base_url}/secure-login?token={issued.token}",
        "expires_at": issued.expires_at.isoformat(),
    }


@router.post("/api/auth/magic-login")
async def magic_login(
    body: MagicLoginRequest,
    request: Request,
    response: Response,
    tokens: LoginTokenStore = Depends(get_login_token_store),
    store: MembershipStore = Depends(get_store),
    auth: SessionAuth = Depends(get_session_auth),
) -> dict[str, Any]:
    """Exchange a one-time login token for a session cookie."""
    user_id = await tokens.redeem(body.token)
    if user_id is None:
        raise HTTPException(status_code=400, detail="Invalid, used or expired token")

    user = await store.get_user(user_id)
    if user is None or not user.is_active:
        raise HTTPException(status_code=404, detail="User not found")

    settings = get_settings()
    token = auth.create_session(user.id)
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        httponly=True,
        secure=not settings.debug,
        samesite="lax",
        max_age=settings.session_max_age,
    )
    await audit(
        company_id="",
        user_id=user.id,
        action="auth.magic_login",
        ip_address=request.client.host if request.client else "",
        request_id=request.headers.get("x-request-id", ""),
    )
    logger.info("user_logged_in", user_id=user.id)
    return {"ok": True}


@router.post("/api/auth/logout")
async def logout(
    request: Request,
    response: Response,
    auth: SessionAuth = Depends(get_session_auth),
) -> dict[str, str]:
    settings = get_settings()
    actor = read_actor_session(request, auth)
    if actor is not None:
        auth.destroy_session(actor.token)
        logger.info("user_logged_out", user_id=actor.user_id)
    response.delete_cookie(settings.session_cookie_name)
    return {"status": "ok"}
