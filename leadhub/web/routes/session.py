"""Session policy routes: current snapshot, validation, active company switch."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from leadhub.exceptions import ActorNotFound
from leadhub.policy.hydrator import PolicyHydrator
from leadhub.policy.snapshot import SessionPolicySnapshot
from leadhub.web.auth.policy import get_policy
from leadhub.web.auth.session import (
    ActorSession,
    SessionAuth,
    get_session_auth,
    read_actor_session,
    require_actor,
)
from leadhub.web.dependencies import get_hydrator

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/session", tags=["session"])


class SwitchCompanyRequest(BaseModel):
    company_id: str = Field(min_length=1)


@router.get("", response_model=SessionPolicySnapshot)
async def current_session(
    snapshot: SessionPolicySnapshot = Depends(get_policy),
) -> SessionPolicySnapshot:
    return snapshot


@router.get("/validate")
async def validate_session(
    request: Request,
    auth: SessionAuth = Depends(get_session_auth),
    hydrator: PolicyHydrator = Depends(get_hydrator),
) -> dict[str, Any]:
    """Report whether the cookie still maps to a live session and an active user."""
    actor = read_actor_session(request, auth)
    if actor is None:
        return {"valid": False}
    try:
        await hydrator.hydrate(actor.user_id, previous_hint=actor.active_company_id)
    except ActorNotFound:
        auth.destroy_session(actor.token)
        return {"valid": False}
    return {"valid": True}


@router.post("/active-company", response_model=SessionPolicySnapshot)
async def switch_active_company(
    body: SwitchCompanyRequest,
    actor: ActorSession = Depends(require_actor),
    hydrator: PolicyHydrator = Depends(get_hydrator),
    auth: SessionAuth = Depends(get_session_auth),
) -> SessionPolicySnapshot:
    """Switch the active company. A TenantMismatch leaves the session's hint untouched."""
    snapshot = await hydrator.switch_active_tenant(actor.user_id, body.company_id)
    auth.set_active_company(actor.token, snapshot.active_company_id)
    return snapshot
