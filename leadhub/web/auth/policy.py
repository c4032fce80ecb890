"""Per-request policy resolution and enforcement for route handlers."""

from __future__ import annotations

from typing import NoReturn

import structlog
from fastapi import Depends, HTTPException, Request

from leadhub.audit.logger import audit_denial
from leadhub.policy.guard import (
    AccessDecision,
    Requirement,
    check_any_company_access,
    check_company_access,
    is_super_tenant_admin,
)
from leadhub.policy.hydrator import PolicyHydrator
from leadhub.policy.snapshot import SessionPolicySnapshot
from leadhub.types import DenialReason
from leadhub.web.auth.session import ActorSession, SessionAuth, get_session_auth, require_actor
from leadhub.web.dependencies import get_hydrator

logger = structlog.get_logger(__name__)

FORBIDDEN_DETAIL = "Forbidden"


async def get_policy(
    actor: ActorSession = Depends(require_actor),
    hydrator: PolicyHydrator = Depends(get_hydrator),
    auth: SessionAuth = Depends(get_session_auth),
) -> SessionPolicySnapshot:
    """Run one resolution cycle for the request.

    The session's stored active company is passed as a hint and replaced by
    whatever the cycle selects. ActorNotFound and StoreUnavailable propagate
    to the app's exception handlers.
    """
    snapshot = await hydrator.hydrate(actor.user_id, previous_hint=actor.active_company_id)
    if snapshot.active_company_id != actor.active_company_id:
        auth.set_active_company(actor.token, snapshot.active_company_id)
    return snapshot


async def _deny(
    request: Request,
    snapshot: SessionPolicySnapshot,
    company_id: str | None,
    requirement: Requirement | None,
    decision: AccessDecision,
    resource_type: str,
) -> NoReturn:
    await audit_denial(
        user_id=snapshot.user_id,
        company_id=company_id,
        requirement=requirement,
        decision=decision,
        resource_type=resource_type,
        request_id=request.headers.get("x-request-id", ""),
    )
    raise HTTPException(status_code=403, detail=FORBIDDEN_DETAIL)


async def enforce_company(
    request: Request,
    snapshot: SessionPolicySnapshot,
    company_id: str,
    requirement: Requirement,
    resource_type: str = "",
) -> None:
    """Raise 403 unless ``requirement`` holds for ``company_id``."""
    decision = check_company_access(snapshot.per_membership, company_id, requirement)
    if not decision:
        await _deny(request, snapshot, company_id, requirement, decision, resource_type)


async def enforce_any_company(
    request: Request,
    snapshot: SessionPolicySnapshot,
    requirement: Requirement,
    resource_type: str = "",
) -> None:
    """Raise 403 unless ``requirement`` holds for at least one membership."""
    decision = check_any_company_access(snapshot.per_membership, requirement)
    if not decision:
        await _deny(request, snapshot, None, requirement, decision, resource_type)


async def enforce_company_admin(
    request: Request,
    snapshot: SessionPolicySnapshot,
    company_id: str,
    resource_type: str = "",
) -> None:
    """Raise 403 unless the actor is tenant-admin at ``company_id`` or super-tenant-admin.

    Capability flags never satisfy this check.
    """
    if is_super_tenant_admin(snapshot.per_membership):
        return
    membership = snapshot.membership_for(company_id)
    if membership is not None and membership.is_tenant_admin:
        return
    reason = DenialReason.MISSING_GRANT if membership else DenialReason.NO_MEMBERSHIP
    await _deny(
        request,
        snapshot,
        company_id,
        None,
        AccessDecision(allowed=False, reason=reason),
        resource_type,
    )


async def require_active_tenant_admin(
    request: Request,
    snapshot: SessionPolicySnapshot = Depends(get_policy),
) -> SessionPolicySnapshot:
    """Require tenant-admin on the active company, or super-tenant-admin anywhere."""
    active = snapshot.active_membership
    if is_super_tenant_admin(snapshot.per_membership) or (active and active.is_tenant_admin):
        return snapshot
    reason = DenialReason.MISSING_GRANT if active else DenialReason.NO_ACTIVE_TENANT
    await _deny(
        request,
        snapshot,
        snapshot.active_company_id,
        None,
        AccessDecision(allowed=False, reason=reason),
        "tenant_admin",
    )
