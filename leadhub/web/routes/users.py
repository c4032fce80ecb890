"""User creation and membership administration routes."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import Response
from pydantic import BaseModel, Field, field_validator

from leadhub.audit.logger import audit
from leadhub.models.domain import MembershipRecord, RawGrants
from leadhub.policy.guard import Requirement, is_super_tenant_admin
from leadhub.policy.snapshot import SessionPolicySnapshot, parse_role
from leadhub.storage.repositories.memberships import MembershipStore
from leadhub.types import ADMIN_ROLES, Capability, MembershipRole
from leadhub.web.auth.policy import (
    FORBIDDEN_DETAIL,
    enforce_company,
    enforce_company_admin,
    get_policy,
)
from leadhub.web.dependencies import get_store

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/admin/users", tags=["users"])

MANAGE_USERS = Requirement.tenant_admin_or(Capability.CREATE_USER)


class MembershipGrant(BaseModel):
    company_id: str = Field(min_length=1)
    role: MembershipRole
    can_upload_leads: bool = False
    can_receive_leads: bool = False
    can_distribute_leads: bool = False
    can_distribute_identifiers: bool = False
    can_create_user: bool = False

    def grants(self) -> RawGrants:
        return RawGrants(
            can_upload_leads=self.can_upload_leads,
            can_receive_leads=self.can_receive_leads,
            can_distribute_leads=self.can_distribute_leads,
            can_distribute_identifiers=self.can_distribute_identifiers,
            can_create_user=self.can_create_user,
        )

    def record(self) -> MembershipRecord:
        return MembershipRecord(
            company_id=self.company_id, role=str(self.role), grants=self.grants()
        )


class CreateUserRequest(BaseModel):
    email: str = Field(min_length=3, max_length=320)
    name: str = ""
    memberships: list[MembershipGrant] = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("memberships")
    @classmethod
    def _one_per_company(cls, value: list[MembershipGrant]) -> list[MembershipGrant]:
        ids = [m.company_id for m in value]
        if len(ids) != len(set(ids)):
            msg = "At most one membership per company"
            raise ValueError(msg)
        return value


class UpdateMembershipRequest(BaseModel):
    role: MembershipRole | None = None
    can_upload_leads: bool | None = None
    can_receive_leads: bool | None = None
    can_distribute_leads: bool | None = None
    can_distribute_identifiers: bool | None = None
    can_create_user: bool | None = None


def _membership_dict(membership: MembershipRecord) -> dict[str, Any]:
    return {
        "company_id": membership.company_id,
        "role": membership.role,
        **membership.grants.model_dump(),
    }


def _check_role_grant(
    snapshot: SessionPolicySnapshot, company_id: str, role: MembershipRole
) -> None:
    """Only super-tenant-admins hand out super-tenant-admin; only admins hand out admin."""
    if is_super_tenant_admin(snapshot.per_membership):
        return
    if role == MembershipRole.SUPER_TENANT_ADMIN:
        raise HTTPException(status_code=403, detail=FORBIDDEN_DETAIL)
    if role == MembershipRole.TENANT_ADMIN:
        own = snapshot.membership_for(company_id)
        if own is None or not own.is_tenant_admin:
            raise HTTPException(status_code=403, detail=FORBIDDEN_DETAIL)


def _check_target(snapshot: SessionPolicySnapshot, current: MembershipRecord) -> None:
    """Admin and super-tenant-admin memberships can only be changed by a super-tenant-admin."""
    if parse_role(current.role) in ADMIN_ROLES and not is_super_tenant_admin(
        snapshot.per_membership
    ):
        raise HTTPException(status_code=403, detail=FORBIDDEN_DETAIL)


async def _get_membership_or_404(
    store: MembershipStore, user_id: str, company_id: str
) -> MembershipRecord:
    user = await store.get_user(user_id)
    memberships = user.memberships if user else ()
    current = next((m for m in memberships if m.company_id == company_id), None)
    if current is None:
        raise HTTPException(status_code=404, detail="Membership not found")
    return current


@router.post("", status_code=201)
async def create_user(
    body: CreateUserRequest,
    request: Request,
    snapshot: SessionPolicySnapshot = Depends(get_policy),
    store: MembershipStore = Depends(get_store),
) -> dict[str, Any]:
    for grant in body.memberships:
        await enforce_company(request, snapshot, grant.company_id, MANAGE_USERS, "user")
        _check_role_grant(snapshot, grant.company_id, grant.role)
        if await store.get_company(grant.company_id) is None:
            raise HTTPException(status_code=404, detail="Company not found")

    user = await store.create_user_with_memberships(
        email=body.email, name=body.name, memberships=[g.record() for g in body.memberships]
    )
    for membership in user.memberships:
        await audit(
            company_id=membership.company_id,
            user_id=snapshot.user_id,
            action="user.create",
            resource_type="user",
            resource_id=user.id,
            details={"role": membership.role},
        )
    logger.info("user_created_by_admin", user_id=user.id, created_by=snapshot.user_id)
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "memberships": [_membership_dict(m) for m in user.memberships],
    }


@router.patch("/{user_id}/memberships/{company_id}")
async def update_membership(
    user_id: str,
    company_id: str,
    body: UpdateMembershipRequest,
    request: Request,
    snapshot: SessionPolicySnapshot = Depends(get_policy),
    store: MembershipStore = Depends(get_store),
) -> dict[str, Any]:
    await enforce_company_admin(request, snapshot, company_id, "membership")
    current = await _get_membership_or_404(store, user_id, company_id)
    _check_target(snapshot, current)

    role = body.role or current.role
    if body.role is not None:
        _check_role_grant(snapshot, company_id, body.role)

    changes = body.model_dump(exclude_none=True, exclude={"role"})
    grants = current.grants.model_copy(update=changes)
    membership = await store.upsert_membership(user_id, company_id, str(role), grants)
    await audit(
        company_id=company_id,
        user_id=snapshot.user_id,
        action="membership.update",
        resource_type="user",
        resource_id=user_id,
        details={"role": str(role), **changes},
    )
    return _membership_dict(membership)


@router.delete("/{user_id}/memberships/{company_id}")
async def delete_membership(
    user_id: str,
    company_id: str,
    request: Request,
    snapshot: SessionPolicySnapshot = Depends(get_policy),
    store: MembershipStore = Depends(get_store),
) -> Response:
    await enforce_company_admin(request, snapshot, company_id, "membership")
    current = await _get_membership_or_404(store, user_id, company_id)
    _check_target(snapshot, current)
    removed = await store.remove_membership(user_id, company_id)
    if not removed:
        raise HTTPException(status_code=404, detail="Membership not found")
    await audit(
        company_id=company_id,
        user_id=snapshot.user_id,
        action="membership.remove",
        resource_type="user",
        resource_id=user_id,
    )
    return Response(status_code=204)
