"""Authorization predicates over resolved memberships.

Every privileged endpoint states its check as a :class:`Requirement` instead
of hand-writing "role is admin or has flag" logic:

- ``Requirement.tenant_admin_or(cap)`` passes for tenant-admins and
  super-tenant-admins of the company, or for members holding ``cap``.
- ``Requirement.flag_only(cap)`` passes only for members holding ``cap``.

A super-tenant-admin membership anywhere passes every check for every
company. All functions here are pure and never touch the store.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from leadhub.policy.snapshot import MembershipView
from leadhub.types import Capability, DenialReason, MembershipRole, RequirementKind


@dataclass(frozen=True, slots=True)
class Requirement:
    kind: RequirementKind
    capability: Capability

    @classmethod
    def tenant_admin_or(cls, capability: Capability | str) -> Requirement:
        return cls(RequirementKind.TENANT_ADMIN_OR, Capability(capability))

    @classmethod
    def flag_only(cls, capability: Capability | str) -> Requirement:
        return cls(RequirementKind.FLAG_ONLY, Capability(capability))

    def __str__(self) -> str:
        return f"{self.kind}({self.capability})"


@dataclass(frozen=True, slots=True)
class AccessDecision:
    """Allow/deny plus the internal reason for a denial (for audit only)."""

    allowed: bool
    reason: DenialReason | None = None

    def __bool__(self) -> bool:
        return self.allowed


ALLOWED = AccessDecision(allowed=True)


def is_super_tenant_admin(memberships: Iterable[MembershipView]) -> bool:
    return any(m.role == MembershipRole.SUPER_TENANT_ADMIN for m in memberships)


def _membership_satisfies(membership: MembershipView, requirement: Requirement) -> bool:
    if requirement.kind == RequirementKind.TENANT_ADMIN_OR and membership.is_tenant_admin:
        return True
    return membership.effective.has(requirement.capability)


def check_company_access(
    memberships: Iterable[MembershipView],
    company_id: str,
    requirement: Requirement,
) -> AccessDecision:
    memberships = tuple(memberships)
    if is_super_tenant_admin(memberships):
        return ALLOWED
    membership = next((m for m in memberships if m.company_id == company_id), None)
    if membership is None:
        return AccessDecision(allowed=False, reason=DenialReason.NO_MEMBERSHIP)
    if _membership_satisfies(membership, requirement):
        return ALLOWED
    return AccessDecision(allowed=False, reason=DenialReason.MISSING_GRANT)


def can_act_on_company(
    memberships: Iterable[MembershipView],
    company_id: str,
    requirement: Requirement,
) -> bool:
    return check_company_access(memberships, company_id, requirement).allowed


def check_any_company_access(
    memberships: Iterable[MembershipView],
    requirement: Requirement,
) -> AccessDecision:
    memberships = tuple(memberships)
    if not memberships:
        return AccessDecision(allowed=False, reason=DenialReason.NO_MEMBERSHIP)
    if is_super_tenant_admin(memberships):
        return ALLOWED
    if any(_membership_satisfies(m, requirement) for m in memberships):
        return ALLOWED
    return AccessDecision(allowed=False, reason=DenialReason.MISSING_GRANT)


def can_act_on_any_company(
    memberships: Iterable[MembershipView],
    requirement: Requirement,
) -> bool:
    """True if the requirement holds for at least one membership."""
    return check_any_company_access(memberships, requirement).allowed


def has_company_access(memberships: Iterable[MembershipView], company_id: str) -> bool:
    """Any membership in the company at all (or super-tenant-admin)."""
    memberships = tuple(memberships)
    return is_super_tenant_admin(memberships) or any(
        m.company_id == company_id for m in memberships
    )
