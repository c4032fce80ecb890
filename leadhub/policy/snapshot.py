"""Resolved policy bundle carried through a single request."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from leadhub.models.domain import EffectiveCapabilities, RawGrants
from leadhub.types import ADMIN_ROLES, MembershipRole, PolicyMode

SNAPSHOT_VERSION = 1


def parse_role(value: object) -> MembershipRole | None:
    """Return the MembershipRole for ``value`` or None when it is not a known role."""
    if isinstance(value, MembershipRole):
        return value
    if isinstance(value, str):
        try:
            return MembershipRole(value.strip().lower())
        except ValueError:
            return None
    return None


class MembershipView(BaseModel):
    """One membership paired with its company and resolved capabilities."""

    model_config = ConfigDict(frozen=True)

    company_id: str
    company_name: str = ""
    company_code: str = ""
    role: MembershipRole | None = None
    policy_mode: PolicyMode = PolicyMode.HYBRID
    company_active: bool = True
    raw: RawGrants = Field(default_factory=RawGrants)
    effective: EffectiveCapabilities = Field(default_factory=EffectiveCapabilities)

    @property
    def is_tenant_admin(self) -> bool:
        return self.role in ADMIN_ROLES


class SessionPolicySnapshot(BaseModel):
    """Immutable result of one resolution cycle.

    Rebuilt from the store on every cycle; ``active_company_id`` is carried
    forward only as a hint for the next one.
    """

    model_config = ConfigDict(frozen=True)

    version: int = SNAPSHOT_VERSION
    user_id: str
    per_membership: tuple[MembershipView, ...] = ()
    active_company_id: str | None = None
    active_effective_grants: EffectiveCapabilities = Field(
        default_factory=EffectiveCapabilities.none
    )

    @property
    def company_ids(self) -> list[str]:
        return [m.company_id for m in self.per_membership]

    @property
    def active_membership(self) -> MembershipView | None:
        if self.active_company_id is None:
            return None
        return self.membership_for(self.active_company_id)

    @property
    def active_role(self) -> MembershipRole | None:
        active = self.active_membership
        return active.role if active else None

    def membership_for(self, company_id: str) -> MembershipView | None:
        for membership in self.per_membership:
            if membership.company_id == company_id:
                return membership
        return None
