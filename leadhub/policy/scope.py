"""Which companies an actor may see or act on in list endpoints."""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

import structlog

from leadhub.policy.guard import Requirement, can_act_on_company, is_super_tenant_admin
from leadhub.policy.snapshot import MembershipView
from leadhub.types import Capability, CompanyScope, RequirementKind

if TYPE_CHECKING:
    from leadhub.models.domain import CompanyRecord
    from leadhub.policy.snapshot import SessionPolicySnapshot
    from leadhub.storage.repositories.memberships import MembershipStore

logger = structlog.get_logger(__name__)


def effective_scope(scope: CompanyScope | str, is_super_tenant_admin: bool) -> CompanyScope:
    """Global scope is only honored for super-tenant-admins; everyone else gets own."""
    requested = CompanyScope(scope)
    if requested == CompanyScope.GLOBAL and not is_super_tenant_admin:
        logger.debug("company_scope_downgraded", requested=str(requested))
        return CompanyScope.OWN
    return requested


def filter_companies(
    memberships: Iterable[MembershipView],
    is_super_tenant_admin: bool,
    scope: CompanyScope | str,
    required_capability: Capability | str | None = None,
    *,
    requirement_kind: RequirementKind = RequirementKind.TENANT_ADMIN_OR,
    known_companies: Iterable[CompanyRecord] = (),
) -> list[str]:
    """Return the visible company ids, ordered by company name then id.

    ``known_companies`` is every company in the store and is consulted only
    for a super-tenant-admin in global scope; it also supplies display names.
    """
    memberships = tuple(memberships)
    known = tuple(known_companies)
    names = {m.company_id: m.company_name for m in memberships}
    names.update({c.id: c.name for c in known})

    if effective_scope(scope, is_super_tenant_admin) == CompanyScope.GLOBAL:
        candidates = [c.id for c in known]
    else:
        candidates = [m.company_id for m in memberships]

    if required_capability is not None:
        requirement = Requirement(requirement_kind, Capability(required_capability))
        candidates = [
            cid for cid in candidates if can_act_on_company(memberships, cid, requirement)
        ]

    return sorted(set(candidates), key=lambda cid: (names.get(cid, ""), cid))


async def visible_companies(
    store: MembershipStore,
    snapshot: SessionPolicySnapshot,
    scope: CompanyScope | str = CompanyScope.OWN,
    required_capability: Capability | str | None = None,
    *,
    requirement_kind: RequirementKind = RequirementKind.TENANT_ADMIN_OR,
    only_active: bool = False,
) -> list[CompanyRecord]:
    """Load the company records behind :func:`filter_companies`.

    The unbounded company listing is issued only for a super-tenant-admin
    asking for global scope.
    """
    memberships = snapshot.per_membership
    is_super = is_super_tenant_admin(memberships)
    if effective_scope(scope, is_super) == CompanyScope.GLOBAL:
        known = await store.list_companies()
    else:
        known = await store.get_companies_by_ids(snapshot.company_ids) if memberships else []

    ids = filter_companies(
        memberships,
        is_super,
        scope,
        required_capability,
        requirement_kind=requirement_kind,
        known_companies=known,
    )
    by_id = {c.id: c for c in known}
    companies = [by_id[cid] for cid in ids if cid in by_id]
    if only_active:
        companies = [c for c in companies if c.active]
    return companies
