"""Build a SessionPolicySnapshot from the store for one resolution cycle."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from leadhub.exceptions import ActorNotFound
from leadhub.models.domain import EffectiveCapabilities
from leadhub.policy.resolver import coerce_policy_mode, resolve
from leadhub.policy.selector import select_active_company
from leadhub.policy.snapshot import MembershipView, SessionPolicySnapshot, parse_role

if TYPE_CHECKING:
    from leadhub.models.domain import CompanyRecord, MembershipRecord
    from leadhub.storage.repositories.memberships import MembershipStore

logger = structlog.get_logger(__name__)


def build_views(
    memberships: list[MembershipRecord],
    companies: list[CompanyRecord],
) -> tuple[MembershipView, ...]:
    """Pair each membership with its company and resolve effective grants.

    A membership whose company is missing resolves under hybrid policy and
    counts as active.
    """
    by_id = {c.id: c for c in companies}
    views: list[MembershipView] = []
    for membership in memberships:
        company = by_id.get(membership.company_id)
        mode = coerce_policy_mode(company.policy_mode if company else None)
        views.append(
            MembershipView(
                company_id=membership.company_id,
                company_name=company.name if company else "",
                company_code=company.code.lower() if company else "",
                role=parse_role(membership.role),
                policy_mode=mode,
                company_active=company.active if company else True,
                raw=membership.grants,
                effective=resolve(membership.grants, mode),
            )
        )
    return tuple(views)


class PolicyHydrator:
    """Runs a full resolution cycle against the store.

    Holds no cache: every call re-reads memberships and companies, so policy
    and grant edits show up on the next cycle without invalidation.
    """

    def __init__(self, store: MembershipStore) -> None:
        self._store = store

    async def hydrate(
        self,
        user_id: str,
        explicit_switch_to: str | None = None,
        previous_hint: str | None = None,
    ) -> SessionPolicySnapshot:
        memberships = await self._store.get_user_memberships(user_id)
        if memberships is None:
            logger.info("policy_actor_not_found", user_id=user_id)
            raise ActorNotFound(user_id)

        company_ids = list(dict.fromkeys(m.company_id for m in memberships))
        companies = await self._store.get_companies_by_ids(company_ids) if company_ids else []

        views = build_views(memberships, companies)
        active_company_id = select_active_company(
            views,
            explicit_switch_to=explicit_switch_to,
            previous_hint=previous_hint,
            user_id=user_id,
        )
        active = next((v for v in views if v.company_id == active_company_id), None)

        snapshot = SessionPolicySnapshot(
            user_id=user_id,
            per_membership=views,
            active_company_id=active_company_id,
            active_effective_grants=active.effective if active else EffectiveCapabilities.none(),
        )
        logger.debug(
            "policy_hydrated",
            user_id=user_id,
            memberships=len(views),
            active_company_id=active_company_id,
        )
        return snapshot

    async def switch_active_tenant(self, user_id: str, company_id: str) -> SessionPolicySnapshot:
        """Re-run hydration with an explicit switch. Raises TenantMismatch if not a member."""
        snapshot = await self.hydrate(user_id, explicit_switch_to=company_id)
        logger.info("tenant_switched", user_id=user_id, company_id=company_id)
        return snapshot
