"""Pick which of a user's memberships is active for a request."""

from __future__ import annotations

from collections.abc import Sequence

import structlog

from leadhub.exceptions import TenantMismatch
from leadhub.policy.snapshot import MembershipView

logger = structlog.get_logger(__name__)


def select_active_company(
    memberships: Sequence[MembershipView],
    explicit_switch_to: str | None = None,
    previous_hint: str | None = None,
    *,
    user_id: str | None = None,
) -> str | None:
    """Return the active company id, first match wins:

    1. an explicit switch that names one of the memberships
    2. the previous cycle's choice, if it still names a membership
    3. the only membership
    4. the first membership whose company is active, else the first membership
    5. None when there are no memberships

    An explicit switch to a company outside the list raises TenantMismatch
    instead of falling through, so the caller can report the failed switch.
    """
    company_ids = [m.company_id for m in memberships]

    if explicit_switch_to:
        if explicit_switch_to in company_ids:
            return explicit_switch_to
        logger.info(
            "tenant_switch_rejected",
            user_id=user_id,
            company_id=explicit_switch_to,
        )
        raise TenantMismatch(user_id, explicit_switch_to)

    if previous_hint and previous_hint in company_ids:
        return previous_hint

    if not memberships:
        return None

    if len(memberships) == 1:
        return memberships[0].company_id

    for membership in memberships:
        if membership.company_active:
            return membership.company_id
    return memberships[0].company_id
