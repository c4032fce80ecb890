"""Intersect a membership's raw grants with its company's policy mode."""

from __future__ import annotations

from leadhub.models.domain import EffectiveCapabilities, RawGrants
from leadhub.types import PolicyMode


def coerce_policy_mode(value: object) -> PolicyMode:
    """Map a stored policy value to a PolicyMode.

    Missing or unrecognized values fall back to hybrid, so an unknown company
    policy never disables a grant an admin explicitly set.
    """
    if isinstance(value, PolicyMode):
        return value
    if isinstance(value, str):
        try:
            return PolicyMode(value.strip().lower())
        except ValueError:
            return PolicyMode.HYBRID
    return PolicyMode.HYBRID


def resolve(raw: RawGrants, mode: PolicyMode | str | None) -> EffectiveCapabilities:
    """Return the grants a member can actually exercise under ``mode``.

    Policy only gates the upload/receive axis. Distribution and user
    creation pass through unchanged.
    """
    policy = coerce_policy_mode(mode)
    return EffectiveCapabilities(
        can_upload_leads=raw.can_upload_leads and policy != PolicyMode.RECEIVER,
        can_receive_leads=raw.can_receive_leads and policy != PolicyMode.UPLOADER,
        can_distribute_leads=raw.can_distribute_leads,
        can_distribute_identifiers=raw.can_distribute_identifiers,
        can_create_user=raw.can_create_user,
    )
