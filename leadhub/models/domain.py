"""Inter-module data contracts (not persisted directly)."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from leadhub.types import Capability

_TRUTHY = frozenset({"true", "1", "yes", "on"})


def coerce_flag(value: object) -> bool:
    """Coerce a stored grant value to bool. Anything unrecognized is False."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value == 1
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY
    return False


class _Grants(BaseModel):
    model_config = ConfigDict(frozen=True)

    can_upload_leads: bool = False
    can_receive_leads: bool = False
    can_distribute_leads: bool = False
    can_distribute_identifiers: bool = False
    can_create_user: bool = False

    @field_validator("*", mode="before")
    @classmethod
    def _coerce(cls, value: object) -> bool:
        return coerce_flag(value)

    def has(self, capability: Capability | str) -> bool:
        return bool(getattr(self, _CAPABILITY_FIELDS[Capability(capability)]))


class RawGrants(_Grants):
    """The five grants an admin set on a membership, before company policy."""


class EffectiveCapabilities(_Grants):
    """Grants after intersecting with the company policy mode. Never stored."""

    @classmethod
    def none(cls) -> EffectiveCapabilities:
        return cls()


_CAPABILITY_FIELDS: dict[Capability, str] = {
    Capability.UPLOAD_LEADS: "can_upload_leads",
    Capability.RECEIVE_LEADS: "can_receive_leads",
    Capability.DISTRIBUTE_LEADS: "can_distribute_leads",
    Capability.DISTRIBUTE_IDENTIFIERS: "can_distribute_identifiers",
    Capability.CREATE_USER: "can_create_user",
}


class MembershipRecord(BaseModel):
    """A user's membership in one company, as read from the store."""

    model_config = ConfigDict(frozen=True)

    company_id: str
    role: str
    grants: RawGrants = Field(default_factory=RawGrants)


class CompanyRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    code: str = ""
    active: bool = True
    policy_mode: str | None = None  # raw value; resolved with coerce_policy_mode
    products: tuple[str, ...] = ()


class UserRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    name: str = ""
    is_active: bool = True
    memberships: tuple[MembershipRecord, ...] = ()
