"""Membership & company store. In-memory version; see db_memberships for PostgreSQL."""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Sequence
from typing import Protocol

import structlog

from leadhub.exceptions import StorageError
from leadhub.models.domain import CompanyRecord, MembershipRecord, RawGrants, UserRecord
from leadhub.types import PolicyMode

logger = structlog.get_logger(__name__)


class MembershipStore(Protocol):
    """Read/write surface the policy engine and admin routes depend on."""

    async def get_user_memberships(self, user_id: str) -> list[MembershipRecord] | None: ...

    async def get_companies_by_ids(self, company_ids: Iterable[str]) -> list[CompanyRecord]: ...

    async def list_companies(self) -> list[CompanyRecord]: ...

    async def get_company(self, company_id: str) -> CompanyRecord | None: ...

    async def get_user(self, user_id: str) -> UserRecord | None: ...

    async def create_company(
        self,
        name: str,
        code: str,
        policy_mode: PolicyMode | str = PolicyMode.HYBRID,
        active: bool = True,
    ) -> CompanyRecord: ...

    async def set_policy_mode(
        self, company_id: str, policy_mode: PolicyMode | str | None
    ) -> CompanyRecord | None: ...

    async def set_company_active(self, company_id: str, active: bool) -> CompanyRecord | None: ...

    async def set_products(self, company_id: str, products: list[str]) -> CompanyRecord | None: ...

    async def create_user(self, email: str, name: str = "") -> UserRecord: ...

    async def create_user_with_memberships(
        self, email: str, name: str, memberships: Sequence[MembershipRecord]
    ) -> UserRecord: ...

    async def upsert_membership(
        self, user_id: str, company_id: str, role: str, grants: RawGrants
    ) -> MembershipRecord: ...

    async def remove_membership(self, user_id: str, company_id: str) -> bool: ...


class InMemoryMembershipStore:
    """Dict-backed store for development and tests."""

    def __init__(self) -> None:
        self._companies: dict[str, CompanyRecord] = {}
        self._users: dict[str, UserRecord] = {}

    # -- reads used by the policy engine ------------------------------------

    async def get_user_memberships(self, user_id: str) -> list[MembershipRecord] | None:
        user = self._users.get(user_id)
        if user is None or not user.is_active:
            return None
        return list(user.memberships)

    async def get_companies_by_ids(self, company_ids: Iterable[str]) -> list[CompanyRecord]:
        wanted = dict.fromkeys(company_ids)
        return [self._companies[cid] for cid in wanted if cid in self._companies]

    async def list_companies(self) -> list[CompanyRecord]:
        return list(self._companies.values())

    async def get_company(self, company_id: str) -> CompanyRecord | None:
        return self._companies.get(company_id)

    async def get_user(self, user_id: str) -> UserRecord | None:
        return self._users.get(user_id)

    # -- writes ------------------------------------------------------------

    async def create_company(
        self,
        name: str,
        code: str,
        policy_mode: PolicyMode | str = PolicyMode.HYBRID,
        active: bool = True,
        company_id: str | None = None,
    ) -> CompanyRecord:
        if any(c.name == name or c.code == code for c in self._companies.values()):
            msg = f"Company name or code already exists: {name}/{code}"
            raise StorageError(msg)
        company = CompanyRecord(
            id=company_id or str(uuid.uuid4()),
            name=name,
            code=code,
            active=active,
            policy_mode=str(policy_mode),
        )
        self._companies[company.id] = company
        logger.info("company_created", company_id=company.id, name=name)
        return company

    async def set_policy_mode(
        self, company_id: str, policy_mode: PolicyMode | str | None
    ) -> CompanyRecord | None:
        mode = None if policy_mode is None else str(policy_mode)
        return self._update_company(company_id, policy_mode=mode)

    async def set_company_active(self, company_id: str, active: bool) -> CompanyRecord | None:
        return self._update_company(company_id, active=active)

    async def set_products(self, company_id: str, products: list[str]) -> CompanyRecord | None:
        return self._update_company(company_id, products=tuple(products))

    async def create_user(
        self, email: str, name: str = "", user_id: str | None = None
    ) -> UserRecord:
        if any(u.email == email for u in self._users.values()):
            msg = f"User already exists: {email}"
            raise StorageError(msg)
        user = UserRecord(id=user_id or str(uuid.uuid4()), email=email, name=name or email)
        self._users[user.id] = user
        logger.info("user_created", user_id=user.id, email=email)
        return user

    async def create_user_with_memberships(
        self, email: str, name: str, memberships: Sequence[MembershipRecord]
    ) -> UserRecord:
        if any(u.email == email for u in self._users.values()):
            msg = f"User already exists: {email}"
            raise StorageError(msg)
        user = UserRecord(
            id=str(uuid.uuid4()), email=email, name=name or email, memberships=tuple(memberships)
        )
        self._users[user.id] = user
        logger.info(
            "user_created",
            user_id=user.id,
            email=email,
            companies=[m.company_id for m in memberships],
        )
        return user

    async def deactivate_user(self, user_id: str) -> bool:
        user = self._users.get(user_id)
        if user is None:
            return False
        self._users[user_id] = user.model_copy(update={"is_active": False})
        return True

    async def upsert_membership(
        self, user_id: str, company_id: str, role: str, grants: RawGrants
    ) -> MembershipRecord:
        user = self._users.get(user_id)
        if user is None:
            msg = f"User not found: {user_id}"
            raise StorageError(msg)
        membership = MembershipRecord(company_id=company_id, role=role, grants=grants)
        memberships = list(user.memberships)
        for i, existing in enumerate(memberships):
            if existing.company_id == company_id:
                memberships[i] = membership
                break
        else:
            memberships.append(membership)
        self._users[user_id] = user.model_copy(update={"memberships": tuple(memberships)})
        logger.info("membership_saved", user_id=user_id, company_id=company_id, role=role)
        return membership

    async def remove_membership(self, user_id: str, company_id: str) -> bool:
        user = self._users.get(user_id)
        if user is None:
            return False
        remaining = tuple(m for m in user.memberships if m.company_id != company_id)
        if len(remaining) == len(user.memberships):
            return False
        self._users[user_id] = user.model_copy(update={"memberships": remaining})
        logger.info("membership_removed", user_id=user_id, company_id=company_id)
        return True

    def _update_company(self, company_id: str, **updates: object) -> CompanyRecord | None:
        company = self._companies.get(company_id)
        if company is None:
            return None
        updated = company.model_copy(update=updates)
        self._companies[company_id] = updated
        logger.info("company_updated", company_id=company_id, fields=sorted(updates))
        return updated
