"""Database-backed membership store using SQLModel + AsyncSession."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import func
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

from leadhub.exceptions import StorageError, StoreUnavailable
from leadhub.models.database import Company, CompanyMembership, User, _utc_now
from leadhub.models.domain import CompanyRecord, MembershipRecord, RawGrants, UserRecord
from leadhub.types import PolicyMode

logger = structlog.get_logger(__name__)

# Transient failures surfaced as StoreUnavailable so callers may retry
_TRANSIENT_ERRORS = (OperationalError, DBAPIError, OSError, TimeoutError)


def _company_record(company: Company) -> CompanyRecord:
    return CompanyRecord(
        id=company.id,
        name=company.name,
        code=company.code,
        active=company.active,
        policy_mode=company.policy_mode,
        products=tuple(company.products or ()),
    )


def _membership_record(row: CompanyMembership) -> MembershipRecord:
    return MembershipRecord(
        company_id=row.company_id,
        role=row.role,
        grants=RawGrants(
            can_upload_leads=row.can_upload_leads,
            can_receive_leads=row.can_receive_leads,
            can_distribute_leads=row.can_distribute_leads,
            can_distribute_identifiers=row.can_distribute_identifiers,
            can_create_user=row.can_create_user,
        ),
    )


class DatabaseMembershipStore:
    """PostgreSQL-backed membership and company store.

    Exposes the same record-based interface as InMemoryMembershipStore.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    # -- reads used by the policy engine ------------------------------------

    async def _load_user(
        self, session: AsyncSession, user_id: str
    ) -> tuple[User, list[MembershipRecord]] | None:
        """Fetch a user and its ordered memberships in one joined SELECT."""
        stmt = (
            select(User, CompanyMembership)
            .outerjoin(CompanyMembership, col(CompanyMembership.user_id) == col(User.id))
            .where(col(User.id) == user_id)
            .order_by(col(CompanyMembership.position), col(CompanyMembership.created_at))
        )
        rows = (await session.execute(stmt)).all()
        if not rows:
            return None
        user = rows[0][0]
        return user, [_membership_record(m) for _, m in rows if m is not None]

    async def get_user_memberships(self, user_id: str) -> list[MembershipRecord] | None:
        try:
            async with AsyncSession(self._engine) as session:
                loaded = await self._load_user(session, user_id)
        except _TRANSIENT_ERRORS as exc:
            logger.warning("store_read_failed", op="get_user_memberships", error=str(exc))
            raise StoreUnavailable(str(exc)) from exc
        if loaded is None or not loaded[0].is_active:
            return None
        return loaded[1]

    async def get_companies_by_ids(self, company_ids: Iterable[str]) -> list[CompanyRecord]:
        ids = list(dict.fromkeys(company_ids))
        if not ids:
            return []
        try:
            async with AsyncSession(self._engine) as session:
                stmt = select(Company).where(col(Company.id).in_(ids))
                result = await session.execute(stmt)
                return [_company_record(c) for c in result.scalars().all()]
        except _TRANSIENT_ERRORS as exc:
            logger.warning("store_read_failed", op="get_companies_by_ids", error=str(exc))
            raise StoreUnavailable(str(exc)) from exc

    async def list_companies(self) -> list[CompanyRecord]:
        try:
            async with AsyncSession(self._engine) as session:
                result = await session.execute(select(Company).order_by(col(Company.name)))
                return [_company_record(c) for c in result.scalars().all()]
        except _TRANSIENT_ERRORS as exc:
            logger.warning("store_read_failed", op="list_companies", error=str(exc))
            raise StoreUnavailable(str(exc)) from exc

    async def get_company(self, company_id: str) -> CompanyRecord | None:
        async with AsyncSession(self._engine) as session:
            company = await session.get(Company, company_id)
            return _company_record(company) if company else None

    async def get_user(self, user_id: str) -> UserRecord | None:
        async with AsyncSession(self._engine) as session:
            loaded = await self._load_user(session, user_id)
        if loaded is None:
            return None
        user, memberships = loaded
        return UserRecord(
            id=user.id,
            email=user.email,
            name=user.name,
            is_active=user.is_active,
            memberships=tuple(memberships),
        )

    # -- writes ------------------------------------------------------------

    async def create_company(
        self,
        name: str,
        code: str,
        policy_mode: PolicyMode | str = PolicyMode.HYBRID,
        active: bool = True,
    ) -> CompanyRecord:
        async with AsyncSession(self._engine) as session:
            company = Company(name=name, code=code, policy_mode=str(policy_mode), active=active)
            session.add(company)
            try:
                await session.commit()
            except IntegrityError as exc:
                msg = f"Company name or code already exists: {name}/{code}"
                raise StorageError(msg) from exc
            await session.refresh(company)
            logger.info("company_created", company_id=company.id, name=name)
            return _company_record(company)

    async def set_policy_mode(
        self, company_id: str, policy_mode: PolicyMode | str | None
    ) -> CompanyRecord | None:
        mode = None if policy_mode is None else str(policy_mode)
        return await self._update_company(company_id, policy_mode=mode)

    async def set_company_active(self, company_id: str, active: bool) -> CompanyRecord | None:
        return await self._update_company(company_id, active=active)

    async def set_products(self, company_id: str, products: list[str]) -> CompanyRecord | None:
        return await self._update_company(company_id, products=list(products))

    async def create_user(self, email: str, name: str = "") -> UserRecord:
        async with AsyncSession(self._engine) as session:
            user = User(email=email, name=name or email, is_active=True)
            session.add(user)
            try:
                await session.commit()
            except IntegrityError as exc:
                msg = f"User already exists: {email}"
                raise StorageError(msg) from exc
            await session.refresh(user)
            logger.info("user_created", user_id=user.id, email=email)
            return UserRecord(id=user.id, email=user.email, name=user.name)

    async def create_user_with_memberships(
        self, email: str, name: str, memberships: Sequence[MembershipRecord]
    ) -> UserRecord:
        """Insert a user and its memberships in one transaction."""
        async with AsyncSession(self._engine) as session:
            user = User(email=email, name=name or email, is_active=True)
            session.add(user)
            try:
                await session.flush()
                for position, membership in enumerate(memberships):
                    session.add(
                        CompanyMembership(
                            user_id=user.id,
                            company_id=membership.company_id,
                            role=membership.role,
                            position=position,
                            **membership.grants.model_dump(),
                        )
                    )
                await session.commit()
            except IntegrityError as exc:
                msg = f"Cannot create user {email} with the given memberships"
                raise StorageError(msg) from exc
            await session.refresh(user)
            logger.info(
                "user_created",
                user_id=user.id,
                email=email,
                companies=[m.company_id for m in memberships],
            )
            return UserRecord(
                id=user.id, email=user.email, name=user.name, memberships=tuple(memberships)
            )

    async def upsert_membership(
        self, user_id: str, company_id: str, role: str, grants: RawGrants
    ) -> MembershipRecord:
        async with AsyncSession(self._engine) as session:
            stmt = select(CompanyMembership).where(
                col(CompanyMembership.user_id) == user_id,
                col(CompanyMembership.company_id) == company_id,
            )
            row = (await session.execute(stmt)).scalars().first()
            if row is None:
                count_stmt = (
                    select(func.count())
                    .select_from(CompanyMembership)
                    .where(col(CompanyMembership.user_id) == user_id)
                )
                position = (await session.execute(count_stmt)).scalar_one()
                row = CompanyMembership(
                    user_id=user_id, company_id=company_id, role=role, position=position
                )
            row.role = role
            row.can_upload_leads = grants.can_upload_leads
            row.can_receive_leads = grants.can_receive_leads
            row.can_distribute_leads = grants.can_distribute_leads
            row.can_distribute_identifiers = grants.can_distribute_identifiers
            row.can_create_user = grants.can_create_user
            session.add(row)
            try:
                await session.commit()
            except IntegrityError as exc:
                msg = f"Cannot save membership {user_id}/{company_id}"
                raise StorageError(msg) from exc
            await session.refresh(row)
            logger.info("membership_saved", user_id=user_id, company_id=company_id, role=role)
            return _membership_record(row)

    async def remove_membership(self, user_id: str, company_id: str) -> bool:
        async with AsyncSession(self._engine) as session:
            stmt = select(CompanyMembership).where(
                col(CompanyMembership.user_id) == user_id,
                col(CompanyMembership.company_id) == company_id,
            )
            row = (await session.execute(stmt)).scalars().first()
            if row is None:
                return False
            await session.delete(row)
            await session.commit()
            logger.info("membership_removed", user_id=user_id, company_id=company_id)
            return True

    async def _update_company(self, company_id: str, **updates: object) -> CompanyRecord | None:
        async with AsyncSession(self._engine) as session:
            company = await session.get(Company, company_id)
            if company is None:
                return None
            for field, value in updates.items():
                setattr(company, field, value)
            company.updated_at = _utc_now()
            session.add(company)
            await session.commit()
            await session.refresh(company)
            logger.info("company_updated", company_id=company_id, fields=sorted(updates))
            return _company_record(company)
