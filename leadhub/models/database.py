"""SQLModel database table models."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import JSON, Column, DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel


def _utc_now() -> datetime:
    """Return current UTC time as an aware datetime for TIMESTAMP WITH TIME ZONE columns."""
    return datetime.now(UTC)


def _new_uuid() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Tenancy
# ---------------------------------------------------------------------------


class Company(SQLModel, table=True):
    __tablename__ = "companies"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    name: str = Field(unique=True)
    code: str = Field(unique=True)
    active: bool = Field(default=True)
    policy_mode: str | None = Field(default="hybrid")  # uploader | receiver | hybrid
    products: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    created_at: datetime = Field(default_factory=_utc_now, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=_utc_now, sa_type=DateTime(timezone=True))


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    email: str = Field(index=True, unique=True)
    name: str = ""
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=_utc_now, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=_utc_now, sa_type=DateTime(timezone=True))


class CompanyMembership(SQLModel, table=True):
    __tablename__ = "company_memberships"
    __table_args__ = (UniqueConstraint("user_id", "company_id", name="uq_membership_user_company"),)

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    company_id: str = Field(foreign_key="companies.id", index=True)
    position: int = Field(default=0)  # insertion order within the user's list
    role: str
    can_upload_leads: bool = Field(default=False)
    can_receive_leads: bool = Field(default=False)
    can_distribute_leads: bool = Field(default=False)
    can_distribute_identifiers: bool = Field(default=False)
    can_create_user: bool = Field(default=False)
    created_at: datetime = Field(default_factory=_utc_now, sa_type=DateTime(timezone=True))


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class LoginToken(SQLModel, table=True):
    __tablename__ = "login_tokens"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    token: str = Field(index=True, unique=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    created_by: str
    used: bool = Field(default=False)
    expires_at: datetime = Field(sa_type=DateTime(timezone=True))
    created_at: datetime = Field(default_factory=_utc_now, sa_type=DateTime(timezone=True))


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------


class AuditLog(SQLModel, table=True):
    __tablename__ = "audit_logs"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    company_id: str = Field(default="", index=True)
    user_id: str = Field(index=True)
    action: str = Field(index=True)
    resource_type: str = ""
    resource_id: str = ""
    details_json: str = "{}"
    ip_address: str = ""
    request_id: str = ""
    created_at: datetime = Field(default_factory=_utc_now, sa_type=DateTime(timezone=True))
