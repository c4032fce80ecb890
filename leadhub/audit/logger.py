"""Audit logger: immutable, insert-only audit trail.

Uses its own DB session so audit entries survive transaction rollbacks.
Details JSON is sanitized (sensitive fields stripped, 10KB max).
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import structlog
from sqlmodel.ext.asyncio.session import AsyncSession

from leadhub.models.database import AuditLog

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from leadhub.policy.guard import AccessDecision, Requirement

logger = structlog.get_logger(__name__)

_SENSITIVE_FIELDS = frozenset(
    {
        "password",
        "secret",
        "token",
        "api_key",
        "authorization",
        "cookie",
        "session",
    }
)

_MAX_DETAILS_BYTES = 10_240  # 10KB


def _sanitize_details(details: dict[str, Any]) -> str:
    """Strip sensitive fields and enforce size limit."""
    sanitized = {k: v for k, v in details.items() if k.lower() not in _SENSITIVE_FIELDS}
    encoded = json.dumps(sanitized, default=str)
    if len(encoded) > _MAX_DETAILS_BYTES:
        encoded = encoded[:_MAX_DETAILS_BYTES]
    return encoded


class AuditLogger:
    """Insert-only audit logger with its own DB session.

    The separate session ensures audit entries persist even if the
    calling transaction rolls back.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def log(
        self,
        *,
        company_id: str,
        user_id: str,
        action: str,
        resource_type: str = "",
        resource_id: str = "",
        details: dict[str, Any] | None = None,
        ip_address: str = "",
        request_id: str = "",
    ) -> None:
        """Write an audit log entry."""
        entry = AuditLog(
            company_id=company_id,
            user_id=user_id,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            details_json=_sanitize_details(details or {}),
            ip_address=ip_address,
            request_id=request_id,
        )
        try:
            async with AsyncSession(self._engine) as session:
                session.add(entry)
                await session.commit()
        except Exception:
            # Audit must never break the request: log and continue
            logger.exception("audit_log_failed", action=action, company_id=company_id)


async def audit(
    *,
    company_id: str,
    user_id: str,
    action: str,
    resource_type: str = "",
    resource_id: str = "",
    details: dict[str, Any] | None = None,
    ip_address: str = "",
    request_id: str = "",
) -> None:
    """Convenience wrapper: persists the entry if the database is available.

    Always emits a structlog event; the DB write no-ops when USE_DATABASE=false.
    """
    from leadhub.config.settings import get_settings

    logger.info(
        "audit_event",
        action=action,
        company_id=company_id,
        user_id=user_id,
        resource_type=resource_type,
        resource_id=resource_id,
    )
    settings = get_settings()
    if not settings.use_database:
        return

    from leadhub.storage.database import get_engine

    al = AuditLogger(get_engine())
    await al.log(
        company_id=company_id,
        user_id=user_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        details=details,
        ip_address=ip_address,
        request_id=request_id,
    )


async def audit_denial(
    *,
    user_id: str,
    company_id: str | None,
    requirement: Requirement | None,
    decision: AccessDecision,
    resource_type: str = "",
    request_id: str = "",
) -> None:
    """Record why an authorization check failed. The reason never reaches the client."""
    reason = str(decision.reason) if decision.reason else ""
    logger.warning(
        "authorization_denied",
        user_id=user_id,
        company_id=company_id,
        requirement=str(requirement) if requirement else "",
        reason=reason,
    )
    await audit(
        company_id=company_id or "",
        user_id=user_id,
        action="authorization.denied",
        resource_type=resource_type,
        details={"requirement": str(requirement) if requirement else "", "reason": reason},
        request_id=request_id,
    )
