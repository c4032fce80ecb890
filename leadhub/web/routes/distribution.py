"""Daily lead distribution switch, proxied to the distribution engine."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from leadhub.audit.logger import audit
from leadhub.integrations.distribution import DistributionClient
from leadhub.policy.guard import Requirement
from leadhub.policy.snapshot import SessionPolicySnapshot
from leadhub.types import Capability
from leadhub.web.auth.policy import enforce_any_company, enforce_company, get_policy
from leadhub.web.dependencies import get_distribution_client

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/admin/distribution", tags=["distribution"])

DISTRIBUTE = Requirement.tenant_admin_or(Capability.DISTRIBUTE_LEADS)


class ToggleRequest(BaseModel):
    active: bool


async def _authorize(
    request: Request, snapshot: SessionPolicySnapshot, company_id: str | None
) -> None:
    # Without a company, permission anywhere is enough; the engine scopes the switch.
    if company_id:
        await enforce_company(request, snapshot, company_id, DISTRIBUTE, "distribution")
    else:
        await enforce_any_company(request, snapshot, DISTRIBUTE, "distribution")


@router.get("/today")
async def get_today(
    request: Request,
    company_id: str | None = Query(default=None, alias="companyId"),
    snapshot: SessionPolicySnapshot = Depends(get_policy),
    client: DistributionClient = Depends(get_distribution_client),
) -> JSONResponse:
    await _authorize(request, snapshot, company_id)
    upstream = await client.get_today(company_id)
    return JSONResponse(upstream.body, status_code=upstream.status_code)


@router.post("/today/toggle")
async def toggle_today(
    body: ToggleRequest,
    request: Request,
    company_id: str | None = Query(default=None, alias="companyId"),
    snapshot: SessionPolicySnapshot = Depends(get_policy),
    client: DistributionClient = Depends(get_distribution_client),
) -> JSONResponse:
    await _authorize(request, snapshot, company_id)
    upstream = await client.toggle_today(company_id, body.active, activated_by=snapshot.user_id)
    await audit(
        company_id=company_id or "",
        user_id=snapshot.user_id,
        action="distribution.toggle",
        resource_type="distribution",
        details={"active": body.active, "upstream_status": upstream.status_code},
    )
    return JSONResponse(upstream.body, status_code=upstream.status_code)
