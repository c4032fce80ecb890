"""Company listing and product catalog routes."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field

from leadhub.audit.logger import audit
from leadhub.models.domain import CompanyRecord
from leadhub.policy.guard import Requirement, has_company_access
from leadhub.policy.resolver import coerce_policy_mode
from leadhub.policy.scope import visible_companies
from leadhub.policy.snapshot import SessionPolicySnapshot
from leadhub.storage.repositories.memberships import MembershipStore
from leadhub.types import Capability, CompanyScope, PolicyMode, RequirementKind
from leadhub.web.auth.policy import (
    FORBIDDEN_DETAIL,
    enforce_company,
    get_policy,
    require_active_tenant_admin,
)
from leadhub.web.dependencies import get_store

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/admin", tags=["companies"])

_MAX_PRODUCT_NAME = 80

CATALOG_EDIT = Requirement.tenant_admin_or(Capability.CREATE_USER)


class CompanyResponse(BaseModel):
    id: str
    name: str
    code: str
    active: bool
    policy_mode: PolicyMode


class ProductRequest(BaseModel):
    name: str = Field(min_length=1)


class ProductListRequest(BaseModel):
    products: list[str]


def _to_response(company: CompanyRecord) -> CompanyResponse:
    return CompanyResponse(
        id=company.id,
        name=company.name,
        code=company.code,
        active=company.active,
        policy_mode=coerce_policy_mode(company.policy_mode),
    )


def _clean_product(raw: str) -> str:
    return raw.strip()[:_MAX_PRODUCT_NAME]


@router.get("/companies", response_model=list[CompanyResponse])
async def list_companies(
    scope: CompanyScope = Query(default=CompanyScope.OWN),
    need: Capability | None = Query(default=None),
    mode: RequirementKind = Query(default=RequirementKind.TENANT_ADMIN_OR),
    active: bool = Query(default=False),
    snapshot: SessionPolicySnapshot = Depends(get_policy),
    store: MembershipStore = Depends(get_store),
) -> list[CompanyResponse]:
    """Companies visible to the actor.

    ``scope=global`` is honored only for super-tenant-admins. ``need`` narrows
    to companies where the actor holds the capability (or is tenant-admin,
    unless ``mode=flag_only``).
    """
    companies = await visible_companies(
        store,
        snapshot,
        scope,
        need,
        requirement_kind=mode,
        only_active=active,
    )
    return [_to_response(c) for c in companies]


@router.get("/receiver/companies", response_model=list[CompanyResponse])
async def list_receiver_companies(
    snapshot: SessionPolicySnapshot = Depends(require_active_tenant_admin),
    store: MembershipStore = Depends(get_store),
) -> list[CompanyResponse]:
    """Active receiver/hybrid companies among the actor's memberships."""
    companies = await visible_companies(store, snapshot, CompanyScope.OWN, only_active=True)
    return [
        _to_response(c)
        for c in companies
        if coerce_policy_mode(c.policy_mode) in (PolicyMode.RECEIVER, PolicyMode.HYBRID)
    ]


# ---------------------------------------------------------------------------
# Product catalog
# ---------------------------------------------------------------------------


async def _get_company_or_404(store: MembershipStore, company_id: str) -> CompanyRecord:
    company = await store.get_company(company_id)
    if company is None:
        raise HTTPException(status_code=404, detail="Company not found")
    return company


@router.get("/companies/{company_id}/products")
async def get_products(
    company_id: str,
    snapshot: SessionPolicySnapshot = Depends(get_policy),
    store: MembershipStore = Depends(get_store),
) -> dict[str, Any]:
    if not has_company_access(snapshot.per_membership, company_id):
        raise HTTPException(status_code=403, detail=FORBIDDEN_DETAIL)
    company = await _get_company_or_404(store, company_id)
    return {"products": list(company.products)}


@router.post("/companies/{company_id}/products")
async def add_product(
    company_id: str,
    body: ProductRequest,
    request: Request,
    snapshot: SessionPolicySnapshot = Depends(get_policy),
    store: MembershipStore = Depends(get_store),
) -> dict[str, Any]:
    await enforce_company(request, snapshot, company_id, CATALOG_EDIT, "products")
    name = _clean_product(body.name)
    if not name:
        raise HTTPException(status_code=400, detail="Missing name")
    company = await _get_company_or_404(store, company_id)
    products = list(company.products)
    if name not in products:
        products.append(name)
        await store.set_products(company_id, products)
        await audit(
            company_id=company_id,
            user_id=snapshot.user_id,
            action="products.add",
            resource_type="company",
            resource_id=company_id,
            details={"product": name},
        )
    return {"ok": True, "products": products}


@router.delete("/companies/{company_id}/products")
async def remove_product(
    company_id: str,
    body: ProductRequest,
    request: Request,
    snapshot: SessionPolicySnapshot = Depends(get_policy),
    store: MembershipStore = Depends(get_store),
) -> dict[str, Any]:
    await enforce_company(request, snapshot, company_id, CATALOG_EDIT, "products")
    name = body.name.strip()
    company = await _get_company_or_404(store, company_id)
    products = [p for p in company.products if p != name]
    if len(products) != len(company.products):
        await store.set_products(company_id, products)
        await audit(
            company_id=company_id,
            user_id=snapshot.user_id,
            action="products.remove",
            resource_type="company",
            resource_id=company_id,
            details={"product": name},
        )
    return {"ok": True, "products": products}


@router.put("/companies/{company_id}/products")
async def replace_products(
    company_id: str,
    body: ProductListRequest,
    request: Request,
    snapshot: SessionPolicySnapshot = Depends(get_policy),
    store: MembershipStore = Depends(get_store),
) -> dict[str, Any]:
    await enforce_company(request, snapshot, company_id, CATALOG_EDIT, "products")
    await _get_company_or_404(store, company_id)
    products = list(dict.fromkeys(p for p in map(_clean_product, body.products) if p))
    await store.set_products(company_id, products)
    await audit(
        company_id=company_id,
        user_id=snapshot.user_id,
        action="products.replace",
        resource_type="company",
        resource_id=company_id,
        details={"count": len(products)},
    )
    return {"ok": True, "products": products}
