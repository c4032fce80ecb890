"""HTTP client for the external lead distribution engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from leadhub.exceptions import DistributionServiceError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class UpstreamResponse:
    """Status and JSON body relayed from the distribution engine."""

    status_code: int
    body: Any


class DistributionClient:
    """Forwards distribution switch requests. Assignment logic lives upstream."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    async def get_today(self, company_id: str | None) -> UpstreamResponse:
        return await self._request("GET", "/api/admin/distribution/today", company_id)

    async def toggle_today(
        self, company_id: str | None, active: bool, activated_by: str
    ) -> UpstreamResponse:
        return await self._request(
            "POST",
            "/api/admin/distribution/today/toggle",
            company_id,
            json={"active": active, "activatedBy": activated_by},
        )

    async def _request(
        self,
        method: str,
        path: str,
        company_id: str | None,
        json: dict[str, Any] | None = None,
    ) -> UpstreamResponse:
        params = {"companyId": company_id} if company_id else None
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                resp = await client.request(method, path, params=params, json=json)
        except httpx.HTTPError as exc:
            logger.warning("distribution_request_failed", path=path, error=str(exc))
            raise DistributionServiceError(str(exc)) from exc

        try:
            body = resp.json()
        except ValueError:
            body = {}
        logger.info(
            "distribution_request_done",
            path=path,
            company_id=company_id,
            status=resp.status_code,
        )
        return UpstreamResponse(status_code=resp.status_code, body=body)
