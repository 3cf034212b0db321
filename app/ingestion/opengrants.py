"""OpenGrants aggregator source implementation."""

from __future__ import annotations

from typing import Any, Dict, Optional

from app.core.errors import SourceUnavailable
from app.core.logging import get_logger
from app.schemas.grants import PaginationInfo, SourceFetchResponse, SourceSearchParams
from .base import BaseGrantAdapter

log = get_logger("ingestion.opengrants")

STATUS_MAP = {
    "forecasted": "forecasted",
    "open": "posted",
    "posted": "posted",
    "closed": "closed",
    "archived": "archived",
}


class OpenGrantsAdapter(BaseGrantAdapter):
    name = "OpenGrants"
    default_base_url = "https://api.opengrants.io/v1"

    def _headers(self) -> Dict[str, str]:
        if not self.validate_credentials():
            raise SourceUnavailable("OpenGrants API key is required")
        return {"Authorization": f"Bearer {self.api_key}"}

    async def fetch_grants(self, params: SourceSearchParams) -> SourceFetchResponse:
        headers = self._headers()
        query: Dict[str, Any] = {"page": params.page, "limit": params.limit}
        if params.keyword:
            query["q"] = params.keyword
        if params.modified_since:
            query["modified_since"] = params.modified_since.isoformat()
        if params.statuses:
            query["status"] = ",".join(params.statuses)

        resp = await self._request("GET", f"{self.base_url}/opportunities", params=query, headers=headers)
        self._raise_for_status(resp)
        data = self._json(resp, self.name)

        grants = data.get("opportunities") or []
        log.info(f"Fetched {len(grants)} records from OpenGrants (page={params.page})")
        return SourceFetchResponse(
            grants=grants,
            pagination=PaginationInfo(
                page=data.get("page") or params.page,
                limit=data.get("limit") or params.limit,
                total=data.get("total") or 0,
                has_more=bool(data.get("has_more")),
            ),
        )

    async def fetch_single_grant(self, external_id: str) -> Optional[Dict[str, Any]]:
        headers = self._headers()
        resp = await self._request("GET", f"{self.base_url}/opportunities/{external_id}", headers=headers)
        if resp.status_code == 404:
            return None
        self._raise_for_status(resp)
        return self._json(resp, self.name).get("opportunity")

    def _map(self, raw: Dict[str, Any]) -> Dict[str, Any]:
        external_id = raw.get("id")
        cfda = raw.get("cfda_number")
        return {
            "external_id": str(external_id) if external_id not in (None, "") else None,
            "title": self.clean_text(raw.get("title")),
            "description": self.clean_text(raw.get("description")),
            "agency": self.clean_text(raw.get("agency")),
            "opportunity_number": raw.get("opportunity_number"),
            "estimated_funding": self.parse_number(raw.get("estimated_funding")),
            "award_floor": self.parse_number(raw.get("award_floor")),
            "award_ceiling": self.parse_number(raw.get("award_ceiling")),
            "expected_awards": self.parse_int(raw.get("expected_awards")),
            "funding_category": self.clean_text(raw.get("category")),
            "eligibility_applicants": self.as_list(raw.get("eligibility")),
            "posted_date": self.parse_date(raw.get("open_date")),
            "open_date": self.parse_date(raw.get("open_date")),
            "close_date": self.parse_date(raw.get("close_date")),
            "opportunity_status": STATUS_MAP.get(str(raw.get("status") or "").lower(), "posted"),
            "cfda_numbers": [str(cfda)] if cfda else None,
            "source_url": raw.get("source_url"),
            "application_url": raw.get("source_url"),
        }
