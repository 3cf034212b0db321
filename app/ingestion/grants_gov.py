"""Grants.gov source implementation."""

from __future__ import annotations

from typing import Any, Dict, Optional

from app.core.errors import SourceUnavailable
from app.core.logging import get_logger
from app.schemas.grants import SourceFetchResponse, SourceSearchParams, PaginationInfo
from .base import BaseGrantAdapter

log = get_logger("ingestion.grants_gov")

STATUS_MAP = {
    "forecasted": "forecasted",
    "posted": "posted",
    "closed": "closed",
    "archived": "archived",
}

DETAIL_URL = "https://www.grants.gov/search-results-detail/{id}"


def _first(*values: Any) -> Any:
    for value in values:
        if value not in (None, ""):
            return value
    return None


class GrantsGovAdapter(BaseGrantAdapter):
    """Federal registry: search2 for pages, fetchOpportunity for details."""

    name = "Grants.gov"
    default_base_url = "https://api.grants.gov/v1/api"
    supports_detail_fetch = True

    async def fetch_grants(self, params: SourceSearchParams) -> SourceFetchResponse:
        body: Dict[str, Any] = {
            "rows": params.limit,
            "startRecordNum": (params.page - 1) * params.limit,
            "oppStatuses": "|".join(params.statuses) if params.statuses else "posted|forecasted",
        }
        if params.keyword:
            body["keyword"] = params.keyword
        if params.categories:
            body["fundingCategories"] = "|".join(params.categories)
        if params.agencies:
            body["agencies"] = "|".join(params.agencies)
        # search2 has no modified-since filter; incremental runs see the full window.

        resp = await self._request("POST", f"{self.base_url}/search2", json=body)
        self._raise_for_status(resp)
        payload = self._json(resp, self.name)

        data = payload.get("data") or {}
        hits = data.get("oppHits") or []
        try:
            total = int(data.get("hitCount") or 0)
            start = int(data.get("startRecord") or body["startRecordNum"])
            response = SourceFetchResponse(
                grants=hits,
                pagination=PaginationInfo(
                    page=params.page,
                    limit=params.limit,
                    total=total,
                    has_more=start + len(hits) < total,
                ),
            )
        except (TypeError, ValueError) as exc:
            raise SourceUnavailable(
                f"{self.name} returned an unexpected search payload: {exc}",
                status_code=resp.status_code,
                body=resp.text[:2000],
            ) from exc

        log.info(f"Fetched {len(hits)} records from Grants.gov (page={params.page}, total={total})")
        return response

    async def fetch_single_grant(self, external_id: str) -> Optional[Dict[str, Any]]:
        try:
            opportunity_id: Any = int(external_id)
        except (TypeError, ValueError):
            opportunity_id = external_id

        resp = await self._request(
            "POST",
            f"{self.base_url}/fetchOpportunity",
            json={"opportunityId": opportunity_id},
        )
        if resp.status_code == 404:
            return None
        self._raise_for_status(resp)
        payload = self._json(resp, self.name)
        return payload.get("data") or None

    def _map(self, raw: Dict[str, Any]) -> Dict[str, Any]:
        opp = self._flatten_detail(raw)
        external_id = _first(opp.get("id"), opp.get("number"))
        status = STATUS_MAP.get(str(opp.get("oppStatus") or "").lower(), "posted")
        cost_sharing = opp.get("costSharing")
        link = DETAIL_URL.format(id=external_id) if external_id is not None else None

        return {
            "external_id": str(external_id) if external_id is not None else None,
            "title": self.clean_text(opp.get("title")),
            "description": self.clean_text(opp.get("description")),
            "agency": self.clean_text(_first(opp.get("agencyName"), opp.get("agency"))),
            "opportunity_number": opp.get("number"),
            "estimated_funding": self.parse_number(opp.get("estimatedFunding")),
            "award_floor": self.parse_number(opp.get("awardFloor")),
            "award_ceiling": self.parse_number(opp.get("awardCeiling")),
            "expected_awards": self.parse_int(opp.get("expectedAwards")),
            "funding_category": self.clean_text(opp.get("category")),
            "eligibility_applicants": self.as_list(opp.get("eligibleApplicants")),
            "cost_sharing_required": (
                "yes" in str(cost_sharing).lower() if isinstance(cost_sharing, str) else cost_sharing
            ),
            "posted_date": self.parse_date(opp.get("openDate")),
            "open_date": self.parse_date(opp.get("openDate")),
            "close_date": self.parse_date(opp.get("closeDate")),
            "opportunity_status": status,
            "cfda_numbers": self.as_list(opp.get("cfdaList")),
            "aln_codes": self.as_list(opp.get("alnist")),
            "source_url": link,
            "application_url": link,
        }

    @staticmethod
    def _flatten_detail(raw: Dict[str, Any]) -> Dict[str, Any]:
        """fetchOpportunity nests most fields under ``synopsis``; lift them to search-hit names."""
        if "synopsis" not in raw and "opportunityTitle" not in raw:
            return raw

        synopsis = raw.get("synopsis") or {}
        cfdas = raw.get("cfdas") or []
        applicants = synopsis.get("applicantTypes") or []
        flat = dict(raw)
        flat.update(
            {
                "number": _first(raw.get("number"), raw.get("opportunityNumber")),
                "title": _first(raw.get("title"), raw.get("opportunityTitle")),
                "agencyName": _first(raw.get("agencyName"), synopsis.get("agencyName"), raw.get("owningAgencyCode")),
                "description": _first(raw.get("description"), synopsis.get("synopsisDesc")),
                "estimatedFunding": _first(raw.get("estimatedFunding"), synopsis.get("estimatedFunding")),
                "awardFloor": _first(raw.get("awardFloor"), synopsis.get("awardFloor")),
                "awardCeiling": _first(raw.get("awardCeiling"), synopsis.get("awardCeiling")),
                "expectedAwards": _first(raw.get("expectedAwards"), synopsis.get("numberOfAwards")),
                "costSharing": _first(raw.get("costSharing"), synopsis.get("costSharing")),
                "openDate": _first(
                    raw.get("openDate"), synopsis.get("postingDateStr"), synopsis.get("postingDate")
                ),
                "closeDate": _first(
                    raw.get("closeDate"), synopsis.get("responseDateStr"), synopsis.get("responseDate")
                ),
                "cfdaList": _first(
                    raw.get("cfdaList"),
                    [c.get("cfdaNumber") for c in cfdas if isinstance(c, dict) and c.get("cfdaNumber")],
                ),
                "eligibleApplicants": _first(
                    raw.get("eligibleApplicants"),
                    [a.get("description") for a in applicants if isinstance(a, dict) and a.get("description")],
                ),
            }
        )
        return flat
