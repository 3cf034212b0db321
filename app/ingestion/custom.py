"""Manual-entry source: no upstream API, records arrive through the API."""

from __future__ import annotations

import secrets
import time
from typing import Any, Dict, Optional

from app.schemas.grants import (
    CustomGrantInput,
    PaginationInfo,
    SourceFetchResponse,
    SourceSearchParams,
    ValidationResult,
)
from .base import BaseGrantAdapter

MAX_TITLE_LENGTH = 500


def generate_external_id() -> str:
    return f"custom_{int(time.time() * 1000)}_{secrets.token_hex(3)}"


class CustomGrantAdapter(BaseGrantAdapter):
    name = "Custom Grants"

    async def fetch_grants(self, params: SourceSearchParams) -> SourceFetchResponse:
        return SourceFetchResponse(
            grants=[],
            pagination=PaginationInfo(page=params.page, limit=params.limit, total=0, has_more=False),
        )

    async def fetch_single_grant(self, external_id: str) -> Optional[Dict[str, Any]]:
        return None

    def _map(self, raw: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "external_id": raw.get("external_id") or generate_external_id(),
            "title": self.clean_text(raw.get("title")),
            "description": self.clean_text(raw.get("description")),
            "agency": self.clean_text(raw.get("agency")),
            "opportunity_number": raw.get("opportunity_number"),
            "estimated_funding": self.parse_number(raw.get("estimated_funding")),
            "award_floor": self.parse_number(raw.get("award_floor")),
            "award_ceiling": self.parse_number(raw.get("award_ceiling")),
            "expected_awards": self.parse_int(raw.get("expected_awards")),
            "funding_category": raw.get("funding_category"),
            "eligibility_applicants": self.as_list(raw.get("eligibility_applicants")),
            "cost_sharing_required": raw.get("cost_sharing_required"),
            "posted_date": self.parse_date(raw.get("open_date")),
            "open_date": self.parse_date(raw.get("open_date")),
            "close_date": self.parse_date(raw.get("close_date")),
            "opportunity_status": raw.get("opportunity_status") or "posted",
            "source_url": raw.get("source_url"),
            "application_url": raw.get("application_url"),
        }

    def validate_grant_input(self, data: CustomGrantInput) -> ValidationResult:
        errors = []

        if not data.title or not data.title.strip():
            errors.append("Title is required")
        elif len(data.title) > MAX_TITLE_LENGTH:
            errors.append("Title must be less than 500 characters")

        open_date = self.parse_date(data.open_date)
        close_date = self.parse_date(data.close_date)
        if open_date and close_date and close_date < open_date:
            errors.append("Close date must be after open date")

        if data.award_floor is not None and data.award_ceiling is not None and data.award_floor > data.award_ceiling:
            errors.append("Award floor cannot exceed award ceiling")

        if data.award_floor is not None and data.award_floor < 0:
            errors.append("Award floor must be a positive number")
        if data.award_ceiling is not None and data.award_ceiling < 0:
            errors.append("Award ceiling must be a positive number")
        if data.estimated_funding is not None and data.estimated_funding < 0:
            errors.append("Estimated funding must be a positive number")
        if data.expected_awards is not None and data.expected_awards < 0:
            errors.append("Expected awards must be a positive number")

        return ValidationResult(valid=not errors, errors=errors)
