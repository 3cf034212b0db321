"""Canonical grant shape and adapter I/O contracts."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

OpportunityStatus = Literal["forecasted", "posted", "closed", "archived"]
JobType = Literal["full", "incremental", "single"]


class NormalizedGrant(BaseModel):
    """Shape every adapter's normalize_grant must produce."""

    source_key: str
    external_id: str = Field(..., min_length=1)

    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    agency: Optional[str] = None
    opportunity_number: Optional[str] = None

    estimated_funding: Optional[float] = None
    award_floor: Optional[float] = None
    award_ceiling: Optional[float] = None
    expected_awards: Optional[int] = None

    funding_category: Optional[str] = None
    eligibility_applicants: Optional[List[str]] = None
    cost_sharing_required: Optional[bool] = None

    posted_date: Optional[datetime] = None
    open_date: Optional[datetime] = None
    close_date: Optional[datetime] = None

    opportunity_status: OpportunityStatus = "posted"

    cfda_numbers: Optional[List[str]] = None
    aln_codes: Optional[List[str]] = None

    source_url: Optional[str] = None
    application_url: Optional[str] = None

    content_hash: str

    @property
    def is_active(self) -> bool:
        return self.opportunity_status in ("posted", "forecasted")


class SourceSearchParams(BaseModel):
    keyword: Optional[str] = None
    categories: List[str] = Field(default_factory=list)
    agencies: List[str] = Field(default_factory=list)
    statuses: List[str] = Field(default_factory=list)
    page: int = Field(1, ge=1)
    limit: int = Field(100, ge=1)
    modified_since: Optional[datetime] = None  # incremental watermark


class PaginationInfo(BaseModel):
    page: int
    limit: int
    total: int
    has_more: bool


class SourceFetchResponse(BaseModel):
    grants: List[Dict[str, Any]]
    pagination: PaginationInfo
    metadata: Optional[Dict[str, Any]] = None


class SyncError(BaseModel):
    grant_id: Optional[str] = None
    error_code: str
    error_message: str
    timestamp: datetime


class SyncResult(BaseModel):
    """Counters and per-record errors accumulated by one run."""

    grants_fetched: int = 0
    grants_created: int = 0
    grants_updated: int = 0
    grants_skipped: int = 0
    duplicates_found: int = 0
    errors: List[SyncError] = Field(default_factory=list)

    def add_error(self, code: str, message: str, timestamp: datetime, grant_id: Optional[str] = None) -> None:
        self.errors.append(SyncError(grant_id=grant_id, error_code=code, error_message=message, timestamp=timestamp))

    def record(self, outcome: str) -> None:
        if outcome == "created":
            self.grants_created += 1
        elif outcome == "updated":
            self.grants_updated += 1
        elif outcome == "skipped":
            self.grants_skipped += 1


class CustomGrantInput(BaseModel):
    """Manually entered grant (no upstream API)."""

    title: Optional[str] = None
    description: Optional[str] = None
    agency: Optional[str] = None
    opportunity_number: Optional[str] = None

    estimated_funding: Optional[float] = None
    award_floor: Optional[float] = None
    award_ceiling: Optional[float] = None
    expected_awards: Optional[int] = None

    funding_category: Optional[str] = None
    eligibility_applicants: Optional[List[str]] = None
    cost_sharing_required: Optional[bool] = None

    open_date: Optional[str] = None
    close_date: Optional[str] = None
    opportunity_status: Optional[OpportunityStatus] = None

    source_url: Optional[str] = None
    application_url: Optional[str] = None


class ValidationResult(BaseModel):
    valid: bool
    errors: List[str] = Field(default_factory=list)
