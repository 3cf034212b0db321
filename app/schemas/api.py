from datetime import datetime
from typing import Any, Literal, Optional
from uuid import UUID

from pydantic import BaseModel


class SyncJobOut(BaseModel):
    """Persisted sync run with counters and per-record errors."""

    id: UUID
    source_id: UUID
    job_type: str
    status: str
    grants_fetched: int
    grants_created: int
    grants_updated: int
    grants_skipped: int
    duplicates_found: int
    error_message: Optional[str] = None
    errors: list[dict[str, Any]] = []
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SourceOut(BaseModel):
    source_key: str
    source_name: str
    source_type: str
    api_enabled: bool
    sync_enabled: bool
    sync_frequency: str
    rate_limit_per_minute: Optional[int] = None
    last_sync_at: Optional[datetime] = None
    sync_in_progress: bool

    class Config:
        from_attributes = True


class CatalogGrantOut(BaseModel):
    id: UUID
    source_key: str
    external_id: str
    title: str
    description: Optional[str] = None
    agency: Optional[str] = None
    opportunity_number: Optional[str] = None
    estimated_funding: Optional[float] = None
    award_floor: Optional[float] = None
    award_ceiling: Optional[float] = None
    expected_awards: Optional[int] = None
    funding_category: Optional[str] = None
    eligibility_applicants: Optional[list[str]] = None
    cost_sharing_required: Optional[bool] = None
    posted_date: Optional[datetime] = None
    open_date: Optional[datetime] = None
    close_date: Optional[datetime] = None
    opportunity_status: str
    cfda_numbers: Optional[list[str]] = None
    aln_codes: Optional[list[str]] = None
    source_url: Optional[str] = None
    application_url: Optional[str] = None
    content_hash: Optional[str] = None
    first_seen_at: Optional[datetime] = None
    last_updated_at: Optional[datetime] = None
    last_synced_at: Optional[datetime] = None
    is_active: bool

    class Config:
        from_attributes = True


class GrantsResponse(BaseModel):
    request_id: str
    api_latency_ms: int
    total_count: int
    data: list[CatalogGrantOut]


class DuplicateOut(BaseModel):
    primary_grant_id: UUID
    duplicate_grant_id: UUID
    match_score: float
    match_method: str
    is_confirmed: bool
    detected_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class HealthResponse(BaseModel):
    database: str
    last_sync_status: str | None


class SyncTriggerRequest(BaseModel):
    source_key: str
    job_type: Literal["full", "incremental", "single"] = "full"
    external_id: Optional[str] = None
    detect_duplicates: bool = False


class ScheduledSyncSummary(BaseModel):
    """One source's outcome within a scheduler batch."""

    source_key: str
    status: str
    grants_fetched: int = 0
    grants_created: int = 0
    grants_updated: int = 0
    error: Optional[str] = None


class ScheduledSyncResponse(BaseModel):
    message: str
    timestamp: datetime
    results: list[ScheduledSyncSummary]


class AdapterOut(BaseModel):
    key: str
    name: str
    type: str


class DuplicateScanResponse(BaseModel):
    grant_id: UUID
    duplicates_found: int


class CustomGrantResponse(BaseModel):
    success: bool
    grant: CatalogGrantOut


class SourceSummary(BaseModel):
    source_key: str
    source_name: str
    sync_enabled: bool
    total_grants: int
    active_grants: int
    last_sync_at: Optional[datetime] = None
    last_job_status: Optional[str] = None
    last_job_at: Optional[datetime] = None
