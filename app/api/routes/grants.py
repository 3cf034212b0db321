"""Grant routes - Catalog read access and manual entry."""

import time
import uuid
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.core.errors import SourceNotFound
from app.core.logging import get_logger
from app.schemas.api import CatalogGrantOut, CustomGrantResponse, DuplicateOut, GrantsResponse
from app.schemas.grants import CustomGrantInput
from app.services.catalog_service import CatalogService
from app.services.data_service import DataService
from app.services.duplicate_service import DuplicateFinder

router = APIRouter(prefix="/grants", tags=["grants"])
log = get_logger("grant_routes")


@router.get("", response_model=GrantsResponse)
def list_grants(
    source_key: Optional[str] = Query(None, description="Filter by source key"),
    agency: Optional[str] = Query(None, description="Filter by agency (case-insensitive partial match)"),
    status: Optional[Literal["forecasted", "posted", "closed", "archived"]] = Query(None),
    keyword: Optional[str] = Query(None, description="Title contains (case-insensitive)"),
    active_only: bool = Query(False),
    sort_by: Literal["close_date", "posted_date", "title", "estimated_funding", "last_synced_at"] = Query("close_date"),
    sort_order: Literal["asc", "desc"] = Query("asc"),
    limit: int = Query(50, ge=1, le=500, description="Number of records to return (max 500)"),
    offset: int = Query(0, ge=0, description="Number of records to skip"),
    db: Session = Depends(get_db),
):
    """
    List catalog grants across all sources.

    Includes request metadata (request_id, latency_ms).
    """
    start = time.perf_counter()
    request_id = str(uuid.uuid4())

    service = DataService(db)
    filters = dict(source_key=source_key, agency=agency, status=status, keyword=keyword, active_only=active_only)
    results = service.get_grants(sort_by=sort_by, sort_order=sort_order, limit=limit, offset=offset, **filters)
    total = service.count_grants(**filters)

    latency_ms = int((time.perf_counter() - start) * 1000)

    return GrantsResponse(
        request_id=request_id,
        api_latency_ms=latency_ms,
        total_count=total,
        data=[CatalogGrantOut.model_validate(r) for r in results],
    )


@router.post("/custom", status_code=201, response_model=CustomGrantResponse)
def create_custom_grant(payload: CustomGrantInput, db: Session = Depends(get_db)):
    """Manually enter a grant that has no upstream API."""
    try:
        validation, grant = CatalogService(db).create_custom_grant(payload)
    except SourceNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))

    if not validation.valid:
        return JSONResponse(status_code=400, content={"error": "Validation failed", "details": validation.errors})

    return CustomGrantResponse(success=True, grant=CatalogGrantOut.model_validate(grant))


@router.get("/{grant_id}", response_model=CatalogGrantOut)
def get_grant(grant_id: str, db: Session = Depends(get_db)):
    grant = DataService(db).get_grant(grant_id)
    if not grant:
        raise HTTPException(status_code=404, detail=f"Grant not found: {grant_id}")
    return CatalogGrantOut.model_validate(grant)


@router.get("/{grant_id}/duplicates", response_model=list[DuplicateOut])
def get_grant_duplicates(grant_id: str, db: Session = Depends(get_db)):
    """Recorded potential duplicates where this grant is the primary."""
    grant = DataService(db).get_grant(grant_id)
    if not grant:
        raise HTTPException(status_code=404, detail=f"Grant not found: {grant_id}")
    return [DuplicateOut.model_validate(d) for d in DuplicateFinder(db).get_duplicates(grant.id)]
