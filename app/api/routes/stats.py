"""Stats routes - Sync observability."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.schemas.api import SourceSummary, SyncJobOut
from app.services.data_service import DataService

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("", response_model=list[SyncJobOut])
def get_sync_stats(
    source_key: Optional[str] = Query(None, description="Filter by source key"),
    status: Optional[str] = Query(None, description="Filter by status (running, completed, failed)"),
    limit: int = Query(10, ge=1, le=50, description="Number of jobs to return"),
    db: Session = Depends(get_db),
):
    """
    Recent sync jobs with counters and error messages.

    Use this for monitoring sync health and debugging failures.
    """
    service = DataService(db)
    jobs = service.get_sync_jobs(source_key=source_key, status=status, limit=limit)
    return [SyncJobOut.model_validate(job) for job in jobs]


@router.get("/sources", response_model=list[SourceSummary])
def get_sources_summary(db: Session = Depends(get_db)):
    """Per-source grant counts, watermark and last job status."""
    service = DataService(db)
    return [SourceSummary(**row) for row in service.get_sources_summary()]
