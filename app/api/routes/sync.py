"""Sync routes - Trigger and inspect grant sync jobs."""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from sqlalchemy.orm import Session

from app.api.deps import get_api_keys, get_db
from app.core.config import settings
from app.core.errors import (
    MissingExternalId,
    SourceNotFound,
    SourceUnavailable,
    SyncInProgress,
    UnsupportedSource,
)
from app.core.logging import get_logger
from app.ingestion.registry import available_adapters
from app.schemas.api import (
    AdapterOut,
    DuplicateScanResponse,
    ScheduledSyncResponse,
    SyncJobOut,
    SyncTriggerRequest,
)
from app.services.duplicate_service import DuplicateFinder
from app.services.sync_service import SyncService

router = APIRouter(prefix="/sync", tags=["sync"])
log = get_logger("sync_routes")


@router.post("/run", response_model=SyncJobOut)
async def trigger_sync(
    request: SyncTriggerRequest,
    db: Session = Depends(get_db),
    api_keys: dict = Depends(get_api_keys),
):
    """
    Trigger a sync for one source.

    Job types:
    - full: every page the source returns
    - incremental: only records modified since the last successful sync
      (falls back to full when the source has never synced)
    - single: one grant by external_id
    """
    log.info(f"Sync triggered for {request.source_key} ({request.job_type})")

    service = SyncService(db, api_keys=api_keys, duplicate_finder=DuplicateFinder(db))
    try:
        job = await service.run_sync(
            request.source_key,
            job_type=request.job_type,
            external_id=request.external_id,
            detect_duplicates=request.detect_duplicates,
        )
    except MissingExternalId as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except SourceNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except SyncInProgress as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except UnsupportedSource as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except SourceUnavailable as exc:
        raise HTTPException(status_code=502, detail=str(exc))

    return SyncJobOut.model_validate(job)


@router.post("/run-all", response_model=ScheduledSyncResponse)
async def trigger_sync_all(
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db),
    api_keys: dict = Depends(get_api_keys),
):
    """
    Scheduler trigger: sync every enabled source.

    Requires ``Authorization: Bearer <CRON_SECRET>`` when CRON_SECRET is set.
    A failing source is reported in ``results`` and does not stop the others.
    """
    if settings.CRON_SECRET and authorization != f"Bearer {settings.CRON_SECRET}":
        raise HTTPException(status_code=401, detail="Unauthorized")

    log.info("Scheduled sync triggered for all sources")
    service = SyncService(db, api_keys=api_keys)
    results = await service.run_scheduled()

    return ScheduledSyncResponse(
        message="Grant sync completed",
        timestamp=datetime.now(timezone.utc),
        results=results,
    )


@router.get("/history", response_model=list[SyncJobOut])
def get_sync_history(
    source_key: str = Query(..., description="Source to list jobs for"),
    limit: int = Query(10, ge=1, le=100, description="Number of jobs to return"),
    db: Session = Depends(get_db),
):
    """Recent sync jobs for a source, newest first."""
    service = SyncService(db)
    return [SyncJobOut.model_validate(job) for job in service.get_sync_history(source_key, limit=limit)]


@router.get("/adapters", response_model=list[AdapterOut])
def list_adapters():
    """Source keys with an adapter implementation."""
    return [AdapterOut(**adapter) for adapter in available_adapters()]


@router.post("/duplicates/{grant_id}", response_model=DuplicateScanResponse)
def detect_duplicates(grant_id: UUID, db: Session = Depends(get_db)):
    """Run duplicate detection for one catalog grant."""
    found = DuplicateFinder(db).find_duplicates(grant_id)
    return DuplicateScanResponse(grant_id=grant_id, duplicates_found=found)
