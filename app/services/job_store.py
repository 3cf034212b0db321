"""Persistence for source configuration, sync jobs and the per-source lock."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.core.errors import JobStateError
from app.core.logging import get_logger
from app.models.sources import GrantSource
from app.models.sync_jobs import SyncJob
from app.schemas.grants import SyncResult

log = get_logger("job_store")

STALE_JOB_MESSAGE = "Sync job timed out"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStore:
    """Narrow read/write interface the orchestrator uses against the database.

    Lock and job transitions are committed immediately so they are visible to
    other workers regardless of what happens to the page being processed.
    """

    def __init__(self, db: Session):
        self.db = db

    # -------------------------------------------------------------------------
    # Sources
    # -------------------------------------------------------------------------
    def get_source(self, source_key: str) -> Optional[GrantSource]:
        stmt = select(GrantSource).where(GrantSource.source_key == source_key)
        return self.db.execute(stmt).scalar_one_or_none()

    def list_sources(self) -> List[GrantSource]:
        stmt = select(GrantSource).order_by(GrantSource.source_key)
        return list(self.db.execute(stmt).scalars().all())

    def list_enabled_sources(self) -> List[GrantSource]:
        stmt = (
            select(GrantSource)
            .where(GrantSource.sync_enabled.is_(True))
            .order_by(GrantSource.source_key)
        )
        return list(self.db.execute(stmt).scalars().all())

    def acquire_lock(self, source: GrantSource) -> bool:
        """Conditional UPDATE; True only for the caller that flipped the flag."""
        stmt = (
            update(GrantSource)
            .where(GrantSource.id == source.id, GrantSource.sync_in_progress.is_(False))
            .values(sync_in_progress=True, sync_locked_at=_utcnow())
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        self.db.commit()
        self.db.refresh(source)
        return result.rowcount == 1

    def release_lock(self, source: GrantSource) -> None:
        stmt = (
            update(GrantSource)
            .where(GrantSource.id == source.id)
            .values(sync_in_progress=False, sync_locked_at=None)
            .execution_options(synchronize_session=False)
        )
        self.db.execute(stmt)
        self.db.commit()
        self.db.refresh(source)

    def advance_watermark(self, source: GrantSource, ts: datetime) -> None:
        source.last_sync_at = ts
        self.db.add(source)
        self.db.commit()

    # -------------------------------------------------------------------------
    # Jobs
    # -------------------------------------------------------------------------
    def create_job(self, source: GrantSource, job_type: str, started_at: Optional[datetime] = None) -> SyncJob:
        job = SyncJob(
            source_id=source.id,
            job_type=job_type,
            status="running",
            started_at=started_at or _utcnow(),
            errors=[],
        )
        self.db.add(job)
        self.db.commit()
        self.db.refresh(job)
        return job

    def complete_job(self, job: SyncJob, result: SyncResult, completed_at: Optional[datetime] = None) -> SyncJob:
        self._ensure_mutable(job)
        self._apply_result(job, result)
        job.status = "completed"
        job.completed_at = completed_at or _utcnow()
        self.db.add(job)
        self.db.commit()
        return job

    def fail_job(
        self,
        job: SyncJob,
        message: str,
        result: Optional[SyncResult] = None,
        completed_at: Optional[datetime] = None,
    ) -> SyncJob:
        self._ensure_mutable(job)
        if result is not None:
            self._apply_result(job, result)
        job.status = "failed"
        job.error_message = message
        job.completed_at = completed_at or _utcnow()
        self.db.add(job)
        self.db.commit()
        return job

    def get_jobs(self, source: GrantSource, limit: int = 10) -> List[SyncJob]:
        stmt = (
            select(SyncJob)
            .where(SyncJob.source_id == source.id)
            .order_by(SyncJob.started_at.desc(), SyncJob.created_at.desc())
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    def get_recent_jobs(self, limit: int = 10) -> List[SyncJob]:
        stmt = select(SyncJob).order_by(SyncJob.started_at.desc()).limit(limit)
        return list(self.db.execute(stmt).scalars().all())

    def get_latest_job(self, source: Optional[GrantSource] = None) -> Optional[SyncJob]:
        stmt = select(SyncJob)
        if source is not None:
            stmt = stmt.where(SyncJob.source_id == source.id)
        stmt = stmt.order_by(SyncJob.started_at.desc()).limit(1)
        return self.db.execute(stmt).scalar_one_or_none()

    def fail_stale_jobs(self, older_than: datetime) -> int:
        """Fail ``running`` jobs started before ``older_than`` and free their sources."""
        stmt = select(SyncJob).where(SyncJob.status == "running", SyncJob.started_at < older_than)
        stale = list(self.db.execute(stmt).scalars().all())
        if not stale:
            return 0

        now = _utcnow()
        for job in stale:
            job.status = "failed"
            job.error_message = STALE_JOB_MESSAGE
            job.completed_at = now
            self.db.add(job)

        source_ids = {job.source_id for job in stale}
        for source in self.db.execute(select(GrantSource).where(GrantSource.id.in_(source_ids))).scalars():
            source.sync_in_progress = False
            source.sync_locked_at = None
        self.db.commit()
        log.warning(f"Marked {len(stale)} stale sync job(s) as failed")
        return len(stale)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------
    @staticmethod
    def _ensure_mutable(job: SyncJob) -> None:
        if job.is_terminal:
            raise JobStateError(f"Sync job {job.id} is already {job.status}")

    @staticmethod
    def _apply_result(job: SyncJob, result: SyncResult) -> None:
        job.grants_fetched = result.grants_fetched
        job.grants_created = result.grants_created
        job.grants_updated = result.grants_updated
        job.grants_skipped = result.grants_skipped
        job.duplicates_found = result.duplicates_found
        # reassign: in-place mutation of a JSON column is not tracked
        job.errors = [error.model_dump(mode="json") for error in result.errors]
