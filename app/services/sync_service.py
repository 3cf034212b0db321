"""Sync orchestrator: one run per source, plus the scheduler batch."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import (
    DETAIL_FETCH_ERROR,
    FETCH_ERROR,
    NORMALIZATION_ERROR,
    NOT_FOUND,
    PAGE_LIMIT_REACHED,
    PROCESSING_ERROR,
    GrantSyncError,
    MissingExternalId,
    SourceNotFound,
    SourceUnavailable,
    SyncInProgress,
    ValidationError,
)
from app.core.logging import get_logger
from app.ingestion.base import BaseGrantAdapter
from app.ingestion.registry import create_adapter
from app.models.sources import GrantSource
from app.models.sync_jobs import SyncJob
from app.schemas.api import ScheduledSyncSummary
from app.schemas.grants import JobType, SourceSearchParams, SyncResult
from app.services.catalog_service import CatalogService
from app.services.duplicate_service import DuplicateFinder
from app.services.job_store import JobStore

log = get_logger("sync_service")

AdapterFactory = Callable[..., BaseGrantAdapter]
Sleep = Callable[[float], Awaitable[Any]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SyncService:
    """Runs paginated, rate-limited, idempotent syncs for configured sources.

    Responsibilities:
    - Serialize runs per source via the advisory lock
    - Track every run as a SyncJob with counters and per-record errors
    - Normalize, hash and reconcile each record independently
    - Advance the incremental watermark only after a successful run
    """

    def __init__(
        self,
        db: Session,
        api_keys: Optional[Dict[str, str]] = None,
        adapter_factory: AdapterFactory = create_adapter,
        duplicate_finder: Optional[DuplicateFinder] = None,
        sleep: Sleep = asyncio.sleep,
        page_size: Optional[int] = None,
        max_pages: Optional[int] = None,
        fetch_full_details: Optional[bool] = None,
        detail_delay_seconds: Optional[float] = None,
    ):
        self.db = db
        self.api_keys = dict(api_keys or {})
        self.adapter_factory = adapter_factory
        self.duplicate_finder = duplicate_finder
        self.sleep = sleep
        self.page_size = page_size or settings.SYNC_PAGE_SIZE
        self.max_pages = max_pages or settings.SYNC_MAX_PAGES
        self.fetch_full_details = (
            settings.SYNC_FETCH_FULL_DETAILS if fetch_full_details is None else fetch_full_details
        )
        self.detail_delay_seconds = (
            settings.DETAIL_FETCH_DELAY_SECONDS if detail_delay_seconds is None else detail_delay_seconds
        )
        self.jobs = JobStore(db)
        self.catalog = CatalogService(db)

    async def run_sync(
        self,
        source_key: str,
        job_type: JobType = "full",
        external_id: Optional[str] = None,
        detect_duplicates: bool = False,
    ) -> SyncJob:
        """Run one sync for ``source_key`` and return the finished job."""
        source = self.jobs.get_source(source_key)
        if source is None:
            raise SourceNotFound(source_key)
        if job_type == "single" and not external_id:
            raise MissingExternalId()

        if not self.jobs.acquire_lock(source):
            raise SyncInProgress(source_key)

        try:
            return await self._run_locked(source, job_type, external_id, detect_duplicates)
        finally:
            self.jobs.release_lock(source)

    async def run_scheduled(self) -> List[ScheduledSyncSummary]:
        """Scheduler entry: fail stale jobs, then sync every enabled source in turn."""
        cutoff = _utcnow() - timedelta(minutes=settings.STALE_JOB_TIMEOUT_MINUTES)
        self.jobs.fail_stale_jobs(cutoff)

        results: List[ScheduledSyncSummary] = []
        for source in self.jobs.list_enabled_sources():
            source_key = source.source_key
            job_type: JobType = "incremental" if source.last_sync_at else "full"
            try:
                job = await self.run_sync(source_key, job_type=job_type)
                results.append(
                    ScheduledSyncSummary(
                        source_key=source_key,
                        status=job.status,
                        grants_fetched=job.grants_fetched,
                        grants_created=job.grants_created,
                        grants_updated=job.grants_updated,
                    )
                )
            except Exception as exc:  # noqa: BLE001
                log.error(f"Scheduled sync failed for {source_key}: {exc}")
                results.append(ScheduledSyncSummary(source_key=source_key, status="failed", error=str(exc)))

        return results

    def get_sync_history(self, source_key: str, limit: int = 10) -> List[SyncJob]:
        source = self.jobs.get_source(source_key)
        if source is None:
            return []
        return self.jobs.get_jobs(source, limit=limit)

    # -------------------------------------------------------------------------
    # Run
    # -------------------------------------------------------------------------
    async def _run_locked(
        self,
        source: GrantSource,
        requested: JobType,
        external_id: Optional[str],
        detect_duplicates: bool,
    ) -> SyncJob:
        strategy = self._effective_strategy(source, requested, external_id)
        job = self.jobs.create_job(source, strategy, started_at=_utcnow())
        result = SyncResult()
        touched: List[Any] = []

        log.info(f"Starting {strategy} sync for {source.source_key} | job={job.id}")
        try:
            adapter = self.adapter_factory(source, api_key=self.api_keys.get(source.source_key))
            if strategy == "single":
                await self._sync_single(source, adapter, external_id, result, touched)
            else:
                modified_since = source.last_sync_at if strategy == "incremental" else None
                await self._sync_pages(source, adapter, strategy, modified_since, result, touched)

            if detect_duplicates and self.duplicate_finder is not None:
                result.duplicates_found = self._detect_duplicates(touched)

        except Exception as exc:  # noqa: BLE001
            self.db.rollback()
            if isinstance(exc, SourceUnavailable):
                result.add_error(FETCH_ERROR, str(exc), _utcnow())
            self.jobs.fail_job(job, str(exc), result, completed_at=_utcnow())
            log.error(f"Sync failed for {source.source_key} | job={job.id}: {exc}")
            raise

        self.jobs.complete_job(job, result, completed_at=_utcnow())
        if strategy != "single":
            self.jobs.advance_watermark(source, job.started_at)

        log.info(
            f"Sync finished for {source.source_key} | fetched={result.grants_fetched} "
            f"created={result.grants_created} updated={result.grants_updated} "
            f"skipped={result.grants_skipped} errors={len(result.errors)}"
        )
        return job

    @staticmethod
    def _effective_strategy(source: GrantSource, requested: JobType, external_id: Optional[str]) -> JobType:
        if requested == "single" and external_id:
            return "single"
        if requested == "incremental" and source.last_sync_at is not None:
            return "incremental"
        return "full"

    async def _sync_pages(
        self,
        source: GrantSource,
        adapter: BaseGrantAdapter,
        strategy: JobType,
        modified_since: Optional[datetime],
        result: SyncResult,
        touched: List[Any],
    ) -> None:
        enrich = strategy == "full" and self.fetch_full_details and adapter.supports_detail_fetch
        delay = 60.0 / adapter.rate_limit
        detail_delay = max(self.detail_delay_seconds, delay)
        page = 1

        while True:
            params = SourceSearchParams(page=page, limit=self.page_size, modified_since=modified_since)
            response = await adapter.fetch_grants(params)
            result.grants_fetched += len(response.grants)

            for raw in response.grants:
                if enrich:
                    raw = await self._enrich(adapter, raw, result, detail_delay)
                self._process_record(source, adapter, raw, result, touched)

            self.db.commit()
            log.info(f"Processed page {page} for {source.source_key} ({len(response.grants)} records)")

            if not response.pagination.has_more:
                break
            if page >= self.max_pages:
                message = f"Stopped after {self.max_pages} pages; more records remain upstream"
                result.add_error(PAGE_LIMIT_REACHED, message, _utcnow())
                log.warning(f"{source.source_key}: {message}")
                break

            page += 1
            await self.sleep(delay)

    async def _sync_single(
        self,
        source: GrantSource,
        adapter: BaseGrantAdapter,
        external_id: str,
        result: SyncResult,
        touched: List[Any],
    ) -> None:
        raw = await adapter.fetch_single_grant(external_id)
        if raw is None:
            result.add_error(NOT_FOUND, f"Grant {external_id} not found", _utcnow(), grant_id=external_id)
            log.warning(f"{source.source_key}: grant {external_id} not found upstream")
            return

        result.grants_fetched = 1
        self._process_record(source, adapter, raw, result, touched)
        self.db.commit()

    async def _enrich(
        self, adapter: BaseGrantAdapter, raw: Dict[str, Any], result: SyncResult, delay: float
    ) -> Dict[str, Any]:
        """Swap a search summary for its detail record; keep the summary on failure.

        Detail calls count against the same per-minute ceiling as page calls.
        """
        external_id = adapter.external_id_of(raw)
        if not external_id:
            return raw
        try:
            detail = await adapter.fetch_single_grant(external_id)
        except GrantSyncError as exc:
            result.add_error(DETAIL_FETCH_ERROR, str(exc), _utcnow(), grant_id=external_id)
            log.warning(f"Detail fetch failed for {external_id}, using summary: {exc}")
            return raw
        finally:
            await self.sleep(delay)
        return {**raw, **detail} if detail else raw

    def _process_record(
        self,
        source: GrantSource,
        adapter: BaseGrantAdapter,
        raw: Dict[str, Any],
        result: SyncResult,
        touched: List[Any],
    ) -> None:
        try:
            grant = adapter.normalize_grant(raw)
        except ValidationError as exc:
            grant_id = exc.external_id or adapter.external_id_of(raw)
            result.add_error(NORMALIZATION_ERROR, str(exc), _utcnow(), grant_id=grant_id)
            log.warning(f"Skipping record from {source.source_key}: {exc}")
            return

        try:
            outcome = self.catalog.reconcile(source, grant, now=_utcnow())
        except Exception as exc:  # noqa: BLE001
            result.add_error(PROCESSING_ERROR, str(exc), _utcnow(), grant_id=grant.external_id)
            log.error(f"Failed to save grant {grant.external_id} from {source.source_key}: {exc}")
            return

        result.record(outcome)
        if outcome in ("created", "updated"):
            touched.append((grant.source_key, grant.external_id))

    def _detect_duplicates(self, touched: List[Any]) -> int:
        found = 0
        for source_key, external_id in touched:
            row = self.catalog.get_by_natural_key(source_key, external_id)
            if row is not None:
                found += self.duplicate_finder.find_duplicates(row.id)
        return found
