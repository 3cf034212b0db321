"""Data Service - Read queries for the catalog and sync bookkeeping."""

from __future__ import annotations

import uuid
from typing import Any, Dict, List, Literal, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.core.logging import get_logger
from app.models.catalog import CatalogGrant
from app.models.sources import GrantSource
from app.models.sync_jobs import SyncJob

log = get_logger("data_service")

SortField = Literal["close_date", "posted_date", "title", "estimated_funding", "last_synced_at"]


class DataService:
    """Handles all read operations - no writes."""

    def __init__(self, db: Session):
        self.db = db

    # -------------------------------------------------------------------------
    # Catalog Queries
    # -------------------------------------------------------------------------
    def _filtered(
        self,
        stmt,
        source_key: Optional[str] = None,
        agency: Optional[str] = None,
        status: Optional[str] = None,
        keyword: Optional[str] = None,
        active_only: bool = False,
    ):
        if source_key:
            stmt = stmt.where(CatalogGrant.source_key == source_key)
        if agency:
            stmt = stmt.where(CatalogGrant.agency.ilike(f"%{agency}%"))
        if status:
            stmt = stmt.where(CatalogGrant.opportunity_status == status)
        if keyword:
            stmt = stmt.where(CatalogGrant.title.ilike(f"%{keyword}%"))
        if active_only:
            stmt = stmt.where(CatalogGrant.is_active.is_(True))
        return stmt

    def get_grants(
        self,
        source_key: Optional[str] = None,
        agency: Optional[str] = None,
        status: Optional[str] = None,
        keyword: Optional[str] = None,
        active_only: bool = False,
        sort_by: SortField = "close_date",
        sort_order: Literal["asc", "desc"] = "asc",
        limit: int = 50,
        offset: int = 0,
    ) -> List[CatalogGrant]:
        """Get catalog grants with optional filtering."""
        stmt = self._filtered(select(CatalogGrant), source_key, agency, status, keyword, active_only)

        column = getattr(CatalogGrant, sort_by)
        order = column.desc() if sort_order == "desc" else column.asc()
        stmt = stmt.order_by(order.nullslast(), CatalogGrant.id).limit(limit).offset(offset)

        return list(self.db.execute(stmt).scalars().all())

    def count_grants(
        self,
        source_key: Optional[str] = None,
        agency: Optional[str] = None,
        status: Optional[str] = None,
        keyword: Optional[str] = None,
        active_only: bool = False,
    ) -> int:
        stmt = self._filtered(
            select(func.count()).select_from(CatalogGrant), source_key, agency, status, keyword, active_only
        )
        return self.db.execute(stmt).scalar() or 0

    def get_grant(self, grant_id: str) -> Optional[CatalogGrant]:
        try:
            return self.db.get(CatalogGrant, uuid.UUID(grant_id))
        except ValueError:
            return None

    # -------------------------------------------------------------------------
    # Sync Jobs
    # -------------------------------------------------------------------------
    def get_sync_jobs(
        self,
        source_key: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 10,
    ) -> List[SyncJob]:
        """Get recent sync jobs, newest first."""
        stmt = select(SyncJob)

        if source_key:
            stmt = stmt.join(GrantSource, GrantSource.id == SyncJob.source_id).where(
                GrantSource.source_key == source_key
            )
        if status:
            stmt = stmt.where(SyncJob.status == status)

        stmt = stmt.order_by(SyncJob.started_at.desc()).limit(limit)
        return list(self.db.execute(stmt).scalars().all())

    def get_sources_summary(self) -> List[Dict[str, Any]]:
        """Per-source grant counts and last job outcome."""
        summary = []
        sources = self.db.execute(select(GrantSource).order_by(GrantSource.source_key)).scalars().all()

        for source in sources:
            latest_job = self.db.execute(
                select(SyncJob)
                .where(SyncJob.source_id == source.id)
                .order_by(SyncJob.started_at.desc())
                .limit(1)
            ).scalar_one_or_none()

            summary.append({
                "source_key": source.source_key,
                "source_name": source.source_name,
                "sync_enabled": source.sync_enabled,
                "total_grants": self.count_grants(source_key=source.source_key),
                "active_grants": self.count_grants(source_key=source.source_key, active_only=True),
                "last_sync_at": source.last_sync_at,
                "last_job_status": latest_job.status if latest_job else None,
                "last_job_at": latest_job.started_at if latest_job else None,
            })

        return summary
