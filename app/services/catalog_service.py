"""Natural-key reconciliation of normalized grants into the catalog."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.errors import SourceNotFound
from app.core.logging import get_logger
from app.ingestion.custom import CustomGrantAdapter
from app.models.catalog import MUTABLE_FIELDS, CatalogGrant, is_active_status
from app.models.sources import GrantSource
from app.schemas.grants import CustomGrantInput, NormalizedGrant, ValidationResult

log = get_logger("catalog_service")

ReconcileOutcome = Literal["created", "updated", "skipped"]

CUSTOM_SOURCE_KEY = "custom"


class CatalogService:
    """Writes normalized grants to ``grants_catalog``.

    Rows are matched on ``(source_key, external_id)``; the content hash alone
    decides whether a matched row is rewritten or only touched.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_by_natural_key(self, source_key: str, external_id: str) -> Optional[CatalogGrant]:
        stmt = select(CatalogGrant).where(
            CatalogGrant.source_key == source_key,
            CatalogGrant.external_id == external_id,
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def reconcile(
        self,
        source: GrantSource,
        grant: NormalizedGrant,
        now: Optional[datetime] = None,
    ) -> ReconcileOutcome:
        """Insert, update or touch one grant inside its own SAVEPOINT."""
        now = now or datetime.now(timezone.utc)

        with self.db.begin_nested():
            existing = self.get_by_natural_key(grant.source_key, grant.external_id)

            if existing is None:
                self.db.add(self._build_row(source, grant, now))
                return "created"

            if existing.content_hash != grant.content_hash:
                for field in MUTABLE_FIELDS:
                    setattr(existing, field, getattr(grant, field))
                existing.is_active = grant.is_active
                existing.last_updated_at = now
                existing.last_synced_at = now
                return "updated"

            existing.last_synced_at = now
            existing.is_active = is_active_status(existing.opportunity_status)
            return "skipped"

    def create_custom_grant(self, data: CustomGrantInput) -> Tuple[ValidationResult, Optional[CatalogGrant]]:
        """Manual-entry path: validate, normalize and insert under the ``custom`` source."""
        source = self.db.execute(
            select(GrantSource).where(GrantSource.source_key == CUSTOM_SOURCE_KEY)
        ).scalar_one_or_none()
        if source is None:
            raise SourceNotFound(CUSTOM_SOURCE_KEY)

        adapter = CustomGrantAdapter(source)
        validation = adapter.validate_grant_input(data)
        if not validation.valid:
            log.info(f"Rejected custom grant: {validation.errors}")
            return validation, None

        grant = adapter.normalize_grant(data.model_dump(exclude_none=True))
        row = self._build_row(source, grant, datetime.now(timezone.utc))
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)

        log.info(f"Created custom grant {row.external_id} ({row.title})")
        return validation, row

    @staticmethod
    def _build_row(source: GrantSource, grant: NormalizedGrant, now: datetime) -> CatalogGrant:
        row = CatalogGrant(
            source_id=source.id,
            source_key=grant.source_key,
            external_id=grant.external_id,
            first_seen_at=now,
            last_updated_at=now,
            last_synced_at=now,
            is_active=grant.is_active,
        )
        for field in MUTABLE_FIELDS:
            setattr(row, field, getattr(grant, field))
        return row
