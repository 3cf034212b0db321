"""Canonical catalog of grant opportunities across all sources."""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, JSONType

ACTIVE_STATUSES = frozenset({"posted", "forecasted"})

# Columns overwritten when an upstream record's content hash changes
MUTABLE_FIELDS = (
    "title",
    "description",
    "agency",
    "opportunity_number",
    "estimated_funding",
    "award_floor",
    "award_ceiling",
    "expected_awards",
    "funding_category",
    "eligibility_applicants",
    "cost_sharing_required",
    "posted_date",
    "open_date",
    "close_date",
    "opportunity_status",
    "cfda_numbers",
    "aln_codes",
    "source_url",
    "application_url",
    "content_hash",
)


def is_active_status(status: str | None) -> bool:
    return status in ACTIVE_STATUSES


class CatalogGrant(Base):
    """Normalized grant opportunity.

    ``(source_key, external_id)`` is the natural key: the sync pipeline looks
    rows up by it before deciding between insert and update, so a given
    upstream record never yields more than one row.
    """

    __tablename__ = "grants_catalog"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    source_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("grant_sources.id", ondelete="CASCADE"), nullable=False)

    # Source identifiers
    source_key: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    external_id: Mapped[str] = mapped_column(String(200), nullable=False, index=True)

    # Core data
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    agency: Mapped[str | None] = mapped_column(String(500), nullable=True)
    opportunity_number: Mapped[str | None] = mapped_column(String(200), nullable=True)

    # Financial
    estimated_funding: Mapped[float | None] = mapped_column(Numeric(asdecimal=False), nullable=True)
    award_floor: Mapped[float | None] = mapped_column(Numeric(asdecimal=False), nullable=True)
    award_ceiling: Mapped[float | None] = mapped_column(Numeric(asdecimal=False), nullable=True)
    expected_awards: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Categories and eligibility
    funding_category: Mapped[str | None] = mapped_column(String(200), nullable=True)
    eligibility_applicants: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    cost_sharing_required: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    # Dates
    posted_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    open_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    close_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)

    opportunity_status: Mapped[str] = mapped_column(String(20), nullable=False, default="posted", index=True)

    # Federal program identifiers
    cfda_numbers: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    aln_codes: Mapped[list | None] = mapped_column(JSONType, nullable=True)

    # Links
    source_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    application_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    content_hash: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)

    # Bookkeeping
    first_seen_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    last_updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    last_synced_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)

    __table_args__ = (
        UniqueConstraint("source_key", "external_id", name="uq_grants_catalog_source_external"),
        CheckConstraint(
            "opportunity_status IN ('forecasted', 'posted', 'closed', 'archived')",
            name="grants_catalog_status_check",
        ),
    )
