"""Cross-source duplicate links between catalog rows."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Numeric, String, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base

MATCH_METHODS = ("title_hash", "fuzzy_match", "manual")


class GrantDuplicate(Base):
    """Potential duplicate pair; upserted idempotently on (primary, duplicate)."""

    __tablename__ = "grant_duplicates"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    primary_grant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("grants_catalog.id", ondelete="CASCADE"), nullable=False, index=True
    )
    duplicate_grant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("grants_catalog.id", ondelete="CASCADE"), nullable=False, index=True
    )

    match_score: Mapped[float] = mapped_column(Numeric(asdecimal=False), nullable=False, comment="0.0 to 1.0")
    match_method: Mapped[str] = mapped_column(String(20), nullable=False)

    is_confirmed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    detected_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("primary_grant_id", "duplicate_grant_id", name="uq_grant_duplicates_pair"),
        CheckConstraint("primary_grant_id != duplicate_grant_id", name="grant_duplicates_different_grants"),
    )
