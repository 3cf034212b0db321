"""One sync execution record per (source, invocation)."""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, JSONType

JOB_TYPES = ("full", "incremental", "single")
JOB_STATUSES = ("pending", "running", "completed", "failed")
TERMINAL_STATUSES = frozenset({"completed", "failed"})


class SyncJob(Base):
    __tablename__ = "sync_jobs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    source_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("grant_sources.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    job_type: Mapped[str] = mapped_column(String(20), nullable=False, default="full")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending", index=True)

    grants_fetched: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    grants_created: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    grants_updated: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    grants_skipped: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    duplicates_found: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    # [{grant_id, error_code, error_message, timestamp}]
    errors: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), index=True)

    __table_args__ = (
        CheckConstraint("job_type IN ('full', 'incremental', 'single')", name="sync_jobs_type_check"),
        CheckConstraint("status IN ('pending', 'running', 'completed', 'failed')", name="sync_jobs_status_check"),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
