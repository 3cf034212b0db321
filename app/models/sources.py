"""Grant source configuration + incremental watermark."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, Integer, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base

DEFAULT_RATE_LIMIT_PER_MINUTE = 60


class GrantSource(Base):
    """One external provider of grant opportunity data.

    Seeded once by migration; the sync pipeline only advances ``last_sync_at``
    and takes/releases the ``sync_in_progress`` advisory lock.
    """

    __tablename__ = "grant_sources"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    source_key: Mapped[str] = mapped_column(String(100), unique=True, index=True, nullable=False, comment="e.g. 'grants_gov', 'opengrants'")
    source_name: Mapped[str] = mapped_column(String(200), nullable=False)
    source_type: Mapped[str] = mapped_column(String(20), nullable=False, comment="federal | state | private | custom")

    # API configuration
    api_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    api_base_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    api_key_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    rate_limit_per_minute: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Sync configuration
    sync_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    sync_frequency: Mapped[str] = mapped_column(String(20), nullable=False, default="daily")
    last_sync_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Advisory lock: one running sync per source
    sync_in_progress: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sync_locked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("source_type IN ('federal', 'state', 'private', 'custom')", name="grant_sources_type_check"),
        CheckConstraint("sync_frequency IN ('hourly', 'daily', 'weekly', 'manual')", name="grant_sources_sync_frequency_check"),
    )

    @property
    def effective_rate_limit(self) -> int:
        return self.rate_limit_per_minute or DEFAULT_RATE_LIMIT_PER_MINUTE


# Seeded by migration 0001
DEFAULT_SOURCES = [
    {
        "source_key": "grants_gov",
        "source_name": "Grants.gov",
        "source_type": "federal",
        "api_enabled": True,
        "api_base_url": "https://api.grants.gov/v1/api",
        "api_key_required": False,
        "rate_limit_per_minute": 60,
        "sync_enabled": True,
        "sync_frequency": "daily",
    },
    {
        "source_key": "opengrants",
        "source_name": "OpenGrants",
        "source_type": "federal",
        "api_enabled": True,
        "api_base_url": "https://api.opengrants.io/v1",
        "api_key_required": True,
        "rate_limit_per_minute": 30,
        "sync_enabled": False,  # until an API key is configured
        "sync_frequency": "daily",
    },
    {
        "source_key": "ca_state_portal",
        "source_name": "California State Grants",
        "source_type": "state",
        "api_enabled": False,
        "api_base_url": None,
        "api_key_required": False,
        "rate_limit_per_minute": None,
        "sync_enabled": True,
        "sync_frequency": "weekly",
    },
    {
        "source_key": "custom",
        "source_name": "Custom/Manual Entry",
        "source_type": "custom",
        "api_enabled": False,
        "api_base_url": None,
        "api_key_required": False,
        "rate_limit_per_minute": None,
        "sync_enabled": False,
        "sync_frequency": "manual",
    },
]
