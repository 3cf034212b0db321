"""multi-source grant ingestion tables

Revision ID: 0001_grant_ingestion
Revises:
Create Date: 2026-01-17 09:00:00.000000
"""

from __future__ import annotations

import uuid

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from app.models.sources import DEFAULT_SOURCES

# revision identifiers, used by Alembic.
revision = "0001_grant_ingestion"
down_revision = None
branch_labels = None
depends_on = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")


def upgrade() -> None:
    grant_sources = op.create_table(
        "grant_sources",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("source_key", sa.String(100), nullable=False),
        sa.Column("source_name", sa.String(200), nullable=False),
        sa.Column("source_type", sa.String(20), nullable=False),
        sa.Column("api_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("api_base_url", sa.String(500), nullable=True),
        sa.Column("api_key_required", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("rate_limit_per_minute", sa.Integer(), nullable=True),
        sa.Column("sync_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("sync_frequency", sa.String(20), nullable=False, server_default="daily"),
        sa.Column("last_sync_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sync_in_progress", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("sync_locked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("source_type IN ('federal', 'state', 'private', 'custom')", name="grant_sources_type_check"),
        sa.CheckConstraint(
            "sync_frequency IN ('hourly', 'daily', 'weekly', 'manual')", name="grant_sources_sync_frequency_check"
        ),
    )
    op.create_index("ix_grant_sources_source_key", "grant_sources", ["source_key"], unique=True)

    op.create_table(
        "grants_catalog",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("source_id", sa.Uuid(), sa.ForeignKey("grant_sources.id", ondelete="CASCADE"), nullable=False),
        sa.Column("source_key", sa.String(100), nullable=False),
        sa.Column("external_id", sa.String(200), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("agency", sa.String(500), nullable=True),
        sa.Column("opportunity_number", sa.String(200), nullable=True),
        sa.Column("estimated_funding", sa.Numeric(), nullable=True),
        sa.Column("award_floor", sa.Numeric(), nullable=True),
        sa.Column("award_ceiling", sa.Numeric(), nullable=True),
        sa.Column("expected_awards", sa.Integer(), nullable=True),
        sa.Column("funding_category", sa.String(200), nullable=True),
        sa.Column("eligibility_applicants", JSONType, nullable=True),
        sa.Column("cost_sharing_required", sa.Boolean(), nullable=True),
        sa.Column("posted_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("open_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("close_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("opportunity_status", sa.String(20), nullable=False, server_default="posted"),
        sa.Column("cfda_numbers", JSONType, nullable=True),
        sa.Column("aln_codes", JSONType, nullable=True),
        sa.Column("source_url", sa.String(1000), nullable=True),
        sa.Column("application_url", sa.String(1000), nullable=True),
        sa.Column("content_hash", sa.String(64), nullable=True),
        sa.Column("first_seen_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("last_updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("source_key", "external_id", name="uq_grants_catalog_source_external"),
        sa.CheckConstraint(
            "opportunity_status IN ('forecasted', 'posted', 'closed', 'archived')",
            name="grants_catalog_status_check",
        ),
    )
    op.create_index("ix_grants_catalog_source_key", "grants_catalog", ["source_key"])
    op.create_index("ix_grants_catalog_external_id", "grants_catalog", ["external_id"])
    op.create_index("ix_grants_catalog_close_date", "grants_catalog", ["close_date"])
    op.create_index("ix_grants_catalog_opportunity_status", "grants_catalog", ["opportunity_status"])
    op.create_index("ix_grants_catalog_content_hash", "grants_catalog", ["content_hash"])
    op.create_index("ix_grants_catalog_is_active", "grants_catalog", ["is_active"])

    op.create_table(
        "sync_jobs",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("source_id", sa.Uuid(), sa.ForeignKey("grant_sources.id", ondelete="CASCADE"), nullable=False),
        sa.Column("job_type", sa.String(20), nullable=False, server_default="full"),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("grants_fetched", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("grants_created", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("grants_updated", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("grants_skipped", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("duplicates_found", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("errors", JSONType, nullable=False, server_default=sa.text("'[]'")),
        sa.Column("retry_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("job_type IN ('full', 'incremental', 'single')", name="sync_jobs_type_check"),
        sa.CheckConstraint("status IN ('pending', 'running', 'completed', 'failed')", name="sync_jobs_status_check"),
    )
    op.create_index("ix_sync_jobs_source_id", "sync_jobs", ["source_id"])
    op.create_index("ix_sync_jobs_status", "sync_jobs", ["status"])
    op.create_index("ix_sync_jobs_created_at", "sync_jobs", ["created_at"])

    op.create_table(
        "grant_duplicates",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column(
            "primary_grant_id", sa.Uuid(), sa.ForeignKey("grants_catalog.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column(
            "duplicate_grant_id", sa.Uuid(), sa.ForeignKey("grants_catalog.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("match_score", sa.Numeric(), nullable=False),
        sa.Column("match_method", sa.String(20), nullable=False),
        sa.Column("is_confirmed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("detected_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("primary_grant_id", "duplicate_grant_id", name="uq_grant_duplicates_pair"),
        sa.CheckConstraint("primary_grant_id != duplicate_grant_id", name="grant_duplicates_different_grants"),
    )
    op.create_index("ix_grant_duplicates_primary_grant_id", "grant_duplicates", ["primary_grant_id"])
    op.create_index("ix_grant_duplicates_duplicate_grant_id", "grant_duplicates", ["duplicate_grant_id"])

    op.bulk_insert(
        grant_sources,
        [{"id": uuid.uuid4(), "sync_in_progress": False, **source} for source in DEFAULT_SOURCES],
    )


def downgrade() -> None:
    op.drop_table("grant_duplicates")
    op.drop_table("sync_jobs")
    op.drop_table("grants_catalog")
    op.drop_table("grant_sources")
