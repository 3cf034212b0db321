"""Manual entry: validation and catalog insert"""

import pytest
from sqlalchemy import func, select

from app.core.errors import SourceNotFound
from app.ingestion.custom import CustomGrantAdapter
from app.models.catalog import CatalogGrant
from app.schemas.grants import CustomGrantInput, SourceSearchParams
from app.services.catalog_service import CatalogService


class TestCustomValidation:
    """validate_grant_input rules"""

    def test_floor_above_ceiling_is_rejected(self, sources):
        adapter = CustomGrantAdapter(sources["custom"])
        result = adapter.validate_grant_input(CustomGrantInput(title="Local Arts", award_floor=500, award_ceiling=100))

        assert result.valid is False
        assert "Award floor cannot exceed award ceiling" in result.errors

    def test_title_required_and_bounded(self, sources):
        adapter = CustomGrantAdapter(sources["custom"])

        assert adapter.validate_grant_input(CustomGrantInput(title="  ")).errors == ["Title is required"]
        assert adapter.validate_grant_input(CustomGrantInput(title="x" * 501)).errors == [
            "Title must be less than 500 characters"
        ]

    def test_close_before_open_is_rejected(self, sources):
        adapter = CustomGrantAdapter(sources["custom"])
        result = adapter.validate_grant_input(
            CustomGrantInput(title="Local Arts", open_date="2026-05-01", close_date="2026-04-01")
        )
        assert result.errors == ["Close date must be after open date"]

    def test_negative_amounts_are_rejected(self, sources):
        adapter = CustomGrantAdapter(sources["custom"])
        result = adapter.validate_grant_input(
            CustomGrantInput(title="Local Arts", estimated_funding=-1, expected_awards=-2)
        )
        assert result.errors == [
            "Estimated funding must be a positive number",
            "Expected awards must be a positive number",
        ]

    def test_valid_input(self, sources):
        adapter = CustomGrantAdapter(sources["custom"])
        result = adapter.validate_grant_input(
            CustomGrantInput(title="Local Arts", award_floor=100, award_ceiling=500, close_date="2026-12-31")
        )
        assert result.valid is True
        assert result.errors == []

    def test_normalize_generates_external_id_and_default_status(self, sources):
        adapter = CustomGrantAdapter(sources["custom"])
        grant = adapter.normalize_grant({"title": "Local Arts"})

        assert grant.external_id.startswith("custom_")
        assert grant.opportunity_status == "posted"
        assert grant.is_active is True

    @pytest.mark.asyncio
    async def test_no_network_io(self, sources):
        adapter = CustomGrantAdapter(sources["custom"])
        page = await adapter.fetch_grants(SourceSearchParams())

        assert page.grants == []
        assert page.pagination.has_more is False
        assert await adapter.fetch_single_grant("anything") is None


class TestCreateCustomGrant:
    """CatalogService.create_custom_grant"""

    def test_invalid_input_writes_nothing(self, db, sources):
        validation, grant = CatalogService(db).create_custom_grant(
            CustomGrantInput(title="Local Arts", award_floor=500, award_ceiling=100)
        )

        assert validation.valid is False
        assert grant is None
        assert db.execute(select(func.count()).select_from(CatalogGrant)).scalar() == 0

    def test_valid_input_is_inserted_under_custom_source(self, db, sources):
        validation, grant = CatalogService(db).create_custom_grant(
            CustomGrantInput(title="  Local   Arts ", agency="City of Oakland", award_floor=100, award_ceiling=500)
        )

        assert validation.valid is True
        assert grant.source_key == "custom"
        assert grant.source_id == sources["custom"].id
        assert grant.title == "Local Arts"
        assert grant.external_id.startswith("custom_")
        assert grant.content_hash
        assert grant.is_active is True

    def test_missing_custom_source_raises(self, db):
        with pytest.raises(SourceNotFound):
            CatalogService(db).create_custom_grant(CustomGrantInput(title="Local Arts"))
