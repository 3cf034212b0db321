"""Duplicate detection tests"""

import uuid

import pytest
from sqlalchemy import func, select

from app.models.catalog import CatalogGrant
from app.models.duplicates import GrantDuplicate
from app.services.duplicate_service import DuplicateFinder, title_similarity
from app.services.sync_service import SyncService

from conftest import StubAdapter, adapter_factory_for, make_record


def _grant(db, source, external_id, title, agency="National Science Foundation", content_hash=None, active=True):
    row = CatalogGrant(
        source_id=source.id,
        source_key=source.source_key,
        external_id=external_id,
        title=title,
        agency=agency,
        content_hash=content_hash or uuid.uuid4().hex,
        opportunity_status="posted" if active else "closed",
        is_active=active,
    )
    db.add(row)
    db.commit()
    return row


class TestTitleSimilarity:
    def test_identical_titles(self):
        assert title_similarity("Climate Research Fellowship", "climate research fellowship") == 1.0

    def test_disjoint_titles(self):
        assert title_similarity("Arts Fund", "Broadband Program") == 0.0

    def test_empty_title(self):
        assert title_similarity(None, "Arts Fund") == 0.0


class TestDuplicateFinder:
    def test_hash_match_across_sources(self, db, sources):
        primary = _grant(db, sources["grants_gov"], "G-1", "Climate Research", content_hash="a" * 64)
        other = _grant(db, sources["opengrants"], "O-1", "Climate Research", content_hash="a" * 64)

        found = DuplicateFinder(db).find_duplicates(primary.id)

        assert found == 1
        link = db.execute(select(GrantDuplicate)).scalar_one()
        assert link.duplicate_grant_id == other.id
        assert link.match_method == "title_hash"
        assert link.match_score == 1.0

    def test_fuzzy_match_same_agency(self, db, sources):
        primary = _grant(db, sources["grants_gov"], "G-1", "Small Business Innovation Research Phase I Program")
        near = _grant(db, sources["opengrants"], "O-1", "Small Business Innovation Research Phase I")
        _grant(db, sources["opengrants"], "O-2", "Small Business Innovation Research Phase I", agency="NASA")
        _grant(db, sources["opengrants"], "O-3", "Completely Different Title")

        finder = DuplicateFinder(db)
        assert finder.find_duplicates(primary.id) == 1

        links = finder.get_duplicates(primary.id)
        assert [(l.duplicate_grant_id, l.match_method, l.match_score) for l in links] == [(near.id, "fuzzy_match", 0.8)]

    def test_inactive_grants_are_ignored(self, db, sources):
        primary = _grant(db, sources["grants_gov"], "G-1", "Climate Research", content_hash="b" * 64)
        _grant(db, sources["opengrants"], "O-1", "Climate Research", content_hash="b" * 64, active=False)

        assert DuplicateFinder(db).find_duplicates(primary.id) == 0

    def test_rerun_is_idempotent(self, db, sources):
        primary = _grant(db, sources["grants_gov"], "G-1", "Climate Research", content_hash="c" * 64)
        _grant(db, sources["opengrants"], "O-1", "Climate Research", content_hash="c" * 64)

        finder = DuplicateFinder(db)
        finder.find_duplicates(primary.id)
        finder.find_duplicates(primary.id)

        assert db.execute(select(func.count()).select_from(GrantDuplicate)).scalar() == 1

    def test_unknown_grant(self, db, sources):
        assert DuplicateFinder(db).find_duplicates(uuid.uuid4()) == 0

    @pytest.mark.asyncio
    async def test_sync_with_duplicate_detection(self, db, sources, fake_sleep):
        """detect_duplicates=True counts matches for grants touched by the run"""
        existing = make_record("O-1")
        og_adapter = StubAdapter(sources["opengrants"], pages=[[existing]])
        await SyncService(db, adapter_factory=adapter_factory_for(og_adapter), sleep=fake_sleep).run_sync("opengrants")

        adapter = StubAdapter(sources["grants_gov"], pages=[[make_record("G-1")]])
        job = await SyncService(
            db,
            adapter_factory=adapter_factory_for(adapter),
            duplicate_finder=DuplicateFinder(db),
            sleep=fake_sleep,
        ).run_sync("grants_gov", detect_duplicates=True)

        assert job.duplicates_found == 1
        assert db.execute(select(func.count()).select_from(GrantDuplicate)).scalar() == 1
