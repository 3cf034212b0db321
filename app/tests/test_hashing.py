"""Content hash tests"""

from datetime import datetime, timedelta, timezone

from app.ingestion.hashing import generate_content_hash


class TestContentHash:
    def test_deterministic(self):
        close = datetime(2026, 6, 30, tzinfo=timezone.utc)
        assert generate_content_hash("Grant", "NSF", close) == generate_content_hash("Grant", "NSF", close)

    def test_case_and_outer_whitespace_ignored(self):
        close = datetime(2026, 6, 30, tzinfo=timezone.utc)
        assert generate_content_hash("  Rural Grant ", "NSF", close) == generate_content_hash("rural grant", "nsf", close)

    def test_close_date_changes_hash(self):
        close = datetime(2026, 6, 30, tzinfo=timezone.utc)
        assert generate_content_hash("Grant", "NSF", close) != generate_content_hash(
            "Grant", "NSF", close + timedelta(days=1)
        )

    def test_title_changes_hash(self):
        close = datetime(2026, 6, 30, tzinfo=timezone.utc)
        assert generate_content_hash("Rural Grant", "NSF", close) != generate_content_hash("Urban Grant", "NSF", close)

    def test_agency_changes_hash(self):
        close = datetime(2026, 6, 30, tzinfo=timezone.utc)
        assert generate_content_hash("Grant", "NSF", close) != generate_content_hash("Grant", "NIH", close)

    def test_field_boundaries_are_unambiguous(self):
        close = datetime(2026, 6, 30, tzinfo=timezone.utc)
        assert generate_content_hash("a|b", "", close) != generate_content_hash("a", "b|", close)
        assert generate_content_hash("Grant", None, None) != generate_content_hash("", "Grant", None)

    def test_equivalent_instants_hash_equally(self):
        utc = datetime(2026, 6, 30, 12, tzinfo=timezone.utc)
        eastern = utc.astimezone(timezone(timedelta(hours=-5)))
        assert generate_content_hash("Grant", "NSF", utc) == generate_content_hash("Grant", "NSF", eastern)

    def test_absent_fields(self):
        digest = generate_content_hash("Grant", None, None)
        assert len(digest) == 64
        assert digest == generate_content_hash("Grant", "", None)
