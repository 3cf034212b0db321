"""Scheduler batch, janitor and job state tests"""

from datetime import datetime, timedelta, timezone

import pytest

from app.core.errors import JobStateError, SourceUnavailable
from app.schemas.grants import SyncResult
from app.services.job_store import JobStore
from app.services.sync_service import SyncService

from conftest import StubAdapter, make_record


class TestJobStore:
    """Job lifecycle and lock primitives"""

    def test_lock_is_exclusive(self, db, sources):
        store = JobStore(db)
        source = sources["grants_gov"]

        assert store.acquire_lock(source) is True
        assert store.acquire_lock(source) is False

        store.release_lock(source)
        assert store.acquire_lock(source) is True

    def test_terminal_job_is_immutable(self, db, sources):
        store = JobStore(db)
        job = store.create_job(sources["grants_gov"], "full")
        store.complete_job(job, SyncResult(grants_fetched=3, grants_created=3))

        with pytest.raises(JobStateError):
            store.fail_job(job, "too late")
        assert job.status == "completed"
        assert job.grants_created == 3

    def test_fail_stale_jobs_releases_locks(self, db, sources):
        store = JobStore(db)
        source = sources["grants_gov"]
        store.acquire_lock(source)
        stale = store.create_job(source, "full", started_at=datetime.now(timezone.utc) - timedelta(hours=5))
        fresh = store.create_job(sources["opengrants"], "full")

        count = store.fail_stale_jobs(datetime.now(timezone.utc) - timedelta(hours=2))

        assert count == 1
        db.refresh(stale)
        db.refresh(fresh)
        db.refresh(source)
        assert stale.status == "failed"
        assert stale.error_message == "Sync job timed out"
        assert fresh.status == "running"
        assert source.sync_in_progress is False

    def test_list_enabled_sources(self, db, sources):
        keys = [source.source_key for source in JobStore(db).list_enabled_sources()]
        assert keys == ["ca_state_portal", "grants_gov"]


class TestRunScheduled:
    """run_scheduled picks a strategy per source and isolates failures"""

    @pytest.mark.asyncio
    async def test_failing_source_does_not_abort_batch(self, db, sources, fake_sleep):
        sources["opengrants"].sync_enabled = True
        db.commit()

        adapters = {
            "grants_gov": StubAdapter(sources["grants_gov"], pages=[[make_record("G-1")]]),
            "opengrants": StubAdapter(sources["opengrants"], fail_on_page=1),
            "ca_state_portal": StubAdapter(sources["ca_state_portal"]),
        }

        def factory(source, api_key=None, client=None):
            return adapters[source.source_key]

        results = await SyncService(db, adapter_factory=factory, sleep=fake_sleep).run_scheduled()
        by_key = {r.source_key: r for r in results}

        assert set(by_key) == {"ca_state_portal", "grants_gov", "opengrants"}
        assert by_key["grants_gov"].status == "completed"
        assert by_key["grants_gov"].grants_created == 1
        assert by_key["opengrants"].status == "failed"
        assert "503" in by_key["opengrants"].error
        assert by_key["ca_state_portal"].status == "completed"

    @pytest.mark.asyncio
    async def test_incremental_once_watermark_exists(self, db, sources, fake_sleep):
        watermark = datetime(2026, 1, 1, tzinfo=timezone.utc)
        sources["grants_gov"].last_sync_at = watermark
        sources["ca_state_portal"].sync_enabled = False
        db.commit()

        adapter = StubAdapter(sources["grants_gov"])
        await SyncService(db, adapter_factory=lambda source, api_key=None: adapter, sleep=fake_sleep).run_scheduled()

        job = SyncService(db).get_sync_history("grants_gov")[0]
        assert job.job_type == "incremental"
        assert adapter.requests[0].modified_since is not None

    @pytest.mark.asyncio
    async def test_stale_jobs_failed_before_batch(self, db, sources, fake_sleep):
        store = JobStore(db)
        store.acquire_lock(sources["grants_gov"])
        stale = store.create_job(sources["grants_gov"], "full", started_at=datetime.now(timezone.utc) - timedelta(days=1))
        sources["ca_state_portal"].sync_enabled = False
        db.commit()

        adapter = StubAdapter(sources["grants_gov"])
        results = await SyncService(
            db, adapter_factory=lambda source, api_key=None: adapter, sleep=fake_sleep
        ).run_scheduled()

        db.refresh(stale)
        assert stale.status == "failed"
        assert [r.status for r in results] == ["completed"]

    @pytest.mark.asyncio
    async def test_api_keys_are_injected(self, db, sources, fake_sleep):
        seen = {}
        sources["ca_state_portal"].sync_enabled = False
        db.commit()

        def factory(source, api_key=None, client=None):
            seen[source.source_key] = api_key
            return StubAdapter(source)

        await SyncService(
            db, api_keys={"grants_gov": "gg-key"}, adapter_factory=factory, sleep=fake_sleep
        ).run_scheduled()

        assert seen == {"grants_gov": "gg-key"}


def test_source_unavailable_carries_status():
    exc = SourceUnavailable("Grants.gov API error: 502 Bad Gateway", status_code=502, body="upstream")
    assert exc.status_code == 502
    assert exc.body == "upstream"
