"""API endpoint tests"""

import uuid

import httpx
import pytest
from fastapi.testclient import TestClient

from app.api.deps import get_api_keys, get_db
from app.api.routes import sync as sync_routes
from app.core.config import settings
from app.ingestion.grants_gov import GrantsGovAdapter
from app.main import app
from app.services.sync_service import SyncService

from conftest import FakeSleep, StubAdapter, make_record


class TestAPI:
    """Test API endpoints"""

    @pytest.fixture
    def client(self, db, sources):
        """Test client bound to the in-memory database"""

        def override_db():
            yield db

        app.dependency_overrides[get_db] = override_db
        app.dependency_overrides[get_api_keys] = lambda: {}
        yield TestClient(app)
        app.dependency_overrides.clear()

    @pytest.fixture
    def stub_sync(self, monkeypatch):
        """Route SyncService through a stub adapter; returns the adapter pages holder"""
        state = {"pages": [[]], "fail_on_page": None}

        class StubbedSyncService(SyncService):
            def __init__(self, db, **kwargs):
                super().__init__(
                    db,
                    adapter_factory=lambda source, api_key=None: StubAdapter(
                        source, pages=state["pages"], fail_on_page=state["fail_on_page"]
                    ),
                    sleep=FakeSleep(),
                    **kwargs,
                )

        monkeypatch.setattr(sync_routes, "SyncService", StubbedSyncService)
        return state

    def test_health_check(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"database": "ok", "last_sync_status": None}

    def test_readiness(self, client):
        response = client.get("/health/ready")
        assert response.status_code == 200
        assert response.json()["status"] == "ready"

    def test_run_sync_returns_job(self, client, stub_sync):
        stub_sync["pages"] = [[make_record("G-1"), make_record("G-2", title="")]]

        response = client.post("/sync/run", json={"source_key": "grants_gov"})

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "completed"
        assert body["job_type"] == "full"
        assert body["grants_created"] == 1
        assert body["errors"][0]["error_code"] == "NORMALIZATION_ERROR"

        health = client.get("/health").json()
        assert health["last_sync_status"] == "completed"

    def test_run_sync_unknown_source(self, client):
        response = client.post("/sync/run", json={"source_key": "nope"})
        assert response.status_code == 404

    def test_run_single_without_id(self, client):
        response = client.post("/sync/run", json={"source_key": "grants_gov", "job_type": "single"})
        assert response.status_code == 400
        assert response.json()["detail"] == "external_id is required for a single-grant sync"

    def test_malformed_upstream_payload_is_bad_gateway(self, client, monkeypatch):
        """A search payload that cannot be coerced is an upstream fault, not a bad request"""

        def handler(request):
            return httpx.Response(200, json={"data": {"hitCount": "n/a", "oppHits": []}})

        class MalformedUpstreamSyncService(SyncService):
            def __init__(self, db, **kwargs):
                super().__init__(
                    db,
                    adapter_factory=lambda source, api_key=None: GrantsGovAdapter(
                        source, client=httpx.AsyncClient(transport=httpx.MockTransport(handler))
                    ),
                    sleep=FakeSleep(),
                    **kwargs,
                )

        monkeypatch.setattr(sync_routes, "SyncService", MalformedUpstreamSyncService)

        response = client.post("/sync/run", json={"source_key": "grants_gov"})
        assert response.status_code == 502

        history = client.get("/sync/history", params={"source_key": "grants_gov"}).json()
        assert history[0]["status"] == "failed"
        assert history[0]["errors"][0]["error_code"] == "FETCH_ERROR"

    def test_run_sync_lock_held(self, client, db, sources):
        sources["grants_gov"].sync_in_progress = True
        db.commit()

        response = client.post("/sync/run", json={"source_key": "grants_gov"})
        assert response.status_code == 409

    def test_run_sync_upstream_failure(self, client, stub_sync):
        stub_sync["fail_on_page"] = 1

        response = client.post("/sync/run", json={"source_key": "grants_gov"})
        assert response.status_code == 502

        history = client.get("/sync/history", params={"source_key": "grants_gov"}).json()
        assert history[0]["status"] == "failed"

    def test_run_all_requires_cron_secret(self, client, monkeypatch, stub_sync):
        monkeypatch.setattr(settings, "CRON_SECRET", "s3cret")

        assert client.post("/sync/run-all").status_code == 401

        response = client.post("/sync/run-all", headers={"Authorization": "Bearer s3cret"})
        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Grant sync completed"
        assert {r["source_key"] for r in body["results"]} == {"ca_state_portal", "grants_gov"}

    def test_list_adapters(self, client):
        response = client.get("/sync/adapters")
        assert response.status_code == 200
        assert {a["key"] for a in response.json()} == {"grants_gov", "opengrants", "custom", "ca_state_portal"}

    def test_create_custom_grant(self, client):
        response = client.post(
            "/grants/custom",
            json={"title": "Community Garden Fund", "agency": "City of Oakland", "award_floor": 1000, "award_ceiling": 5000},
        )
        assert response.status_code == 201
        grant = response.json()["grant"]
        assert grant["source_key"] == "custom"
        assert grant["external_id"].startswith("custom_")

        fetched = client.get(f"/grants/{grant['id']}")
        assert fetched.status_code == 200
        assert fetched.json()["title"] == "Community Garden Fund"

        listing = client.get("/grants", params={"source_key": "custom"}).json()
        assert listing["total_count"] == 1

    def test_create_custom_grant_invalid(self, client):
        response = client.post("/grants/custom", json={"title": "Fund", "award_floor": 500, "award_ceiling": 100})
        assert response.status_code == 400
        assert response.json()["details"] == ["Award floor cannot exceed award ceiling"]

    def test_grant_not_found(self, client):
        assert client.get(f"/grants/{uuid.uuid4()}").status_code == 404
        assert client.get("/grants/not-a-uuid").status_code == 404

    def test_duplicate_scan_endpoint(self, client):
        first = client.post("/grants/custom", json={"title": "Arts Fund", "agency": "NEA", "close_date": "2026-09-01"})
        second = client.post("/grants/custom", json={"title": "Arts Fund", "agency": "NEA", "close_date": "2026-09-01"})
        grant_id = first.json()["grant"]["id"]

        response = client.post(f"/sync/duplicates/{grant_id}")
        assert response.status_code == 200
        assert response.json()["duplicates_found"] == 1

        links = client.get(f"/grants/{grant_id}/duplicates").json()
        assert links[0]["duplicate_grant_id"] == second.json()["grant"]["id"]

    def test_stats_endpoints(self, client, stub_sync):
        client.post("/sync/run", json={"source_key": "grants_gov"})

        stats = client.get("/stats")
        assert stats.status_code == 200
        assert len(stats.json()) == 1

        summary = {row["source_key"]: row for row in client.get("/stats/sources").json()}
        assert summary["grants_gov"]["last_job_status"] == "completed"
        assert summary["custom"]["total_grants"] == 0

    def test_invalid_endpoint(self, client):
        response = client.get("/invalid")
        assert response.status_code == 404
