"""Shared fixtures: in-memory SQLite catalog, seeded sources, stub adapters."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("SYNC_ENABLED", "false")
os.environ.setdefault("SLACK_WEBHOOK_URL", "")

from typing import Any, Dict, List, Optional

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.errors import SourceUnavailable
from app.ingestion.base import BaseGrantAdapter
from app.models import DEFAULT_SOURCES, Base, GrantSource
from app.schemas.grants import PaginationInfo, SourceFetchResponse, SourceSearchParams


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite defers BEGIN; emit it ourselves so SAVEPOINTs nest correctly
    @event.listens_for(engine, "connect")
    def _connect(dbapi_connection, _record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()
    yield session
    session.close()


@pytest.fixture
def sources(db) -> Dict[str, GrantSource]:
    rows = {}
    for config in DEFAULT_SOURCES:
        source = GrantSource(**config)
        db.add(source)
        rows[source.source_key] = source
    db.commit()
    return rows


class FakeSleep:
    """Records requested delays instead of sleeping."""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def fake_sleep():
    return FakeSleep()


class StubAdapter(BaseGrantAdapter):
    """In-memory source: serves predefined pages and detail records."""

    name = "Stub"

    def __init__(
        self,
        source: GrantSource,
        pages: Optional[List[List[Dict[str, Any]]]] = None,
        details: Optional[Dict[str, Dict[str, Any]]] = None,
        fail_on_page: Optional[int] = None,
        always_has_more: bool = False,
        supports_detail_fetch: bool = False,
    ):
        super().__init__(source)
        self.pages = pages or [[]]
        self.details = details or {}
        self.fail_on_page = fail_on_page
        self.always_has_more = always_has_more
        self.supports_detail_fetch = supports_detail_fetch
        self.requests: List[SourceSearchParams] = []
        self.detail_requests: List[str] = []

    async def fetch_grants(self, params: SourceSearchParams) -> SourceFetchResponse:
        self.requests.append(params)
        if self.fail_on_page == params.page:
            raise SourceUnavailable("Stub API error: 503 Service Unavailable", status_code=503)

        index = params.page - 1
        grants = self.pages[index] if index < len(self.pages) else []
        has_more = self.always_has_more or index + 1 < len(self.pages)
        return SourceFetchResponse(
            grants=grants,
            pagination=PaginationInfo(
                page=params.page,
                limit=params.limit,
                total=sum(len(page) for page in self.pages),
                has_more=has_more,
            ),
        )

    async def fetch_single_grant(self, external_id: str) -> Optional[Dict[str, Any]]:
        self.detail_requests.append(external_id)
        detail = self.details.get(external_id)
        if isinstance(detail, Exception):
            raise detail
        return detail

    def _map(self, raw: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "external_id": raw.get("id"),
            "title": self.clean_text(raw.get("title")),
            "description": self.clean_text(raw.get("description")),
            "agency": self.clean_text(raw.get("agency")),
            "close_date": self.parse_date(raw.get("close_date")),
            "opportunity_status": raw.get("status", "posted"),
        }


def adapter_factory_for(adapter: BaseGrantAdapter):
    """Factory compatible with SyncService that always hands back ``adapter``."""

    def factory(source, api_key=None, client=None):
        adapter.source = source
        return adapter

    return factory


def make_record(external_id: str, title: str = "Rural Broadband Grant", **overrides: Any) -> Dict[str, Any]:
    record = {
        "id": external_id,
        "title": title,
        "agency": "Department of Agriculture",
        "close_date": "2026-06-30T00:00:00Z",
        "status": "posted",
    }
    record.update(overrides)
    return record
