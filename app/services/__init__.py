# Services package
from app.services.catalog_service import CatalogService
from app.services.data_service import DataService
from app.services.duplicate_service import CatalogSimilarityStrategy, DuplicateFinder
from app.services.job_store import JobStore
from app.services.sync_service import SyncService

__all__ = [
    "CatalogService",
    "CatalogSimilarityStrategy",
    "DataService",
    "DuplicateFinder",
    "JobStore",
    "SyncService",
]
