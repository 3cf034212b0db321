from app.models.base import Base
from app.models.sources import GrantSource, DEFAULT_SOURCES
from app.models.sync_jobs import SyncJob
from app.models.catalog import CatalogGrant
from app.models.duplicates import GrantDuplicate

__all__ = [
    "Base",
    "GrantSource",
    "DEFAULT_SOURCES",
    "SyncJob",
    "CatalogGrant",
    "GrantDuplicate",
]
