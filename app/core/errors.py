"""Exception taxonomy and job error codes for the sync pipeline."""

from __future__ import annotations

from typing import Optional

# Error codes written to SyncJob.errors
FETCH_ERROR = "FETCH_ERROR"
NORMALIZATION_ERROR = "NORMALIZATION_ERROR"
PROCESSING_ERROR = "PROCESSING_ERROR"
NOT_FOUND = "NOT_FOUND"
DETAIL_FETCH_ERROR = "DETAIL_FETCH_ERROR"
PAGE_LIMIT_REACHED = "PAGE_LIMIT_REACHED"


class GrantSyncError(Exception):
    """Base class for pipeline errors."""


class SourceNotFound(GrantSyncError):
    """No source is configured under the requested key."""

    def __init__(self, source_key: str):
        super().__init__(f"Source not found: {source_key}")
        self.source_key = source_key


class UnsupportedSource(GrantSyncError):
    """A source exists but no adapter implements it."""

    def __init__(self, source_key: str):
        super().__init__(f"Unknown source type: {source_key}")
        self.source_key = source_key


class SourceUnavailable(GrantSyncError):
    """Transport or HTTP failure talking to an external source."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ValidationError(GrantSyncError):
    """A single record failed required-field checks during normalization."""

    def __init__(self, message: str, external_id: Optional[str] = None):
        super().__init__(message)
        self.external_id = external_id


class SyncInProgress(GrantSyncError):
    """Another run holds the advisory lock for this source."""

    def __init__(self, source_key: str):
        super().__init__(f"Sync already in progress for source: {source_key}")
        self.source_key = source_key


class JobStateError(GrantSyncError):
    """Attempted to mutate a job that already reached a terminal state."""


class MissingExternalId(GrantSyncError):
    """A single-grant sync was requested without an external_id."""

    def __init__(self):
        super().__init__("external_id is required for a single-grant sync")
