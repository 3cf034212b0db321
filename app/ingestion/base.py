"""Abstract grant source adapter."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from app.core.config import settings
from app.core.errors import SourceUnavailable, ValidationError
from app.ingestion.hashing import generate_content_hash
from app.models.sources import GrantSource
from app.schemas.grants import NormalizedGrant, SourceFetchResponse, SourceSearchParams

_WHITESPACE_RE = re.compile(r"\s+")
_NON_NUMERIC_RE = re.compile(r"[^0-9.\-]")
_DATE_FORMATS = (
    "%m/%d/%Y",
    "%Y-%m-%d",
    "%b %d, %Y",
    "%B %d, %Y",
    "%b %d, %Y %I:%M:%S %p",
    "%m/%d/%Y %I:%M:%S %p",
)
# US zone abbreviations seen in Grants.gov detail timestamps, as UTC offsets in hours
_ZONE_OFFSETS = {
    "UTC": 0,
    "GMT": 0,
    "EST": -5,
    "EDT": -4,
    "CST": -6,
    "CDT": -5,
    "MST": -7,
    "MDT": -6,
    "PST": -8,
    "PDT": -7,
}


class BaseGrantAdapter(ABC):
    """Fetches raw records from one source and maps them onto NormalizedGrant.

    Subclasses implement the two fetch coroutines and ``_map``; the base class
    owns required-field checks, hashing, and HTTP error mapping so every
    source fails the same way.
    """

    name: str = "source"
    default_base_url: Optional[str] = None
    supports_detail_fetch: bool = False

    def __init__(
        self,
        source: GrantSource,
        api_key: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        self.source = source
        self.api_key = api_key
        self._client = client
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS

    @property
    def source_key(self) -> str:
        return self.source.source_key

    @property
    def base_url(self) -> str:
        return (self.source.api_base_url or self.default_base_url or "").rstrip("/")

    @property
    def rate_limit(self) -> int:
        """Requests-per-minute ceiling for this source."""
        return self.source.effective_rate_limit

    def validate_credentials(self) -> bool:
        if self.source.api_key_required and not self.api_key:
            return False
        return True

    def is_api_enabled(self) -> bool:
        return bool(self.source.api_enabled)

    @abstractmethod
    async def fetch_grants(self, params: SourceSearchParams) -> SourceFetchResponse:
        """Fetch one page of raw records."""

    @abstractmethod
    async def fetch_single_grant(self, external_id: str) -> Optional[Dict[str, Any]]:
        """Fetch one raw record; None when the id does not exist upstream."""

    @abstractmethod
    def _map(self, raw: Dict[str, Any]) -> Dict[str, Any]:
        """Map a raw record onto NormalizedGrant fields (hash excluded)."""

    def external_id_of(self, raw: Dict[str, Any]) -> Optional[str]:
        """Upstream identifier of a raw record, used for detail calls and error reports."""
        value = raw.get("id")
        return str(value) if value not in (None, "") else None

    def normalize_grant(self, raw: Dict[str, Any]) -> NormalizedGrant:
        fields = self._map(raw)
        external_id = fields.get("external_id")
        if not external_id:
            raise ValidationError(f"{self.name} grant is missing an external identifier")
        if not fields.get("title"):
            raise ValidationError(
                f"Grant {external_id} is missing required title field - skipping",
                external_id=str(external_id),
            )

        fields["content_hash"] = self.generate_content_hash(
            fields.get("title"), fields.get("agency"), fields.get("close_date")
        )
        try:
            return NormalizedGrant(source_key=self.source_key, **fields)
        except PydanticValidationError as exc:
            raise ValidationError(f"Grant {external_id} failed validation: {exc}", external_id=str(external_id)) from exc

    @staticmethod
    def generate_content_hash(title: Optional[str], agency: Optional[str], close_date: Any) -> str:
        return generate_content_hash(title, agency, close_date)

    # -------------------------------------------------------------------------
    # HTTP
    # -------------------------------------------------------------------------
    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            if self._client is not None:
                return await self._client.request(method, url, **kwargs)
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                return await client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise SourceUnavailable(f"{self.name} request failed: {exc}") from exc

    def _raise_for_status(self, response: httpx.Response) -> None:
        if response.is_success:
            return
        raise SourceUnavailable(
            f"{self.name} API error: {response.status_code} {response.reason_phrase}",
            status_code=response.status_code,
            body=response.text[:2000],
        )

    @staticmethod
    def _json(response: httpx.Response, source_name: str) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise SourceUnavailable(
                f"{source_name} returned a non-JSON body",
                status_code=response.status_code,
                body=response.text[:2000],
            ) from exc

    # -------------------------------------------------------------------------
    # Cleaning helpers
    # -------------------------------------------------------------------------
    @staticmethod
    def clean_text(value: Any) -> Optional[str]:
        if value is None:
            return None
        text = _WHITESPACE_RE.sub(" ", str(value)).strip()
        return text or None

    @staticmethod
    def parse_date(value: Any) -> Optional[datetime]:
        if not value:
            return None
        if isinstance(value, datetime):
            parsed = value
        else:
            text = str(value).strip()
            zone = timezone.utc
            head, _, suffix = text.rpartition(" ")
            if head and suffix.upper() in _ZONE_OFFSETS:
                text = head
                zone = timezone(timedelta(hours=_ZONE_OFFSETS[suffix.upper()]))
            parsed = None
            try:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError:
                for fmt in _DATE_FORMATS:
                    try:
                        parsed = datetime.strptime(text, fmt)
                        break
                    except ValueError:
                        continue
            if parsed is None:
                return None
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=zone)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)

    @staticmethod
    def parse_number(value: Any) -> Optional[float]:
        if isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            return float(value)
        if isinstance(value, str):
            cleaned = _NON_NUMERIC_RE.sub("", value)
            try:
                return float(cleaned)
            except ValueError:
                return None
        return None

    @classmethod
    def parse_int(cls, value: Any) -> Optional[int]:
        number = cls.parse_number(value)
        return int(number) if number is not None else None

    @staticmethod
    def as_list(value: Any) -> Optional[list]:
        if value is None or value == "" or value == []:
            return None
        if isinstance(value, (list, tuple)):
            return [str(v) for v in value if v not in (None, "")] or None
        return [str(value)]
