"""Content fingerprint used for change detection."""

from __future__ import annotations

import hashlib
import json
from datetime import datetime, timezone
from typing import Optional, Union


def _fold(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def _render_date(value: Union[datetime, str, None]) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat()
    return value.strip()


def generate_content_hash(
    title: Optional[str],
    agency: Optional[str],
    close_date: Union[datetime, str, None],
) -> str:
    """SHA-256 over (title, agency, close_date); case and outer whitespace are ignored.

    Fields are hashed as a JSON array so separators inside values cannot collide.
    """
    hash_input = json.dumps([_fold(title), _fold(agency), _render_date(close_date)])
    return hashlib.sha256(hash_input.encode("utf-8")).hexdigest()
