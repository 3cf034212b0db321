"""Source key to adapter class lookup."""

from __future__ import annotations

from typing import Dict, List, Optional, Type

import httpx

from app.core.errors import UnsupportedSource
from app.models.sources import GrantSource
from .base import BaseGrantAdapter
from .custom import CustomGrantAdapter
from .grants_gov import GrantsGovAdapter
from .opengrants import OpenGrantsAdapter

ADAPTERS: Dict[str, Type[BaseGrantAdapter]] = {
    "grants_gov": GrantsGovAdapter,
    "opengrants": OpenGrantsAdapter,
    "custom": CustomGrantAdapter,
    # Hand-curated until the state portal exposes an API
    "ca_state_portal": CustomGrantAdapter,
}

_ADAPTER_TYPES = {
    "grants_gov": "federal",
    "opengrants": "private",
    "custom": "custom",
    "ca_state_portal": "state",
}


def create_adapter(
    source: GrantSource,
    api_key: Optional[str] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> BaseGrantAdapter:
    adapter_cls = ADAPTERS.get(source.source_key)
    if adapter_cls is None:
        raise UnsupportedSource(source.source_key)
    return adapter_cls(source, api_key=api_key, client=client)


def available_adapters() -> List[Dict[str, str]]:
    return [
        {"key": key, "name": adapter_cls.name, "type": _ADAPTER_TYPES[key]}
        for key, adapter_cls in ADAPTERS.items()
    ]
