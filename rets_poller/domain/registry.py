"""
Query registry: named RETS searches normalized once at startup.
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, Dict

from rets_poller.domain.errors import ConfigurationError
from rets_poller.domain.models import QueryRequest

QueryRegistry = Mapping[str, QueryRequest]


def _normalize_key(key: Any) -> str:
    """`"Resource"`, `":resource"` and `"resource"` all become `resource`."""
    return str(key).strip().lstrip(":").lower()


def build_request(name: str, raw_spec: Any) -> QueryRequest:
    """
    Normalize one raw query entry. Values are not validated.

    Raises ConfigurationError for a non-mapping entry, or when two keys
    normalize to the same field (``"Resource"`` and ``":resource"``).
    """
    if not isinstance(raw_spec, Mapping):
        raise ConfigurationError(
            f"Invalid request spec for query '{name}': '{raw_spec}', expected a mapping!"
        )
    spec: Dict[str, Any] = {}
    for raw_key, value in raw_spec.items():
        key = _normalize_key(raw_key)
        if key in spec:
            raise ConfigurationError(
                f"Invalid request spec for query '{name}': key '{raw_key}' duplicates '{key}'"
            )
        spec[key] = value
    return QueryRequest.model_validate(spec)


def register_queries(raw_queries: Mapping[str, Any]) -> QueryRegistry:
    """
    Build the read-only registry from raw configuration.

    Iteration order is the configuration's insertion order. Raises
    ConfigurationError when an entry is not a key/value mapping.
    """
    if not isinstance(raw_queries, Mapping):
        raise ConfigurationError(f"Invalid queries: '{raw_queries}', expected a mapping!")

    requests: Dict[str, QueryRequest] = {
        str(name): build_request(str(name), raw_spec) for name, raw_spec in raw_queries.items()
    }
    return MappingProxyType(requests)


__all__ = ["QueryRegistry", "build_request", "register_queries"]
