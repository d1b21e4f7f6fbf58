"""
Domain models for the RETS poller.

QueryRequest and TriggerSpec are immutable configuration values built once at
startup. ExecutionResult is the transient outcome of one query in one tick,
and Event is the unit handed to the sink.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Dict, Iterator, List, Literal, Optional

from pydantic import BaseModel, Field

TriggerKind = Literal["cron", "every", "at", "in"]
TRIGGER_KINDS: tuple[str, ...] = ("cron", "every", "at", "in")

FAILURE_TAG = "_rets_request_failure"
FAILURE_FIELD = "rets_request_failure"


class QueryRequest(BaseModel):
    """
    One named RETS search.

    Every field is optional and values are passed through untouched: a
    missing resource or a `limit` of `"NONE"` is the remote server's business,
    not ours. Unknown keys are kept so they still show up in `query_spec`.
    """

    resource: Any = Field(None, description="RETS SearchType, e.g. Property.")
    class_: Any = Field(None, alias="class", description="RETS Class, e.g. RE_1.")
    query: Any = Field(None, description="DMQL2 query string.")
    select: Any = Field(None, description="Comma separated field list; empty = all.")
    limit: Any = Field(None, description="Maximum number of records, or NONE.")

    model_config = {
        "frozen": True,
        "populate_by_name": True,
        "extra": "allow",
    }

    def criteria(self) -> Dict[str, Any]:
        """Search criteria handed to `SessionClient.find`."""
        return {
            "search_type": self.resource,
            "class": self.class_,
            "query": self.query,
            "select": self.select,
            "limit": self.limit,
        }

    def structure(self) -> Dict[str, Any]:
        """String-keyed view of the request, friendlier for logs and indexing."""
        return {str(k): v for k, v in self.model_dump(by_alias=True).items()}


@dataclass(frozen=True)
class TriggerSpec:
    """Normalized schedule: exactly one trigger kind with its raw value."""

    kind: TriggerKind
    value: str

    def as_dict(self) -> Dict[str, str]:
        return {self.kind: self.value}


@dataclass
class ExecutionResult:
    """Outcome of one session cycle for one query."""

    name: str
    request: QueryRequest
    elapsed_seconds: float
    records: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[BaseException] = None
    backtrace: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None


class Event:
    """
    A single emitted unit: a mutable field mapping plus tags.

    Mirrors the shape downstream log pipelines expect: `@timestamp` is set on
    creation and `tags` is a list of markers such as the failure tag.
    """

    def __init__(
        self, fields: Optional[Dict[str, Any]] = None, tags: Optional[List[str]] = None
    ) -> None:
        self._fields: Dict[str, Any] = dict(fields or {})
        self._fields.setdefault("@timestamp", datetime.now(UTC).isoformat())
        self._tags: List[str] = list(tags or [])

    def __getitem__(self, key: str) -> Any:
        return self._fields[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self._fields[key] = value

    def __contains__(self, key: object) -> bool:
        return key in self._fields

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __repr__(self) -> str:
        return f"Event({self.to_dict()!r})"

    def get(self, key: str, default: Any = None) -> Any:
        return self._fields.get(key, default)

    @property
    def tags(self) -> List[str]:
        return list(self._tags)

    def tag(self, value: str) -> None:
        if value not in self._tags:
            self._tags.append(value)

    def to_dict(self) -> Dict[str, Any]:
        payload = dict(self._fields)
        if self._tags:
            payload["tags"] = list(self._tags)
        return payload


__all__ = [
    "TRIGGER_KINDS",
    "FAILURE_TAG",
    "FAILURE_FIELD",
    "TriggerKind",
    "QueryRequest",
    "TriggerSpec",
    "ExecutionResult",
    "Event",
]
