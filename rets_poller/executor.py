"""
Poll executor: one tick = every registered query, one RETS session each.

For each query the executor logs in, searches and always logs out, then turns
the outcome into events:

- success: one event per record, the record at the event root or nested
  under `target`, plus the metadata block when `metadata_target` is set;
- failure: one event tagged `_rets_request_failure` carrying the request,
  query name, error, backtrace and runtime under `rets_request_failure`.

A failing query never stops the tick, and nothing raised while reporting a
failure escapes the executor.

Usage:
    executor = PollExecutor(client, registry, host="poller-1", url=config.url)
    results = executor.run_once(QueueSink())
"""

from __future__ import annotations

import time
import traceback
from typing import Any, Dict, Iterable, List, Optional

from rets_poller.config import DEFAULT_METADATA_TARGET
from rets_poller.domain.models import (
    FAILURE_FIELD,
    FAILURE_TAG,
    Event,
    ExecutionResult,
    QueryRequest,
)
from rets_poller.domain.registry import QueryRegistry
from rets_poller.infrastructure.rets_client import SessionClient
from rets_poller.sinks.abstract import EventSink
from rets_poller.utils.logging import get_logger
from rets_poller.utils.stats import NullStatsReporter, StatsCollector

log = get_logger(__name__)


def _backtrace(exc: BaseException) -> List[str]:
    return [frame.rstrip() for frame in traceback.format_tb(exc.__traceback__)]


class PollExecutor:
    """
    Runs the registry against one shared SessionClient.

    Not thread-safe: the scheduler guarantees ticks never overlap.
    """

    def __init__(
        self,
        client: SessionClient,
        registry: QueryRegistry,
        host: str,
        url: Optional[str] = None,
        target: Optional[str] = None,
        metadata_target: Optional[str] = DEFAULT_METADATA_TARGET,
        event_type: Optional[str] = None,
        tags: Iterable[str] = (),
        stats: Optional[StatsCollector] = None,
    ) -> None:
        self.client = client
        self.registry = registry
        self.host = host
        self.url = url
        self.target = target or None
        self.metadata_target = metadata_target or None
        self.event_type = event_type
        self.tags = list(tags)
        self._stats = stats or NullStatsReporter()

    def run_once(self, sink: EventSink) -> List[ExecutionResult]:
        """
        Run every registered query once, in registry order, and emit events.

        Returns the per-query results for reporting; events have already been
        pushed to `sink` by the time this returns.
        """
        results: List[ExecutionResult] = []
        for name, request in self.registry.items():
            results.append(self.request_rets(sink, name, request))
        return results

    def request_rets(self, sink: EventSink, name: str, request: QueryRequest) -> ExecutionResult:
        result = self.execute(name, request)
        if not result.ok:
            self.handle_failure(sink, result)
            return result

        try:
            self.handle_success(sink, result)
        except Exception as exc:
            log.error(
                "Error while emitting RETS results",
                extra={"query_name": name, "error": str(exc)},
            )
            result.error = exc
            result.backtrace = _backtrace(exc)
            self.handle_failure(sink, result)
        return result

    def execute(self, name: str, request: QueryRequest) -> ExecutionResult:
        """
        One full session cycle: login, find, logout.

        Never raises for login/find errors; they are captured in the result.
        """
        log.debug(
            "Querying RETS",
            extra={"url": self.url, "query_name": name, "request": request.structure()},
        )
        started = time.perf_counter()
        try:
            with self._stats.time("query"):
                self.client.login()
                records = list(self.client.find(request.criteria()))
            result = ExecutionResult(
                name=name,
                request=request,
                elapsed_seconds=time.perf_counter() - started,
                records=records,
            )
            self._stats.count(f"{name}.records", len(records))
        except Exception as exc:
            elapsed = time.perf_counter() - started
            log.error(
                "Error while querying RETS",
                extra={"query_name": name, "error": str(exc), "url": self.url},
            )
            self._stats.count(f"{name}.failures")
            result = ExecutionResult(
                name=name,
                request=request,
                elapsed_seconds=elapsed,
                error=exc,
                backtrace=_backtrace(exc),
            )
        finally:
            self._logout(name)
        return result

    def _logout(self, name: str) -> None:
        try:
            self.client.logout()
        except Exception:
            log.warning(
                "Error while logging out of RETS",
                extra={"query_name": name, "url": self.url},
                exc_info=True,
            )

    def handle_success(self, sink: EventSink, result: ExecutionResult) -> None:
        for record in result.records:
            event = Event({self.target: record}) if self.target else Event(record)
            self.apply_metadata(
                event, result.name, result.request, result.records, result.elapsed_seconds
            )
            self.decorate(event)
            sink.push(event)

    def handle_failure(self, sink: EventSink, result: ExecutionResult) -> None:
        try:
            event = Event()
            self.apply_metadata(
                event, result.name, result.request, elapsed_seconds=result.elapsed_seconds
            )
            event.tag(FAILURE_TAG)
            # Also in the metadata, but sent anyway: metadata is usually
            # stripped downstream and errors must survive.
            event[FAILURE_FIELD] = {
                "request": result.request.structure(),
                "name": result.name,
                "error": str(result.error),
                "backtrace": list(result.backtrace),
                "runtime_seconds": result.elapsed_seconds,
            }
            sink.push(event)
        except Exception as exc:
            log.error(
                "Cannot send RETS query or send the error as an event!",
                exc_info=True,
                extra={
                    "exception": type(exc).__name__,
                    "exception_message": str(exc),
                    "exception_backtrace": _backtrace(exc),
                    "url": self.url,
                    "query_name": result.name,
                    "request": result.request.structure(),
                },
            )

    def decorate(self, event: Event) -> None:
        """Apply the configured `type` and `tags` to a record event."""
        if self.event_type and "type" not in event:
            event["type"] = self.event_type
        for tag in self.tags:
            event.tag(tag)

    def apply_metadata(
        self,
        event: Event,
        name: str,
        request: QueryRequest,
        results: Optional[List[Dict[str, Any]]] = None,
        elapsed_seconds: Optional[float] = None,
    ) -> None:
        if not self.metadata_target:
            return
        event[self.metadata_target] = self.build_metadata(name, request, results, elapsed_seconds)

    def build_metadata(
        self,
        name: str,
        request: QueryRequest,
        results: Optional[List[Dict[str, Any]]] = None,
        elapsed_seconds: Optional[float] = None,
    ) -> Dict[str, Any]:
        """
        Metadata block for one event. Pure: identical inputs give identical output.
        """
        meta: Dict[str, Any] = {
            "host": self.host,
            "query_name": name,
            "query_spec": request.structure(),
            "runtime_seconds": elapsed_seconds,
        }
        if results is not None:
            meta["result_count"] = len(results)
        return meta


__all__ = ["PollExecutor"]
