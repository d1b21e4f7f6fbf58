"""
Stats reporting for RETS session cycles.

`StatsReporter` mirrors the classic statsd trio (`time`, `gauge`, `count`) but
only logs; it is wired in when `collect_stats` is enabled. `NullStatsReporter`
keeps the same interface and does nothing.

Usage:
    stats = build_stats_reporter(enabled=True)
    with stats.time("search"):
        client.find(criteria)
    stats.count("records", 12)
"""

from __future__ import annotations

import contextlib
import time
from dataclasses import dataclass, field
from typing import Any, Generator, Optional, Protocol, runtime_checkable

import psutil

from rets_poller.utils.logging import get_logger

log = get_logger(__name__)


@dataclass
class TimingStats:
    """
    Container for one timed block.
    """

    label: str
    start_ts: float = field(default=0.0)
    end_ts: float = field(default=0.0)
    duration_seconds: float = field(default=0.0)
    rss_bytes: Optional[int] = field(default=None)
    extra: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class StatsCollector(Protocol):
    def time(self, metric_name: str) -> contextlib.AbstractContextManager[TimingStats]: ...

    def gauge(self, metric_name: str, measurement: float) -> None: ...

    def count(self, metric_name: str, count: int = 1) -> None: ...


@contextlib.contextmanager
def timed_block(label: str) -> Generator[TimingStats, None, None]:
    """
    Measure wall-clock duration of a block and the process RSS at its end.
    """
    stats = TimingStats(label=label)
    stats.start_ts = time.perf_counter()
    try:
        yield stats
    finally:
        stats.end_ts = time.perf_counter()
        stats.duration_seconds = stats.end_ts - stats.start_ts
        stats.rss_bytes = psutil.Process().memory_info().rss


class StatsReporter:
    """Logs timings, gauges and counters under a metric prefix."""

    def __init__(self, prefix: str = "rets") -> None:
        self.prefix = prefix

    def _metric(self, metric_name: str) -> str:
        return f"{self.prefix}.{metric_name}" if self.prefix else metric_name

    @contextlib.contextmanager
    def time(self, metric_name: str) -> Generator[TimingStats, None, None]:
        metric = self._metric(metric_name)
        with timed_block(metric) as stats:
            yield stats
        log.info(
            f"{metric} => time: {stats.duration_seconds:.3f}s",
            extra={
                "metric": metric,
                "duration_seconds": stats.duration_seconds,
                "rss_bytes": stats.rss_bytes,
            },
        )

    def gauge(self, metric_name: str, measurement: float) -> None:
        metric = self._metric(metric_name)
        log.info(f"{metric} => gauge: {measurement}", extra={"metric": metric, "gauge": measurement})

    def count(self, metric_name: str, count: int = 1) -> None:
        metric = self._metric(metric_name)
        log.info(f"{metric} => count: {count}", extra={"metric": metric, "count": count})


class NullStatsReporter:
    """Pass-through used when stats collection is disabled."""

    @contextlib.contextmanager
    def time(self, metric_name: str) -> Generator[TimingStats, None, None]:
        yield TimingStats(label=metric_name)

    def gauge(self, metric_name: str, measurement: float) -> None:
        del metric_name, measurement

    def count(self, metric_name: str, count: int = 1) -> None:
        del metric_name, count


def build_stats_reporter(enabled: bool, prefix: str = "rets") -> StatsCollector:
    return StatsReporter(prefix=prefix) if enabled else NullStatsReporter()


__all__ = [
    "NullStatsReporter",
    "StatsCollector",
    "StatsReporter",
    "TimingStats",
    "build_stats_reporter",
    "timed_block",
]
