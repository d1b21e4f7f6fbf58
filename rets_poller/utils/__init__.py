"""
Utilities package for the RETS poller.

Exports shared helpers for logging and stats reporting. Keep this package
lightweight and free of domain-specific logic.
"""

from rets_poller.utils.logging import configure_logging, get_logger
from rets_poller.utils.stats import (
    NullStatsReporter,
    StatsCollector,
    StatsReporter,
    TimingStats,
    build_stats_reporter,
    timed_block,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "NullStatsReporter",
    "StatsCollector",
    "StatsReporter",
    "TimingStats",
    "build_stats_reporter",
    "timed_block",
]
