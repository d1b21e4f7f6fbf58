"""
RETS Poller - scheduled MLS RETS queries emitted as events.

This package polls a set of named queries against an MLS RETS server on a
cron, interval or one-shot schedule and turns the results into events:

- One event per returned record, optionally nested under a target field
- One tagged failure event per failed query, never a crash
- An execution metadata block (host, query, runtime) on every event

Each query runs in its own login/search/logout session; ticks never overlap.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from rets_poller.config import PollerConfig, Settings, get_settings, load_config
from rets_poller.domain import (
    ConfigurationError,
    EmissionError,
    Event,
    ExecutionResult,
    QueryRequest,
    RetsPollerError,
    SessionError,
    TriggerSpec,
    parse_trigger,
    register_queries,
)
from rets_poller.executor import PollExecutor
from rets_poller.infrastructure import PollScheduler, RetsSessionClient, SessionClient
from rets_poller.poller import RetsPoller
from rets_poller.sinks import ConsoleSink, EventSink, JsonLinesSink, QueueSink
from rets_poller.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "PollerConfig",
    "Settings",
    "get_settings",
    "load_config",
    # Domain
    "ConfigurationError",
    "EmissionError",
    "Event",
    "ExecutionResult",
    "QueryRequest",
    "RetsPollerError",
    "SessionError",
    "TriggerSpec",
    "parse_trigger",
    "register_queries",
    # Execution
    "PollExecutor",
    "PollScheduler",
    "RetsPoller",
    "RetsSessionClient",
    "SessionClient",
    # Sinks
    "ConsoleSink",
    "EventSink",
    "JsonLinesSink",
    "QueueSink",
    # Logging
    "configure_logging",
    "get_logger",
]
