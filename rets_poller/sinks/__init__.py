"""
Sinks package for the RETS poller.

Re-exports the sink contract and the bundled sinks so callers can import
from `rets_poller.sinks` directly.
"""

from rets_poller.sinks.abstract import AbstractEventSink, EventSink
from rets_poller.sinks.console import ConsoleSink
from rets_poller.sinks.jsonl import JsonLinesSink
from rets_poller.sinks.queue_sink import QueueSink

__all__ = [
    # Abstracts
    "AbstractEventSink",
    "EventSink",
    # Concrete sinks
    "ConsoleSink",
    "JsonLinesSink",
    "QueueSink",
]
