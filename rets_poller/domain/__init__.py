"""
Domain package for the RETS poller.

Exports the configuration values, events and error types shared by the
executor, scheduler and session client. Keep this package free of I/O.
"""

from rets_poller.domain.errors import (
    ConfigurationError,
    EmissionError,
    RetsPollerError,
    SessionError,
)
from rets_poller.domain.models import (
    FAILURE_FIELD,
    FAILURE_TAG,
    Event,
    ExecutionResult,
    QueryRequest,
    TriggerSpec,
)
from rets_poller.domain.registry import QueryRegistry, register_queries
from rets_poller.domain.triggers import parse_trigger

__all__ = [
    "ConfigurationError",
    "EmissionError",
    "RetsPollerError",
    "SessionError",
    "FAILURE_FIELD",
    "FAILURE_TAG",
    "Event",
    "ExecutionResult",
    "QueryRequest",
    "TriggerSpec",
    "QueryRegistry",
    "register_queries",
    "parse_trigger",
]
