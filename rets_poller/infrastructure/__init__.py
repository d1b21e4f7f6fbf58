"""
Infrastructure package for the RETS poller.

Centralizes I/O concerns: the HTTP session client for the RETS server and
the APScheduler-backed tick scheduler. Keep this layer decoupled from the
executor's event-building logic.
"""

from rets_poller.infrastructure.rets_client import RetsSessionClient, SessionClient
from rets_poller.infrastructure.scheduler import PollScheduler, build_trigger, parse_duration

__all__ = [
    "RetsSessionClient",
    "SessionClient",
    "PollScheduler",
    "build_trigger",
    "parse_duration",
]
