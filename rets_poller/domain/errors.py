"""
Error taxonomy for the RETS poller.

ConfigurationError is fatal and only raised at startup. SessionError is raised
by session clients and recovered per query. EmissionError marks a failure
while building or pushing the failure event itself; it is logged, never raised
out of a tick.
"""

from __future__ import annotations


class RetsPollerError(Exception):
    """Base class for all poller errors."""


class ConfigurationError(RetsPollerError):
    """Malformed trigger spec, query entry or poller option."""


class SessionError(RetsPollerError):
    """Login, search or logout failure against the remote source."""

    def __init__(self, message: str, reply_code: int | None = None) -> None:
        super().__init__(message)
        self.reply_code = reply_code


class EmissionError(RetsPollerError):
    """Failure event could not be constructed or pushed to the sink."""


__all__ = [
    "RetsPollerError",
    "ConfigurationError",
    "SessionError",
    "EmissionError",
]
