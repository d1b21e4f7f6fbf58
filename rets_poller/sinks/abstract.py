"""
Event sink contracts for the RETS poller.

The executor only ever appends: a sink must accept events in order, must not
block indefinitely, and must be safe to call from the scheduler's worker
thread. Sinks that cannot take an event raise EmissionError.
"""

from __future__ import annotations

import abc
from typing import Protocol, runtime_checkable

from rets_poller.domain.models import Event


@runtime_checkable
class EventSink(Protocol):
    """
    Ordered, unbounded append channel for emitted events.
    """

    def push(self, event: Event) -> None:
        """
        Append one event.

        Raises
        ------
        EmissionError
            If the event cannot be accepted.
        """
        ...


class AbstractEventSink(abc.ABC):
    """
    Optional ABC helper for class-based sinks with resources to release.
    """

    @abc.abstractmethod
    def push(self, event: Event) -> None:  # pragma: no cover - interface only
        """Append one event."""
        raise NotImplementedError

    def close(self) -> None:
        """Release resources; the default sink holds none."""


__all__ = ["EventSink", "AbstractEventSink"]
