"""
In-process sink backed by `queue.Queue`, the hand-off point for embedding the
poller in another application.
"""

from __future__ import annotations

import queue
from typing import List, Optional

from rets_poller.domain.errors import EmissionError
from rets_poller.domain.models import Event
from rets_poller.sinks.abstract import AbstractEventSink


class QueueSink(AbstractEventSink):
    """Thread-safe FIFO of events; unbounded unless `maxsize` is given."""

    def __init__(self, maxsize: int = 0) -> None:
        self.queue: "queue.Queue[Event]" = queue.Queue(maxsize=maxsize)

    def push(self, event: Event) -> None:
        try:
            self.queue.put_nowait(event)
        except queue.Full as exc:
            raise EmissionError(f"Event queue is full ({self.queue.maxsize} events)") from exc

    def get(self, timeout: Optional[float] = None) -> Event:
        return self.queue.get(timeout=timeout)

    def drain(self) -> List[Event]:
        """Remove and return every queued event without blocking."""
        events: List[Event] = []
        while True:
            try:
                events.append(self.queue.get_nowait())
            except queue.Empty:
                return events

    def __len__(self) -> int:
        return self.queue.qsize()


__all__ = ["QueueSink"]
