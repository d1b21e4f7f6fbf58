"""
Console sink: pretty-prints each event with rich for interactive runs.
"""

from __future__ import annotations

import threading
from typing import Optional

from rich.console import Console
from rich.pretty import Pretty

from rets_poller.domain.models import FAILURE_TAG, Event
from rets_poller.sinks.abstract import AbstractEventSink


class ConsoleSink(AbstractEventSink):
    def __init__(self, console: Optional[Console] = None) -> None:
        self.console = console or Console()
        self._lock = threading.Lock()

    def push(self, event: Event) -> None:
        style = "red" if FAILURE_TAG in event.tags else None
        with self._lock:
            self.console.print(Pretty(event.to_dict(), expand_all=True), style=style)


__all__ = ["ConsoleSink"]
