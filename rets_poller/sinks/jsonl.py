"""
JSON-lines file sink: one event per line, appended and flushed per event.
"""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import IO, Optional

from rets_poller.domain.errors import EmissionError
from rets_poller.domain.models import Event
from rets_poller.sinks.abstract import AbstractEventSink
from rets_poller.utils.logging import get_logger

log = get_logger(__name__)


class JsonLinesSink(AbstractEventSink):
    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()
        self._handle: Optional[IO[str]] = None

    def _open(self) -> IO[str]:
        if self._handle is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._handle = self.path.open("a", encoding="utf-8")
            log.info("Writing events", extra={"path": str(self.path)})
        return self._handle

    def push(self, event: Event) -> None:
        line = json.dumps(event.to_dict(), sort_keys=True, default=str)
        with self._lock:
            try:
                handle = self._open()
                handle.write(line + "\n")
                handle.flush()
            except OSError as exc:
                raise EmissionError(f"Cannot write event to '{self.path}': {exc}") from exc

    def close(self) -> None:
        with self._lock:
            if self._handle is not None:
                self._handle.close()
                self._handle = None


__all__ = ["JsonLinesSink"]
