"""
Poller lifecycle: register, start, stop.

Usage (embedding):
    from rets_poller import QueueSink, RetsPoller, load_config

    poller = RetsPoller(load_config("rets.toml"))
    sink = QueueSink()
    poller.start(sink)      # validates the schedule, first tick follows
    ...
    poller.stop()           # no more ticks, session logged out
"""

from __future__ import annotations

import socket
from typing import List, Optional

from rets_poller.config import PollerConfig, Settings, get_settings
from rets_poller.domain.errors import RetsPollerError
from rets_poller.domain.models import ExecutionResult
from rets_poller.domain.registry import QueryRegistry, register_queries
from rets_poller.domain.triggers import parse_trigger
from rets_poller.executor import PollExecutor
from rets_poller.infrastructure.rets_client import RetsSessionClient, SessionClient
from rets_poller.infrastructure.scheduler import PollScheduler
from rets_poller.sinks.abstract import EventSink
from rets_poller.utils.logging import get_logger
from rets_poller.utils.stats import build_stats_reporter

log = get_logger(__name__)


def resolve_host() -> str:
    """Local hostname, attached to every metadata block."""
    return socket.gethostname()


class RetsPoller:
    """
    Owns the session client, the query registry and the scheduler.

    `client` and `host` may be injected (tests, embedding); otherwise an
    httpx-backed RetsSessionClient and the local hostname are used.
    """

    def __init__(
        self,
        config: PollerConfig,
        settings: Optional[Settings] = None,
        client: Optional[SessionClient] = None,
        host: Optional[str] = None,
    ) -> None:
        self.config = config
        self.settings = settings or get_settings()
        self._client = client
        self._host = host
        self.registry: Optional[QueryRegistry] = None
        self.executor: Optional[PollExecutor] = None
        self.scheduler: Optional[PollScheduler] = None

    @property
    def client(self) -> Optional[SessionClient]:
        return self._client

    def register(self) -> PollExecutor:
        """
        Resolve the host, build the client and registry. Idempotent.

        Raises ConfigurationError for a malformed query entry.
        """
        if self.executor is not None:
            return self.executor

        host = self._host or resolve_host()
        log.info(
            "Registering RETS input",
            extra={"url": self.config.url, "schedule": self.config.schedule, "type": self.config.type},
        )
        stats = build_stats_reporter(self.config.collect_stats)
        registry = register_queries(self.config.queries)
        if self._client is None:
            self._client = RetsSessionClient.from_config(self.config, self.settings, stats=stats)

        self._host = host
        self.registry = registry
        self.executor = PollExecutor(
            client=self._client,
            registry=registry,
            host=host,
            url=self.config.url,
            target=self.config.target,
            metadata_target=self.config.metadata_target,
            event_type=self.config.type,
            tags=self.config.tags,
            stats=stats,
        )
        return self.executor

    def run_once(self, sink: EventSink) -> List[ExecutionResult]:
        """Run a single tick synchronously on the calling thread."""
        return self.register().run_once(sink)

    def _tick(self, sink: EventSink) -> None:
        # Last resort: the scheduler thread must survive any tick.
        try:
            results = self.run_once(sink)
        except Exception:
            log.exception("Unexpected error during RETS poll tick", extra={"url": self.config.url})
            return
        failed = sum(1 for result in results if not result.ok)
        log.info(
            "RETS poll tick finished",
            extra={"queries": len(results), "failed": failed},
        )

    def start(self, sink: EventSink) -> None:
        """
        Validate the configuration and begin scheduling ticks.

        Raises ConfigurationError (before any tick fires) for a bad schedule,
        trigger value or query entry.
        """
        if self.scheduler is not None and self.scheduler.running:
            raise RetsPollerError("Poller already started")
        trigger = parse_trigger(self.config.schedule)
        self.register()
        scheduler = PollScheduler(trigger)
        scheduler.start(lambda: self._tick(sink))
        self.scheduler = scheduler

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until stopped or a one-shot schedule has fired."""
        if self.scheduler is None:
            return True
        return self.scheduler.wait(timeout)

    def stop(self, wait: bool = False) -> None:
        """
        Stop scheduling and log the session out.

        An in-flight tick is not interrupted.
        """
        if self.scheduler is not None:
            self.scheduler.stop(wait=wait)
        if self._client is not None:
            try:
                self._client.logout()
            except Exception:
                log.warning("Error while logging out of RETS on stop", exc_info=True)

    def close(self) -> None:
        """Stop, then release the HTTP client when we own one."""
        self.stop(wait=True)
        if isinstance(self._client, RetsSessionClient):
            self._client.close()


__all__ = ["RetsPoller", "resolve_host"]
