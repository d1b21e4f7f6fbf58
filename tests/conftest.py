"""
Pytest configuration for the RETS poller.

Provides fixtures for:
- Executors over a scriptable in-memory session client
- Raw and validated poller configuration
- Settings override for tests
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Mapping

import pytest

from rets_poller.config import PollerConfig, Settings
from rets_poller.domain.registry import register_queries
from rets_poller.executor import PollExecutor
from rets_poller.sinks.queue_sink import QueueSink
from tests.helpers import TEST_HOST, TEST_URL, FakeSessionClient


@pytest.fixture()
def raw_config() -> Dict[str, Any]:
    return {
        "url": TEST_URL,
        "username": "retsuser",
        "password": "retspwd",
        "user_agent": "poller/1.0",
        "schedule": {"every": "1h"},
        "queries": {
            "properties": {
                "resource": "Property",
                "class": "RE_1",
                "query": "(L_Status=|1)",
                "select": "",
                "limit": 1000,
            }
        },
    }


@pytest.fixture()
def poller_config(raw_config: Dict[str, Any]) -> PollerConfig:
    return PollerConfig(**raw_config)


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.
    """
    return Settings(log_level="DEBUG", http_timeout_seconds=5.0, login_retry_attempts=1)


@pytest.fixture()
def sink() -> QueueSink:
    return QueueSink()


@pytest.fixture()
def make_executor() -> Callable[..., PollExecutor]:
    """
    Build a PollExecutor over raw query specs with test defaults.
    """

    def factory(
        client: FakeSessionClient,
        queries: Mapping[str, Any],
        **options: Any,
    ) -> PollExecutor:
        options.setdefault("host", TEST_HOST)
        options.setdefault("url", TEST_URL)
        return PollExecutor(client=client, registry=register_queries(queries), **options)

    return factory
