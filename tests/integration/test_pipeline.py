"""
End-to-end tick against an in-memory RETS server.

Wires the real httpx session client into the poller through
`httpx.MockTransport`, so login, search, logout and event building all run
exactly as in production without network access.
"""

from __future__ import annotations

from typing import List

import httpx

from rets_poller.config import PollerConfig
from rets_poller.domain.models import FAILURE_FIELD, FAILURE_TAG
from rets_poller.infrastructure.rets_client import RetsSessionClient
from rets_poller.poller import RetsPoller
from rets_poller.sinks.queue_sink import QueueSink
from tests.helpers import TEST_HOST, TEST_URL

LOGIN_PATH = httpx.URL(TEST_URL).path

LOGIN_BODY = (
    '<RETS ReplyCode="0" ReplyText="Operation Successful"><RETS-RESPONSE>\n'
    "Search=/rets/Search\n"
    "Logout=/rets/Logout\n"
    "</RETS-RESPONSE></RETS>"
)
SEARCH_BODY = (
    '<RETS ReplyCode="0"><DELIMITER value="09"/>'
    "<COLUMNS>\tListingID\tListPrice\t</COLUMNS>"
    "<DATA>\t1001\t150000\t</DATA>"
    "<DATA>\t1002\t275000\t</DATA>"
    "</RETS>"
)
BAD_QUERY_BODY = '<RETS ReplyCode="20206" ReplyText="Invalid Query Syntax"/>'
OK_BODY = '<RETS ReplyCode="0"/>'


class FakeRetsServer:
    def __init__(self) -> None:
        self.paths: List[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.paths.append(request.url.path)
        if request.url.path == LOGIN_PATH:
            return httpx.Response(200, text=LOGIN_BODY)
        if request.url.path == "/rets/Search":
            if request.url.params["Query"] == "(broken":
                return httpx.Response(200, text=BAD_QUERY_BODY)
            return httpx.Response(200, text=SEARCH_BODY)
        return httpx.Response(200, text=OK_BODY)


def _poller(raw_config, settings, server: FakeRetsServer) -> RetsPoller:
    config = PollerConfig(**raw_config)
    client = RetsSessionClient.from_config(
        config, settings, transport=httpx.MockTransport(server)
    )
    return RetsPoller(config, settings=settings, client=client, host=TEST_HOST)


def test_tick_emits_records_and_failures(raw_config, test_settings) -> None:
    raw_config["target"] = "listing"
    raw_config["queries"]["broken"] = {"resource": "Property", "class": "RE_1", "query": "(broken"}
    server = FakeRetsServer()
    poller = _poller(raw_config, test_settings, server)
    sink = QueueSink()

    try:
        results = poller.run_once(sink)
    finally:
        poller.close()

    assert [result.ok for result in results] == [True, False]
    assert server.paths[:6] == [
        LOGIN_PATH,
        "/rets/Search",
        "/rets/Logout",
        LOGIN_PATH,
        "/rets/Search",
        "/rets/Logout",
    ]

    first, second, failure = sink.drain()
    assert first["listing"] == {"ListingID": "1001", "ListPrice": "150000"}
    assert second["listing"]["ListingID"] == "1002"
    assert first["@metadata"]["result_count"] == 2
    assert FAILURE_TAG in failure.tags
    assert failure[FAILURE_FIELD]["error"] == "Invalid Query Syntax"
    assert failure[FAILURE_FIELD]["name"] == "broken"
