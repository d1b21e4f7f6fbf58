from __future__ import annotations

import logging

import pytest

from rets_poller.domain.errors import EmissionError, SessionError
from rets_poller.domain.models import FAILURE_FIELD, FAILURE_TAG, Event
from rets_poller.sinks.queue_sink import QueueSink
from tests.helpers import TEST_HOST, TEST_URL, FakeSessionClient

PROPERTY_QUERY = "(L_Status=|1)"
OFFICE_QUERY = "(OfficeStatus=A)"

QUERIES = {
    "properties": {
        "resource": "Property",
        "class": "RE_1",
        "query": PROPERTY_QUERY,
        "select": "",
        "limit": 1000,
    },
    "offices": {"resource": "Office", "class": "Office", "query": OFFICE_QUERY},
}

RECORDS = [
    {"ListingID": "1001", "ListPrice": "150000"},
    {"ListingID": "1002", "ListPrice": "275000"},
]


class _ExplodingSink:
    def __init__(self) -> None:
        self.attempts = 0

    def push(self, event: Event) -> None:
        self.attempts += 1
        raise EmissionError("sink is gone")


def test_success_emits_one_event_per_record_with_metadata(make_executor, sink) -> None:
    client = FakeSessionClient(results={PROPERTY_QUERY: RECORDS})
    executor = make_executor(client, {"properties": QUERIES["properties"]})

    executor.run_once(sink)
    events = sink.drain()

    assert len(events) == len(RECORDS)
    for event, record in zip(events, RECORDS):
        assert event["ListingID"] == record["ListingID"]
        assert FAILURE_TAG not in event.tags
        meta = event["@metadata"]
        assert meta["host"] == TEST_HOST
        assert meta["query_name"] == "properties"
        assert meta["query_spec"]["resource"] == "Property"
        assert meta["query_spec"]["class"] == "RE_1"
        assert meta["runtime_seconds"] >= 0
        assert meta["result_count"] == len(RECORDS)


def test_success_nests_records_under_target(make_executor, sink) -> None:
    client = FakeSessionClient(results={PROPERTY_QUERY: RECORDS})
    executor = make_executor(client, {"properties": QUERIES["properties"]}, target="listing")

    executor.run_once(sink)
    events = sink.drain()

    assert [event["listing"] for event in events] == RECORDS
    assert all("ListingID" not in event for event in events)


def test_session_cycle_per_query_in_registry_order(make_executor, sink) -> None:
    client = FakeSessionClient(results={PROPERTY_QUERY: RECORDS, OFFICE_QUERY: [{"OfficeID": "7"}]})
    executor = make_executor(client, QUERIES)

    results = executor.run_once(sink)

    assert [result.name for result in results] == ["properties", "offices"]
    assert client.calls == ["login", "find", "logout"] * len(QUERIES)
    assert client.criteria[0] == {
        "search_type": "Property",
        "class": "RE_1",
        "query": PROPERTY_QUERY,
        "select": "",
        "limit": 1000,
    }


def test_zero_records_emit_nothing(make_executor, sink) -> None:
    client = FakeSessionClient(results={PROPERTY_QUERY: []})
    executor = make_executor(client, {"properties": QUERIES["properties"]})

    results = executor.run_once(sink)

    assert results[0].ok
    assert len(sink) == 0


def test_login_failure_emits_single_tagged_failure_event(make_executor, sink) -> None:
    client = FakeSessionClient(login_error=SessionError("auth failed"))
    executor = make_executor(client, {"properties": QUERIES["properties"]})

    executor.run_once(sink)
    events = sink.drain()

    assert len(events) == 1
    event = events[0]
    assert FAILURE_TAG in event.tags
    failure = event[FAILURE_FIELD]
    assert failure["error"] == "auth failed"
    assert failure["name"] == "properties"
    assert failure["request"] == {
        "resource": "Property",
        "class": "RE_1",
        "query": PROPERTY_QUERY,
        "select": "",
        "limit": 1000,
    }
    assert isinstance(failure["backtrace"], list) and failure["backtrace"]
    assert failure["runtime_seconds"] >= 0
    assert event["@metadata"]["query_name"] == "properties"
    assert "result_count" not in event["@metadata"]
    # login failed, logout is still attempted
    assert client.calls == ["login", "logout"]


def test_find_failure_does_not_stop_following_queries(make_executor, sink) -> None:
    client = FakeSessionClient(
        results={PROPERTY_QUERY: RuntimeError("search blew up"), OFFICE_QUERY: [{"OfficeID": "7"}]}
    )
    executor = make_executor(client, QUERIES)

    results = executor.run_once(sink)
    events = sink.drain()

    assert [result.ok for result in results] == [False, True]
    assert client.calls.count("login") == len(QUERIES)
    assert client.calls.count("logout") == len(QUERIES)
    assert events[0][FAILURE_FIELD]["error"] == "search blew up"
    assert events[1]["OfficeID"] == "7"


def test_metadata_absent_when_metadata_target_empty(make_executor, sink) -> None:
    client = FakeSessionClient(results={PROPERTY_QUERY: RECORDS}, login_error=None)
    executor = make_executor(client, {"properties": QUERIES["properties"]}, metadata_target="")

    executor.run_once(sink)
    events = sink.drain()

    assert events
    assert all("@metadata" not in event for event in events)


def test_failure_payload_kept_when_metadata_disabled(make_executor, sink) -> None:
    client = FakeSessionClient(login_error=SessionError("auth failed"))
    executor = make_executor(client, {"properties": QUERIES["properties"]}, metadata_target=None)

    executor.run_once(sink)
    (event,) = sink.drain()

    assert "@metadata" not in event
    assert event[FAILURE_FIELD]["error"] == "auth failed"


def test_custom_metadata_target(make_executor, sink) -> None:
    client = FakeSessionClient(results={PROPERTY_QUERY: RECORDS[:1]})
    executor = make_executor(
        client, {"properties": QUERIES["properties"]}, metadata_target="rets_meta"
    )

    executor.run_once(sink)
    (event,) = sink.drain()

    assert event["rets_meta"]["query_name"] == "properties"
    assert "@metadata" not in event


def test_query_spec_is_string_keyed_regardless_of_raw_keys(make_executor) -> None:
    client = FakeSessionClient()
    raw = {":Resource": "Property", "CLASS": "RE_1", ":query": PROPERTY_QUERY}
    executor = make_executor(client, {"properties": raw})
    request = executor.registry["properties"]

    meta = executor.build_metadata("properties", request)

    assert meta["query_spec"] == {
        "resource": "Property",
        "class": "RE_1",
        "query": PROPERTY_QUERY,
        "select": None,
        "limit": None,
    }
    assert all(isinstance(key, str) for key in meta["query_spec"])


def test_build_metadata_is_idempotent(make_executor) -> None:
    executor = make_executor(FakeSessionClient(), {"properties": QUERIES["properties"]})
    request = executor.registry["properties"]

    first = executor.build_metadata("properties", request, RECORDS, 0.25)
    second = executor.build_metadata("properties", request, RECORDS, 0.25)

    assert first == second
    assert first == {
        "host": TEST_HOST,
        "query_name": "properties",
        "query_spec": request.structure(),
        "runtime_seconds": 0.25,
        "result_count": len(RECORDS),
    }


def test_logout_failure_is_logged_and_tick_continues(make_executor, sink, caplog) -> None:
    client = FakeSessionClient(
        results={PROPERTY_QUERY: RECORDS, OFFICE_QUERY: [{"OfficeID": "7"}]},
        logout_error=SessionError("logout refused"),
    )
    executor = make_executor(client, QUERIES)

    with caplog.at_level(logging.WARNING, logger="rets_poller.executor"):
        results = executor.run_once(sink)

    assert [result.ok for result in results] == [True, True]
    assert len(sink) == len(RECORDS) + 1
    assert "Error while logging out of RETS" in caplog.text


def test_failure_event_emission_errors_are_swallowed(make_executor, caplog) -> None:
    client = FakeSessionClient(login_error=SessionError("auth failed"))
    executor = make_executor(client, QUERIES)
    broken_sink = _ExplodingSink()

    with caplog.at_level(logging.ERROR, logger="rets_poller.executor"):
        results = executor.run_once(broken_sink)

    assert len(results) == len(QUERIES)
    assert broken_sink.attempts == len(QUERIES)
    record = next(
        r for r in caplog.records if r.getMessage().startswith("Cannot send RETS query")
    )
    assert record.url == TEST_URL
    assert record.query_name == "properties"
    assert record.exception_message == "sink is gone"
    assert record.request["resource"] == "Property"


def test_success_emission_error_becomes_failure_event(make_executor) -> None:
    class _RejectRecordsSink(QueueSink):
        def push(self, event: Event) -> None:
            if FAILURE_TAG not in event.tags:
                raise EmissionError("records rejected")
            super().push(event)

    client = FakeSessionClient(results={PROPERTY_QUERY: RECORDS})
    executor = make_executor(client, {"properties": QUERIES["properties"]})
    sink = _RejectRecordsSink()

    (result,) = executor.run_once(sink)
    (event,) = sink.drain()

    assert result.ok is False
    assert event[FAILURE_FIELD]["error"] == "records rejected"


def test_decorate_applies_type_and_tags_to_record_events_only(make_executor, sink) -> None:
    client = FakeSessionClient(
        results={PROPERTY_QUERY: RECORDS[:1], OFFICE_QUERY: SessionError("no offices")}
    )
    executor = make_executor(client, QUERIES, event_type="listing", tags=["mls", "nightly"])

    executor.run_once(sink)
    record_event, failure_event = sink.drain()

    assert record_event["type"] == "listing"
    assert record_event.tags == ["mls", "nightly"]
    assert "type" not in failure_event
    assert failure_event.tags == [FAILURE_TAG]


@pytest.mark.parametrize("record_type", ["Residential"])
def test_decorate_keeps_existing_type(make_executor, sink, record_type) -> None:
    client = FakeSessionClient(results={PROPERTY_QUERY: [{"type": record_type}]})
    executor = make_executor(client, {"properties": QUERIES["properties"]}, event_type="listing")

    executor.run_once(sink)
    (event,) = sink.drain()

    assert event["type"] == record_type
