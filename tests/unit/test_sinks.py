from __future__ import annotations

import json

import pytest
from rich.console import Console

from rets_poller.domain.errors import EmissionError
from rets_poller.domain.models import FAILURE_TAG, Event
from rets_poller.sinks import ConsoleSink, EventSink, JsonLinesSink, QueueSink


def test_queue_sink_preserves_order() -> None:
    sink = QueueSink()
    for listing_id in ("1", "2", "3"):
        sink.push(Event({"ListingID": listing_id}))

    assert len(sink) == 3
    assert [event["ListingID"] for event in sink.drain()] == ["1", "2", "3"]
    assert len(sink) == 0


def test_bounded_queue_sink_raises_emission_error_when_full() -> None:
    sink = QueueSink(maxsize=1)
    sink.push(Event())

    with pytest.raises(EmissionError, match="full"):
        sink.push(Event())


@pytest.mark.parametrize("sink_type", [QueueSink, ConsoleSink])
def test_bundled_sinks_satisfy_the_sink_protocol(sink_type) -> None:
    assert isinstance(sink_type(), EventSink)


def test_jsonl_sink_appends_one_line_per_event(tmp_path) -> None:
    path = tmp_path / "out" / "events.jsonl"
    sink = JsonLinesSink(path)
    failure = Event({"rets_request_failure": {"error": "auth failed"}})
    failure.tag(FAILURE_TAG)

    sink.push(Event({"ListingID": "1001"}))
    sink.push(failure)
    sink.close()

    lines = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert lines[0]["ListingID"] == "1001"
    assert "@timestamp" in lines[0]
    assert lines[1]["tags"] == [FAILURE_TAG]
    assert lines[1]["rets_request_failure"]["error"] == "auth failed"


def test_jsonl_sink_write_error_is_emission_error(tmp_path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("", encoding="utf-8")
    sink = JsonLinesSink(blocker / "events.jsonl")

    with pytest.raises(EmissionError, match="Cannot write event"):
        sink.push(Event())


def test_console_sink_pretty_prints_fields() -> None:
    console = Console(record=True, width=120, color_system=None)
    sink = ConsoleSink(console=console)

    sink.push(Event({"ListingID": "1001"}))

    output = console.export_text()
    assert "ListingID" in output
    assert "1001" in output
