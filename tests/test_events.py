import json

import pytest

from screenshot_annotator import events


def test_emit_builds_envelope(capsys):
    events.configure("test-tool")
    try:
        event = events.emit("artifact.created", {"file_path": "/tmp/a.png"})
    finally:
        events.configure("screenshot-annotator")

    assert event["event_type"] == "artifact.created"
    assert event["source"] == {"tool": "test-tool"}
    assert event["data"] == {"file_path": "/tmp/a.png"}
    assert json.loads(capsys.readouterr().err.strip()) == event


def test_listener_only_sees_events_inside_block():
    seen = []
    with events.listening(seen.append):
        events.emit("shutdown", {})
    events.emit("shutdown", {})

    assert [e["event_type"] for e in seen] == ["shutdown"]


def test_unknown_event_type_is_rejected(capsys):
    with pytest.raises(ValueError, match="Unknown event type"):
        events.emit("capture.exploded", {})
    assert capsys.readouterr().err == ""


def test_catalog_lists_emitted_types():
    types = [entry["event_type"] for entry in events.EVENT_CATALOG]
    assert types == [
        "config.resolved",
        "operation.started",
        "operation.completed",
        "artifact.created",
        "error.handled",
        "shutdown",
    ]
    assert events.EVENT_CATALOG[0]["data_fields"] == ["config_path", "source"]
