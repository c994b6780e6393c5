"""Unit tests for the event system.

Tests cover:
- FormEvent creation and normalization
- Event serialization (to_dict, to_jsonl) and deserialization (from_dict)
- EventEmitter subscriptions, dispatch order and error isolation
"""

import json
import logging
from dataclasses import FrozenInstanceError
from datetime import datetime, timezone

import pytest

from satori_forms.events import EventEmitter, FormEvent
from satori_forms.types import EventType


def make_event(event_type=EventType.SUBMISSION_STORED, **kwargs):
    defaults = {
        "event_id": "evt_001",
        "type": event_type,
        "form_id": 7,
        "ts": datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
    }
    defaults.update(kwargs)
    return FormEvent(**defaults)


class TestFormEvent:
    """Test FormEvent creation and serialization."""

    def test_string_type_is_normalized(self):
        """Should convert a raw string type to EventType."""
        event = make_event("schema.saved")

        assert event.type is EventType.SCHEMA_SAVED

    def test_unknown_string_type_rejected(self):
        """Should reject strings that are not event types."""
        with pytest.raises(ValueError):
            make_event("schema.deleted")

    def test_event_is_immutable(self):
        """Should not allow modification after creation."""
        event = make_event()

        with pytest.raises(FrozenInstanceError):
            event.form_id = 8

    def test_to_dict_minimal(self):
        """Should omit submission id and payload when absent."""
        assert make_event(EventType.SCHEMA_CLEARED).to_dict() == {
            "eventId": "evt_001",
            "type": "schema.cleared",
            "formId": 7,
            "ts": "2024-05-01T12:00:00+00:00",
        }

    def test_to_jsonl(self):
        """Should produce one compact JSON line."""
        event = make_event(submission_id=3, payload={"data": {"name": "Ann"}})
        line = event.to_jsonl()

        assert "\n" not in line
        assert json.loads(line)["payload"] == {"data": {"name": "Ann"}}
        assert json.loads(line)["submissionId"] == 3

    def test_from_dict(self):
        """Should rebuild an event, accepting a Z suffix."""
        event = FormEvent.from_dict({
            "eventId": "evt_9",
            "type": "submission.rejected",
            "formId": 2,
            "ts": "2024-05-01T12:00:00Z",
            "payload": {"errors": []},
        })

        assert event == make_event(
            EventType.SUBMISSION_REJECTED,
            event_id="evt_9",
            form_id=2,
            payload={"errors": []},
        )

    def test_roundtrip(self):
        """Should survive to_dict / from_dict unchanged."""
        event = make_event(submission_id=5, payload={"submittedAt": "2024-05-01 12:00:00"})

        assert FormEvent.from_dict(event.to_dict()) == event


class TestEventEmitter:
    """Test subscriptions and dispatch."""

    def test_type_specific_listener(self):
        """Should only receive events of the subscribed type."""
        emitter = EventEmitter()
        received = []
        emitter.on(EventType.SUBMISSION_STORED, received.append)

        emitter.emit(make_event(EventType.SCHEMA_SAVED))
        emitter.emit(make_event(EventType.SUBMISSION_STORED))

        assert [e.type for e in received] == [EventType.SUBMISSION_STORED]

    def test_wildcard_listener_called_after_specific(self):
        """Should call specific listeners before wildcard listeners."""
        emitter = EventEmitter()
        calls = []
        emitter.on_any(lambda e: calls.append("any"))
        emitter.on(EventType.SCHEMA_SAVED, lambda e: calls.append("first"))
        emitter.on(EventType.SCHEMA_SAVED, lambda e: calls.append("second"))

        emitter.emit(make_event(EventType.SCHEMA_SAVED))

        assert calls == ["first", "second", "any"]

    def test_unsubscribe(self):
        """Should stop delivering to removed listeners."""
        emitter = EventEmitter()
        received = []
        emitter.on(EventType.SCHEMA_SAVED, received.append)
        emitter.on_any(received.append)

        emitter.off(EventType.SCHEMA_SAVED, received.append)
        emitter.off_any(received.append)
        emitter.off(EventType.SCHEMA_CLEARED, received.append)
        emitter.emit(make_event(EventType.SCHEMA_SAVED))

        assert received == []

    def test_listener_exceptions_are_isolated(self, caplog):
        """Should log a failing listener and keep dispatching."""
        emitter = EventEmitter()
        received = []

        def broken(event):
            raise RuntimeError("listener broke")

        emitter.on(EventType.SCHEMA_SAVED, broken)
        emitter.on(EventType.SCHEMA_SAVED, received.append)

        with caplog.at_level(logging.ERROR, logger="satori_forms.events"):
            emitter.emit(make_event(EventType.SCHEMA_SAVED))

        assert len(received) == 1
        assert "listener broke" in caplog.text

    def test_listener_count_and_clear(self):
        """Should count listeners per type and in total."""
        emitter = EventEmitter()
        emitter.on(EventType.SCHEMA_SAVED, print)
        emitter.on(EventType.SUBMISSION_STORED, print)
        emitter.on_any(print)

        assert emitter.listener_count(EventType.SCHEMA_SAVED) == 1
        assert emitter.listener_count() == 3

        emitter.clear()
        assert emitter.listener_count() == 0
