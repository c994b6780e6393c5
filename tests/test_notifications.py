"""Unit tests for NotificationService."""

import json
import logging
from datetime import datetime, timezone

import pytest

from satori_forms.config import FormsConfig
from satori_forms.events import FormEvent
from satori_forms.notifications import NotificationService, default_message, sanitize_recipient
from satori_forms.store import InMemoryFormStore
from satori_forms.types import EventType


class RecordingTransport:
    """Mail transport that records messages instead of sending them."""

    def __init__(self, result=True, error=None):
        self.result = result
        self.error = error
        self.sent = []

    def send(self, to, subject, body, headers):
        if self.error is not None:
            raise self.error
        self.sent.append({"to": to, "subject": subject, "body": body, "headers": list(headers)})
        return self.result


def schema_with(notifications):
    return json.dumps({
        "version": 1,
        "fields": [{"id": "name", "type": "text", "label": "Name", "required": True}],
        "settings": {"notifications": notifications},
    })


FORM_ID = 7
SUBMITTED_AT = "2024-05-01 12:00:00"


@pytest.fixture
def store():
    store = InMemoryFormStore(titles={FORM_ID: "Contact"})
    store.save_schema(FORM_ID, schema_with({
        "enabled": True,
        "to": "admin@example.com",
        "subject": "[{form_title}] #{submission_id} from {name}",
        "message": "{name} wrote on {submission_date}",
    }))
    return store


@pytest.fixture
def transport():
    return RecordingTransport()


class TestHandleSubmission:
    """Test rendering and delivery of notifications."""

    def test_sends_rendered_message(self, store, transport):
        """Should render subject and body and send one message."""
        service = NotificationService(store, transport)

        assert service.handle_submission(3, FORM_ID, {"name": "Ann"}, SUBMITTED_AT) is True
        assert transport.sent == [{
            "to": "admin@example.com",
            "subject": "[Contact] #3 from Ann",
            "body": "Ann wrote on 2024-05-01 12:00:00",
            "headers": ["Content-Type: text/plain; charset=UTF-8"],
        }]

    def test_uses_configured_zone_and_content_type(self, store, transport):
        """Should apply timezone, date format and content type from config."""
        config = FormsConfig(TIMEZONE="Europe/Berlin", DATE_FORMAT="%d.%m.%Y %H:%M", MAIL_CONTENT_TYPE="text/plain")
        service = NotificationService(store, transport, config=config)

        service.handle_submission(3, FORM_ID, {"name": "Ann"}, SUBMITTED_AT)

        assert transport.sent[0]["body"] == "Ann wrote on 01.05.2024 14:00"
        assert transport.sent[0]["headers"] == ["Content-Type: text/plain"]

    def test_defaults_for_empty_templates(self, transport):
        """Should fall back to the default subject and body."""
        store = InMemoryFormStore(titles={FORM_ID: "Contact"})
        store.save_schema(FORM_ID, schema_with({"enabled": True, "to": "admin@example.com"}))
        service = NotificationService(store, transport)

        service.handle_submission(1, FORM_ID, {"name": "Ann", "email": "ann@example.com"}, SUBMITTED_AT)

        assert transport.sent[0]["subject"] == "New submission for Contact"
        assert transport.sent[0]["body"] == "New submission received.\nname: Ann\nemail: ann@example.com"

    @pytest.mark.parametrize("notifications", [
        {"enabled": False, "to": "admin@example.com"},
        {"to": "admin@example.com"},
        {"enabled": True, "to": ""},
        {"enabled": True, "to": "not-an-address"},
    ])
    def test_skipped_when_disabled_or_no_recipient(self, transport, notifications):
        """Should not send without enabled settings and a valid recipient."""
        store = InMemoryFormStore()
        store.save_schema(FORM_ID, schema_with(notifications))
        service = NotificationService(store, transport)

        assert service.handle_submission(1, FORM_ID, {"name": "Ann"}, SUBMITTED_AT) is False
        assert transport.sent == []

    def test_skipped_without_schema(self, transport):
        """Should not send when the form has no schema."""
        service = NotificationService(InMemoryFormStore(), transport)

        assert service.handle_submission(1, FORM_ID, {}, SUBMITTED_AT) is False
        assert transport.sent == []

    def test_refused_delivery_is_logged(self, store, caplog):
        """Should return False and log a warning when the transport refuses."""
        service = NotificationService(store, RecordingTransport(result=False))

        with caplog.at_level(logging.WARNING, logger="satori_forms.notifications"):
            assert service.handle_submission(1, FORM_ID, {"name": "Ann"}, SUBMITTED_AT) is False

        assert "refused" in caplog.text

    def test_transport_exception_is_contained(self, store, caplog):
        """Should log and swallow transport exceptions."""
        service = NotificationService(store, RecordingTransport(error=ConnectionError("smtp down")))

        with caplog.at_level(logging.ERROR, logger="satori_forms.notifications"):
            assert service.handle_submission(1, FORM_ID, {"name": "Ann"}, SUBMITTED_AT) is False

        assert "smtp down" in caplog.text

    def test_event_listener(self, store, transport):
        """Should handle submission.stored events."""
        service = NotificationService(store, transport)
        event = FormEvent(
            event_id="evt_1",
            type=EventType.SUBMISSION_STORED,
            form_id=FORM_ID,
            ts=datetime.now(timezone.utc),
            submission_id=9,
            payload={"data": {"name": "Ann"}, "submittedAt": SUBMITTED_AT},
        )

        service.on_submission_stored(event)

        assert transport.sent[0]["subject"] == "[Contact] #9 from Ann"


class TestHelpers:
    """Test recipient and default body helpers."""

    @pytest.mark.parametrize("raw,expected", [
        ("admin@example.com", "admin@example.com"),
        (" admin@example.com ", "admin@example.com"),
        ("admin", ""),
        ("", ""),
    ])
    def test_sanitize_recipient(self, raw, expected):
        """Should keep only usable recipient addresses."""
        assert sanitize_recipient(raw) == expected

    def test_default_message_skips_non_scalars(self):
        """Should list scalar fields only."""
        assert default_message({"name": "Ann", "tags": ["a"]}) == "New submission received.\nname: Ann"
