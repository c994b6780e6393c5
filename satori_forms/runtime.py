"""FormsRuntime orchestrator for SATORI Forms.

This module wires the validators, the persistence collaborator and the event
system together behind two request handlers:

- ``save_schema``: an editor saves a form's schema
- ``submit``: an end user submits data to a form

Components are composed explicitly by ``build_runtime``; nothing registers
itself globally. Handlers return response envelopes and never raise for bad
input.

Usage:
    >>> from satori_forms.store import InMemoryFormStore
    >>> runtime = FormsRuntime(store=InMemoryFormStore())
    >>> runtime.save_schema(1, '{"version":1,"fields":[{"id":"name","type":"text","label":"Name","required":true}]}')["ok"]
    True
    >>> runtime.submit(1, {"name": "Alice"})["data"]
    {'name': 'Alice'}
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional

from satori_forms.authoring import SchemaAuthoringValidator
from satori_forms.config import FormsConfig
from satori_forms.events import EventEmitter, FormEvent
from satori_forms.notifications import MailTransport, NotificationService
from satori_forms.placeholders import STORED_TIMESTAMP_FORMAT
from satori_forms.sanitize import unslash
from satori_forms.schema import decode_json_object
from satori_forms.store import FormStore
from satori_forms.types import EventType
from satori_forms.validation import SubmissionValidator

logger = logging.getLogger(__name__)

INVALID_PAYLOAD_MESSAGE = "Invalid schema payload. Expected JSON data."
SAVE_FAILED_MESSAGE = "Form schema could not be saved."
STORE_FAILED_MESSAGE = "Submission could not be stored."

Handler = Callable[..., Dict[str, Any]]


class FormsRuntime:
    """Request handlers for schema saves and submissions.

    Attributes:
        store: Persistence collaborator
        emitter: Event emitter receiving every outcome
        config: Runtime configuration
    """

    def __init__(
        self,
        store: FormStore,
        emitter: Optional[EventEmitter] = None,
        config: Optional[FormsConfig] = None,
        authoring_validator: Optional[SchemaAuthoringValidator] = None,
        submission_validator: Optional[SubmissionValidator] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.emitter = emitter or EventEmitter()
        self.config = config or FormsConfig()
        self._authoring_validator = authoring_validator or SchemaAuthoringValidator()
        self._submission_validator = submission_validator or SubmissionValidator(
            unslash_input=self.config.UNSLASH_INPUT
        )
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.handlers: Dict[str, Handler] = {
            "save_schema": self.save_schema,
            "submit": self.submit,
        }

    def dispatch(self, action: str, **kwargs: Any) -> Dict[str, Any]:
        """Route a request to its handler.

        Raises:
            KeyError: If no handler is registered for the action
        """
        if action not in self.handlers:
            raise KeyError(f"Unknown action '{action}'. Known actions: {', '.join(sorted(self.handlers))}")
        return self.handlers[action](**kwargs)

    def save_schema(self, form_id: int, raw_schema: Any) -> Dict[str, Any]:
        """Validate and store a form schema.

        Args:
            form_id: Form being saved
            raw_schema: Schema JSON text as posted, an already decoded
                mapping, or None when the request carried no schema

        Returns:
            Response with ``ok``, ``formId``, ``action`` (saved, cleared or
            unchanged) and, on failure, ``error``
        """
        if raw_schema is None:
            return {"ok": True, "formId": form_id, "action": "unchanged"}

        if isinstance(raw_schema, str):
            if self.config.UNSLASH_INPUT:
                raw_schema = unslash(raw_schema)
            if raw_schema == "":
                self.store.delete_schema(form_id)
                self._emit(EventType.SCHEMA_CLEARED, form_id)
                return {"ok": True, "formId": form_id, "action": "cleared"}

        schema = decode_json_object(raw_schema) if isinstance(raw_schema, (str, bytes, Mapping)) else None
        if schema is None:
            return self._reject_schema(form_id, INVALID_PAYLOAD_MESSAGE)

        result = self._authoring_validator.validate(schema)
        if not result.is_valid:
            return self._reject_schema(form_id, result.reason or INVALID_PAYLOAD_MESSAGE)

        try:
            encoded = json.dumps(schema, ensure_ascii=False, separators=(",", ":"))
        except (TypeError, ValueError):
            return self._reject_schema(form_id, INVALID_PAYLOAD_MESSAGE)

        if not self.store.save_schema(form_id, encoded):
            logger.warning("Form schema for form %s could not be stored", form_id)
            return {"ok": False, "formId": form_id, "error": SAVE_FAILED_MESSAGE}

        self._emit(EventType.SCHEMA_SAVED, form_id)
        return {"ok": True, "formId": form_id, "action": "saved"}

    def submit(
        self,
        form_id: int,
        submission: Mapping[Any, Any],
        client_ip: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Validate, sanitize and store a submission.

        Args:
            form_id: Form the data is submitted to
            submission: Mapping of field id to submitted value
            client_ip: Address of the submitting client, if known

        Returns:
            Response with ``ok``, ``formId``, ``data`` and ``errors``; on
            success also ``submissionId`` and ``submittedAt``. ``data`` holds
            the sanitized values even when validation failed.
        """
        result = self._submission_validator.validate(self.store.load_schema(form_id), submission)
        response: Dict[str, Any] = {
            "ok": result.is_valid,
            "formId": form_id,
            "data": dict(result.data),
            "errors": [e.to_dict() for e in result.errors],
        }

        if not result.is_valid:
            self._emit(EventType.SUBMISSION_REJECTED, form_id, payload={"errors": response["errors"]})
            return response

        submitted_at = self._clock().astimezone(timezone.utc).strftime(STORED_TIMESTAMP_FORMAT)
        submission_id = self.store.insert_submission(form_id, dict(result.data), client_ip, submitted_at)
        if submission_id is None:
            logger.warning("Submission for form %s could not be stored", form_id)
            self._emit(EventType.SUBMISSION_FAILED, form_id)
            response["ok"] = False
            response["error"] = STORE_FAILED_MESSAGE
            return response

        self._emit(
            EventType.SUBMISSION_STORED,
            form_id,
            submission_id=submission_id,
            payload={"data": dict(result.data), "submittedAt": submitted_at},
        )
        response["submissionId"] = submission_id
        response["submittedAt"] = submitted_at
        return response

    def _reject_schema(self, form_id: int, reason: str) -> Dict[str, Any]:
        self._emit(EventType.SCHEMA_REJECTED, form_id, payload={"reason": reason})
        return {"ok": False, "formId": form_id, "error": reason}

    def _emit(
        self,
        event_type: EventType,
        form_id: int,
        submission_id: Optional[int] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.emitter.emit(FormEvent(
            event_id=f"evt_{uuid.uuid4().hex[:16]}",
            type=event_type,
            form_id=form_id,
            ts=datetime.now(timezone.utc),
            submission_id=submission_id,
            payload=payload,
        ))


def build_runtime(
    store: FormStore,
    transport: MailTransport,
    config: Optional[FormsConfig] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> FormsRuntime:
    """Assemble a runtime with notifications wired to stored submissions.

    Args:
        store: Persistence collaborator
        transport: Mail delivery collaborator
        config: Runtime configuration (defaults to FormsConfig())
        clock: Source of the current time (defaults to UTC now)

    Returns:
        A FormsRuntime whose ``handlers`` table serves save_schema and submit
    """
    config = config or FormsConfig()
    emitter = EventEmitter()
    notifications = NotificationService(store=store, transport=transport, config=config)
    emitter.on(EventType.SUBMISSION_STORED, notifications.on_submission_stored)
    return FormsRuntime(store=store, emitter=emitter, config=config, clock=clock)


__all__ = [
    "FormsRuntime",
    "build_runtime",
]
