"""Email notifications for stored submissions.

NotificationService is the notification collaborator: after a submission has
been stored it reads the form's notification settings, renders the subject
and body templates with PlaceholderRenderer, and hands the message to a
MailTransport. Whether the transport succeeds is logged but never reported
back into the submission outcome.
"""

import logging
from typing import Any, List, Mapping, Optional, Sequence

from typing_extensions import Protocol

from satori_forms.config import FormsConfig
from satori_forms.events import FormEvent
from satori_forms.placeholders import PlaceholderRenderer, build_context
from satori_forms.sanitize import is_email, sanitize_email
from satori_forms.schema import NotificationConfig, decode_json_object, extract_notification_config, is_scalar
from satori_forms.store import FormStore

logger = logging.getLogger(__name__)

DEFAULT_MESSAGE_HEADING = "New submission received."


class MailTransport(Protocol):
    """Sends a plain-text email; returns False when delivery was refused."""

    def send(self, to: str, subject: str, body: str, headers: Sequence[str]) -> bool:
        ...


def sanitize_recipient(recipient: str) -> str:
    """Return the recipient address, or an empty string if it is unusable."""
    recipient = sanitize_email(recipient)
    if recipient == "" or not is_email(recipient):
        return ""
    return recipient


def default_message(data: Mapping[Any, Any]) -> str:
    """Body used when a form configures no message template.

    Examples:
        >>> print(default_message({"name": "Ann", "email": "ann@example.com"}))
        New submission received.
        name: Ann
        email: ann@example.com
    """
    lines: List[str] = [DEFAULT_MESSAGE_HEADING]
    for key, value in data.items():
        if isinstance(key, str) and is_scalar(value):
            lines.append(f"{key}: {value}")
    return "\n".join(lines)


class NotificationService:
    """Sends the configured notification email for a stored submission.

    Attributes:
        store: Source of form schemas and titles
        transport: Mail delivery collaborator
        renderer: Template renderer
        config: Runtime configuration
    """

    def __init__(
        self,
        store: FormStore,
        transport: MailTransport,
        renderer: Optional[PlaceholderRenderer] = None,
        config: Optional[FormsConfig] = None,
    ):
        self.store = store
        self.transport = transport
        self.renderer = renderer or PlaceholderRenderer()
        self.config = config or FormsConfig()

    def load_settings(self, form_id: int) -> Optional[NotificationConfig]:
        """Notification settings of a form, or None when it has none."""
        return extract_notification_config(decode_json_object(self.store.load_schema(form_id)))

    def handle_submission(
        self,
        submission_id: int,
        form_id: int,
        data: Mapping[str, str],
        submitted_at: str = "",
    ) -> bool:
        """Render and send the notification for one stored submission.

        Args:
            submission_id: Id of the stored submission
            form_id: Form the submission belongs to
            data: Sanitized submission data
            submitted_at: Stored UTC timestamp

        Returns:
            True if the message was handed to the transport and accepted
        """
        settings = self.load_settings(form_id)
        if settings is None or not settings.enabled:
            return False

        to = sanitize_recipient(settings.to)
        if to == "":
            logger.info("Form %s has notifications enabled but no valid recipient", form_id)
            return False

        context = build_context(
            form_title=self.store.get_form_title(form_id),
            submission_id=submission_id,
            data=data,
            submitted_at=submitted_at,
            zone=self.config.zone,
            date_format=self.config.DATE_FORMAT,
        )

        subject = self.renderer.render_subject(settings.subject or self.config.DEFAULT_SUBJECT, context)
        message = self.renderer.render(settings.message or default_message(data), context)
        headers = [f"Content-Type: {self.config.MAIL_CONTENT_TYPE}"]

        try:
            sent = self.transport.send(to, subject, message, headers)
        except Exception:
            logger.exception("Mail transport failed for submission %s of form %s", submission_id, form_id)
            return False

        if not sent:
            logger.warning("Mail transport refused notification for submission %s", submission_id)
        return bool(sent)

    def on_submission_stored(self, event: FormEvent) -> None:
        """Event listener for submission.stored."""
        payload = event.payload or {}
        self.handle_submission(
            submission_id=event.submission_id,
            form_id=event.form_id,
            data=payload.get("data", {}),
            submitted_at=payload.get("submittedAt", ""),
        )


__all__ = [
    "MailTransport",
    "sanitize_recipient",
    "default_message",
    "NotificationService",
]
