"""Placeholder substitution for notification templates.

Templates contain ``{name}`` tokens. Rendering is a single literal replace
pass, not a templating language: each exact token with a context entry is
replaced by its value, longer tokens first, and substituted text is never
scanned again. Tokens without a context entry are left as they are.

Values are expected to be sanitized plain text already; nothing is escaped
here because the output is a plain-text email.
"""

import re
from datetime import datetime, timezone, tzinfo
from typing import Any, Dict, Mapping, Optional

from dateutil import parser as date_parser
from dateutil import tz

from satori_forms.sanitize import sanitize_text_field
from satori_forms.schema import is_scalar

# Format submission timestamps are stored in (UTC).
STORED_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def format_submission_date(
    submitted_at: str,
    zone: Optional[tzinfo] = None,
    fmt: str = STORED_TIMESTAMP_FORMAT,
) -> str:
    """Convert a stored UTC timestamp to local time.

    Args:
        submitted_at: Stored timestamp; naive values are taken to be UTC.
            An empty value renders the current time in ``zone`` rather
            than in UTC, so it reads the same as converted timestamps.
        zone: Target time zone (UTC when omitted)
        fmt: strftime format of the result

    Returns:
        The formatted local time, or ``submitted_at`` unchanged when it
        cannot be parsed or converted

    Examples:
        >>> format_submission_date("2024-05-01 12:00:00", tz.gettz("Europe/Berlin"))
        '2024-05-01 14:00:00'
        >>> format_submission_date("garbage")
        'garbage'
    """
    zone = zone or tz.UTC
    if submitted_at == "":
        return datetime.now(timezone.utc).astimezone(zone).strftime(fmt)

    try:
        moment = date_parser.parse(submitted_at)
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=tz.UTC)
        return moment.astimezone(zone).strftime(fmt)
    except (ValueError, OverflowError):
        return submitted_at


def build_context(
    form_title: str,
    submission_id: Any,
    data: Mapping[Any, Any],
    submitted_at: str = "",
    zone: Optional[tzinfo] = None,
    date_format: str = STORED_TIMESTAMP_FORMAT,
) -> Dict[str, str]:
    """Build the placeholder context for a stored submission.

    Contains ``form_title``, ``submission_id`` and ``submission_date``, plus
    one entry per submitted field. Field entries override built-in names.
    """
    context = {
        "form_title": form_title or "",
        "submission_id": str(submission_id),
        "submission_date": format_submission_date(submitted_at, zone, date_format),
    }
    for key, value in data.items():
        if isinstance(key, str) and is_scalar(value):
            context[key] = str(value)
    return context


class PlaceholderRenderer:
    """Substitutes ``{name}`` tokens in notification templates.

    Examples:
        >>> renderer = PlaceholderRenderer()
        >>> renderer.render("Hi {name}, re: {form_title} {unknown}", {"name": "Ann", "form_title": "Contact"})
        'Hi Ann, re: Contact {unknown}'
    """

    def render(self, template: str, context: Mapping[str, str]) -> str:
        """Replace every ``{key}`` token that has a context entry.

        Args:
            template: Template text
            context: Mapping of placeholder name (without braces) to value

        Returns:
            The rendered text
        """
        if not template or not context:
            return template

        tokens = {"{" + key + "}": str(value) for key, value in context.items()}
        pattern = re.compile("|".join(re.escape(t) for t in sorted(tokens, key=len, reverse=True)))
        return pattern.sub(lambda m: tokens[m.group(0)], template)

    def render_subject(self, template: str, context: Mapping[str, str]) -> str:
        """Render a subject line, collapsing it to a single sanitized line."""
        return sanitize_text_field(self.render(template, context))


__all__ = [
    "STORED_TIMESTAMP_FORMAT",
    "format_submission_date",
    "build_context",
    "PlaceholderRenderer",
]
