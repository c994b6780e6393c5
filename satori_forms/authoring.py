"""Schema authoring validation for SATORI Forms.

Runs when an editor saves a form. The candidate document is checked in a
fixed order and the first violated rule is reported as a single
human-readable reason; the caller aborts the save when validation fails, so a
form schema is never stored partially valid.

Top-level checks are plain Python. Field definitions and the settings block
are checked against the Draft 7 fragments in ``satori_forms.schema``; their
jsonschema errors are ranked by a rule table and the first one is translated
into a message naming the offending field index and keys.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

import jsonschema
from jsonschema.protocols import Validator

from satori_forms.schema import (
    ALLOWED_FIELD_KEYS,
    ALLOWED_NOTIFICATION_KEYS,
    ALLOWED_SCHEMA_KEYS,
    ALLOWED_SETTINGS_KEYS,
    ALLOWED_VALIDATION_KEYS,
    FIELD_VALIDATOR,
    REQUIRED_FIELD_KEYS,
    REQUIRED_SCHEMA_KEYS,
    SCHEMA_VERSION,
    SETTINGS_VALIDATOR,
    coerce_schema_version,
    is_scalar,
)

logger = logging.getLogger(__name__)

# (path inside the checked instance, jsonschema keyword or None for any, message builder)
Rule = Tuple[Tuple[str, ...], Optional[str], Callable[[Any], str]]


@dataclass(frozen=True)
class SchemaAuthoringResult:
    """Outcome of validating a candidate schema document.

    Attributes:
        is_valid: Whether the document may be stored
        reason: Why the document was rejected (None when valid)
    """
    is_valid: bool
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {"isValid": self.is_valid}
        if self.reason is not None:
            result["reason"] = self.reason
        return result


def _join(keys: Sequence[Any]) -> str:
    return ", ".join(str(k) for k in keys)


def _unknown_keys(instance: Any, allowed: Sequence[str]) -> List[Any]:
    if not isinstance(instance, Mapping):
        return []
    return [k for k in instance if k not in allowed]


def _field_rules(index: int) -> List[Rule]:
    prefix = f"Field at index {index}"
    return [
        ((), "type", lambda f: f"{prefix} must be an object."),
        ((), "required", lambda f: (
            f"{prefix} is missing required keys: "
            f"{_join([k for k in REQUIRED_FIELD_KEYS if k not in f])}."
        )),
        ((), "additionalProperties", lambda f: (
            f"{prefix} contains unsupported keys: {_join(_unknown_keys(f, ALLOWED_FIELD_KEYS))}."
        )),
        (("id",), None, lambda f: f"{prefix} must include a non-empty id."),
        (("type",), None, lambda f: f"{prefix} has an unsupported type."),
        (("label",), None, lambda f: f"{prefix} must include a non-empty label."),
        (("required",), None, lambda f: f"{prefix} must include a boolean required flag."),
        (("validation",), "type", lambda f: f"{prefix} has invalid validation rules."),
        (("validation",), "additionalProperties", lambda f: (
            f"{prefix} has unsupported validation keys: "
            f"{_join(_unknown_keys(f['validation'], ALLOWED_VALIDATION_KEYS))}."
        )),
        (("validation", "required"), None, lambda f: f"{prefix} validation.required must be boolean."),
        (("validation", "min_length"), None, lambda f: f"{prefix} validation.min_length must be int or null."),
        (("validation", "max_length"), None, lambda f: f"{prefix} validation.max_length must be int or null."),
        (("meta",), None, lambda f: f"{prefix} meta must be an object."),
    ]


SETTINGS_RULES: List[Rule] = [
    ((), "type", lambda s: "Schema settings must be an object."),
    ((), "additionalProperties", lambda s: (
        f"Schema settings has unsupported keys: {_join(_unknown_keys(s, ALLOWED_SETTINGS_KEYS))}."
    )),
    (("notifications",), "type", lambda s: "Schema settings.notifications must be an object."),
    (("notifications",), "additionalProperties", lambda s: (
        "Schema settings.notifications has unsupported keys: "
        f"{_join(_unknown_keys(s['notifications'], ALLOWED_NOTIFICATION_KEYS))}."
    )),
    (("notifications", "enabled"), None, lambda s: "Schema settings.notifications.enabled must be boolean."),
    (("notifications", "to"), None, lambda s: "Schema settings.notifications.to must be string."),
    (("notifications", "subject"), None, lambda s: "Schema settings.notifications.subject must be string."),
    (("notifications", "message"), None, lambda s: "Schema settings.notifications.message must be string."),
]


def _rank(error: jsonschema.ValidationError, rules: List[Rule]) -> int:
    path = tuple(str(p) for p in error.absolute_path)
    for position, (rule_path, keyword, _) in enumerate(rules):
        if path == rule_path and (keyword is None or keyword == error.validator):
            return position
    return len(rules)


def first_violation(
    validator: Validator,
    instance: Any,
    rules: List[Rule],
) -> Optional[str]:
    """Translate the highest-ranked jsonschema error for an instance.

    Args:
        validator: Compiled fragment validator
        instance: The value to check
        rules: Rule table, earliest entry wins

    Returns:
        The message of the first violated rule, or None if the instance is valid
    """
    errors = list(validator.iter_errors(instance))
    if not errors:
        return None

    error = min(errors, key=lambda e: _rank(e, rules))
    position = _rank(error, rules)
    if position < len(rules):
        return rules[position][2](instance)
    # A keyword outside the rule table; fall back to jsonschema's own message.
    return error.message


class SchemaAuthoringValidator:
    """Structural validator for form schema documents.

    Validation short-circuits: only the first violated rule is reported.

    Examples:
        >>> validator = SchemaAuthoringValidator()
        >>> validator.validate({
        ...     "version": 1,
        ...     "fields": [{"id": "name", "type": "text", "label": "Name", "required": True}],
        ... }).is_valid
        True
        >>> validator.validate({"version": 1, "fields": [], "title": "x"}).reason
        'Schema contains unsupported keys: title.'
    """

    def validate(self, schema: Any) -> SchemaAuthoringResult:
        """Validate a decoded schema document.

        Args:
            schema: The candidate document, usually a dict decoded from JSON

        Returns:
            SchemaAuthoringResult with the rejection reason when invalid
        """
        reason = self._first_violation(schema)
        if reason is None:
            return SchemaAuthoringResult(is_valid=True)

        logger.debug("Rejected form schema: %s", reason)
        return SchemaAuthoringResult(is_valid=False, reason=reason)

    def _first_violation(self, schema: Any) -> Optional[str]:
        if not isinstance(schema, Mapping):
            return "Schema must be a JSON object."

        unknown = _unknown_keys(schema, ALLOWED_SCHEMA_KEYS)
        if unknown:
            return f"Schema contains unsupported keys: {_join(unknown)}."

        if any(key not in schema for key in REQUIRED_SCHEMA_KEYS):
            return "Schema must include version and fields."

        version = schema["version"]
        if coerce_schema_version(version) != SCHEMA_VERSION:
            shown = str(version) if is_scalar(version) else "unknown"
            return f"Unsupported schema version: {shown}."

        fields = schema["fields"]
        if not isinstance(fields, (list, tuple)):
            return "Schema fields must be an array."

        seen: Dict[str, int] = {}
        for index, field in enumerate(fields):
            reason = first_violation(FIELD_VALIDATOR, field, _field_rules(index))
            if reason is not None:
                return reason

            field_id = field["id"]
            if field_id in seen:
                return (
                    f"Field at index {index} reuses id '{field_id}' "
                    f"already declared at index {seen[field_id]}."
                )
            seen[field_id] = index

        if "settings" in schema:
            return first_violation(SETTINGS_VALIDATOR, schema["settings"], SETTINGS_RULES)

        return None


__all__ = [
    "SchemaAuthoringResult",
    "SchemaAuthoringValidator",
    "first_violation",
]
