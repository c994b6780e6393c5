"""Submission validation engine for SATORI Forms.

This module provides a SubmissionValidator that checks end-user submission
data against a stored form schema, sanitizes every accepted value, and
produces a structured ValidationResult.

Validation never raises for malformed input. A schema that cannot be loaded
or decoded yields a single schema-level error; otherwise every field is
evaluated in schema-declared order and all violations are accumulated, so the
error list is deterministic for identical inputs. Values that passed are
returned even when the submission as a whole failed, letting a retry form be
pre-filled.
"""

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from satori_forms.errors import FieldError
from satori_forms.sanitize import (
    TRIM_CHARS,
    is_email,
    sanitize_email,
    sanitize_text_field,
    sanitize_textarea_field,
    unslash,
)
from satori_forms.schema import FieldDefinition, SchemaDecodeError, SchemaDocument, is_scalar
from satori_forms.types import FieldErrorCode, FieldType

logger = logging.getLogger(__name__)

RawSchema = Union[SchemaDocument, str, bytes, Mapping[str, Any], None]

MESSAGES: Dict[FieldErrorCode, str] = {
    FieldErrorCode.UNKNOWN_FIELD: "Field is not part of the form schema.",
    FieldErrorCode.REQUIRED: "Field is required.",
    FieldErrorCode.INVALID_TYPE: "Field value must be a string.",
    FieldErrorCode.INVALID_EMAIL: "Email address is invalid.",
    FieldErrorCode.MIN_LENGTH: "Field value is too short.",
    FieldErrorCode.MAX_LENGTH: "Field value is too long.",
}

SANITIZERS = {
    FieldType.TEXT: sanitize_text_field,
    FieldType.TEXTAREA: sanitize_textarea_field,
    FieldType.EMAIL: sanitize_email,
}


@dataclass(frozen=True)
class ValidationResult:
    """Result of validating a submission against a form schema.

    Attributes:
        is_valid: Whether the submission passed every check
        data: Sanitized values of the fields that passed (read-only)
        errors: Every violation found, in evaluation order

    Examples:
        >>> schema = '{"version":1,"fields":[{"id":"name","type":"text","label":"Name","required":true}]}'
        >>> result = SubmissionValidator().validate(schema, {"name": "  Alice  "})
        >>> result.is_valid
        True
        >>> dict(result.data)
        {'name': 'Alice'}
    """
    is_valid: bool
    data: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    errors: Tuple[FieldError, ...] = ()

    @classmethod
    def build(cls, data: Dict[str, str], errors: List[FieldError]) -> "ValidationResult":
        """Freeze collected data and errors into a result."""
        return cls(
            is_valid=not errors,
            data=MappingProxyType(dict(data)),
            errors=tuple(errors),
        )

    @property
    def error_fields(self) -> List[Optional[str]]:
        """Field ids of all errors, in order."""
        return [e.field for e in self.errors]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        return {
            "is_valid": self.is_valid,
            "data": dict(self.data),
            "errors": [e.to_dict() for e in self.errors],
        }


class SubmissionValidator:
    """Validates and sanitizes submissions against a form schema.

    Attributes:
        unslash_input: Whether string values are un-slashed before validation

    Examples:
        >>> schema = {
        ...     "version": 1,
        ...     "fields": [{"id": "email", "type": "email", "label": "Email", "required": False}],
        ... }
        >>> result = SubmissionValidator().validate(schema, {"email": "not-an-address"})
        >>> result.is_valid
        False
        >>> result.errors[0].code
        <FieldErrorCode.INVALID_EMAIL: 'invalid_email'>
    """

    def __init__(self, unslash_input: bool = True) -> None:
        self.unslash_input = unslash_input

    def validate(self, schema: RawSchema, submission: Mapping[Any, Any]) -> ValidationResult:
        """Validate a submission.

        Args:
            schema: A decoded SchemaDocument, stored schema JSON text, an
                already decoded mapping, or None when no schema is stored
            submission: Mapping of field id to submitted value

        Returns:
            ValidationResult with sanitized data and accumulated errors
        """
        try:
            document = schema if isinstance(schema, SchemaDocument) else SchemaDocument.from_raw(schema)
        except SchemaDecodeError as exc:
            logger.debug("Form schema failed to load: %s", exc.message)
            return ValidationResult.build({}, [FieldError(field=None, code=exc.code, message=exc.message)])

        fields = document.field_map()
        values = self.normalize_submission(submission)
        errors: List[FieldError] = []
        data: Dict[str, str] = {}

        for field_id in values:
            if field_id not in fields:
                errors.append(self._error(field_id, FieldErrorCode.UNKNOWN_FIELD))

        for field_id, definition in fields.items():
            code, sanitized = self._check_field(definition, field_id in values, values.get(field_id))
            if code is not None:
                errors.append(self._error(field_id, code))
            elif sanitized is not None:
                data[field_id] = sanitized

        if errors:
            logger.debug("Submission rejected with %d error(s)", len(errors))
        return ValidationResult.build(data, errors)

    def normalize_submission(self, submission: Mapping[Any, Any]) -> Dict[str, Any]:
        """Drop entries without a usable key and un-slash string values."""
        normalized: Dict[str, Any] = {}
        for key, value in submission.items():
            if not isinstance(key, str) or key == "":
                continue
            if isinstance(value, str) and self.unslash_input:
                value = unslash(value)
            normalized[key] = value
        return normalized

    def _check_field(
        self,
        definition: FieldDefinition,
        present: bool,
        value: Any,
    ) -> Tuple[Optional[FieldErrorCode], Optional[str]]:
        """Evaluate one field.

        Returns:
            (error code, None) on failure, (None, sanitized) on success, and
            (None, None) for an optional field left empty
        """
        if not present or _is_empty(value):
            if definition.is_required:
                return FieldErrorCode.REQUIRED, None
            return None, None

        if not is_scalar(value):
            return FieldErrorCode.INVALID_TYPE, None

        sanitized = SANITIZERS[definition.type](_to_text(value))

        # A non-blank input that sanitizes to nothing is not an address either.
        if definition.type == FieldType.EMAIL and (sanitized == "" or not is_email(sanitized)):
            return FieldErrorCode.INVALID_EMAIL, None

        length = len(sanitized)
        rules = definition.validation
        if rules.min_length is not None and length < rules.min_length:
            return FieldErrorCode.MIN_LENGTH, None
        if rules.max_length is not None and length > rules.max_length:
            return FieldErrorCode.MAX_LENGTH, None

        return None, sanitized

    @staticmethod
    def _error(field_id: str, code: FieldErrorCode) -> FieldError:
        return FieldError(field=field_id, code=code, message=MESSAGES[code])


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip(TRIM_CHARS) == ""
    return False


def _to_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


__all__ = [
    "ValidationResult",
    "SubmissionValidator",
]
