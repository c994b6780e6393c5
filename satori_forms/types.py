"""Core type definitions for SATORI Forms.

This module defines the closed enumerations shared across the package:
- FieldType: Supported form field types and their wire strings
- FieldErrorCode: Error codes reported by submission validation
- EventType: Audit event types emitted by the runtime

Each enum is a ``str`` subclass so members compare equal to, and serialize
as, the exact strings stored in schema documents and validation results.
"""

from enum import Enum
from typing import List


class FieldType(str, Enum):
    """Field types a form schema may declare.

    The value of each member is the string used in the ``type`` key of a
    field definition.

    Examples:
        >>> FieldType("email")
        <FieldType.EMAIL: 'email'>
        >>> FieldType.TEXTAREA.value
        'textarea'
    """
    TEXT = "text"
    EMAIL = "email"
    TEXTAREA = "textarea"

    @classmethod
    def values(cls) -> List[str]:
        """Wire strings of all supported types, in declaration order."""
        return [member.value for member in cls]


class FieldErrorCode(str, Enum):
    """Error codes carried by FieldError.

    The first three are schema-load failures reported with ``field=None``;
    the rest are per-field submission failures.
    """
    SCHEMA_MISSING = "schema_missing"
    SCHEMA_VERSION = "schema_version"
    SCHEMA_FIELDS = "schema_fields"
    UNKNOWN_FIELD = "unknown_field"
    REQUIRED = "required"
    INVALID_TYPE = "invalid_type"
    INVALID_EMAIL = "invalid_email"
    MIN_LENGTH = "min_length"
    MAX_LENGTH = "max_length"


class EventType(str, Enum):
    """Audit event types emitted by FormsRuntime."""
    SCHEMA_SAVED = "schema.saved"
    SCHEMA_CLEARED = "schema.cleared"
    SCHEMA_REJECTED = "schema.rejected"
    SUBMISSION_REJECTED = "submission.rejected"
    SUBMISSION_STORED = "submission.stored"
    SUBMISSION_FAILED = "submission.failed"


__all__ = [
    "FieldType",
    "FieldErrorCode",
    "EventType",
]
