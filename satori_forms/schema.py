"""Form schema document model for SATORI Forms.

A form schema is a versioned JSON object::

    {
        "version": 1,
        "fields": [
            {"id": "name", "type": "text", "label": "Name", "required": true}
        ],
        "settings": {
            "notifications": {
                "enabled": true,
                "to": "admin@example.com",
                "subject": "New submission for {form_title}",
                "message": "New submission:\\n{name}"
            }
        }
    }

This module holds the key-set constants shared by both validators, the Draft 7
JSON Schema fragments describing a field definition and the settings block,
and the typed dataclasses the raw document is decoded into. Decoding happens
in one pass (``SchemaDocument.from_raw``); anything that does not fit the
shape raises SchemaDecodeError carrying the matching FieldErrorCode.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from jsonschema import Draft7Validator, validators

from satori_forms.types import FieldErrorCode, FieldType

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

ALLOWED_SCHEMA_KEYS = ("version", "fields", "settings")
REQUIRED_SCHEMA_KEYS = ("version", "fields")
REQUIRED_FIELD_KEYS = ("id", "type", "label", "required")
ALLOWED_FIELD_KEYS = ("id", "type", "label", "required", "validation", "meta")
ALLOWED_VALIDATION_KEYS = ("required", "min_length", "max_length")
ALLOWED_SETTINGS_KEYS = ("notifications",)
ALLOWED_NOTIFICATION_KEYS = ("enabled", "to", "subject", "message")

# At least one character that is not trimmed away.
NON_BLANK_PATTERN = "[^ \\t\\n\\r\\x00\\x0b]"

VALIDATION_RULES_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "required": {"type": "boolean"},
        "min_length": {"type": ["integer", "null"]},
        "max_length": {"type": ["integer", "null"]},
    },
}

FIELD_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": list(REQUIRED_FIELD_KEYS),
    "additionalProperties": False,
    "properties": {
        "id": {"type": "string", "pattern": NON_BLANK_PATTERN},
        "type": {"type": "string", "enum": FieldType.values()},
        "label": {"type": "string", "pattern": NON_BLANK_PATTERN},
        "required": {"type": "boolean"},
        "validation": VALIDATION_RULES_SCHEMA,
        "meta": {"type": "object"},
    },
}

SETTINGS_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "notifications": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "enabled": {"type": "boolean"},
                "to": {"type": "string"},
                "subject": {"type": "string"},
                "message": {"type": "string"},
            },
        },
    },
}

# Integers are strict (no floats, no booleans); arrays may be tuples.
_TYPE_CHECKER = Draft7Validator.TYPE_CHECKER.redefine_many({
    "integer": lambda checker, instance: isinstance(instance, int) and not isinstance(instance, bool),
    "array": lambda checker, instance: isinstance(instance, (list, tuple)),
})

FragmentValidator = validators.extend(Draft7Validator, type_checker=_TYPE_CHECKER)

FragmentValidator.check_schema(FIELD_SCHEMA)
FragmentValidator.check_schema(SETTINGS_SCHEMA)

FIELD_VALIDATOR = FragmentValidator(FIELD_SCHEMA)
SETTINGS_VALIDATOR = FragmentValidator(SETTINGS_SCHEMA)


class SchemaDecodeError(Exception):
    """Raised when a raw schema cannot be decoded into a SchemaDocument.

    Attributes:
        code: One of SCHEMA_MISSING, SCHEMA_VERSION or SCHEMA_FIELDS
        message: Human-readable error message
    """

    def __init__(self, code: FieldErrorCode, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


def is_scalar(value: Any) -> bool:
    """True for the values a submission or schema may hold as a plain scalar."""
    return isinstance(value, (str, int, float, bool))


def coerce_schema_version(value: Any) -> Optional[int]:
    """Coerce a raw ``version`` value to an integer.

    Accepts integers, integral floats and strings holding an integer.
    Returns None for anything else. This is stricter than a loose integer
    cast: booleans, fractional floats such as ``1.9`` and strings with
    trailing text such as ``"1abc"`` are not versions.

    Examples:
        >>> coerce_schema_version("1")
        1
        >>> coerce_schema_version(1.5) is None
        True
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def decode_json_object(raw: Union[str, bytes, Mapping[str, Any], None]) -> Optional[Dict[str, Any]]:
    """Decode raw schema text into a dict.

    Returns None when the input is absent, empty, not valid JSON, or does not
    decode to a JSON object. Mappings are passed through as dicts.
    """
    if raw is None:
        return None
    if isinstance(raw, Mapping):
        return dict(raw)
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError:
            return None
    if not isinstance(raw, str) or raw.strip() == "":
        return None
    try:
        decoded = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(decoded, dict):
        return None
    return decoded


@dataclass(frozen=True)
class FieldValidation:
    """Optional per-field validation rules.

    Attributes:
        required: Marks the field mandatory in addition to FieldDefinition.required
        min_length: Minimum length in characters, or None
        max_length: Maximum length in characters, or None
    """
    required: bool = False
    min_length: Optional[int] = None
    max_length: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        return {
            "required": self.required,
            "min_length": self.min_length,
            "max_length": self.max_length,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FieldValidation":
        """Create FieldValidation from an already shape-checked dict."""
        return cls(
            required=bool(data.get("required", False)),
            min_length=data.get("min_length"),
            max_length=data.get("max_length"),
        )


@dataclass(frozen=True)
class FieldDefinition:
    """One field of a form.

    Attributes:
        id: Submission payload key and placeholder name
        type: Field type, which selects the sanitizer
        label: Human-readable label
        required: Whether a value must be submitted
        validation: Extra validation rules
        meta: Free-form data, not interpreted by validation

    Examples:
        >>> f = FieldDefinition.from_dict(
        ...     {"id": "name", "type": "text", "label": "Name", "required": False,
        ...      "validation": {"required": True}}
        ... )
        >>> f.is_required
        True
    """
    id: str
    type: FieldType
    label: str
    required: bool
    validation: FieldValidation = field(default_factory=FieldValidation)
    meta: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_required(self) -> bool:
        """Either required flag makes the field mandatory."""
        return self.required or self.validation.required

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {
            "id": self.id,
            "type": self.type.value,
            "label": self.label,
            "required": self.required,
            "validation": self.validation.to_dict(),
        }
        if self.meta:
            result["meta"] = self.meta
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FieldDefinition":
        """Create FieldDefinition from a dict.

        Raises:
            SchemaDecodeError: If the dict does not match FIELD_SCHEMA
        """
        if not FIELD_VALIDATOR.is_valid(data):
            raise SchemaDecodeError(FieldErrorCode.SCHEMA_FIELDS, "Form schema fields are invalid.")
        return cls(
            id=data["id"],
            type=FieldType(data["type"]),
            label=data["label"],
            required=data["required"],
            validation=FieldValidation.from_dict(data.get("validation") or {}),
            meta=dict(data.get("meta") or {}),
        )


@dataclass(frozen=True)
class NotificationConfig:
    """Notification settings from ``settings.notifications``.

    Attributes:
        enabled: Whether an email is sent for each stored submission
        to: Recipient address; an empty or invalid address suppresses sending
        subject: Subject template
        message: Body template
    """
    enabled: bool = False
    to: str = ""
    subject: str = ""
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        return {
            "enabled": self.enabled,
            "to": self.to,
            "subject": self.subject,
            "message": self.message,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "NotificationConfig":
        """Create NotificationConfig from a dict, ignoring wrongly typed values."""
        def text(key: str) -> str:
            value = data.get(key)
            return value if isinstance(value, str) else ""

        return cls(
            enabled=bool(data.get("enabled", False)),
            to=text("to"),
            subject=text("subject"),
            message=text("message"),
        )


def extract_notification_config(schema: Optional[Mapping[str, Any]]) -> Optional[NotificationConfig]:
    """Read ``settings.notifications`` from a decoded schema, leniently."""
    if not isinstance(schema, Mapping):
        return None
    settings = schema.get("settings")
    if not isinstance(settings, Mapping):
        return None
    notifications = settings.get("notifications")
    if not isinstance(notifications, Mapping):
        return None
    return NotificationConfig.from_dict(notifications)


@dataclass(frozen=True)
class SchemaDocument:
    """A decoded form schema.

    Attributes:
        version: Schema version, always SCHEMA_VERSION
        fields: Field definitions in declaration order
        notifications: Notification settings, if any

    Examples:
        >>> doc = SchemaDocument.from_raw(
        ...     '{"version":1,"fields":[{"id":"name","type":"text","label":"Name","required":true}]}'
        ... )
        >>> [f.id for f in doc.fields]
        ['name']
    """
    version: int
    fields: Tuple[FieldDefinition, ...]
    notifications: Optional[NotificationConfig] = None

    def field_map(self) -> Dict[str, FieldDefinition]:
        """Lookup from field id to definition, in declaration order.

        When ids repeat, the last definition wins but keeps the position of
        the first.
        """
        mapped: Dict[str, FieldDefinition] = {}
        for definition in self.fields:
            if definition.id in mapped:
                logger.warning("Form schema declares field id %r more than once", definition.id)
            mapped[definition.id] = definition
        return mapped

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {
            "version": self.version,
            "fields": [f.to_dict() for f in self.fields],
        }
        if self.notifications is not None:
            result["settings"] = {"notifications": self.notifications.to_dict()}
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SchemaDocument":
        """Create SchemaDocument from a decoded JSON object.

        Raises:
            SchemaDecodeError: With SCHEMA_VERSION when the version is missing
                or unsupported, SCHEMA_FIELDS when the field list is malformed
        """
        if "version" not in data or coerce_schema_version(data["version"]) != SCHEMA_VERSION:
            raise SchemaDecodeError(FieldErrorCode.SCHEMA_VERSION, "Unsupported form schema version.")

        raw_fields = data.get("fields")
        if not isinstance(raw_fields, (list, tuple)):
            raise SchemaDecodeError(FieldErrorCode.SCHEMA_FIELDS, "Form schema fields are invalid.")

        return cls(
            version=SCHEMA_VERSION,
            fields=tuple(FieldDefinition.from_dict(f) for f in raw_fields),
            notifications=extract_notification_config(data),
        )

    @classmethod
    def from_raw(cls, raw: Union[str, bytes, Mapping[str, Any], None]) -> "SchemaDocument":
        """Decode stored schema text (or an already decoded mapping).

        Raises:
            SchemaDecodeError: With SCHEMA_MISSING when nothing decodable is
                stored, otherwise as for from_dict
        """
        decoded = decode_json_object(raw)
        if decoded is None:
            raise SchemaDecodeError(FieldErrorCode.SCHEMA_MISSING, "Form schema could not be loaded.")
        return cls.from_dict(decoded)


__all__ = [
    "SCHEMA_VERSION",
    "ALLOWED_SCHEMA_KEYS",
    "REQUIRED_SCHEMA_KEYS",
    "REQUIRED_FIELD_KEYS",
    "ALLOWED_FIELD_KEYS",
    "ALLOWED_VALIDATION_KEYS",
    "ALLOWED_SETTINGS_KEYS",
    "ALLOWED_NOTIFICATION_KEYS",
    "FIELD_SCHEMA",
    "SETTINGS_SCHEMA",
    "FIELD_VALIDATOR",
    "SETTINGS_VALIDATOR",
    "SchemaDecodeError",
    "is_scalar",
    "coerce_schema_version",
    "decode_json_object",
    "FieldValidation",
    "FieldDefinition",
    "NotificationConfig",
    "extract_notification_config",
    "SchemaDocument",
]
