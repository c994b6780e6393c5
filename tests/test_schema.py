"""Unit tests for the schema document model.

Tests cover:
- Version coercion and JSON decoding
- SchemaDocument decoding failures and their codes
- FieldDefinition / NotificationConfig construction
- Field lookup with repeated ids
"""

import json
import logging

import pytest

from satori_forms.schema import (
    FIELD_VALIDATOR,
    FieldDefinition,
    FieldValidation,
    NotificationConfig,
    SchemaDecodeError,
    SchemaDocument,
    coerce_schema_version,
    decode_json_object,
    extract_notification_config,
)
from satori_forms.types import FieldErrorCode, FieldType


NAME_FIELD = {"id": "name", "type": "text", "label": "Name", "required": True}


class TestFieldType:
    """Test FieldType enum."""

    def test_values_in_declaration_order(self):
        """Should expose the wire strings of all types."""
        assert FieldType.values() == ["text", "email", "textarea"]

    def test_members_compare_to_strings(self):
        """Should compare equal to the raw type string."""
        assert FieldType.EMAIL == "email"
        assert FieldType("textarea") is FieldType.TEXTAREA


class TestCoerceSchemaVersion:
    """Test version coercion."""

    @pytest.mark.parametrize("raw,expected", [
        (1, 1),
        (2, 2),
        (1.0, 1),
        ("1", 1),
        (" 3 ", 3),
        (1.5, None),
        ("one", None),
        ("1abc", None),
        (1.9, None),
        (True, None),
        (None, None),
        ([1], None),
    ])
    def test_coercion(self, raw, expected):
        """Should coerce integer-like values and reject the rest."""
        assert coerce_schema_version(raw) == expected


class TestDecodeJsonObject:
    """Test raw schema decoding."""

    @pytest.mark.parametrize("raw", [None, "", "  ", "{", "[]", "42", '"text"', b"\xff\xfe"])
    def test_undecodable(self, raw):
        """Should return None for anything that is not a JSON object."""
        assert decode_json_object(raw) is None

    def test_text_and_bytes(self):
        """Should decode JSON text and UTF-8 bytes."""
        assert decode_json_object('{"a": 1}') == {"a": 1}
        assert decode_json_object('{"a": "é"}'.encode("utf-8")) == {"a": "é"}

    def test_mapping_is_copied(self):
        """Should return a dict copy of a mapping."""
        original = {"version": 1}
        decoded = decode_json_object(original)

        assert decoded == original
        assert decoded is not original


class TestFieldDefinition:
    """Test FieldDefinition."""

    def test_from_dict_defaults(self):
        """Should default validation rules and meta."""
        field = FieldDefinition.from_dict(NAME_FIELD)

        assert field.type is FieldType.TEXT
        assert field.validation == FieldValidation()
        assert field.meta == {}
        assert field.is_required is True

    def test_validation_required_flag(self):
        """Should be required when only validation.required is set."""
        field = FieldDefinition.from_dict(dict(NAME_FIELD, required=False, validation={"required": True}))

        assert field.required is False
        assert field.is_required is True

    def test_length_rules(self):
        """Should keep min_length and max_length."""
        field = FieldDefinition.from_dict(dict(NAME_FIELD, validation={"min_length": 2, "max_length": None}))

        assert field.validation.min_length == 2
        assert field.validation.max_length is None

    def test_rejects_malformed_definition(self):
        """Should raise SCHEMA_FIELDS for a definition that fails the field schema."""
        with pytest.raises(SchemaDecodeError) as exc_info:
            FieldDefinition.from_dict(dict(NAME_FIELD, type="number"))

        assert exc_info.value.code == FieldErrorCode.SCHEMA_FIELDS

    def test_to_dict_matches_field_schema(self):
        """Should serialize back into a valid field definition."""
        field = FieldDefinition.from_dict(dict(NAME_FIELD, meta={"hint": "x"}))

        assert FIELD_VALIDATOR.is_valid(field.to_dict())
        assert field.to_dict()["meta"] == {"hint": "x"}


class TestNotificationConfig:
    """Test notification settings extraction."""

    def test_lenient_parsing(self):
        """Should ignore wrongly typed values instead of failing."""
        config = NotificationConfig.from_dict({"enabled": True, "to": 5, "subject": "Hi"})

        assert config == NotificationConfig(enabled=True, to="", subject="Hi", message="")

    @pytest.mark.parametrize("schema", [
        None,
        {"version": 1},
        {"settings": []},
        {"settings": {"notifications": "on"}},
    ])
    def test_absent_settings(self, schema):
        """Should return None when there are no notification settings."""
        assert extract_notification_config(schema) is None

    def test_present_settings(self):
        """Should read the notifications block."""
        schema = {"settings": {"notifications": {"enabled": True, "to": "a@example.com"}}}

        assert extract_notification_config(schema).to == "a@example.com"


class TestSchemaDocument:
    """Test SchemaDocument decoding."""

    def test_from_raw(self):
        """Should decode fields in declaration order."""
        raw = json.dumps({
            "version": 1,
            "fields": [NAME_FIELD, {"id": "email", "type": "email", "label": "Email", "required": False}],
            "settings": {"notifications": {"enabled": False}},
        })
        document = SchemaDocument.from_raw(raw)

        assert [f.id for f in document.fields] == ["name", "email"]
        assert document.notifications == NotificationConfig(enabled=False)

    @pytest.mark.parametrize("raw,code", [
        (None, FieldErrorCode.SCHEMA_MISSING),
        ("", FieldErrorCode.SCHEMA_MISSING),
        ("not json", FieldErrorCode.SCHEMA_MISSING),
        ('{"fields": []}', FieldErrorCode.SCHEMA_VERSION),
        ('{"version": 2, "fields": []}', FieldErrorCode.SCHEMA_VERSION),
        ('{"version": 1}', FieldErrorCode.SCHEMA_FIELDS),
        ('{"version": 1, "fields": {}}', FieldErrorCode.SCHEMA_FIELDS),
        ('{"version": 1, "fields": [1]}', FieldErrorCode.SCHEMA_FIELDS),
    ])
    def test_decode_failures(self, raw, code):
        """Should raise SchemaDecodeError with the matching code."""
        with pytest.raises(SchemaDecodeError) as exc_info:
            SchemaDocument.from_raw(raw)

        assert exc_info.value.code == code

    def test_to_dict(self):
        """Should serialize version, fields and settings."""
        document = SchemaDocument.from_dict({
            "version": "1",
            "fields": [NAME_FIELD],
            "settings": {"notifications": {"enabled": True, "to": "a@example.com"}},
        })
        result = document.to_dict()

        assert result["version"] == 1
        assert result["fields"][0]["id"] == "name"
        assert result["settings"]["notifications"]["to"] == "a@example.com"

    def test_field_map_last_definition_wins(self, caplog):
        """Should keep the last definition of a repeated id and log a warning."""
        document = SchemaDocument.from_dict({
            "version": 1,
            "fields": [
                NAME_FIELD,
                {"id": "email", "type": "email", "label": "Email", "required": True},
                dict(NAME_FIELD, label="Full name", required=False),
            ],
        })

        with caplog.at_level(logging.WARNING, logger="satori_forms.schema"):
            mapped = document.field_map()

        assert list(mapped) == ["name", "email"]
        assert mapped["name"].label == "Full name"
        assert "more than once" in caplog.text
