"""
Tests for schema translation and argument validation.
"""

from dataclasses import FrozenInstanceError

import pytest
from pydantic import ValidationError

from bridge.schema_factory import (
    ANY_TYPE,
    ArrayNode,
    ImplicitObjectNode,
    ObjectNode,
    ObjectSchema,
    PrimitiveNode,
    SchemaKind,
    SequenceNode,
    TypedNode,
    UnknownNode,
    ValidatedType,
    build_root_schema,
    classify,
    translate,
)


def validate_field(validated: ValidatedType, value):
    """Validate one value against a single-field schema."""
    return ObjectSchema(fields={"value": validated}).validate({"value": value})["value"]


class TestClassify:
    """Test raw value classification."""

    def test_variants(self):
        assert classify("string") == PrimitiveNode(tag="string")
        assert classify(["number", "string"]) == SequenceNode(elements=("number",))
        assert classify({"type": "array", "items": "string"}) == ArrayNode(items="string")
        assert classify({"type": "array", "items": False}) == ArrayNode(items=None)
        assert isinstance(classify({"props": {"a": "string"}}), ObjectNode)
        assert classify({"type": "number", "optional": True}) == TypedNode("number", True)
        assert isinstance(classify({"a": "string"}), ImplicitObjectNode)
        assert classify(42) == UnknownNode(value=42)
        assert classify(None) == UnknownNode()


class TestTranslatePrimitives:
    """Test primitive tags."""

    def test_kinds(self):
        for tag in ["string", "number", "boolean", "date", "email", "url", "uuid"]:
            assert translate(tag).kind == SchemaKind(tag)

    def test_unknown_tag_is_any(self):
        assert translate("whatever") == ANY_TYPE
        assert translate(42) == ANY_TYPE
        assert translate(True) == ANY_TYPE

    def test_string_accepts_only_strings(self):
        assert validate_field(translate("string"), "hello") == "hello"
        with pytest.raises(ValidationError):
            validate_field(translate("string"), 42)

    def test_number_keeps_ints(self):
        assert validate_field(translate("number"), 3) == 3
        assert validate_field(translate("number"), 2.5) == 2.5
        with pytest.raises(ValidationError):
            validate_field(translate("number"), "3")

    def test_boolean_is_strict(self):
        assert validate_field(translate("boolean"), True) is True
        with pytest.raises(ValidationError):
            validate_field(translate("boolean"), "yes")

    def test_email(self):
        assert validate_field(translate("email"), "ada@analytical.io") == "ada@analytical.io"
        with pytest.raises(ValidationError):
            validate_field(translate("email"), "not-an-email")

    def test_uuid(self):
        value = "12345678-1234-5678-1234-567812345678"
        assert validate_field(translate("uuid"), value) == value
        with pytest.raises(ValidationError):
            validate_field(translate("uuid"), "nope")

    def test_url(self):
        assert validate_field(translate("url"), "https://example.com") == "https://example.com"
        with pytest.raises(ValidationError):
            validate_field(translate("url"), "not a url")

    def test_date(self):
        assert validate_field(translate("date"), "2024-01-02T03:04:05") == "2024-01-02T03:04:05"
        with pytest.raises(ValidationError):
            validate_field(translate("date"), "tomorrow")

    def test_string_formats_are_forwarded_as_sent(self):
        schema = build_root_schema({"site": "url", "mail": "email", "id": "uuid", "when": "date"})
        sent = {
            "site": "https://example.com",
            "mail": "Ada@Example.COM",
            "id": "A0EEBC99-9C0B-4EF8-BB6D-6BB9BD380A11",
            "when": "2024-01-02T03:04:05+00:00",
        }

        assert schema.validate(sent) == sent

    def test_nested_string_formats_are_forwarded_as_sent(self):
        schema = build_root_schema({"links": ["url"], "owner": {"props": {"mail": "email"}}})
        sent = {"links": ["https://example.com"], "owner": {"mail": "Ada@Example.COM"}}

        assert schema.validate(sent) == sent

    def test_string_formats_are_advertised(self):
        properties = build_root_schema({"mail": "email", "site": "url"}).json_schema()["properties"]

        assert properties["mail"]["format"] == "email"
        assert properties["site"]["format"] == "uri"


class TestTranslateArrays:
    """Test array shapes."""

    def test_empty_list_is_array_of_any(self):
        assert translate([]) == ValidatedType(kind=SchemaKind.ARRAY, items=ANY_TYPE)

    def test_array_without_items_is_array_of_any(self):
        assert translate({"type": "array"}) == ValidatedType(kind=SchemaKind.ARRAY, items=ANY_TYPE)

    def test_list_uses_first_element(self):
        validated = translate(["number"])
        assert validated.kind == SchemaKind.ARRAY
        assert validated.items.kind == SchemaKind.NUMBER
        assert validate_field(validated, [1, 2.5]) == [1, 2.5]
        with pytest.raises(ValidationError):
            validate_field(validated, ["a"])

    def test_array_with_items(self):
        validated = translate({"type": "array", "items": "string"})
        assert validated.items.kind == SchemaKind.STRING


class TestTranslateObjects:
    """Test object shapes."""

    def test_implicit_object(self):
        validated = translate({"a": "string", "b": "number"})
        assert validated.kind == SchemaKind.OBJECT
        assert set(validated.fields) == {"a", "b"}
        assert validated.fields["a"].kind == SchemaKind.STRING
        assert validated.fields["b"].kind == SchemaKind.NUMBER

    def test_metadata_keys_are_skipped(self):
        validated = translate({"$$strict": True, "name": "string"})
        assert set(validated.fields) == {"name"}

    def test_empty_implicit_object_is_any(self):
        assert translate({"$$strict": True}) == ANY_TYPE
        assert translate({}) == ANY_TYPE

    def test_unrecognized_leaf_is_any(self):
        validated = translate({"foo": True})
        assert validated.fields["foo"] == ANY_TYPE

    def test_props_object(self):
        validated = translate({"type": "object", "props": {"city": "string"}})
        assert validated.kind == SchemaKind.OBJECT
        assert validated.fields["city"].kind == SchemaKind.STRING

    def test_object_type_without_props_iterates_mapping(self):
        validated = translate({"type": "object"})
        assert validated.kind == SchemaKind.OBJECT
        assert validated.fields["type"] == ANY_TYPE

    def test_optional_typed_field(self):
        validated = translate({"type": "number", "optional": True})
        assert validated.kind == SchemaKind.NUMBER
        assert validated.optional

    def test_nested_object_validation(self):
        validated = translate({"props": {"city": "string"}})
        assert validate_field(validated, {"city": "Paris"}) == {"city": "Paris"}
        with pytest.raises(ValidationError):
            validate_field(validated, {"city": 1})


class TestObjectSchema:
    """Test root schemas and argument validation."""

    def test_empty_root(self):
        for node in [None, {}, "string", []]:
            schema = build_root_schema(node)
            assert schema.fields == {}
            assert schema.validate({}) == {}

    def test_root_props_are_unwrapped(self):
        schema = build_root_schema({"props": {"id": "string"}})
        assert set(schema.fields) == {"id"}

    def test_required_and_optional_fields(self):
        schema = build_root_schema(
            {"id": "string", "limit": {"type": "number", "optional": True}, "meta": "any"}
        )

        assert schema.validate({"id": "1"}) == {"id": "1"}
        with pytest.raises(ValidationError):
            schema.validate({"limit": 5})

        json_schema = schema.json_schema()
        assert json_schema["required"] == ["id"]
        assert set(json_schema["properties"]) == {"id", "limit", "meta"}

    def test_unknown_keys_are_stripped(self):
        schema = build_root_schema({"id": "string"})
        assert schema.validate({"id": "1", "extra": True}) == {"id": "1"}

    def test_awkward_field_names(self):
        schema = build_root_schema({"_id": "string", "json": "number", "$ref": "boolean"})
        arguments = {"_id": "a", "json": 1, "$ref": False}
        assert schema.validate(arguments) == arguments
        assert set(schema.json_schema()["properties"]) == {"_id", "json", "$ref"}

    def test_with_optional_returns_new_schema(self):
        schema = build_root_schema({"id": "string", "limit": "number"})
        relaxed = schema.with_optional(["limit", "missing"])

        assert schema.fields["limit"].required
        assert not relaxed.fields["limit"].required
        assert relaxed.fields["id"].required
        assert "missing" not in relaxed.fields
        assert relaxed.validate({"id": "1"}) == {"id": "1"}

    def test_fields_are_read_only(self):
        schema = build_root_schema({"id": "string"})

        with pytest.raises(TypeError):
            schema.fields["id"] = ANY_TYPE
        with pytest.raises(TypeError):
            translate({"a": "string"}).fields["b"] = ANY_TYPE
        with pytest.raises(FrozenInstanceError):
            schema.name = "Other"

    def test_number_is_advertised_as_json_number(self):
        schema = build_root_schema({"limit": "number"})
        assert schema.json_schema()["properties"]["limit"]["type"] == "number"

    def test_translation_never_raises(self):
        weird = {"a": object(), "b": [None], "c": {"type": 5}, "d": {"items": 1}, 1: "string"}
        schema = build_root_schema(weird)
        assert set(schema.fields) == {"a", "b", "c", "d", "1"}
