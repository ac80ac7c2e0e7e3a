"""
Schema translation from broker parameter schemas to validated MCP input schemas.

Broker actions describe their parameters with a loose, validator-style notation:

    {"id": "string", "tags": ["string"], "limit": {"type": "number", "optional": True},
     "address": {"props": {"city": "string"}}, "$$strict": True}

This module converts such a value into ValidatedType / ObjectSchema descriptions that
can build pydantic models, validate tool arguments and render JSON Schema for
tools/list. The source schemas belong to third-party services, so translation never
fails: anything it cannot classify becomes an unconstrained ("any") field.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Annotated, Any, Dict, Iterable, List, Optional, Tuple, Type, Union
from uuid import UUID

from pydantic import (
    AfterValidator,
    AnyUrl,
    BaseModel,
    EmailStr,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    TypeAdapter,
    ValidationError,
    WithJsonSchema,
    create_model,
)

# Keys carrying validator metadata rather than fields
METADATA_KEYS = frozenset({"$$strict", "$$async"})

# ints stay ints when forwarded, but the schema advertises a plain JSON number
Number = Annotated[Union[StrictInt, StrictFloat], WithJsonSchema({"type": "number"})]


class SchemaKind(str, Enum):
    """Kinds of validated types produced by the translator."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    EMAIL = "email"
    URL = "url"
    UUID = "uuid"
    ARRAY = "array"
    OBJECT = "object"
    ANY = "any"


PRIMITIVE_KINDS = {
    "string": SchemaKind.STRING,
    "number": SchemaKind.NUMBER,
    "boolean": SchemaKind.BOOLEAN,
    "date": SchemaKind.DATE,
    "email": SchemaKind.EMAIL,
    "url": SchemaKind.URL,
    "uuid": SchemaKind.UUID,
}


def checked_string(target: Any, string_format: str) -> Any:
    """
    Build a string annotation validated as `target` but forwarded exactly as sent.

    The parsed value is only a check; pydantic would otherwise lowercase domains and
    UUIDs, add trailing slashes to URLs and rewrite "+00:00" offsets as "Z".
    """
    adapter = TypeAdapter(target)

    def check(value: str) -> str:
        try:
            adapter.validate_python(value)
        except ValidationError as e:
            raise ValueError(f"value is not a valid {string_format}") from e
        return value

    return Annotated[
        StrictStr,
        AfterValidator(check),
        WithJsonSchema({"type": "string", "format": string_format}),
    ]


_ATOMIC_ANNOTATIONS = {
    SchemaKind.STRING: StrictStr,
    SchemaKind.NUMBER: Number,
    SchemaKind.BOOLEAN: StrictBool,
    SchemaKind.DATE: checked_string(datetime, "date-time"),
    SchemaKind.EMAIL: checked_string(EmailStr, "email"),
    SchemaKind.URL: checked_string(AnyUrl, "uri"),
    SchemaKind.UUID: checked_string(UUID, "uuid"),
    SchemaKind.ANY: Any,
}


# Schema node variants


@dataclass(frozen=True)
class PrimitiveNode:
    """A bare type tag such as "string" or "email"."""

    tag: str


@dataclass(frozen=True)
class SequenceNode:
    """A list holding zero or one representative element."""

    elements: Tuple[Any, ...]


@dataclass(frozen=True)
class ArrayNode:
    """{"type": "array", "items": ...}"""

    items: Any = None


@dataclass(frozen=True)
class ObjectNode:
    """{"type": "object", "props": {...}} or any mapping with a props key."""

    props: Any


@dataclass(frozen=True)
class TypedNode:
    """{"type": "<tag>", "optional": bool}"""

    tag: Any
    optional: bool = False


@dataclass(frozen=True)
class ImplicitObjectNode:
    """A bare mapping of field name to schema node."""

    entries: Mapping
    optional: bool = False


@dataclass(frozen=True)
class UnknownNode:
    """Anything the translator does not recognise."""

    value: Any = None


SchemaNode = Union[
    PrimitiveNode, SequenceNode, ArrayNode, ObjectNode, TypedNode, ImplicitObjectNode, UnknownNode
]


def classify(node: Any) -> SchemaNode:
    """Classify a raw schema value into one of the schema node variants."""
    if isinstance(node, str):
        return PrimitiveNode(tag=node)

    if isinstance(node, (list, tuple)):
        return SequenceNode(elements=tuple(node[:1]))

    if isinstance(node, Mapping):
        if node.get("type") == "array":
            items = node.get("items")
            return ArrayNode(items=None if items is False else items)

        if node.get("type") == "object" or "props" in node:
            return ObjectNode(props=node.get("props") or node)

        if "type" in node:
            return TypedNode(tag=node["type"], optional=node.get("optional") is True)

        return ImplicitObjectNode(entries=node, optional=node.get("optional") is True)

    return UnknownNode(value=node)


# Validated types


@dataclass(frozen=True)
class ValidatedType:
    """Description of one validated field."""

    kind: SchemaKind
    optional: bool = False
    items: Optional["ValidatedType"] = None
    fields: Optional[Mapping] = None

    def __post_init__(self) -> None:
        if self.fields is not None:
            object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    @property
    def required(self) -> bool:
        # Unconstrained fields accept a missing value as well
        return not self.optional and self.kind != SchemaKind.ANY

    def as_optional(self) -> "ValidatedType":
        """Return a copy of this type that may be omitted."""
        return replace(self, optional=True)

    def annotation(self, model_name: str = "Arguments") -> Any:
        """Build the pydantic type annotation for this field."""
        if self.kind == SchemaKind.ARRAY:
            item_type = self.items or ANY_TYPE
            return List[item_type.annotation(f"{model_name}_item")]

        if self.kind == SchemaKind.OBJECT:
            return build_model(model_name, self.fields or {})

        return _ATOMIC_ANNOTATIONS[self.kind]

    def field_definition(self, model_name: str, alias: str) -> Tuple[Any, Any]:
        """Return the (annotation, FieldInfo) pair used by create_model."""
        annotation = self.annotation(model_name)

        if self.required:
            return annotation, Field(..., alias=alias, title=alias)

        return Optional[annotation], Field(None, alias=alias, title=alias)


ANY_TYPE = ValidatedType(kind=SchemaKind.ANY)


def build_model(name: str, fields: Mapping) -> Type[BaseModel]:
    """
    Build a pydantic model from a validated field mapping.

    Field names coming from the broker are arbitrary strings ("_id", "json", "$ref"),
    so every field is declared under a generated identifier and exposed via its alias.
    """
    definitions = {}
    for index, (key, validated) in enumerate(fields.items()):
        definitions[f"field_{index}"] = validated.field_definition(f"{name}_{key}", key)

    return create_model(name, **definitions)


@dataclass(frozen=True)
class ObjectSchema:
    """Root input schema of a tool: a read-only mapping of field name to validated type."""

    fields: Mapping = field(default_factory=dict)
    name: str = "Arguments"
    _model: Optional[Type[BaseModel]] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    def with_optional(self, names: Iterable[str]) -> "ObjectSchema":
        """Return a new schema where the given existing fields are optional."""
        marked = set(names)
        fields = {
            key: validated.as_optional() if key in marked else validated
            for key, validated in self.fields.items()
        }
        return ObjectSchema(fields=fields, name=self.name)

    def to_model(self) -> Type[BaseModel]:
        """Build (once) the pydantic model validating this schema."""
        if self._model is None:
            object.__setattr__(self, "_model", build_model(self.name, self.fields))
        return self._model

    def validate(self, arguments: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Validate caller arguments against the schema.

        Returns:
            JSON-safe dict holding only the declared fields the caller supplied,
            with string formats (email, url, uuid, date) forwarded as sent

        Raises:
            pydantic.ValidationError: If the arguments do not match the schema
        """
        instance = self.to_model().model_validate(arguments or {})
        return instance.model_dump(mode="json", by_alias=True, exclude_unset=True)

    def json_schema(self) -> Dict[str, Any]:
        """Render the schema as JSON Schema for MCP tools/list."""
        return self.to_model().model_json_schema(by_alias=True)


# Translation


def translate(node: Any) -> ValidatedType:
    """Translate any schema value into a validated type. Never raises."""
    variant = classify(node)

    if isinstance(variant, PrimitiveNode):
        return _primitive(variant.tag)

    if isinstance(variant, SequenceNode):
        if not variant.elements:
            return ValidatedType(kind=SchemaKind.ARRAY, items=ANY_TYPE)
        return ValidatedType(kind=SchemaKind.ARRAY, items=translate(variant.elements[0]))

    if isinstance(variant, ArrayNode):
        if variant.items is None:
            return ValidatedType(kind=SchemaKind.ARRAY, items=ANY_TYPE)
        return ValidatedType(kind=SchemaKind.ARRAY, items=translate(variant.items))

    if isinstance(variant, ObjectNode):
        return ValidatedType(kind=SchemaKind.OBJECT, fields=_translate_fields(variant.props))

    if isinstance(variant, TypedNode):
        validated = _primitive(variant.tag)
        return validated.as_optional() if variant.optional else validated

    if isinstance(variant, ImplicitObjectNode):
        fields = _translate_fields(variant.entries)
        if not fields:
            # Opaque blob rather than a nested schema
            return ANY_TYPE
        validated = ValidatedType(kind=SchemaKind.OBJECT, fields=fields)
        return validated.as_optional() if variant.optional else validated

    return ANY_TYPE


def build_root_schema(node: Any, name: str = "Arguments") -> ObjectSchema:
    """
    Build the root object schema of an action's parameters.

    Args:
        node: The action's raw params schema (may be None or empty)
        name: Model name used for the generated pydantic model

    Returns:
        ObjectSchema with one entry per declared parameter
    """
    if not node or not isinstance(node, Mapping):
        return ObjectSchema(name=name)

    return ObjectSchema(fields=_translate_fields(node.get("props") or node), name=name)


def _primitive(tag: Any) -> ValidatedType:
    kind = PRIMITIVE_KINDS.get(tag) if isinstance(tag, str) else None
    return ValidatedType(kind=kind or SchemaKind.ANY)


def _translate_fields(props: Any) -> Dict[str, ValidatedType]:
    if not isinstance(props, Mapping):
        return {}

    return {
        str(key): translate(value) for key, value in props.items() if key not in METADATA_KEYS
    }
