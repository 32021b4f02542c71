"""
Schema tree nodes.

A Schema is either an object schema holding constraint fields, or one of
the two boolean schemas `true`/`false`. Fields are listed in the order they
are written to the output document. Fields carrying `json` metadata are
serialized, the remaining ones only steer the tree assembler.
"""

from __future__ import annotations

import copy
import math
from collections.abc import Iterator
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any
from urllib.parse import SplitResult

from ..errors import SchemaDecodeError
from ..pointer import Ptr
from .refs import Referrer, resolve_ref


class SchemaKind(Enum):
    """Which of the three schema forms a node has."""

    OBJECT = "object"
    TRUE = "true"
    FALSE = "false"

    @property
    def is_bool(self) -> bool:
        return self is not SchemaKind.OBJECT


# Codecs used to (de)serialize fields
_STR = "str"
_BOOL = "bool"
_OPT_BOOL = "opt_bool"
_ANY = "any"
_LIST = "list"
_STRINGS = "strings"
_TYPE = "type"
_FLOAT = "float"
_UINT = "uint"
_SCHEMA = "schema"
_SCHEMA_LIST = "schema_list"
_SCHEMA_MAP = "schema_map"


def _json(key: str, codec: str) -> dict[str, str]:
    return {"json": key, "codec": codec}


@dataclass
class Schema:
    """A node of the generated JSON Schema."""

    kind: SchemaKind = SchemaKind.OBJECT

    schema: str = field(default="", metadata=_json("$schema", _STR))
    id: str = field(default="", metadata=_json("$id", _STR))
    title: str = field(default="", metadata=_json("title", _STR))
    description: str = field(default="", metadata=_json("description", _STR))
    comment: str = field(default="", metadata=_json("$comment", _STR))
    examples: list[Any] = field(default_factory=list, metadata=_json("examples", _LIST))
    read_only: bool = field(default=False, metadata=_json("readOnly", _BOOL))
    default: Any = field(default=None, metadata=_json("default", _ANY))
    ref: str = field(default="", metadata=_json("$ref", _STR))
    type: str | list[str] | None = field(default=None, metadata=_json("type", _TYPE))
    enum: list[Any] = field(default_factory=list, metadata=_json("enum", _LIST))
    const: Any = field(default=None, metadata=_json("const", _ANY))
    all_of: list[Schema] = field(default_factory=list, metadata=_json("allOf", _SCHEMA_LIST))
    any_of: list[Schema] = field(default_factory=list, metadata=_json("anyOf", _SCHEMA_LIST))
    one_of: list[Schema] = field(default_factory=list, metadata=_json("oneOf", _SCHEMA_LIST))
    not_: Schema | None = field(default=None, metadata=_json("not", _SCHEMA))
    maximum: float | None = field(default=None, metadata=_json("maximum", _FLOAT))
    minimum: float | None = field(default=None, metadata=_json("minimum", _FLOAT))
    multiple_of: float | None = field(default=None, metadata=_json("multipleOf", _FLOAT))
    pattern: str = field(default="", metadata=_json("pattern", _STR))
    max_length: int | None = field(default=None, metadata=_json("maxLength", _UINT))
    min_length: int | None = field(default=None, metadata=_json("minLength", _UINT))
    max_items: int | None = field(default=None, metadata=_json("maxItems", _UINT))
    min_items: int | None = field(default=None, metadata=_json("minItems", _UINT))
    unique_items: bool = field(default=False, metadata=_json("uniqueItems", _BOOL))
    items: Schema | None = field(default=None, metadata=_json("items", _SCHEMA))
    additional_items: Schema | None = field(default=None, metadata=_json("additionalItems", _SCHEMA))
    required: list[str] = field(default_factory=list, metadata=_json("required", _STRINGS))
    max_properties: int | None = field(default=None, metadata=_json("maxProperties", _UINT))
    min_properties: int | None = field(default=None, metadata=_json("minProperties", _UINT))
    properties: dict[str, Schema] = field(default_factory=dict, metadata=_json("properties", _SCHEMA_MAP))
    pattern_properties: dict[str, Schema] = field(default_factory=dict, metadata=_json("patternProperties", _SCHEMA_MAP))
    additional_properties: Schema | None = field(default=None, metadata=_json("additionalProperties", _SCHEMA))
    unevaluated_properties: bool | None = field(default=None, metadata=_json("unevaluatedProperties", _OPT_BOOL))
    defs: dict[str, Schema] = field(default_factory=dict, metadata=_json("$defs", _SCHEMA_MAP))
    definitions: dict[str, Schema] = field(default_factory=dict, metadata=_json("definitions", _SCHEMA_MAP))

    # Directives from `@schema` comments, never written out
    skip_properties: bool = False
    merge_properties: bool = False
    hidden: bool = False
    required_by_parent: bool = False

    # Origin of the document this node was read from, used to resolve `ref`
    ref_referrer: Referrer = field(default_factory=Referrer)

    @staticmethod
    def true() -> Schema:
        return Schema(kind=SchemaKind.TRUE)

    @staticmethod
    def false() -> Schema:
        return Schema(kind=SchemaKind.FALSE)

    @staticmethod
    def of_bool(value: bool) -> Schema:
        """Return a new boolean schema. Each call returns a distinct instance."""
        return Schema.true() if value else Schema.false()

    def set_kind(self, kind: SchemaKind) -> None:
        """Change the kind of this node.

        Switching to a boolean kind resets every other field, as boolean
        schemas carry no constraints.
        """
        if kind.is_bool:
            fresh = Schema(kind=kind)
            for f in fields(self):
                setattr(self, f.name, getattr(fresh, f.name))
        else:
            self.kind = kind

    def is_zero(self) -> bool:
        """Whether the node would serialize to an empty object.

        Directive-only fields and the referrer are ignored.
        """
        if self.kind.is_bool:
            return False
        return all(not is_value_present(getattr(self, f.name), f.metadata["codec"]) for f in _serialized_fields())

    def is_type(self, name: str) -> bool:
        """Whether `type` is `name` or a list containing `name`."""
        if isinstance(self.type, list):
            return name in self.type
        return self.type == name

    def subschemas(self) -> Iterator[tuple[Ptr, Schema]]:
        """Yield the direct object-kind subschemas with their relative pointers.

        Map keys are visited in sorted order so walks are deterministic.
        """
        for key, sub in sorted(self.properties.items()):
            if sub.kind is SchemaKind.OBJECT:
                yield Ptr.of("properties", key), sub
        if self.additional_properties is not None and self.additional_properties.kind is SchemaKind.OBJECT:
            yield Ptr.of("additionalProperties"), self.additional_properties
        for key, sub in sorted(self.pattern_properties.items()):
            if sub.kind is SchemaKind.OBJECT:
                yield Ptr.of("patternProperties", key), sub
        if self.items is not None and self.items.kind is SchemaKind.OBJECT:
            yield Ptr.of("items"), self.items
        if self.additional_items is not None and self.additional_items.kind is SchemaKind.OBJECT:
            yield Ptr.of("additionalItems"), self.additional_items
        for key, sub in sorted(self.defs.items()):
            if sub.kind is SchemaKind.OBJECT:
                yield Ptr.of("$defs", key), sub
        for key, sub in sorted(self.definitions.items()):
            if sub.kind is SchemaKind.OBJECT:
                yield Ptr.of("definitions", key), sub
        for label, subs in (("allOf", self.all_of), ("anyOf", self.any_of), ("oneOf", self.one_of)):
            for index, sub in enumerate(subs):
                if sub.kind is SchemaKind.OBJECT:
                    yield Ptr.of(label).item(index), sub
        if self.not_ is not None and self.not_.kind is SchemaKind.OBJECT:
            yield Ptr.of("not"), self.not_

    def set_referrer(self, referrer: Referrer) -> None:
        """Record the origin on every node of this tree that has a `$ref`."""
        if self.ref:
            self.ref_referrer = referrer
        for _, sub in self.subschemas():
            sub.set_referrer(referrer)

    def parse_ref(self) -> SplitResult:
        """Parse `ref`, resolving relative file paths against the referrer.

        Raises:
            LoaderError: If `ref` is not a valid URL
        """
        return resolve_ref(self.ref, self.ref_referrer)

    def clone(self) -> Schema:
        return copy.deepcopy(self)

    def to_dict(self) -> Any:
        """Convert to plain JSON-compatible data.

        Boolean schemas become `True`/`False`, object schemas a dict in field
        order with absent fields omitted.
        """
        if self.kind is SchemaKind.TRUE:
            return True
        if self.kind is SchemaKind.FALSE:
            return False
        result: dict[str, Any] = {}
        for f in _serialized_fields():
            value = getattr(self, f.name)
            codec = f.metadata["codec"]
            if not is_value_present(value, codec):
                continue
            result[f.metadata["json"]] = _encode(value, codec)
        return result

    @staticmethod
    def from_dict(data: Any) -> Schema:
        """Build a schema from decoded JSON or YAML data.

        Unknown keywords are ignored.

        Raises:
            SchemaDecodeError: If the data has the wrong shape
        """
        if isinstance(data, bool):
            return Schema.of_bool(data)
        if data is None:
            return Schema()
        if not isinstance(data, dict):
            raise SchemaDecodeError(f"cannot decode {_type_name(data)} into a schema")
        schema = Schema()
        for f in _serialized_fields():
            key = f.metadata["json"]
            if key not in data:
                continue
            try:
                setattr(schema, f.name, _decode(data[key], f.metadata["codec"]))
            except SchemaDecodeError as e:
                raise SchemaDecodeError(f"{key}: {e}") from e
        return schema


def _serialized_fields():
    return _SERIALIZED_FIELDS


def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def is_value_present(value: Any, codec: str) -> bool:
    if codec in (_STR, _LIST, _STRINGS, _SCHEMA_LIST, _SCHEMA_MAP):
        return bool(value)
    if codec == _BOOL:
        return value is True
    if codec == _TYPE:
        return value is not None and value != "" and value != []
    return value is not None


def _number(value: float) -> float | int:
    # Integral floats are written without a fraction, e.g. `1` not `1.0`
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e15:
        return int(value)
    return value


def _encode(value: Any, codec: str) -> Any:
    if codec == _SCHEMA:
        return value.to_dict()
    if codec == _SCHEMA_LIST:
        return [sub.to_dict() for sub in value]
    if codec == _SCHEMA_MAP:
        return {key: value[key].to_dict() for key in sorted(value)}
    if codec == _FLOAT:
        return _number(value)
    if codec in (_LIST, _STRINGS):
        return list(value)
    if codec == _TYPE and isinstance(value, list):
        return list(value)
    return value


def _decode(value: Any, codec: str) -> Any:
    if codec == _STR:
        if not isinstance(value, str):
            raise SchemaDecodeError(f"expected string, got {_type_name(value)}")
        return value
    if codec in (_BOOL, _OPT_BOOL):
        if not isinstance(value, bool):
            raise SchemaDecodeError(f"expected boolean, got {_type_name(value)}")
        return value
    if codec == _ANY:
        return value
    if codec == _LIST:
        if not isinstance(value, list):
            raise SchemaDecodeError(f"expected array, got {_type_name(value)}")
        return value
    if codec == _STRINGS:
        if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
            raise SchemaDecodeError(f"expected array of strings, got {_type_name(value)}")
        return value
    if codec == _TYPE:
        if isinstance(value, str):
            return value
        if isinstance(value, list) and all(isinstance(item, str) for item in value):
            return value
        raise SchemaDecodeError(f"expected string or array of strings, got {_type_name(value)}")
    if codec == _FLOAT:
        if isinstance(value, bool) or not isinstance(value, (int, float)) or math.isnan(value):
            raise SchemaDecodeError(f"expected number, got {_type_name(value)}")
        return float(value)
    if codec == _UINT:
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise SchemaDecodeError(f"expected non-negative integer, got {value!r}")
        return value
    if codec == _SCHEMA:
        return None if value is None else Schema.from_dict(value)
    if codec == _SCHEMA_LIST:
        if not isinstance(value, list):
            raise SchemaDecodeError(f"expected array, got {_type_name(value)}")
        return [Schema.from_dict(item) for item in value]
    if codec == _SCHEMA_MAP:
        if not isinstance(value, dict):
            raise SchemaDecodeError(f"expected object, got {_type_name(value)}")
        result = {}
        for key, item in value.items():
            try:
                result[str(key)] = Schema.from_dict(item)
            except SchemaDecodeError as e:
                raise SchemaDecodeError(f"{key}: {e}") from e
        return result
    raise ValueError(f"unknown codec {codec!r}")


_SERIALIZED_FIELDS = [f for f in fields(Schema) if "json" in f.metadata]
