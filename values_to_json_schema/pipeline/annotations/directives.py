"""
`@schema` comment directives.

A directive line looks like:

    # @schema type:[string, null]; minLength:1; required

Each `key:value` clause mutates the schema node the comment belongs to.
Clauses are applied in order, so a key given twice keeps its last value.
"""

from __future__ import annotations

import math
import re
from collections.abc import Callable, Iterable, Iterator
from typing import Any

import yaml

from ..errors import AnnotationError, SchemaDecodeError
from ..schema_ast.nodes import Schema
from ..schema_ast.yaml_nodes import load_yaml

_UINT_RE = re.compile(r"^[0-9]+$")
_MAX_UINT64 = 2**64 - 1
FLOAT_RE = re.compile(r"^[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?$|^[+-]?(?:inf|infinity|nan)$", re.IGNORECASE)


def split_comment_by_parts(comment_lines: Iterable[str]) -> Iterator[tuple[str, str]]:
    """Yield the (key, value) clauses of every `@schema` line.

    Lines without the `@schema` marker are skipped, as are lines where the
    marker is directly followed by text (`# @schemafoo`).
    """
    for comment in comment_lines:
        without_pound = comment.removeprefix("#").strip()
        if not without_pound.startswith("@schema"):
            continue
        without_schema = without_pound.removeprefix("@schema")
        trimmed = without_schema.strip()
        if len(trimmed) == len(without_schema):
            continue

        for part in trimmed.split(";"):
            key, _, value = part.partition(":")
            yield key.strip(), value.strip()


def apply_schema_comments(schema: Schema, comment_lines: Iterable[str]) -> None:
    """Apply all `@schema` directives found in `comment_lines` to `schema`.

    Raises:
        AnnotationError: If a key is unknown or a value cannot be parsed.
            The message is prefixed with the key name.
    """
    for key, value in split_comment_by_parts(comment_lines):
        handler = _HANDLERS.get(key)
        if handler is None:
            raise AnnotationError(f'unknown annotation "{key}"')
        try:
            handler(schema, value)
        except AnnotationError as e:
            raise AnnotationError(f"{key}: {e}") from e


# Value parsers


def parse_bool(value: str) -> bool:
    if value in ("", "true"):
        return True
    if value == "false":
        return False
    raise AnnotationError(f'invalid boolean "{value}", must be "true" or "false"')


def parse_uint(value: str) -> int | None:
    """Parse a non-negative integer; empty and `null` mean "not set"."""
    if value in ("", "null"):
        return None
    if value.startswith("-"):
        raise AnnotationError(f'invalid integer "{value}": negative values not allowed')
    if not _UINT_RE.match(value):
        raise AnnotationError(f'invalid integer "{value}": invalid syntax')
    number = int(value)
    if number > _MAX_UINT64:
        raise AnnotationError(f'invalid integer "{value}": value out of range')
    return number


def parse_float(value: str) -> float | None:
    """Parse a number; empty and `null` mean "not set"."""
    if value in ("", "null"):
        return None
    if not FLOAT_RE.match(value):
        raise AnnotationError(f'invalid number "{value}": invalid syntax')
    number = float(value)
    # JSON has no representation for infinities or NaN
    if not math.isfinite(number):
        raise AnnotationError(f'invalid number "{value}": value out of range')
    return number


def parse_object(value: str) -> Any:
    """Parse a YAML (or JSON) value."""
    if value == "":
        raise AnnotationError('parse object "": missing value')
    try:
        return load_yaml(value)
    except yaml.YAMLError as e:
        raise AnnotationError(f'parse object "{value}": {_yaml_problem(e)}') from e


def parse_schema(value: str) -> Schema | None:
    data = parse_object(value)
    try:
        return None if data is None else Schema.from_dict(data)
    except SchemaDecodeError as e:
        raise AnnotationError(f'parse object "{value}": {e}') from e


def parse_schema_list(value: str) -> list[Schema]:
    data = parse_object(value)
    if data is None:
        return []
    if not isinstance(data, list):
        raise AnnotationError(f'parse object "{value}": expected a list of schemas')
    try:
        return [Schema.from_dict(item) for item in data]
    except SchemaDecodeError as e:
        raise AnnotationError(f'parse object "{value}": {e}') from e


def parse_schema_map(value: str) -> dict[str, Schema]:
    data = parse_object(value)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise AnnotationError(f'parse object "{value}": expected a mapping of schemas')
    try:
        return {str(key): Schema.from_dict(item) for key, item in data.items()}
    except SchemaDecodeError as e:
        raise AnnotationError(f'parse object "{value}": {e}') from e


def process_list(value: str, strings_only: bool) -> list[Any]:
    """Parse a bracketed list such as `[foo, "bar", null, 1]`.

    The value is first read as a YAML flow sequence. When that fails, it
    falls back to splitting on commas. In `strings_only` mode every element
    is turned into its literal text, `null` included.
    """
    if value.startswith("["):
        try:
            data = load_yaml(value)
        except yaml.YAMLError:
            data = None
        if isinstance(data, list):
            return [_stringify(item) for item in data] if strings_only else data

    items = []
    for item in value.strip("[]").split(","):
        item = item.strip()
        if item == "":
            continue
        if not strings_only and item == "null":
            items.append(None)
        else:
            items.append(item.strip('"'))
    return items


def _stringify(item: Any) -> Any:
    if item is None:
        return "null"
    if isinstance(item, bool):
        return "true" if item else "false"
    if isinstance(item, list):
        return [_stringify(sub) for sub in item]
    if isinstance(item, (dict, str)):
        return item
    return str(item)


def _type_value(items: list[Any]) -> str | list[str]:
    if len(items) == 1 and isinstance(items[0], str):
        return items[0]
    return items


def _yaml_problem(error: yaml.YAMLError) -> str:
    problem = getattr(error, "problem", None)
    return problem or str(error)


def _ensure_items(schema: Schema) -> Schema:
    if schema.items is None:
        schema.items = Schema()
    return schema.items


# Handlers


def _set_type(schema: Schema, value: str) -> None:
    schema.type = _type_value(process_list(value, strings_only=True))


def _set_item(schema: Schema, value: str) -> None:
    _ensure_items(schema).type = _type_value(process_list(value, strings_only=True))


def _set_item_properties(schema: Schema, value: str) -> None:
    properties = parse_schema_map(value)
    if schema.items is not None and schema.items.is_type("object"):
        schema.items.properties = properties


def _set_item_enum(schema: Schema, value: str) -> None:
    _ensure_items(schema).enum = process_list(value, strings_only=False)


def _set_item_ref(schema: Schema, value: str) -> None:
    _ensure_items(schema).ref = value


def _set_multiple_of(schema: Schema, value: str) -> None:
    number = parse_float(value)
    schema.multiple_of = number if number is not None and number > 0 else None


def _set_additional_properties(schema: Schema, value: str) -> None:
    if value == "":
        schema.additional_properties = Schema.true()
        return
    schema.additional_properties = parse_schema(value)


def _set_unevaluated_properties(schema: Schema, value: str) -> None:
    schema.unevaluated_properties = parse_bool(value)


def _attr(name: str, parse: Callable[[str], Any]) -> Callable[[Schema, str], None]:
    def handler(schema: Schema, value: str) -> None:
        setattr(schema, name, parse(value))

    return handler


def _raw(value: str) -> str:
    return value


_HANDLERS: dict[str, Callable[[Schema, str], None]] = {
    "type": _set_type,
    "enum": _attr("enum", lambda value: process_list(value, strings_only=False)),
    "examples": _attr("examples", lambda value: process_list(value, strings_only=False)),
    "minimum": _attr("minimum", parse_float),
    "maximum": _attr("maximum", parse_float),
    "multipleOf": _set_multiple_of,
    "pattern": _attr("pattern", _raw),
    "minLength": _attr("min_length", parse_uint),
    "maxLength": _attr("max_length", parse_uint),
    "minItems": _attr("min_items", parse_uint),
    "maxItems": _attr("max_items", parse_uint),
    "uniqueItems": _attr("unique_items", parse_bool),
    "minProperties": _attr("min_properties", parse_uint),
    "maxProperties": _attr("max_properties", parse_uint),
    "patternProperties": _attr("pattern_properties", parse_schema_map),
    "additionalProperties": _set_additional_properties,
    "unevaluatedProperties": _set_unevaluated_properties,
    "$id": _attr("id", _raw),
    "$ref": _attr("ref", _raw),
    "title": _attr("title", _raw),
    "description": _attr("description", _raw),
    "readOnly": _attr("read_only", parse_bool),
    "default": _attr("default", parse_object),
    "const": _attr("const", parse_object),
    "item": _set_item,
    "itemProperties": _set_item_properties,
    "itemEnum": _set_item_enum,
    "itemRef": _set_item_ref,
    "required": _attr("required_by_parent", parse_bool),
    "hidden": _attr("hidden", parse_bool),
    "skipProperties": _attr("skip_properties", parse_bool),
    "mergeProperties": _attr("merge_properties", parse_bool),
    "allOf": _attr("all_of", parse_schema_list),
    "anyOf": _attr("any_of", parse_schema_list),
    "oneOf": _attr("one_of", parse_schema_list),
    "not": _attr("not_", parse_schema),
}
