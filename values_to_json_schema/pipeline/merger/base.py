"""
Deep merge of schema trees.

Used to combine the items of a YAML sequence into one representative
`items` schema, and to combine the schemas of several values files.
"""

from __future__ import annotations

from dataclasses import fields

from ..schema_ast.nodes import Schema, SchemaKind, is_value_present

# Fields merged recursively or by concatenation instead of "src wins"
_STRUCTURAL_FIELDS = {"kind", "enum", "required", "properties", "defs", "definitions", "items", "additional_items", "ref_referrer"}


def unique_string_append(dest: list[str], *src: str) -> list[str]:
    """Append strings from `src` that are not yet in `dest`, keeping order."""
    result = list(dest)
    seen = set(result)
    for value in src:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


def merge_schemas(dest: Schema | None, src: Schema | None) -> Schema | None:
    """Merge `src` into `dest` and return the result.

    Values present in `src` override the ones in `dest`. `enum` is
    concatenated, `required` is unioned, and `properties`, `$defs`,
    `definitions`, `items` and `additionalItems` are merged recursively.

    `dest` is modified in place and may end up sharing subtrees with `src`,
    so neither should be used on its own afterwards.

    Args:
        dest: The schema to merge into
        src: The schema whose values take precedence

    Returns:
        The merged schema, or the other argument when one of them is None
    """
    if dest is None:
        return src
    if src is None:
        return dest

    kind = src.kind if src.kind is not SchemaKind.OBJECT else dest.kind
    if kind.is_bool:
        dest.set_kind(kind)
        return dest
    dest.kind = kind

    for f in fields(Schema):
        if f.name in _STRUCTURAL_FIELDS:
            continue
        value = getattr(src, f.name)
        present = is_value_present(value, f.metadata["codec"]) if "codec" in f.metadata else bool(value)
        if present:
            setattr(dest, f.name, value)
            if f.name == "ref":
                dest.ref_referrer = src.ref_referrer

    dest.enum = dest.enum + src.enum
    dest.required = unique_string_append(dest.required, *src.required)
    dest.properties = _merge_maps(dest.properties, src.properties)
    dest.defs = _merge_maps(dest.defs, src.defs)
    dest.definitions = _merge_maps(dest.definitions, src.definitions)
    dest.items = merge_schemas(dest.items, src.items)
    dest.additional_items = merge_schemas(dest.additional_items, src.additional_items)
    return dest


def _merge_maps(dest: dict[str, Schema], src: dict[str, Schema]) -> dict[str, Schema]:
    result = dict(dest)
    for key, value in src.items():
        result[key] = merge_schemas(result.get(key), value)
    return result

