"""
Final normalization pass over a schema tree.
"""

from __future__ import annotations

from ..errors import CircularReferenceError
from ..pointer import Ptr
from ..schema_ast.nodes import Schema


def ensure_compliant(schema: Schema, no_additional_properties: bool = False) -> None:
    """Check and normalize a schema tree in place.

    - Rejects trees where a node is its own ancestor. The same node may
      still appear several times in sibling branches.
    - With `no_additional_properties`, object schemas without an explicit
      `additionalProperties` get `additionalProperties: false`, unless
      their properties were skipped.
    - Clears `type` on nodes using `allOf`, `anyOf`, `oneOf` or `not`.

    Raises:
        CircularReferenceError: If a cycle is found, naming its path
    """
    _ensure_compliant_rec(Ptr(), schema, set(), no_additional_properties)


def _ensure_compliant_rec(ptr: Ptr, schema: Schema, visiting: set[int], no_additional_properties: bool) -> None:
    if id(schema) in visiting:
        raise CircularReferenceError(f"{ptr}: circular reference detected in schema")

    visiting.add(id(schema))
    for sub_ptr, sub in schema.subschemas():
        _ensure_compliant_rec(ptr.add(sub_ptr), sub, visiting, no_additional_properties)
    visiting.discard(id(schema))

    if schema.kind.is_bool:
        return

    # Objects with skipped properties stay open, as nothing describes their keys
    if no_additional_properties and schema.is_type("object") and schema.additional_properties is None and not schema.skip_properties:
        schema.additional_properties = Schema.false()

    if schema.all_of or schema.any_of or schema.one_of or schema.not_ is not None:
        schema.type = None
