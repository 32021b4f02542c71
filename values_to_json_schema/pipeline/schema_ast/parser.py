"""
Values file parser that builds a Schema tree.

Walks a comment-aware YAML tree: mappings become objects, sequences become
arrays whose items are merged into one schema, and scalars get a type
inferred from their text. Comments on each entry are then compiled into
constraints on the matching schema node.
"""

from __future__ import annotations

import math
import re

from ..annotations.directives import FLOAT_RE, apply_schema_comments
from ..annotations.helm_docs import parse_helm_docs_comment, split_head_comment
from ..errors import AnnotationError, StructuralError
from ..merger.base import merge_schemas, unique_string_append
from ..pointer import Ptr
from .nodes import Schema
from .yaml_nodes import NodeKind, YamlNode

_INT_RE = re.compile(r"^[+-]?[0-9]+$")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1

# Spellings accepted as booleans, besides integers 0 and 1
_BOOL_VALUES = {"1", "t", "T", "TRUE", "true", "True", "0", "f", "F", "FALSE", "false", "False"}


def scalar_type(value: str) -> str:
    """Infer the JSON Schema type of an unquoted scalar."""
    if value == "":
        return "null"
    if "_" in value or any(char.isspace() for char in value):
        return "string"
    if _INT_RE.match(value) and _INT64_MIN <= int(value) <= _INT64_MAX:
        return "integer"
    if FLOAT_RE.match(value) and not (math.isinf(float(value)) and "inf" not in value.lower()):
        return "number"
    if value in _BOOL_VALUES:
        return "boolean"
    return "string"


def get_comments(key_node: YamlNode | None, value_node: YamlNode, use_helm_docs: bool = False) -> tuple[list[str], list[str]]:
    """Collect the comment lines of an entry.

    Order: head comment (last paragraph only), line comment of the key,
    line comment of the value, foot comment.

    Returns:
        The `@schema` candidate lines and, when `use_helm_docs` is set,
        the helm-docs lines split off from the head comment
    """
    comments: list[str] = []
    helm_docs: list[str] = []
    if key_node is not None:
        if key_node.head_comment:
            schema_lines, helm_docs = split_head_comment(key_node.head_comment)
            comments.extend(schema_lines)
            if not use_helm_docs:
                comments.extend(helm_docs)
                helm_docs = []
        if key_node.line_comment:
            comments.append(key_node.line_comment)
    if value_node.line_comment:
        comments.append(value_node.line_comment)
    if key_node is not None and key_node.foot_comment:
        comments.extend(key_node.foot_comment.split("\n"))
    return comments, helm_docs


class ValuesParser:
    """Builds Schema trees from values documents."""

    def __init__(self, use_helm_docs: bool = False):
        """
        Initialize the parser.

        Args:
            use_helm_docs: Whether helm-docs `# -- description` comments
                are turned into descriptions
        """
        self.use_helm_docs = use_helm_docs

    def parse_root(self, root: YamlNode) -> Schema:
        """Parse the top-level mapping of a values document.

        Raises:
            StructuralError: If the document root is not a mapping
            AnnotationError: If a comment on any entry is malformed
        """
        if root.kind is not NodeKind.MAPPING:
            raise StructuralError(f"line {root.line}: values document root must be a mapping, got {root.kind.value}")
        schema = Schema(type="object")
        self._parse_mapping(Ptr(), root, schema)
        return schema

    def parse_node(self, ptr: Ptr, key_node: YamlNode | None, value_node: YamlNode) -> Schema:
        """Build the schema of one value.

        Args:
            ptr: Location of the value, used in error messages and to match
                helm-docs paths
            key_node: The mapping key, or None for sequence items
            value_node: The value to describe

        Returns:
            The schema, with `hidden` set when the value must be left out
        """
        schema = Schema()
        match value_node.kind:
            case NodeKind.MAPPING:
                schema.type = "object"
                self._parse_mapping(ptr, value_node, schema)
            case NodeKind.SEQUENCE:
                schema.type = "array"
                self._parse_sequence(ptr, value_node, schema)
            case NodeKind.SCALAR:
                schema.type = "string" if value_node.is_quoted else scalar_type(value_node.value)

        comments, helm_docs = get_comments(key_node, value_node, self.use_helm_docs)
        if helm_docs:
            try:
                docs = parse_helm_docs_comment(helm_docs)
            except AnnotationError as e:
                raise AnnotationError(f"{ptr}: parse helm-docs comment: {e}") from e
            if docs.description and (not docs.path or Ptr.of(*docs.path) == ptr):
                schema.description = docs.description

        try:
            apply_schema_comments(schema, comments)
        except AnnotationError as e:
            raise AnnotationError(f"{ptr}: parse @schema comments: {e}") from e

        if schema.skip_properties and schema.is_type("object"):
            schema.properties = {}
        elif schema.merge_properties and schema.properties:
            merged = None
            for child in schema.properties.values():
                merged = merge_schemas(merged, child)
            schema.additional_properties = merged
            schema.properties = {}

        return schema

    def _parse_mapping(self, ptr: Ptr, node: YamlNode, schema: Schema) -> None:
        for key_node, value_node in node.pairs():
            name = key_node.value
            child = self.parse_node(ptr.prop(name), key_node, value_node)
            if child.hidden:
                continue
            if child.skip_properties and child.is_type("object"):
                child.properties = {}
            schema.properties[name] = child
            if child.required_by_parent:
                schema.required = unique_string_append(schema.required, name)

    def _parse_sequence(self, ptr: Ptr, node: YamlNode, schema: Schema) -> None:
        merged = None
        for index, item_node in enumerate(node.children):
            item = self.parse_node(ptr.item(index), None, item_node)
            if item.hidden:
                continue
            merged = merge_schemas(merged, item)
        schema.items = merged
