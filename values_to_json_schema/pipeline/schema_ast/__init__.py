"""
Schema AST module.

Contains the Schema node model, `$ref` handling, and the comment-aware
YAML reader. The values parser lives in `schema_ast.parser`.
"""

from __future__ import annotations

from .nodes import Schema, SchemaKind
from .refs import Referrer, RefFile, parse_ref_url, resolve_ref
from .yaml_nodes import NodeKind, YamlNode, compose_document, load_yaml

__all__ = [
    "Schema",
    "SchemaKind",
    "Referrer",
    "RefFile",
    "parse_ref_url",
    "resolve_ref",
    "NodeKind",
    "YamlNode",
    "compose_document",
    "load_yaml",
]
