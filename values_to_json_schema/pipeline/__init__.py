"""
Pipeline - values files to JSON Schema.

1. Phase 1 (Schema AST): Read values documents with their comments and
   build a Schema tree
2. Phase 2 (Annotations): Apply `@schema` and helm-docs comments
3. Phase 3 (Merger): Merge the trees of all values files
4. Phase 4 (Analyzer): Expand aliases and bundle `$ref`s
5. Phase 5 (Compliance): Check for cycles and normalize the tree
6. Phase 6 (Output): Write JSON or YAML atomically
"""

from __future__ import annotations

from .config import GeneratorConfig, SchemaRootConfig, get_schema_url, load_config_file
from .errors import (
    AnnotationError,
    CircularReferenceError,
    ConfigError,
    LoaderError,
    OutputError,
    SchemaDecodeError,
    SchemaGenerationError,
    StructuralError,
    UnsupportedError,
)
from .generator import generate_for_charts, generate_json_schema, write_output
from .schema_ast import Schema, SchemaKind

__all__ = [
    "GeneratorConfig",
    "SchemaRootConfig",
    "get_schema_url",
    "load_config_file",
    "generate_json_schema",
    "generate_for_charts",
    "write_output",
    "Schema",
    "SchemaKind",
    "SchemaGenerationError",
    "AnnotationError",
    "StructuralError",
    "CircularReferenceError",
    "ConfigError",
    "SchemaDecodeError",
    "LoaderError",
    "UnsupportedError",
    "OutputError",
]
