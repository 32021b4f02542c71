"""Values to JSON Schema

Generate a JSON Schema from Helm values files. Comments such as
`# @schema minimum:1` refine the inferred types, and `$ref`s to local
files or URLs can be bundled into the output.
"""

__version__ = "1.0.0"

from .pipeline import (
    GeneratorConfig,
    Schema,
    SchemaGenerationError,
    SchemaKind,
    SchemaRootConfig,
    generate_for_charts,
    generate_json_schema,
    write_output,
)

__all__ = [
    "GeneratorConfig",
    "SchemaRootConfig",
    "Schema",
    "SchemaKind",
    "SchemaGenerationError",
    "generate_json_schema",
    "generate_for_charts",
    "write_output",
]
