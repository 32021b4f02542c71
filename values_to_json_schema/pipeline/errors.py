"""
Exception hierarchy for schema generation.

Every error raised by the pipeline derives from SchemaGenerationError so
callers can stop a run with a single except clause, while the concrete
class tells which stage failed.
"""

from __future__ import annotations


class SchemaGenerationError(Exception):
    """Base class for all errors raised while generating a schema."""

    pass


class AnnotationError(SchemaGenerationError):
    """Raised when a `@schema` or helm-docs comment is malformed.

    The message always starts with the failing directive key, e.g.
    `minimum: invalid number "x": invalid syntax`. The tree assembler
    re-raises it prefixed with the pointer of the offending node.
    """

    pass


class StructuralError(SchemaGenerationError):
    """Raised when a document or schema tree has an unsupported shape."""

    pass


class CircularReferenceError(StructuralError):
    """Raised when a schema node is its own ancestor."""

    pass


class ConfigError(SchemaGenerationError):
    """Raised for invalid generator settings (draft, indent, values list...)."""

    pass


class SchemaDecodeError(SchemaGenerationError):
    """Raised when a JSON or YAML document cannot be decoded into a schema."""

    pass


class LoaderError(SchemaGenerationError):
    """Raised when a `$ref` cannot be resolved.

    This can happen when:
    - The file is outside of the allowed root directory
    - The HTTP server answers with a non-2xx status
    - The response is too large or cannot be decoded
    """

    pass


class UnsupportedError(LoaderError):
    """Raised for unsupported `$ref` schemes, content encodings or charsets."""

    pass


class OutputError(SchemaGenerationError):
    """Raised when the generated schema cannot be written."""

    pass
