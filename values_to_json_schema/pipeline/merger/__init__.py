"""
Merger module.

Merges schema trees, normalizes them, and writes the result atomically.
"""

from __future__ import annotations

from .atomic_writer import AtomicWriter
from .base import merge_schemas, unique_string_append
from .compliance import ensure_compliant

__all__ = [
    "AtomicWriter",
    "merge_schemas",
    "unique_string_append",
    "ensure_compliant",
]
