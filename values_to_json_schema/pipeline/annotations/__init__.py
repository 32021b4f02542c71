"""
Annotations module.

Compiles `@schema` directives and helm-docs comments into schema fields.
"""

from __future__ import annotations

from .directives import apply_schema_comments, split_comment_by_parts
from .helm_docs import HelmDocsComment, parse_helm_docs_comment, parse_helm_docs_path, split_head_comment

__all__ = [
    "apply_schema_comments",
    "split_comment_by_parts",
    "HelmDocsComment",
    "parse_helm_docs_comment",
    "parse_helm_docs_path",
    "split_head_comment",
]
