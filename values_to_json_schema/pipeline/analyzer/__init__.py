"""
Analyzer module.

Contains `$k8s/` alias expansion and `$ref` bundling.
"""

from __future__ import annotations

from .k8s_alias import DEFAULT_K8S_SCHEMA_URL, update_ref_k8s_alias
from .reference_resolver import ReferenceResolver, bundle_remove_ids, bundle_schema, generate_bundled_name

__all__ = [
    "DEFAULT_K8S_SCHEMA_URL",
    "update_ref_k8s_alias",
    "ReferenceResolver",
    "bundle_schema",
    "bundle_remove_ids",
    "generate_bundled_name",
]
