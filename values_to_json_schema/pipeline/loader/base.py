"""
Loader interface and the `load` entry point used to resolve `$ref`s.
"""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from urllib.parse import SplitResult

from ..errors import LoaderError
from ..schema_ast.nodes import Schema, SchemaKind
from ..schema_ast.refs import RefFile, parse_ref_url, trim_fragment


class Loader(ABC):
    """Loads the schema document a `$ref` points at."""

    @abstractmethod
    def load(self, ref: SplitResult, *, referrer: str = "", logger: logging.Logger | None = None) -> Schema:
        """Load the whole document of `ref`, ignoring its fragment.

        Args:
            ref: The resolved (absolute) reference
            referrer: URL or path of the document holding the `$ref`
            logger: Logger to report progress to

        Raises:
            LoaderError: If the document cannot be fetched or decoded
        """
        ...


def load(
    loader: Loader | None,
    ref: str | SplitResult,
    base_path_for_ids: str = "",
    *,
    referrer: str = "",
    logger: logging.Logger | None = None,
) -> Schema:
    """Load a `$ref` and set the `$id` of the result.

    The `$id` is the reference made relative to `base_path_for_ids` with
    the fragment removed. It is only used for display in bundled output.

    Raises:
        LoaderError: If `loader` is missing, `ref` is empty or loading fails
    """
    if loader is None:
        raise LoaderError("no loader configured")
    if not ref:
        raise LoaderError("cannot load empty $ref")
    url = parse_ref_url(ref) if isinstance(ref, str) else ref

    schema = loader.load(url, referrer=referrer, logger=logger)
    if schema.kind is SchemaKind.OBJECT:
        schema.id = bundle_ref_id(url, base_path_for_ids)
    return schema


def bundle_ref_id(url: SplitResult, base_path_for_ids: str = "") -> str:
    """Return the `$id` to give a fragment loaded from `url`.

    Absolute file paths are made relative to `base_path_for_ids`. Other
    URLs are kept whole.
    """
    url = trim_fragment(url)
    if url.scheme not in ("", "file"):
        return url.geturl()
    path = RefFile.from_url(url, allow_absolute=True).path
    if base_path_for_ids and os.path.isabs(path):
        path = os.path.relpath(path, base_path_for_ids)
    return path.replace(os.sep, "/")
