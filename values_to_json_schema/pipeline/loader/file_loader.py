"""
Loader for `$ref`s pointing at local files.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from urllib.parse import SplitResult

import yaml

from ..errors import LoaderError, SchemaDecodeError
from ..log import format_size_bytes, get_logger
from ..schema_ast.nodes import Schema
from ..schema_ast.refs import RefFile, Referrer, redact_url
from ..schema_ast.yaml_nodes import load_yaml
from .base import Loader


class FileLoader(Loader):
    """Reads JSON or YAML schema files from inside a root directory.

    Relative paths are resolved against the root. Absolute paths are first
    made relative to `root_path`, so `/abs/chart/schemas/a.json` with
    `root_path=/abs/chart` becomes `schemas/a.json` under the root. No
    path may leave the root, symlinks included.
    """

    def __init__(self, root: Path | str, root_path: str | None = None):
        """
        Initialize the loader.

        Args:
            root: Directory that files are read from
            root_path: Absolute path that absolute references are made
                relative to. Defaults to `root`.
        """
        self.root = Path(root).resolve()
        self.root_path = root_path if root_path is not None else str(self.root)

    def load(self, ref: SplitResult, *, referrer: str = "", logger: logging.Logger | None = None) -> Schema:
        logger = get_logger(logger)
        if ref.scheme not in ("", "file"):
            raise LoaderError(f'file url in $ref="{redact_url(ref)}" must start with "file://", "./", or "/"')
        try:
            ref_file = RefFile.from_url(ref, allow_absolute=True)
        except LoaderError as e:
            raise LoaderError(f"parse $ref as file path: {e}") from e
        if not ref_file.path:
            raise LoaderError(f'file url in $ref="{redact_url(ref)}" must contain a path')

        path = ref_file.path
        if os.path.isabs(path):
            path = os.path.relpath(path, self.root_path)
        full_path = os.path.normpath(os.path.join(self.root, path))

        logger.info("Loading file %s", full_path)
        resolved = Path(full_path).resolve()
        if not resolved.is_relative_to(self.root):
            raise LoaderError(f"open {path}: path escapes from parent")
        try:
            data = resolved.read_bytes()
        except OSError as e:
            raise LoaderError(f"open {path}: {e.strerror or e}") from e
        logger.info("=> got %s", format_size_bytes(len(data)))

        if os.path.splitext(path)[1].lower() in (".yml", ".yaml"):
            try:
                schema = Schema.from_dict(load_yaml(data))
            except (yaml.YAMLError, SchemaDecodeError) as e:
                raise LoaderError(f"parse YAML file: {e}") from e
        else:
            try:
                schema = Schema.from_dict(json.loads(data))
            except (json.JSONDecodeError, UnicodeDecodeError, SchemaDecodeError) as e:
                raise LoaderError(f"parse JSON file: {e}") from e

        schema.set_referrer(Referrer.from_dir(os.path.dirname(full_path)))
        return schema
