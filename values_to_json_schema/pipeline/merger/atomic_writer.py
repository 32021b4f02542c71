"""
Atomic file writer for generated schemas.

Ensures that an interrupted run never leaves a truncated schema file
behind, which editors and `helm lint` would then pick up.
"""

from __future__ import annotations

import json
import tempfile
from collections.abc import Callable
from pathlib import Path

import yaml

from ..errors import OutputError
from ..schema_ast.yaml_nodes import load_yaml


class AtomicWriter:
    """Handles atomic file writes with validation.

    Uses a two-phase commit approach:
    1. Write to a temporary file in the same directory
    2. Validate the content
    3. Atomically replace the target file
    """

    def __init__(
        self,
        validate_json: Callable[[str], None] | None = None,
        validate_yaml: Callable[[str], None] | None = None,
    ):
        """Initialize the atomic writer.

        Args:
            validate_json: Optional validation function for JSON output
            validate_yaml: Optional validation function for YAML output
        """
        self._validate_json = validate_json or self._default_validate_json
        self._validate_yaml = validate_yaml or self._default_validate_yaml

    def write(self, path: Path, content: str, output_format: str = "json", validate: bool = True) -> None:
        """Write content to file atomically.

        Args:
            path: Target file path
            content: Content to write
            output_format: "json" or "yaml"
            validate: Whether to validate before finalizing

        Raises:
            OutputError: If validation fails
            OSError: If file operations fail
        """
        path.parent.mkdir(parents=True, exist_ok=True)

        # Same directory ensures atomic rename on the same filesystem
        temp_fd, temp_path_str = tempfile.mkstemp(
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            text=True,
        )
        temp_path = Path(temp_path_str)

        try:
            with open(temp_fd, "w", encoding="utf-8") as f:
                f.write(content)

            if validate:
                self._validate_content(content, output_format)

            temp_path.replace(path)
        except BaseException:
            temp_path.unlink(missing_ok=True)
            raise

    def _validate_content(self, content: str, output_format: str) -> None:
        if output_format == "json":
            self._validate_json(content)
        elif output_format == "yaml":
            self._validate_yaml(content)
        else:
            raise OutputError(f"unknown output format {output_format!r}")

    def _default_validate_json(self, content: str) -> None:
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise OutputError(f"generated JSON schema is not valid: {e}") from e
        if not isinstance(data, (dict, bool)):
            raise OutputError("generated JSON schema must be an object or a boolean")

    def _default_validate_yaml(self, content: str) -> None:
        try:
            data = load_yaml(content)
        except yaml.YAMLError as e:
            raise OutputError(f"generated YAML schema is not valid: {e}") from e
        if not isinstance(data, (dict, bool)):
            raise OutputError("generated YAML schema must be a mapping or a boolean")
