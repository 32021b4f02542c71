"""
Configuration for the schema generator.

Settings come from a `.schema.yaml` file and from command line flags,
with flags taking precedence. Keys in the file use camelCase names
(`noAdditionalProperties`, `schemaRoot.title`...).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

import yaml

from .analyzer.k8s_alias import DEFAULT_K8S_SCHEMA_URL
from .errors import ConfigError
from .schema_ast.refs import Referrer
from .schema_ast.yaml_nodes import load_yaml

DEFAULT_CONFIG_FILE = ".schema.yaml"
DEFAULT_OUTPUT = "values.schema.json"
DEFAULT_DRAFT = 2020
DEFAULT_INDENT = 4

DRAFT_URLS = {
    4: "http://json-schema.org/draft-04/schema#",
    6: "http://json-schema.org/draft-06/schema#",
    7: "http://json-schema.org/draft-07/schema#",
    2019: "https://json-schema.org/draft/2019-09/schema",
    2020: "https://json-schema.org/draft/2020-12/schema",
}


def get_schema_url(draft: int) -> str:
    """Return the `$schema` URL of a draft version.

    Raises:
        ConfigError: If the draft is not supported
    """
    try:
        return DRAFT_URLS[draft]
    except (KeyError, TypeError):
        raise ConfigError("invalid draft version. Please use one of: 4, 6, 7, 2019, 2020") from None


@dataclass
class SchemaRootConfig:
    """Settings applied to the root of the generated schema."""

    id: str = ""
    ref: str = ""
    title: str = ""
    description: str = ""

    # None leaves the root open unless noAdditionalProperties is set
    additional_properties: bool | None = None

    # Where `ref` is resolved from: the config file directory, or the
    # working directory for flags
    ref_referrer: Referrer = field(default_factory=Referrer)

    @staticmethod
    def from_dict(d: dict, referrer: Referrer | None = None, base: SchemaRootConfig | None = None) -> SchemaRootConfig:
        config = replace(base) if base is not None else SchemaRootConfig()
        for key in ("id", "title", "description"):
            if d.get(key) is not None:
                setattr(config, key, _get_str(d, key, "schemaRoot."))
        if d.get("ref") is not None:
            config.ref = _get_str(d, "ref", "schemaRoot.")
            config.ref_referrer = referrer or Referrer()
        if d.get("additionalProperties") is not None:
            config.additional_properties = _get_bool(d, "additionalProperties", "schemaRoot.")
        unknown = set(d) - {"id", "ref", "title", "description", "additionalProperties"}
        if unknown:
            raise ConfigError(f"unknown config keys in schemaRoot: {', '.join(sorted(unknown))}")
        return config

    def to_dict(self) -> dict:
        d: dict[str, Any] = {}
        for key, value in (("id", self.id), ("ref", self.ref), ("title", self.title), ("description", self.description)):
            if value:
                d[key] = value
        if self.additional_properties is not None:
            d["additionalProperties"] = self.additional_properties
        return d


# Config file key for each GeneratorConfig field
_FILE_KEYS = {
    "values": "values",
    "output": "output",
    "draft": "draft",
    "indent": "indent",
    "no_additional_properties": "noAdditionalProperties",
    "bundle": "bundle",
    "bundle_root": "bundleRoot",
    "bundle_without_id": "bundleWithoutID",
    "use_helm_docs": "useHelmDocs",
    "k8s_schema_url": "k8sSchemaURL",
    "k8s_schema_version": "k8sSchemaVersion",
    "schema_root": "schemaRoot",
}


@dataclass
class GeneratorConfig:
    """Configuration options for schema generation."""

    # Values files to read, "-" for stdin
    values: list[str] = field(default_factory=list)

    # Output path, "-" for stdout. A .yaml/.yml suffix selects YAML output
    output: str = DEFAULT_OUTPUT

    # JSON Schema draft of the output
    draft: int = DEFAULT_DRAFT

    # Spaces per indentation level of the JSON output
    indent: int = DEFAULT_INDENT

    # Close all objects with `additionalProperties: false` by default
    no_additional_properties: bool = False

    # Load `$ref`s into `$defs`
    bundle: bool = False

    # Directory local `$ref`s may be read from (default: working directory)
    bundle_root: str = ""

    # Point bundled `$ref`s at `#/$defs/...` instead of using `$id`s
    bundle_without_id: bool = False

    # Read helm-docs `# -- description` comments
    use_helm_docs: bool = False

    # URL template and version for the `$ref: $k8s/...` alias
    k8s_schema_url: str = DEFAULT_K8S_SCHEMA_URL
    k8s_schema_version: str = ""

    schema_root: SchemaRootConfig = field(default_factory=SchemaRootConfig)

    @staticmethod
    def from_dict(d: dict, referrer: Referrer | None = None, base: GeneratorConfig | None = None) -> GeneratorConfig:
        """Create a config from the contents of a config file.

        Args:
            d: Mapping using the camelCase file keys
            referrer: Location `schemaRoot.ref` is relative to
            base: Config providing the settings missing from `d`. Defaults
                to the built-in defaults.

        Raises:
            ConfigError: If a key is unknown or has the wrong type
        """
        known = set(_FILE_KEYS.values())
        unknown = set(d) - known
        if unknown:
            raise ConfigError(f"unknown config keys: {', '.join(sorted(unknown))}")

        config = replace(base) if base is not None else GeneratorConfig()
        config.values = list(config.values)
        if d.get("values") is not None:
            config.values = _get_values(d["values"])
        if d.get("output") is not None:
            config.output = _get_str(d, "output")
        if d.get("draft") is not None:
            config.draft = _get_int(d, "draft")
        if d.get("indent") is not None:
            config.indent = _get_int(d, "indent")
        for attr in ("no_additional_properties", "bundle", "bundle_without_id", "use_helm_docs"):
            key = _FILE_KEYS[attr]
            if d.get(key) is not None:
                setattr(config, attr, _get_bool(d, key))
        for attr in ("bundle_root", "k8s_schema_url", "k8s_schema_version"):
            key = _FILE_KEYS[attr]
            if d.get(key) is not None:
                setattr(config, attr, _get_str(d, key))
        schema_root = d.get("schemaRoot")
        if schema_root is not None:
            if not isinstance(schema_root, dict):
                raise ConfigError(f"schemaRoot: expected a mapping, got {type(schema_root).__name__}")
            config.schema_root = SchemaRootConfig.from_dict(schema_root, referrer, config.schema_root)
        return config

    def to_dict(self) -> dict:
        """Convert config to a dictionary using the file keys."""
        return {
            "values": list(self.values),
            "output": self.output,
            "draft": self.draft,
            "indent": self.indent,
            "noAdditionalProperties": self.no_additional_properties,
            "bundle": self.bundle,
            "bundleRoot": self.bundle_root,
            "bundleWithoutID": self.bundle_without_id,
            "useHelmDocs": self.use_helm_docs,
            "k8sSchemaURL": self.k8s_schema_url,
            "k8sSchemaVersion": self.k8s_schema_version,
            "schemaRoot": self.schema_root.to_dict(),
        }

    def merged_with(self, overrides: dict[str, Any]) -> GeneratorConfig:
        """Return a copy with explicitly given settings replaced.

        Args:
            overrides: Field names mapped to values, for the settings that
                were actually given (e.g. on the command line). A
                `schema_root` entry is a dict of SchemaRootConfig fields
                and is applied field by field.

        Raises:
            ConfigError: If a field name is unknown
        """
        overrides = dict(overrides)
        root_overrides = overrides.pop("schema_root", None) or {}
        names = {f.name for f in fields(GeneratorConfig)}
        unknown = set(overrides) - names
        if unknown:
            raise ConfigError(f"unknown config fields: {', '.join(sorted(unknown))}")
        root_names = {f.name for f in fields(SchemaRootConfig)}
        unknown = set(root_overrides) - root_names
        if unknown:
            raise ConfigError(f"unknown schemaRoot fields: {', '.join(sorted(unknown))}")

        merged = replace(self, **overrides)
        merged.values = list(merged.values)
        merged.schema_root = replace(self.schema_root, **root_overrides)
        return merged


def load_config_file(path: Path | str, missing_ok: bool = True, base: GeneratorConfig | None = None) -> GeneratorConfig:
    """Read a `.schema.yaml` config file.

    Args:
        path: File to read
        missing_ok: Return `base` when the file does not exist
        base: Config that the file settings are layered over

    Raises:
        ConfigError: If the file cannot be read or is invalid
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        if missing_ok:
            return base if base is not None else GeneratorConfig()
        raise ConfigError(f"config file {path} not found") from None
    except OSError as e:
        raise ConfigError(f"read config file {path}: {e}") from e

    try:
        data = load_yaml(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"parse config file {path}: {e}") from e
    if data is None:
        return base if base is not None else GeneratorConfig()
    if not isinstance(data, dict):
        raise ConfigError(f"parse config file {path}: expected a mapping, got {type(data).__name__}")

    referrer = Referrer.from_dir(os.path.dirname(os.path.abspath(path)))
    try:
        return GeneratorConfig.from_dict(data, referrer, base)
    except ConfigError as e:
        raise ConfigError(f"parse config file {path}: {e}") from e


def split_values_flag(values: list[str] | tuple[str, ...]) -> list[str]:
    """Split repeated and comma-separated `--values` flags into paths."""
    result = []
    for value in values:
        result.extend(part.strip() for part in value.split(",") if part.strip())
    return result


def _get_values(value: Any) -> list[str]:
    if isinstance(value, str):
        return split_values_flag([value])
    if isinstance(value, list) and all(isinstance(item, str) for item in value):
        return list(value)
    raise ConfigError("values: expected a string or a list of strings")


def _get_str(d: dict, key: str, prefix: str = "") -> str:
    value = d.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ConfigError(f"{prefix}{key}: expected a string, got {type(value).__name__}")
    return value


def _get_bool(d: dict, key: str, prefix: str = "") -> bool:
    value = d[key]
    if not isinstance(value, bool):
        raise ConfigError(f"{prefix}{key}: expected a boolean, got {type(value).__name__}")
    return value


def _get_int(d: dict, key: str, prefix: str = "") -> int:
    value = d[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{prefix}{key}: expected an integer, got {type(value).__name__}")
    return value
