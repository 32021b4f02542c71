"""
Schema generator.

Runs the whole pipeline for one chart: read the values files, build and
merge their schemas, bundle references, normalize, and write the result.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import sys
from pathlib import Path
from typing import IO, Any

import httpx
import yaml
from ruamel.yaml.error import YAMLError

from .. import __version__
from .analyzer.k8s_alias import update_ref_k8s_alias
from .analyzer.reference_resolver import bundle_remove_ids, bundle_schema
from .config import DEFAULT_CONFIG_FILE, GeneratorConfig, get_schema_url, load_config_file
from .errors import ConfigError, OutputError, SchemaGenerationError, StructuralError
from .loader.base import Loader
from .loader.dispatch import new_default_loader
from .loader.http_cache import HTTPFileCache
from .log import get_logger
from .merger.atomic_writer import AtomicWriter
from .merger.base import merge_schemas
from .merger.compliance import ensure_compliant
from .schema_ast.nodes import Schema
from .schema_ast.parser import ValuesParser
from .schema_ast.refs import Referrer
from .schema_ast.yaml_nodes import compose_document

USER_AGENT = f"values-to-json-schema/{__version__}"


def generate_json_schema(
    config: GeneratorConfig,
    loader: Loader | None = None,
    logger: logging.Logger | None = None,
    stdin: IO[str] | None = None,
    stdout: IO[str] | None = None,
) -> Schema:
    """Generate the JSON schema of one chart and write it to `config.output`.

    Args:
        config: Generation settings
        loader: Loader for bundled `$ref`s. When None and bundling is
            enabled, a file and HTTP loader rooted at `config.bundle_root`
            is created for the run.
        logger: Logger for progress messages
        stdin: Stream read for the "-" values file (default sys.stdin)
        stdout: Stream written for the "-" output (default sys.stdout)

    Returns:
        The generated schema

    Raises:
        SchemaGenerationError: If any step fails. The concrete subclass
            tells which one.
    """
    logger = get_logger(logger)

    if not config.values:
        raise ConfigError("values flag is required")
    if config.values.count("-") > 1:
        raise ConfigError('values flag must not contain multiple stdin ("-f -")')
    schema_url = get_schema_url(config.draft)
    if config.indent <= 0:
        raise ConfigError("indentation must be a positive number")
    if config.indent % 2 != 0:
        raise ConfigError("indentation must be an even number")

    parser = ValuesParser(use_helm_docs=config.use_helm_docs)
    merged = Schema()
    for path in config.values:
        referrer, content = read_input_file(path, stdin)
        document = build_document_schema(parser, path, content)
        if document is None:
            continue

        document.title = config.schema_root.title
        document.description = config.schema_root.description
        document.id = config.schema_root.id
        document.set_referrer(referrer)
        # The root $ref is set after stamping the file referrer, as it is
        # relative to where it was configured
        if config.schema_root.ref:
            document.ref = config.schema_root.ref
            document.ref_referrer = config.schema_root.ref_referrer

        try:
            update_ref_k8s_alias(document, config.k8s_schema_url, config.k8s_schema_version)
        except SchemaGenerationError as e:
            raise type(e)(f"{path}: {e}") from e

        merged = merge_schemas(merged, document)

    if config.bundle:
        bundle(merged, config, loader, logger)

    if config.schema_root.additional_properties is not None:
        merged.additional_properties = Schema.of_bool(config.schema_root.additional_properties)
    elif config.no_additional_properties:
        merged.additional_properties = Schema.false()

    ensure_compliant(merged, no_additional_properties=config.no_additional_properties)
    merged.schema = schema_url
    merged.type = "object"

    write_output(merged, config.output, config.indent, stdout=stdout)
    logger.info("JSON schema successfully generated")
    return merged


def read_input_file(path: str, stdin: IO[str] | None = None) -> tuple[Referrer, str]:
    """Read a values file, or stdin for "-".

    Returns:
        The directory relative `$ref`s of the file resolve against, and
        the file content with CRLF line endings normalized

    Raises:
        SchemaGenerationError: If the file cannot be read
    """
    if path == "-":
        stream = stdin if stdin is not None else sys.stdin
        try:
            content = stream.read()
        except OSError as e:
            raise SchemaGenerationError(f"read --values=-: error reading from stdin: {e}") from e
        return Referrer.from_dir(os.getcwd()), content.replace("\r\n", "\n")

    try:
        content = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise SchemaGenerationError(f'read --values="{path}": {e}') from e
    return Referrer.from_dir(os.path.dirname(os.path.abspath(path))), content.replace("\r\n", "\n")


def build_document_schema(parser: ValuesParser, path: str, content: str) -> Schema | None:
    """Build the schema of one values document, or None if it is empty.

    Raises:
        StructuralError: If the document is not valid YAML or not a mapping
        AnnotationError: If a comment is malformed
    """
    try:
        root = compose_document(content)
    except YAMLError as e:
        raise StructuralError(f"{path}: parse YAML: {e}") from e
    if root is None:
        return None
    try:
        return parser.parse_root(root)
    except SchemaGenerationError as e:
        raise type(e)(f"{path}: parse schema: {e}") from e


def bundle(schema: Schema, config: GeneratorConfig, loader: Loader | None, logger: logging.Logger | None = None) -> None:
    """Bundle the `$ref`s of `schema` as configured.

    `$id`s of local files are made relative to the output directory.
    """
    if config.output == "-":
        base_path_for_ids = os.getcwd()
    else:
        base_path_for_ids = os.path.dirname(os.path.abspath(config.output))
    bundle_root = os.path.abspath(config.bundle_root or ".")

    if loader is not None:
        _bundle_with(loader, schema, base_path_for_ids, config.bundle_without_id, logger)
        return

    with httpx.Client(follow_redirects=True) as client:
        default_loader = new_default_loader(
            client, bundle_root, root_path=bundle_root, cache=HTTPFileCache(), user_agent=USER_AGENT
        )
        _bundle_with(default_loader, schema, base_path_for_ids, config.bundle_without_id, logger)


def _bundle_with(
    loader: Loader, schema: Schema, base_path_for_ids: str, without_ids: bool, logger: logging.Logger | None
) -> None:
    bundled_refs = bundle_schema(loader, schema, base_path_for_ids, logger)
    if without_ids:
        bundle_remove_ids(schema, base_path_for_ids, bundled_refs)


def write_output(schema: Schema, path: str, indent: int = 4, stdout: IO[str] | None = None) -> None:
    """Write the schema as JSON, or as YAML for `.yaml`/`.yml` paths.

    "-" writes to stdout. Files are replaced atomically.

    Raises:
        OutputError: If the schema cannot be written
    """
    data = schema.to_dict()
    try:
        content = json.dumps(data, indent=indent, ensure_ascii=False, allow_nan=False) + "\n"
    except ValueError as e:
        raise OutputError(f"encode output schema: {e}") from e
    output_format = "json"
    if path != "-" and path.lower().endswith((".yaml", ".yml")):
        output_format = "yaml"
        content = yaml.safe_dump(data, sort_keys=False, allow_unicode=True, indent=indent, default_flow_style=False)

    if path == "-":
        stream = stdout if stdout is not None else sys.stdout
        try:
            stream.write(content)
        except OSError as e:
            raise OutputError(f"write schema to stdout: {e}") from e
        return

    try:
        AtomicWriter().write(Path(path), content, output_format=output_format)
    except OSError as e:
        raise OutputError(f"write output schema: {e}") from e


def generate_for_charts(
    dirs: list[str],
    base_config: GeneratorConfig,
    overrides: dict[str, Any] | None = None,
    loader: Loader | None = None,
    logger: logging.Logger | None = None,
) -> None:
    """Generate one schema per chart directory.

    Each run happens inside the chart directory, with that directory's
    `.schema.yaml` layered over `base_config` and `overrides` (the flags
    given on the command line) applied last.

    Raises:
        SchemaGenerationError: Naming the chart that failed
    """
    for chart_dir in dirs:
        if not os.path.isdir(chart_dir):
            raise ConfigError(f'chart directory "{chart_dir}" does not exist')
        with contextlib.chdir(chart_dir):
            try:
                config = load_config_file(DEFAULT_CONFIG_FILE, missing_ok=True, base=base_config)
                config = config.merged_with(overrides or {})
            except ConfigError as e:
                raise ConfigError(f'load "{DEFAULT_CONFIG_FILE}" config in chart "{chart_dir}": {e}') from e
            try:
                generate_json_schema(config, loader=loader, logger=logger)
            except SchemaGenerationError as e:
                raise type(e)(f'generate schema for "{chart_dir}": {e}') from e
