import os

import click
from click.core import ParameterSource

from . import __version__
from .pipeline import SchemaGenerationError, generate_for_charts, generate_json_schema, load_config_file
from .pipeline.analyzer.k8s_alias import DEFAULT_K8S_SCHEMA_URL
from .pipeline.config import DEFAULT_CONFIG_FILE, DEFAULT_DRAFT, DEFAULT_INDENT, DEFAULT_OUTPUT, split_values_flag
from .pipeline.schema_ast.refs import Referrer

# Option name -> GeneratorConfig field
_OPTION_FIELDS = {
    "values": "values",
    "output": "output",
    "draft": "draft",
    "indent": "indent",
    "no_additional_properties": "no_additional_properties",
    "bundle": "bundle",
    "bundle_root": "bundle_root",
    "bundle_without_id": "bundle_without_id",
    "use_helm_docs": "use_helm_docs",
    "k8s_schema_url": "k8s_schema_url",
    "k8s_schema_version": "k8s_schema_version",
}

# Option name -> SchemaRootConfig field
_SCHEMA_ROOT_OPTION_FIELDS = {
    "schema_root_id": "id",
    "schema_root_ref": "ref",
    "schema_root_title": "title",
    "schema_root_description": "description",
    "schema_root_additional_properties": "additional_properties",
}


def explicit_overrides(ctx: click.Context, params: dict) -> dict:
    """Collect the options given on the command line, as config overrides.

    Options left at their default do not override the config file.
    """
    overrides = {}
    schema_root = {}
    for name, value in params.items():
        if ctx.get_parameter_source(name) not in (ParameterSource.COMMANDLINE, ParameterSource.ENVIRONMENT):
            continue
        if name in _OPTION_FIELDS:
            overrides[_OPTION_FIELDS[name]] = split_values_flag(value) if name == "values" else value
        elif name in _SCHEMA_ROOT_OPTION_FIELDS:
            schema_root[_SCHEMA_ROOT_OPTION_FIELDS[name]] = value
            if name == "schema_root_ref":
                schema_root["ref_referrer"] = Referrer.from_dir(os.getcwd())
    if schema_root:
        overrides["schema_root"] = schema_root
    return overrides


@click.command()
@click.option(
    "--values", "-f", multiple=True, help="Values files to read, '-' for stdin. Repeatable and comma-separated."
)
@click.option("--output", "-o", default=DEFAULT_OUTPUT, show_default=True, help="Output file, '-' for stdout.")
@click.option("--draft", "-d", default=DEFAULT_DRAFT, type=int, show_default=True, help="Draft version (4, 6, 7, 2019, or 2020).")
@click.option("--indent", "-i", default=DEFAULT_INDENT, type=int, show_default=True, help="Indentation spaces (even number).")
@click.option(
    "--no-additional-properties/--additional-properties",
    default=False,
    help="Default additionalProperties to false for all objects in the schema.",
)
@click.option("--bundle/--no-bundle", default=False, help="Bundle referenced ($ref) subschemas into $defs.")
@click.option(
    "--bundle-root",
    default="",
    help="Root directory local referenced files may be loaded from (default: working directory).",
)
@click.option(
    "--bundle-without-id/--bundle-with-id",
    default=False,
    help="Reference bundled schemas as #/$defs/... instead of by $id, for editors that need it.",
)
@click.option("--use-helm-docs/--no-use-helm-docs", default=False, help="Read descriptions from helm-docs comments.")
@click.option("--k8s-schema-url", default=DEFAULT_K8S_SCHEMA_URL, help="URL template used by the $ref: $k8s/... alias.")
@click.option("--k8s-schema-version", default="", help="Version used in the --k8s-schema-url template.")
@click.option("--schema-root-id", default="", help="JSON schema $id.")
@click.option("--schema-root-ref", default="", help="JSON schema URI reference.")
@click.option("--schema-root-title", default="", help="JSON schema title.")
@click.option("--schema-root-description", default="", help="JSON schema description.")
@click.option(
    "--schema-root-additional-properties/--no-schema-root-additional-properties",
    default=None,
    help="Allow additional properties at the root.",
)
@click.option(
    "--config",
    "-c",
    default=None,
    type=click.Path(dir_okay=False),
    help=f"Config file (default: {DEFAULT_CONFIG_FILE} if present).",
)
@click.argument("charts", nargs=-1, type=click.Path(file_okay=False))
@click.version_option(__version__)
def values_to_json_schema(config, charts, **params):
    """Generate a JSON schema from Helm values files.

    With CHARTS, generate one schema inside each chart directory, using
    the chart's own .schema.yaml on top of the base config.
    """
    ctx = click.get_current_context()
    overrides = explicit_overrides(ctx, params)

    try:
        if config is not None:
            base_config = load_config_file(config, missing_ok=False)
        else:
            base_config = load_config_file(DEFAULT_CONFIG_FILE, missing_ok=True)

        if charts:
            generate_for_charts(list(charts), base_config, overrides)
        else:
            generate_json_schema(base_config.merged_with(overrides))
    except SchemaGenerationError as e:
        raise click.ClickException(str(e)) from e
