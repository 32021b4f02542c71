"""
Expansion of the `$ref: $k8s/...` alias.

`$k8s/deployment.json` is shorthand for a file of a Kubernetes JSON schema
repository. The repository URL is a template with a `K8sSchemaVersion`
variable, rendered with Jinja2.
"""

from __future__ import annotations

import re

import jinja2

from ..errors import ConfigError
from ..pointer import Ptr
from ..schema_ast.nodes import Schema
from ..schema_ast.refs import Referrer

K8S_ALIAS_PREFIX = "$k8s/"
DEFAULT_K8S_SCHEMA_URL = (
    "https://raw.githubusercontent.com/yannh/kubernetes-json-schema/refs/heads/master/{{ K8sSchemaVersion }}/"
)

# Also accept the `{{ .K8sSchemaVersion }}` field syntax
_FIELD_ACCESS_RE = re.compile(r"\{\{(-?)\s*\.")

_jinja_env = jinja2.Environment(undefined=jinja2.StrictUndefined, autoescape=False)


def render_k8s_schema_url(url_template: str, version: str) -> str:
    """Render the schema repository URL for a Kubernetes version.

    Raises:
        ConfigError: If the template is invalid or uses unknown variables
    """
    try:
        template = _jinja_env.from_string(_FIELD_ACCESS_RE.sub(r"{{\1 ", url_template))
        return template.render(K8sSchemaVersion=version)
    except jinja2.TemplateError as e:
        raise ConfigError(f"render k8sSchemaURL template {url_template!r}: {e}") from e


def update_ref_k8s_alias(schema: Schema, url_template: str, version: str) -> None:
    """Replace `$k8s/` prefixes in all `$ref`s of the tree, in place.

    Raises:
        ConfigError: If the alias is used without a version, or the URL
            template cannot be rendered
    """
    state: dict[str, str] = {}
    _update_rec(Ptr(), schema, url_template, version, state)


def _update_rec(ptr: Ptr, schema: Schema, url_template: str, version: str, state: dict[str, str]) -> None:
    for sub_ptr, sub in schema.subschemas():
        _update_rec(ptr.add(sub_ptr), sub, url_template, version, state)

    if not schema.ref or not schema.ref.startswith(K8S_ALIAS_PREFIX):
        return
    if not version:
        raise ConfigError(f'{ptr}: must set k8sSchemaVersion config when using "$ref: $k8s/..."')
    if "url" not in state:
        state["url"] = render_k8s_schema_url(url_template, version)
    url = state["url"]
    if not url.endswith("/"):
        url += "/"
    schema.ref = url + schema.ref.removeprefix(K8S_ALIAS_PREFIX)
    schema.ref_referrer = Referrer()
