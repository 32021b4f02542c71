"""
Tests for the `$ref: $k8s/...` alias.
"""

import re

import pytest

from values_to_json_schema.pipeline.analyzer.k8s_alias import (
    DEFAULT_K8S_SCHEMA_URL,
    render_k8s_schema_url,
    update_ref_k8s_alias,
)
from values_to_json_schema.pipeline.errors import ConfigError
from values_to_json_schema.pipeline.schema_ast.nodes import Schema
from values_to_json_schema.pipeline.schema_ast.refs import Referrer


def aliased(ref):
    return Schema(properties={"resources": Schema(ref=ref, ref_referrer=Referrer.from_dir("/charts/app"))})


class TestUpdateRefK8sAlias:
    """Tests for update_ref_k8s_alias."""

    def test_default_url(self):
        schema = aliased("$k8s/_definitions.json#/definitions/io.k8s.api.core.v1.ResourceRequirements")
        update_ref_k8s_alias(schema, DEFAULT_K8S_SCHEMA_URL, "v1.33.1")
        resources = schema.properties["resources"]
        assert resources.ref == (
            "https://raw.githubusercontent.com/yannh/kubernetes-json-schema/refs/heads/master/v1.33.1/"
            "_definitions.json#/definitions/io.k8s.api.core.v1.ResourceRequirements"
        )
        assert resources.ref_referrer.is_zero()

    def test_trailing_slash_is_added(self):
        schema = aliased("$k8s/pod.json")
        update_ref_k8s_alias(schema, "https://example.com/{{ K8sSchemaVersion }}", "v1.30.0")
        assert schema.properties["resources"].ref == "https://example.com/v1.30.0/pod.json"

    def test_field_syntax(self):
        schema = aliased("$k8s/pod.json")
        update_ref_k8s_alias(schema, "https://example.com/{{ .K8sSchemaVersion }}/", "v1")
        assert schema.properties["resources"].ref == "https://example.com/v1/pod.json"

    def test_missing_version(self):
        message = '/properties/resources: must set k8sSchemaVersion config when using "$ref: $k8s/..."'
        with pytest.raises(ConfigError, match=re.escape(message)):
            update_ref_k8s_alias(aliased("$k8s/pod.json"), DEFAULT_K8S_SCHEMA_URL, "")

    def test_other_refs_untouched(self):
        schema = aliased("schemas/a.json")
        update_ref_k8s_alias(schema, DEFAULT_K8S_SCHEMA_URL, "")
        assert schema.properties["resources"].ref == "schemas/a.json"
        assert schema.properties["resources"].ref_referrer.dir == "/charts/app"


class TestRenderK8sSchemaUrl:
    def test_unknown_variable(self):
        with pytest.raises(ConfigError, match="render k8sSchemaURL template"):
            render_k8s_schema_url("https://example.com/{{ Foo }}/", "v1")

    def test_invalid_template(self):
        with pytest.raises(ConfigError, match="render k8sSchemaURL template"):
            render_k8s_schema_url("https://example.com/{{ K8sSchemaVersion", "v1")
