"""
Tests for merging schema trees and the final normalization pass.
"""

import pytest

from values_to_json_schema.pipeline.errors import CircularReferenceError
from values_to_json_schema.pipeline.merger import ensure_compliant, merge_schemas, unique_string_append
from values_to_json_schema.pipeline.schema_ast.nodes import Schema, SchemaKind


def sample():
    return Schema(
        type="object",
        title="t",
        required=["a"],
        properties={"a": Schema(type="string", min_length=1)},
    )


class TestMergeSchemas:
    """Tests for merge_schemas."""

    def test_none_arguments(self):
        schema = Schema(type="string")
        assert merge_schemas(None, schema) is schema
        assert merge_schemas(schema, None) is schema
        assert merge_schemas(None, None) is None

    def test_empty_schema_is_identity(self):
        expected = sample().to_dict()
        assert merge_schemas(Schema(), sample()).to_dict() == expected
        assert merge_schemas(sample(), Schema()).to_dict() == expected

    def test_src_wins(self):
        merged = merge_schemas(Schema(type="string", minimum=1.0), Schema(type="integer"))
        assert merged.type == "integer"
        assert merged.minimum == 1

    def test_zero_values_override(self):
        merged = merge_schemas(Schema(minimum=5.0), Schema(minimum=0.0))
        assert merged.minimum == 0

    def test_enum_is_concatenated(self):
        assert merge_schemas(Schema(enum=[1]), Schema(enum=[1, 2])).enum == [1, 1, 2]

    def test_required_is_unioned(self):
        assert merge_schemas(Schema(required=["a", "b"]), Schema(required=["a", "c"])).required == ["a", "b", "c"]

    def test_properties_are_merged_recursively(self):
        dest = Schema(properties={"a": Schema(type="string")})
        src = Schema(properties={"a": Schema(min_length=1), "b": Schema(type="integer")})
        merged = merge_schemas(dest, src)
        assert merged.to_dict() == {
            "properties": {"a": {"type": "string", "minLength": 1}, "b": {"type": "integer"}},
        }

    def test_associative(self):
        def parts():
            return (
                Schema(title="a", properties={"p": Schema(type="string")}),
                Schema(minimum=1.0, properties={"p": Schema(min_length=2)}),
                Schema(required=["p"], properties={"q": Schema(type="boolean")}),
            )

        a, b, c = parts()
        left = merge_schemas(merge_schemas(a, b), c)
        a, b, c = parts()
        right = merge_schemas(a, merge_schemas(b, c))
        assert left.to_dict() == right.to_dict()

    def test_boolean_src_replaces(self):
        merged = merge_schemas(Schema(type="object"), Schema.false())
        assert merged.kind is SchemaKind.FALSE
        assert merged.to_dict() is False

    def test_object_src_keeps_boolean_dest(self):
        merged = merge_schemas(Schema.true(), Schema())
        assert merged.kind is SchemaKind.TRUE

    def test_unique_string_append(self):
        assert unique_string_append(["a"], "b", "a", "c", "b") == ["a", "b", "c"]


class TestEnsureCompliant:
    """Tests for ensure_compliant."""

    def test_cycle(self):
        root = Schema(type="object")
        child = Schema(type="object")
        root.properties["x"] = child
        child.properties["back"] = root
        with pytest.raises(CircularReferenceError, match="/properties/x/properties/back: circular reference detected"):
            ensure_compliant(root)

    def test_shared_node_is_not_a_cycle(self):
        shared = Schema(type="string")
        root = Schema(type="object", properties={"a": shared, "b": shared})
        ensure_compliant(root)

    def test_no_additional_properties(self):
        root = Schema(
            type="object",
            properties={
                "obj": Schema(type="object"),
                "open": Schema(type="object", additional_properties=Schema.true()),
                "skipped": Schema(type="object", skip_properties=True),
                "name": Schema(type="string"),
            },
        )
        ensure_compliant(root, no_additional_properties=True)
        assert root.additional_properties.kind is SchemaKind.FALSE
        assert root.properties["obj"].additional_properties.kind is SchemaKind.FALSE
        assert root.properties["open"].additional_properties.kind is SchemaKind.TRUE
        assert root.properties["skipped"].additional_properties is None
        assert root.properties["name"].additional_properties is None

    def test_open_by_default(self):
        root = Schema(type="object")
        ensure_compliant(root)
        assert root.additional_properties is None

    def test_combinators_clear_type(self):
        schema = Schema(type="string", any_of=[Schema(type="string"), Schema(type="null")])
        ensure_compliant(schema)
        assert schema.type is None
        assert schema.any_of[0].type == "string"
