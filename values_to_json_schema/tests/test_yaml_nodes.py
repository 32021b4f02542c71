"""
Tests for the comment-aware YAML tree.
"""

import pytest

from values_to_json_schema.pipeline.errors import StructuralError
from values_to_json_schema.pipeline.schema_ast.yaml_nodes import NodeKind, compose_document, load_yaml


def entries(node):
    return {key.value: (key, value) for key, value in node.pairs()}


class TestComments:
    """Tests for attaching comments to entries."""

    def test_head_line_and_foot(self):
        root = compose_document("# head\nreplicas: 3 # line\n# foot\n\nother: x\n")
        key, value = entries(root)["replicas"]
        assert key.head_comment == "# head"
        assert value.line_comment == "# line"
        assert key.foot_comment == "# foot"
        assert entries(root)["other"][0].head_comment == ""

    def test_key_line_comment_for_block_mapping(self):
        root = compose_document("image: # @schema type:object\n  tag: latest\n")
        key, value = entries(root)["image"]
        assert key.line_comment == "# @schema type:object"
        assert value.kind is NodeKind.MAPPING

    def test_comment_after_blank_line_is_foot_of_previous_entry(self):
        root = compose_document("a: 1\n# foot of a\n\n# head of b\nb: 2\n")
        assert entries(root)["a"][0].foot_comment == "# foot of a"
        assert entries(root)["b"][0].head_comment == "# head of b"

    def test_first_entry_keeps_all_paragraphs(self):
        root = compose_document("# doc\n\n# @schema type:string\na: x\n")
        assert entries(root)["a"][0].head_comment == "# doc\n\n# @schema type:string"

    def test_block_scalar_content_is_not_a_comment(self):
        root = compose_document("script: |\n  # not a comment\nb: 1\n")
        assert entries(root)["b"][0].head_comment == ""
        assert entries(root)["script"][1].value == "# not a comment\n"

    def test_sequence_item_line_comments(self):
        root = compose_document("list:\n  - a # first\n  - b\n")
        items = entries(root)["list"][1].children
        assert items[0].line_comment == "# first"
        assert items[1].line_comment == ""

    def test_nested_head_comment(self):
        root = compose_document("image:\n  # @schema required\n  tag: x\n")
        image = entries(root)["image"][1]
        assert entries(image)["tag"][0].head_comment == "# @schema required"

    def test_block_scalar_header_comment(self):
        root = compose_document("script: | # @schema type:string\n  echo hi\nb: 1\n")
        key, value = entries(root)["script"]
        assert key.line_comment == "# @schema type:string"
        assert value.value == "echo hi\n"

    def test_hash_in_quoted_value_is_not_a_comment(self):
        root = compose_document('a: "x # y"\n# head\nb: 1\n')
        key, value = entries(root)["a"]
        assert value.value == "x # y"
        assert value.line_comment == ""
        assert key.foot_comment == ""
        assert entries(root)["b"][0].head_comment == "# head"

    def test_crlf(self):
        root = compose_document("a: 1 # c\r\nb: 2\r\n")
        assert entries(root)["a"][1].line_comment == "# c"


class TestStructure:
    """Tests for tree shape and aliases."""

    def test_empty_document(self):
        assert compose_document("") is None
        assert compose_document("# only a comment\n") is None

    def test_quoted_scalar(self):
        root = compose_document('a: "3"\nb: 3\n')
        assert entries(root)["a"][1].is_quoted
        assert not entries(root)["b"][1].is_quoted

    def test_merge_keys_are_expanded(self):
        root = compose_document("base: &base\n  x: 1\n  y: 2\nchild:\n  <<: *base\n  y: 3\n")
        child = entries(root)["child"][1]
        assert [key.value for key, _ in child.pairs()] == ["x", "y"]
        assert entries(child)["y"][1].value == "3"

    def test_recursive_alias(self):
        with pytest.raises(StructuralError, match="recursive YAML aliases"):
            compose_document("a: &a\n  b: *a\n")


class TestLoadYaml:
    def test_timestamps_stay_strings(self):
        assert load_yaml("d: 2024-01-01") == {"d": "2024-01-01"}

    def test_flow_list(self):
        assert load_yaml("[a, 1, null]") == ["a", 1, None]
