"""
Comment-aware YAML document tree.

Documents are composed with ruamel.yaml's round-trip parser, which keeps
scalar styles and source positions. Its scanner reports every comment it
skips together with its position, and those comments are attached to
mapping entries as head, line and foot comments:

    # head comment of "a" (directly above the key)
    a: 1 # line comment of the value of "a"
    # foot comment of "a" (directly below, followed by a blank line)

    b: # line comment of the key "b" (block collections and block scalars)
      c: 2

Slots are assigned from comment positions, not from the token ruamel.yaml
hangs a comment on (which is the token before it, so the head comment of
a key lands on the previous value).
"""

from __future__ import annotations

import contextlib
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import yaml
from ruamel.yaml import YAML
from ruamel.yaml.nodes import MappingNode, Node, ScalarNode, SequenceNode
from ruamel.yaml.scanner import RoundTripScanner

from ..errors import StructuralError

_MERGE_TAG = "tag:yaml.org,2002:merge"
_BLOCK_STYLES = ("|", ">")


class NodeKind(Enum):
    MAPPING = "mapping"
    SEQUENCE = "sequence"
    SCALAR = "scalar"


@dataclass
class YamlNode:
    """A YAML node with its comments.

    For mappings, `children` alternates key and value nodes. Comment strings
    keep their leading `#` and use `\\n` between lines.
    """

    kind: NodeKind
    value: str = ""
    style: str | None = None
    tag: str = ""
    children: list[YamlNode] = field(default_factory=list)
    head_comment: str = ""
    line_comment: str = ""
    foot_comment: str = ""
    line: int = 0
    column: int = 0

    @property
    def is_quoted(self) -> bool:
        return self.style in ("'", '"')

    def pairs(self) -> list[tuple[YamlNode, YamlNode]]:
        """Return the (key, value) pairs of a mapping node."""
        return list(zip(self.children[0::2], self.children[1::2]))


class _ValuesLoader(yaml.SafeLoader):
    """Safe loader that leaves timestamps as plain strings."""


_ValuesLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != "tag:yaml.org,2002:timestamp"]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def load_yaml(text: str | bytes) -> Any:
    """Parse a YAML document into plain Python data.

    Raises:
        yaml.YAMLError: If the document is not valid YAML
    """
    return yaml.load(text, Loader=_ValuesLoader)


@dataclass(frozen=True)
class _Comment:
    line: int
    column: int
    text: str


class _CommentScanner(RoundTripScanner):
    """Round-trip scanner that also records each comment by source line."""

    def __init__(self, loader: Any = None):
        self.recorded_comments: dict[int, _Comment] = {}
        super().__init__(loader=loader)

    def scan_to_next_token(self) -> Any:
        comment = super().scan_to_next_token()
        if comment is not None:
            value, start_mark, _ = comment
            # Runs of blank lines come through here too
            if value.startswith("#"):
                self._record(start_mark.line, start_mark.column, value)
        return comment

    def scan_block_scalar_ignored_line(self, start_mark: Any) -> Any:
        # The comment after a `|` or `>` header
        mark = self.reader.get_mark()
        comment = super().scan_block_scalar_ignored_line(start_mark)
        if comment is not None:
            indent = len(comment) - len(comment.lstrip(" "))
            self._record(mark.line, mark.column + indent, comment)
        return comment

    def _record(self, line: int, column: int, value: str) -> None:
        text = value.strip(" ").partition("\n")[0].rstrip()
        self.recorded_comments[line] = _Comment(line, column, text)


def compose_document(text: str) -> YamlNode | None:
    """Compose the first document of `text` into a YamlNode tree.

    Returns None for an empty document.

    Raises:
        ruamel.yaml.error.YAMLError: If the document is not valid YAML
        StructuralError: If the document uses recursive aliases
    """
    text = text.replace("\r\n", "\n")
    parser = YAML(typ="rt", pure=True)
    parser.preserve_quotes = True
    parser.Scanner = _CommentScanner
    with contextlib.closing(parser.compose_all(text)) as documents:
        root = next(documents, None)
    if root is None:
        return None
    return _TreeBuilder(text, parser.scanner.recorded_comments).build(root)


class _TreeBuilder:
    """Converts ruamel.yaml nodes into YamlNodes, attaching comments."""

    def __init__(self, text: str, comments: dict[int, _Comment]):
        self.lines = text.split("\n")
        self.comments = comments
        self._stack: set[int] = set()

    def build(self, root: Node) -> YamlNode:
        return self._convert(root)

    # Source line helpers

    def _comment_at(self, index: int) -> _Comment | None:
        return self.comments.get(index)

    def _is_blank(self, index: int) -> bool:
        if index < 0 or index >= len(self.lines) or index in self.comments:
            return False
        return self.lines[index].strip() == ""

    def _indent(self, index: int) -> int:
        line = self.lines[index]
        return len(line) - len(line.lstrip())

    def _last_line(self, node: Node) -> int:
        """Return the last source line holding content of `node`."""
        if isinstance(node, ScalarNode):
            end = node.end_mark
            if node.style in _BLOCK_STYLES:
                # Block scalars end at the start of the following line
                last = end.line
                if end.line >= len(self.lines) or self.lines[end.line][: end.column].strip() == "":
                    last = end.line - 1
                while last > node.start_mark.line and self.lines[last].strip() == "":
                    last -= 1
                return last
            return end.line
        if node.flow_style or not node.value:
            return node.end_mark.line
        if isinstance(node, MappingNode):
            key, value = node.value[-1]
            return max(self._last_line(key), self._last_line(value))
        return self._last_line(node.value[-1])

    def _trailing_comment(self, line: int, column: int) -> str:
        comment = self._comment_at(line)
        if comment is None or comment.column < column:
            return ""
        return comment.text

    # Comment extraction

    def _head_comment(self, key: Node, first_entry: bool) -> str:
        column = key.start_mark.column
        index = key.start_mark.line - 1
        if self._is_blank(index):
            return ""
        block: list[int] = []
        while True:
            comment = self._comment_at(index)
            if comment is not None:
                if comment.column > column:
                    break
            elif not self._is_blank(index):
                break
            block.append(index)
            index -= 1
        block.reverse()

        paragraphs: list[list[str]] = []
        current: list[str] = []
        for line in block:
            comment = self._comment_at(line)
            if comment is None:
                if current:
                    paragraphs.append(current)
                current = []
            else:
                current.append(comment.text)
        if current:
            paragraphs.append(current)

        follows_content = bool(block) and not self._is_blank(block[0])
        if not first_entry and follows_content and len(paragraphs) > 1:
            # Belongs to the previous entry as its foot comment
            paragraphs = paragraphs[1:]
        return "\n\n".join("\n".join(paragraph) for paragraph in paragraphs)

    def _foot_comment(self, key: Node, last_line: int) -> str:
        column = key.start_mark.column
        index = last_line + 1
        collected: list[str] = []
        while (comment := self._comment_at(index)) is not None and comment.column == column:
            collected.append(comment.text)
            index += 1
        if not collected:
            return ""
        if index >= len(self.lines) or self._is_blank(index) or self._indent(index) < column:
            return "\n".join(collected)
        return ""

    def _key_line_comment(self, key: Node, value: Node) -> str:
        """Comment following `key:` when the value starts on the next line."""
        if isinstance(value, ScalarNode) and value.style not in _BLOCK_STYLES:
            return ""
        if not isinstance(value, ScalarNode) and value.flow_style:
            return ""
        return self._trailing_comment(key.end_mark.line, key.end_mark.column)

    def _value_line_comment(self, value: Node) -> str:
        if isinstance(value, ScalarNode):
            if value.style in _BLOCK_STYLES:
                return ""
            return self._trailing_comment(value.end_mark.line, value.end_mark.column)
        if value.flow_style:
            return self._trailing_comment(value.end_mark.line, value.end_mark.column)
        return ""

    def _attach_entry_comments(
        self,
        key: Node,
        value: Node,
        key_node: YamlNode,
        value_node: YamlNode,
        first_entry: bool,
    ) -> None:
        key_node.head_comment = self._head_comment(key, first_entry)
        if _is_before(value.start_mark, key.end_mark):
            # An alias: the value marks point at the anchored node elsewhere
            value_node.line_comment = self._trailing_comment(key.end_mark.line, key.end_mark.column)
            key_node.foot_comment = self._foot_comment(key, key.end_mark.line)
            return
        key_node.line_comment = self._key_line_comment(key, value)
        value_node.line_comment = self._value_line_comment(value)
        key_node.foot_comment = self._foot_comment(key, self._last_line(value))

    # Conversion

    def _convert(self, node: Node) -> YamlNode:
        if id(node) in self._stack:
            raise StructuralError(f"line {node.start_mark.line + 1}: recursive YAML aliases are not supported")
        position = {"line": node.start_mark.line + 1, "column": node.start_mark.column + 1}

        if isinstance(node, ScalarNode):
            # Folded scalars carry fold markers in round-trip mode
            value = node.value.replace("\a", "")
            return YamlNode(kind=NodeKind.SCALAR, value=value, style=node.style, tag=node.tag or "", **position)

        self._stack.add(id(node))
        try:
            if isinstance(node, SequenceNode):
                items = []
                for item in node.value:
                    converted = self._convert(item)
                    if not _is_before(item.start_mark, node.start_mark):
                        converted.line_comment = self._value_line_comment(item)
                    items.append(converted)
                return YamlNode(kind=NodeKind.SEQUENCE, tag=node.tag or "", children=items, **position)

            children: list[YamlNode] = []
            explicit_keys = {key.value for key, _ in node.value if isinstance(key, ScalarNode) and key.tag != _MERGE_TAG}
            for index, (key, value) in enumerate(node.value):
                if not isinstance(key, ScalarNode):
                    raise StructuralError(f"line {key.start_mark.line + 1}: only scalar mapping keys are supported")
                if key.tag == _MERGE_TAG:
                    children.extend(self._merged_children(key, value, explicit_keys))
                    continue
                key_node = self._convert(key)
                value_node = self._convert(value)
                if not node.flow_style:
                    self._attach_entry_comments(key, value, key_node, value_node, first_entry=index == 0)
                children.extend([key_node, value_node])
            return YamlNode(kind=NodeKind.MAPPING, tag=node.tag or "", children=children, **position)
        finally:
            self._stack.discard(id(node))

    def _merged_children(self, key: Node, value: Node, explicit_keys: set[str]) -> list[YamlNode]:
        """Expand a `<<: *anchor` merge key into plain entries."""
        sources = value.value if isinstance(value, SequenceNode) else [value]
        children: list[YamlNode] = []
        for source in sources:
            if not isinstance(source, MappingNode):
                raise StructuralError(f"line {key.start_mark.line + 1}: merge key expects a mapping")
            for merged_key, merged_value in source.value:
                if not isinstance(merged_key, ScalarNode) or merged_key.value in explicit_keys:
                    continue
                explicit_keys.add(merged_key.value)
                children.extend([self._convert(merged_key), self._convert(merged_value)])
        return children


def _is_before(mark: Any, other: Any) -> bool:
    return (mark.line, mark.column) < (other.line, other.column)
