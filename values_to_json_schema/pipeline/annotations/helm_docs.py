"""
helm-docs comments.

helm-docs documents values with comments such as:

    # myField.foo -- (string) My description
    # continued on the next line
    # @default -- computed at install time

When helm-docs support is enabled, the description of such a comment is
copied into the schema of the matching value.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from ..errors import AnnotationError

# Handles the following special cases:
#
#   # -- A very simple comment
#   #    --    a lot of spacing
#   # -- (string) A very simple comment
#   # --(string)No spacing
#   # -- (tpl/array) Custom type
#   # ------- Dash overload
#   # myField.foobar -- (string) This is my description
#   # myField."foo bar! :D".hello -- (string) This is my description
HELM_DOCS_COMMENT_RE = re.compile(
    r'^#\s+(?P<path>(?:\w[^\s\.]*)(?:\.(?:\S+|"[^"]*"))*)?\s*--\s*(?:\((?P<type>[\w/\.-]+)\)\s*)?(?P<desc>.*)'
)
_ANNOTATION_RE = re.compile(r"^#\s*@(?P<key>default|notationType|section)\s*--\s*(?P<value>.*)$")


@dataclass
class HelmDocsComment:
    """A parsed helm-docs comment block."""

    path: list[str] = field(default_factory=list)  # "# myPath.foo.bar -- My description"
    description: str = ""  # "# -- My description"
    type: str = ""  # "# -- (myType) My description"
    notation_type: str = ""  # "# @notationType -- myType"
    default: str = ""  # "# @default -- myDefault"
    section: str = ""  # "# @section -- mySection"


def split_head_comment(head_comment: str) -> tuple[list[str], list[str]]:
    """Split a head comment into schema comment lines and helm-docs lines.

    Only the last paragraph of the head comment is considered. Given:

        # foo

        # @schema type:string
        # -- My description
        hello: ""

    this returns `["# @schema type:string"]` and `["# -- My description"]`.
    """
    if not head_comment:
        return [], []
    index = head_comment.rfind("\n\n")
    if index != -1:
        head_comment = head_comment[index + 2 :]
    comments = head_comment.split("\n")

    for i, comment in enumerate(comments):
        if HELM_DOCS_COMMENT_RE.match(comment):
            return comments[:i], comments[i:]
    return comments, []


def parse_helm_docs_comment(lines: list[str]) -> HelmDocsComment:
    """Parse helm-docs lines as returned by split_head_comment.

    Raises:
        AnnotationError: If the path is malformed or a line holds a
            `@schema` directive
    """
    result = HelmDocsComment()
    if not lines:
        return result
    match = HELM_DOCS_COMMENT_RE.match(lines[0])
    if not match:
        return result

    result.path = parse_helm_docs_path(match.group("path") or "")
    result.type = match.group("type") or ""
    result.description = match.group("desc")

    for line in lines[1:]:
        text = line.removeprefix("#").strip()
        if text.startswith("@schema"):
            raise AnnotationError("'# @schema' comments are not supported in helm-docs comments")
        annotation = _ANNOTATION_RE.match(line)
        if annotation:
            value = annotation.group("value").strip()
            match annotation.group("key"):
                case "default":
                    result.default = value
                case "notationType":
                    result.notation_type = value
                case "section":
                    result.section = value
            continue
        result.description += " " + text

    return result


def parse_helm_docs_path(path: str) -> list[str]:
    """Parse a dotted helm-docs path such as `foo."bar.baz".moo`.

    Raises:
        AnnotationError: If the path is malformed
    """
    if not path:
        return []
    if path.startswith('"'):
        raise AnnotationError(f"parse path {path!r}: must not start with a quote")

    segments: list[str] = []
    i = 0
    n = len(path)
    while True:
        if path[i] == '"':
            end = path.find('"', i + 1)
            if end == -1:
                raise AnnotationError(f"parse path {path!r}: invalid syntax")
            segments.append(path[i + 1 : end])
            i = end + 1
            if i < n and path[i] != ".":
                raise AnnotationError(f"expected dot separator, but got {path[i]!r} in: {path}")
        else:
            start = i
            while i < n and path[i] != ".":
                if path[i] == '"':
                    end = path.find('"', i + 1)
                    i = n if end == -1 else end + 1
                else:
                    i += 1
            segment = path[start:i]
            if not segment:
                raise AnnotationError(f"parse path {path!r}: invalid syntax")
            segments.append(segment)

        if i >= n:
            return segments
        i += 1  # skip "."
        if i >= n:
            raise AnnotationError(f"parse path {path!r}: invalid syntax")
