"""
JSON Pointer values used to address schema nodes.

Segments are stored already escaped (`~` as `~0`, `/` as `~1`) so that
rendering is a plain join.
"""

from __future__ import annotations

from dataclasses import dataclass


def escape_segment(name: str) -> str:
    return name.replace("~", "~0").replace("/", "~1")


def unescape_segment(segment: str) -> str:
    return segment.replace("~1", "/").replace("~0", "~")


@dataclass(frozen=True)
class Ptr:
    """An immutable JSON Pointer (RFC 6901).

    Every method returns a new pointer, so a pointer can be shared freely
    between sibling nodes while walking a tree.
    """

    segments: tuple[str, ...] = ()

    @staticmethod
    def of(*names: str) -> Ptr:
        """Create a pointer from unescaped property names."""
        return Ptr().prop(*names)

    def prop(self, *names: str) -> Ptr:
        """Append property names, escaping them."""
        return Ptr(self.segments + tuple(escape_segment(name) for name in names))

    def item(self, *indices: int) -> Ptr:
        """Append array indices."""
        return Ptr(self.segments + tuple(str(index) for index in indices))

    def add(self, other: Ptr) -> Ptr:
        """Concatenate another pointer to this one."""
        return Ptr(self.segments + other.segments)

    def __str__(self) -> str:
        return "/" + "/".join(self.segments)

    def __bool__(self) -> bool:
        return bool(self.segments)


def parse_ptr(path: str) -> Ptr:
    """Parse a JSON Pointer string such as `/properties/foo~1bar`.

    A leading `#` (URI fragment form) is accepted and ignored.
    """
    path = path.removeprefix("#")
    if path in ("", "/"):
        return Ptr()
    names = [unescape_segment(segment) for segment in path.removeprefix("/").split("/")]
    return Ptr.of(*names)
