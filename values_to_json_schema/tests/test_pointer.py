"""
Tests for JSON Pointer values.
"""

from values_to_json_schema.pipeline.pointer import Ptr, escape_segment, parse_ptr, unescape_segment


class TestPtr:
    """Tests for building and rendering pointers."""

    def test_root_renders_as_slash(self):
        assert str(Ptr()) == "/"
        assert not Ptr()

    def test_property_names_are_escaped(self):
        """Test that `/` and `~` in names are escaped."""
        ptr = Ptr.of("a/b", "c~d")
        assert str(ptr) == "/a~1b/c~0d"

    def test_items_and_add(self):
        ptr = Ptr.of("list").item(0).add(Ptr.of("name"))
        assert str(ptr) == "/list/0/name"

    def test_pointers_are_immutable(self):
        base = Ptr.of("a")
        child = base.prop("b")
        assert str(base) == "/a"
        assert str(child) == "/a/b"


class TestParsePtr:
    """Tests for parsing pointer strings."""

    def test_parse_fragment_form(self):
        assert parse_ptr("#/a~1b/c") == Ptr.of("a/b", "c")

    def test_parse_root(self):
        assert parse_ptr("") == Ptr()
        assert parse_ptr("#") == Ptr()
        assert parse_ptr("/") == Ptr()

    def test_escape_roundtrip(self):
        assert unescape_segment(escape_segment("~1/")) == "~1/"
