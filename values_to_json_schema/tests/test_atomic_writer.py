"""
Tests for atomic schema file writes.
"""

import pytest

from values_to_json_schema.pipeline.errors import OutputError
from values_to_json_schema.pipeline.merger import AtomicWriter


class TestAtomicWriter:
    """Tests for AtomicWriter."""

    def test_write_json(self, tmp_path):
        path = tmp_path / "values.schema.json"
        AtomicWriter().write(path, '{"type": "object"}\n')
        assert path.read_text() == '{"type": "object"}\n'

    def test_write_yaml(self, tmp_path):
        path = tmp_path / "values.schema.yaml"
        AtomicWriter().write(path, "type: object\n", output_format="yaml")
        assert path.read_text() == "type: object\n"

    def test_invalid_content_keeps_previous_file(self, tmp_path):
        path = tmp_path / "values.schema.json"
        path.write_text('{"old": true}')
        with pytest.raises(OutputError, match="generated JSON schema is not valid"):
            AtomicWriter().write(path, "{not json")
        assert path.read_text() == '{"old": true}'
        assert list(tmp_path.iterdir()) == [path]

    def test_schema_must_be_object(self, tmp_path):
        with pytest.raises(OutputError, match="must be an object or a boolean"):
            AtomicWriter().write(tmp_path / "s.json", "[]")

    def test_custom_validator(self, tmp_path):
        def reject(content):
            raise OutputError("rejected")

        with pytest.raises(OutputError, match="rejected"):
            AtomicWriter(validate_json=reject).write(tmp_path / "s.json", "{}")
        AtomicWriter(validate_json=reject).write(tmp_path / "s.json", "{}", validate=False)
        assert (tmp_path / "s.json").read_text() == "{}"

    def test_unknown_format(self, tmp_path):
        with pytest.raises(OutputError, match="unknown output format"):
            AtomicWriter().write(tmp_path / "s.txt", "{}", output_format="toml")
