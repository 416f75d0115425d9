"""Tests for reading and writing project files."""

import json
from pathlib import Path

import pytest

from animgraph._enums import PropertyKind
from animgraph._factory import initial_project
from animgraph._io import (
    ProjectFormatError,
    dump_project,
    dump_schema,
    load_project,
    parse_project,
    project_schema,
    save_project,
)
from animgraph._models import Keyframe


class TestSaveAndLoad:
    """Tests for project files on disk."""

    def test_round_trip(self, tmp_path: Path) -> None:
        project = initial_project()
        path = tmp_path / "demo.json"
        save_project(project, path)
        assert load_project(path) == project

    def test_creates_parent_directories(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / "dir" / "project.json"
        save_project(initial_project(), path)
        assert path.is_file()
        assert path.read_text(encoding="utf-8").endswith("}\n")

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_project(tmp_path / "nope.json")


class TestParseProject:
    """Tests for parsing and dumping JSON text."""

    def test_dump_is_plain_json(self) -> None:
        data = json.loads(dump_project(initial_project()))
        assert data["root_node_ids"] == ["rect_0", "circle_0"]
        assert data["meta"]["current_time"] == 0
        assert data["nodes"]["rect_0"]["properties"]["x"]["type"] == "expression"

    def test_keyframes_survive(self) -> None:
        project = parse_project(dump_project(initial_project(), indent=None))
        radius = project.nodes["circle_0"].properties["radius"]
        assert radius.type is PropertyKind.NUMBER
        assert [kf.value for kf in radius.keyframes] == [20, 50, 20]
        assert all(isinstance(kf, Keyframe) for kf in radius.keyframes)

    def test_minimal_document(self) -> None:
        project = parse_project("{}")
        assert project.nodes == {}
        assert project.meta.duration == 10

    @pytest.mark.parametrize(
        "text",
        [
            "not json",
            '{"nodes": []}',
            '{"nodes": {"a": {"id": "a", "type": "triangle", "name": "A", "properties": {}}}}',
        ],
    )
    def test_invalid_documents(self, text: str) -> None:
        with pytest.raises(ProjectFormatError, match="Invalid project"):
            parse_project(text)

    def test_format_error_is_value_error(self) -> None:
        assert issubclass(ProjectFormatError, ValueError)


class TestSchema:
    """Tests for the exported JSON schema."""

    def test_schema_describes_project(self) -> None:
        schema = project_schema()
        assert schema["title"] == "ProjectState"
        assert "nodes" in schema["properties"]

    def test_dump_schema_is_json(self) -> None:
        assert json.loads(dump_schema()) == project_schema()
