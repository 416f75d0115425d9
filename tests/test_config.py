"""Tests for the configuration module."""

from pathlib import Path

import pytest

from animgraph._cli.config import (
    AnimgraphConfig,
    ConfigError,
    find_pyproject_toml,
    get_config,
    load_config,
)
from animgraph._console import DEFAULT_MAX_ENTRIES
from animgraph._history import DEFAULT_LIMIT


def _write_pyproject(directory: Path, content: str) -> Path:
    pyproject = directory / "pyproject.toml"
    pyproject.write_text(content)
    return pyproject


class TestFindPyprojectToml:
    """Tests for find_pyproject_toml function."""

    def test_finds_in_current_directory(self, tmp_path: Path) -> None:
        """Should find pyproject.toml in current directory."""
        pyproject = _write_pyproject(tmp_path, "[project]\nname = 'test'\n")

        assert find_pyproject_toml(tmp_path) == pyproject

    def test_finds_in_parent_directory(self, tmp_path: Path) -> None:
        """Should find pyproject.toml in parent directory."""
        pyproject = _write_pyproject(tmp_path, "[project]\nname = 'test'\n")
        subdir = tmp_path / "scenes" / "intro"
        subdir.mkdir(parents=True)

        assert find_pyproject_toml(subdir) == pyproject

    def test_returns_none_when_not_found(self, tmp_path: Path) -> None:
        """Should return None when no pyproject.toml is found."""
        assert find_pyproject_toml(tmp_path) is None


class TestLoadConfig:
    """Tests for reading [tool.animgraph]."""

    def test_defaults_without_section(self, tmp_path: Path) -> None:
        """Should fall back to defaults when the section is missing."""
        pyproject = _write_pyproject(tmp_path, "[project]\nname = 'test'\n")

        config = load_config(pyproject)

        assert config == AnimgraphConfig(project_root=tmp_path)
        assert config.history_limit == DEFAULT_LIMIT
        assert config.max_log_entries == DEFAULT_MAX_ENTRIES
        assert config.project is None

    def test_all_settings(self, tmp_path: Path) -> None:
        """Should read every supported key."""
        pyproject = _write_pyproject(
            tmp_path,
            """
[tool.animgraph]
project = "scenes/demo.json"
history_limit = 20
max_log_entries = 200
""",
        )

        config = load_config(pyproject)

        assert config.project == tmp_path / "scenes" / "demo.json"
        assert config.history_limit == 20
        assert config.max_log_entries == 200
        assert config.project_root == tmp_path

    def test_absolute_project_path_is_kept(self, tmp_path: Path) -> None:
        """Should not resolve absolute project paths against the root."""
        target = tmp_path / "elsewhere" / "demo.json"
        pyproject = _write_pyproject(tmp_path, f"[tool.animgraph]\nproject = '{target.as_posix()}'\n")

        assert load_config(pyproject).project == target

    def test_project_must_be_string(self, tmp_path: Path) -> None:
        """Should reject a non-string project path."""
        pyproject = _write_pyproject(tmp_path, "[tool.animgraph]\nproject = 5\n")

        with pytest.raises(ConfigError, match="expected string path"):
            load_config(pyproject)

    @pytest.mark.parametrize("value", ["'ten'", "true", "1.5"])
    def test_limits_must_be_integers(self, tmp_path: Path, value: str) -> None:
        """Should reject non-integer limits, including booleans."""
        pyproject = _write_pyproject(tmp_path, f"[tool.animgraph]\nhistory_limit = {value}\n")

        with pytest.raises(ConfigError, match=r"history_limit: expected integer"):
            load_config(pyproject)

    def test_limits_must_be_positive(self, tmp_path: Path) -> None:
        """Should reject limits below one."""
        pyproject = _write_pyproject(tmp_path, "[tool.animgraph]\nmax_log_entries = 0\n")

        with pytest.raises(ConfigError, match="must be at least 1, got 0"):
            load_config(pyproject)

    def test_section_must_be_table(self, tmp_path: Path) -> None:
        """Should reject a [tool] entry that is not a table."""
        pyproject = _write_pyproject(tmp_path, "[tool]\nanimgraph = 'yes'\n")

        with pytest.raises(ConfigError, match="expected a table"):
            load_config(pyproject)

    def test_invalid_toml(self, tmp_path: Path) -> None:
        """Should wrap TOML syntax errors."""
        pyproject = _write_pyproject(tmp_path, "[tool.animgraph\n")

        with pytest.raises(ConfigError, match="Invalid TOML"):
            load_config(pyproject)


class TestGetConfig:
    """Tests for config discovery from the working directory."""

    def test_defaults_without_pyproject(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Should return defaults when no pyproject.toml is found."""
        monkeypatch.chdir(tmp_path)

        assert get_config() == AnimgraphConfig()

    def test_reads_nearest_pyproject(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Should load the pyproject.toml above the working directory."""
        _write_pyproject(tmp_path, "[tool.animgraph]\nhistory_limit = 5\n")
        subdir = tmp_path / "scenes"
        subdir.mkdir()
        monkeypatch.chdir(subdir)

        assert get_config().history_limit == 5
