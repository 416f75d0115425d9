"""Configuration loading from pyproject.toml."""

import tomllib
from dataclasses import dataclass
from pathlib import Path

from animgraph._console import DEFAULT_MAX_ENTRIES
from animgraph._history import DEFAULT_LIMIT


class ConfigError(Exception):
    """Error in animgraph configuration."""


@dataclass(slots=True, frozen=True)
class AnimgraphConfig:
    """Configuration loaded from pyproject.toml.

    All relative paths are resolved from the project root (directory containing pyproject.toml).
    """

    history_limit: int = DEFAULT_LIMIT
    max_log_entries: int = DEFAULT_MAX_ENTRIES
    project: Path | None = None
    project_root: Path | None = None


def find_pyproject_toml(start_dir: Path | None = None) -> Path | None:
    """Find pyproject.toml by walking up from start_dir.

    Args:
        start_dir: Starting directory. Defaults to current working directory.

    Returns:
        Path to pyproject.toml if found, None otherwise.

    """
    if start_dir is None:
        start_dir = Path.cwd()

    current = start_dir.resolve()

    while True:
        candidate = current / "pyproject.toml"
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            # Reached filesystem root
            return None
        current = parent


def _parse_positive_int(section: dict[str, object], key: str, default: int) -> int:
    if key not in section:
        return default
    value = section[key]
    # bool is an int subclass but never a valid count
    if isinstance(value, bool) or not isinstance(value, int):
        msg = f"Invalid [tool.animgraph].{key}: expected integer"
        raise ConfigError(msg)
    if value < 1:
        msg = f"Invalid [tool.animgraph].{key}: must be at least 1, got {value}"
        raise ConfigError(msg)
    return value


def load_config(pyproject_path: Path) -> AnimgraphConfig:
    """Load and validate [tool.animgraph] config from pyproject.toml.

    Args:
        pyproject_path: Path to pyproject.toml

    Returns:
        Parsed AnimgraphConfig

    Raises:
        ConfigError: If the configuration is invalid

    """
    project_root = pyproject_path.parent

    with pyproject_path.open("rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            msg = f"Invalid TOML in {pyproject_path}: {e}"
            raise ConfigError(msg) from e

    section = data.get("tool", {}).get("animgraph", {})
    if not isinstance(section, dict):
        msg = "Invalid [tool.animgraph]: expected a table"
        raise ConfigError(msg)

    if not section:
        return AnimgraphConfig(project_root=project_root)

    project_path: Path | None = None
    if "project" in section:
        project_value = section["project"]
        if not isinstance(project_value, str):
            msg = "Invalid [tool.animgraph].project: expected string path"
            raise ConfigError(msg)
        project_path = Path(project_value)
        if not project_path.is_absolute():
            project_path = project_root / project_path

    return AnimgraphConfig(
        history_limit=_parse_positive_int(section, "history_limit", DEFAULT_LIMIT),
        max_log_entries=_parse_positive_int(section, "max_log_entries", DEFAULT_MAX_ENTRIES),
        project=project_path,
        project_root=project_root,
    )


def get_config() -> AnimgraphConfig:
    """Get config from pyproject.toml in current directory or parents.

    Returns:
        AnimgraphConfig (defaults if no pyproject.toml or no [tool.animgraph] section)

    """
    pyproject_path = find_pyproject_toml()
    if pyproject_path is None:
        return AnimgraphConfig()
    return load_config(pyproject_path)
