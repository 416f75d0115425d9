"""Reading and writing projects as JSON."""

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from ._models import ProjectState

logger = logging.getLogger(__name__)


class ProjectFormatError(ValueError):
    """The data is not a valid project."""


def parse_project(text: str | bytes) -> ProjectState:
    """Parse a project from its JSON text.

    Raises:
        ProjectFormatError: If the text is not valid JSON or not a valid project.

    """
    try:
        return ProjectState.model_validate_json(text)
    except ValidationError as e:
        msg = f"Invalid project: {e.error_count()} error(s)\n{e}"
        raise ProjectFormatError(msg) from e


def dump_project(project: ProjectState, *, indent: int | None = 2) -> str:
    return project.model_dump_json(indent=indent)


def load_project(path: Path) -> ProjectState:
    """Read a project file.

    Raises:
        ProjectFormatError: If the file content is not a valid project.
        OSError: If the file cannot be read.

    """
    logger.debug("Loading project from %s", path)
    return parse_project(path.read_bytes())


def save_project(project: ProjectState, path: Path) -> None:
    logger.debug("Saving project to %s", path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(dump_project(project) + "\n", encoding="utf-8")


def project_schema() -> dict[str, Any]:
    """JSON schema of the project file format."""
    return ProjectState.model_json_schema()


def dump_schema() -> str:
    return json.dumps(project_schema(), indent=2)
