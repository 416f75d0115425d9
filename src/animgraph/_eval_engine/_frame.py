"""Whole-frame evaluation."""

import logging
from dataclasses import dataclass, field
from typing import Any

from animgraph._console import ConsoleLog
from animgraph._enums import NodeKind
from animgraph._models import AudioFrame, ProjectState
from animgraph._refs import PropertyRef

from ._engine import EvaluationContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FrameResult:
    """Resolved values of every property of a project at one point in time.

    Attributes:
        time: The frame time in seconds.
        values: Mapping from property address to resolved value, in paint order.

    """

    time: float
    values: dict[PropertyRef, Any] = field(default_factory=dict)

    def get_value(self, node_id: str, prop_key: str) -> Any:
        """Get a resolved value.

        Raises:
            KeyError: If the project has no such property.

        """
        return self.values[PropertyRef(node_id, prop_key)]

    def node_values(self, node_id: str) -> dict[str, Any]:
        """All resolved values of one node, keyed by property name."""
        return {ref.prop_key: value for ref, value in self.values.items() if ref.node_id == node_id}


def render_order(project: ProjectState) -> list[str]:
    """Ids of visual nodes, bottom-most first.

    ``root_node_ids`` lists the topmost layer first, so painting walks it in
    reverse. Variable nodes and ids without a node are skipped.
    """
    order: list[str] = []
    for node_id in reversed(project.root_node_ids):
        node = project.nodes.get(node_id)
        if node is not None and node.type is not NodeKind.VALUE:
            order.append(node_id)
    return order


def evaluate_frame(
    project: ProjectState,
    time: float | None = None,
    *,
    audio: AudioFrame | None = None,
    console: ConsoleLog | None = None,
) -> FrameResult:
    """Evaluate every property of every node.

    Visual nodes come first in paint order, followed by the remaining nodes
    (variables and anything not listed in ``root_node_ids``).

    Args:
        project: The project to evaluate.
        time: Frame time in seconds. Defaults to ``project.meta.current_time``.
        audio: Audio analysis for the frame. Defaults to silence.
        console: Receives expression output and errors.

    Returns:
        FrameResult with one entry per property.

    """
    context = EvaluationContext(project, time, audio=audio, console=console)
    painted = render_order(project)
    seen = set(painted)
    ordered = painted + [node_id for node_id in project.nodes if node_id not in seen]

    values: dict[PropertyRef, Any] = {}
    for node_id in ordered:
        for prop_key in project.nodes[node_id].properties:
            values[PropertyRef(node_id, prop_key)] = context.get(node_id, prop_key)

    logger.debug("Evaluated %d properties at t=%s", len(values), context.time)
    return FrameResult(time=context.time, values=values)
