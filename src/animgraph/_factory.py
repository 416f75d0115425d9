"""Default nodes and the demo project."""

from typing import Any

from ._enums import NodeKind, PropertyKind
from ._models import Keyframe, Node, Property, ProjectMeta, ProjectState

STAR_PATH = "M 0 -50 L 14 -15 L 50 -15 L 20 10 L 30 50 L 0 30 L -30 50 L -20 10 L -50 -15 L -14 -15 Z"

_DEFAULT_NAMES = {
    NodeKind.RECT: "New Rectangle",
    NodeKind.CIRCLE: "New Circle",
    NodeKind.VECTOR: "New Path",
    NodeKind.VALUE: "New Variable",
}


def create_property(kind: PropertyKind | str, value: Any) -> Property:
    return Property(type=PropertyKind(kind), value=value)


def _transform_properties() -> dict[str, Property]:
    return {
        "x": create_property(PropertyKind.NUMBER, 0),
        "y": create_property(PropertyKind.NUMBER, 0),
        "rotation": create_property(PropertyKind.NUMBER, 0),
        "scale": create_property(PropertyKind.NUMBER, 1),
        "opacity": create_property(PropertyKind.NUMBER, 1),
    }


def create_node(kind: NodeKind | str, node_id: str) -> Node:
    """Build a node of the given kind with its default properties."""
    kind = NodeKind(kind)

    match kind:
        case NodeKind.RECT:
            properties = {
                **_transform_properties(),
                "width": create_property(PropertyKind.NUMBER, 100),
                "height": create_property(PropertyKind.NUMBER, 100),
                "fill": create_property(PropertyKind.COLOR, "#3b82f6"),
            }
        case NodeKind.CIRCLE:
            properties = {
                **_transform_properties(),
                "radius": create_property(PropertyKind.NUMBER, 50),
                "fill": create_property(PropertyKind.COLOR, "#ec4899"),
            }
        case NodeKind.VECTOR:
            properties = {
                **_transform_properties(),
                "path": create_property(PropertyKind.STRING, STAR_PATH),
                "fill": create_property(PropertyKind.COLOR, "transparent"),
                "stroke": create_property(PropertyKind.COLOR, "#10b981"),
                "stroke_width": create_property(PropertyKind.NUMBER, 2),
            }
        case NodeKind.VALUE:
            properties = {"value": create_property(PropertyKind.NUMBER, 0)}

    return Node(id=node_id, type=kind, name=_DEFAULT_NAMES[kind], properties=properties)


def initial_project() -> ProjectState:
    """Demo project: an audio reactive rectangle and an orbiting circle."""
    rect = create_node(NodeKind.RECT, "rect_0")
    rect = rect.model_copy(
        update={
            "name": "Audio Reactive Cube",
            "properties": {
                **rect.properties,
                "x": create_property(PropertyKind.EXPRESSION, "math.sin(t * 2) * 200"),
                "height": create_property(PropertyKind.EXPRESSION, "# Scales with bass\nreturn 100 + ctx.audio.bass * 100"),
                "rotation": create_property(PropertyKind.EXPRESSION, "t * 45"),
            },
        },
    )

    circle = create_node(NodeKind.CIRCLE, "circle_0")
    circle = circle.model_copy(
        update={
            "name": "Orbiting Circle",
            "properties": {
                **circle.properties,
                "x": create_property(PropertyKind.EXPRESSION, "math.cos(t * 3) * 150"),
                "y": create_property(PropertyKind.EXPRESSION, "math.sin(t * 3) * 150"),
                "radius": Property(
                    type=PropertyKind.NUMBER,
                    value=20,
                    keyframes=(
                        Keyframe(time=0, value=20),
                        Keyframe(time=2, value=50),
                        Keyframe(time=4, value=20),
                    ),
                ),
            },
        },
    )

    return ProjectState(
        nodes={rect.id: rect, circle.id: circle},
        root_node_ids=(rect.id, circle.id),
        selection=rect.id,
        meta=ProjectMeta(),
    )
