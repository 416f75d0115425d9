"""Property graph data model.

Every model is a frozen pydantic model. Edits never mutate a model in place:
they build a new one with ``model_copy(update=...)`` so untouched nodes and
properties are shared by reference between successive project states.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from typing import Any, TypeAlias

from pydantic import BaseModel, ConfigDict, Field

from ._enums import Easing, NodeKind, PropertyKind

PropertyPatch: TypeAlias = Mapping[str, Any]
"""Partial property record (``type``, ``value``, ``keyframes``, ``meta``) used by edits."""

PATCH_FIELDS = ("type", "value", "keyframes", "meta")


def new_id() -> str:
    return uuid.uuid4().hex


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class Keyframe(_Frozen):
    """A time/value pair on a property's animation curve."""

    id: str = Field(default_factory=new_id)
    time: float
    value: Any
    easing: Easing = Easing.LINEAR


class PropertyStash(_Frozen):
    """Previous contents kept when a property switches between kinds."""

    last_expression: str | None = None
    last_value: Any = None
    last_type: PropertyKind | None = None


class Property(_Frozen):
    """A node attribute.

    The ``type`` decides how ``value`` is read: source code for ``expression``,
    a ``"node:prop"`` link for ``ref``, a literal otherwise. Keyframes override
    the literal and are ignored for expression and ref properties.
    """

    type: PropertyKind
    value: Any = None
    keyframes: tuple[Keyframe, ...] = ()
    meta: PropertyStash | None = None

    @property
    def is_animated(self) -> bool:
        return bool(self.keyframes) and not self.type.is_derived

    def snapshot(self) -> dict[str, Any]:
        """Return the full record as a patch, suitable as an undo payload."""
        return {name: getattr(self, name) for name in PATCH_FIELDS}

    def merged(self, patch: PropertyPatch) -> Property:
        """Shallow-merge a partial record onto this property.

        Fields missing from the patch are kept as they are.
        """
        return self.model_copy(update=normalize_patch(patch))


def normalize_patch(patch: PropertyPatch) -> dict[str, Any]:
    """Coerce the loosely typed fields of a patch into model types.

    Raises:
        ValueError: If the patch names a field that properties do not have.

    """
    unknown = set(patch) - set(PATCH_FIELDS)
    if unknown:
        msg = f"Unknown property fields: {sorted(unknown)}"
        raise ValueError(msg)

    result = dict(patch)
    if "type" in result:
        result["type"] = PropertyKind(result["type"])
    if "keyframes" in result:
        result["keyframes"] = tuple(
            kf if isinstance(kf, Keyframe) else Keyframe.model_validate(kf) for kf in result["keyframes"] or ()
        )
    if isinstance(result.get("meta"), Mapping):
        result["meta"] = PropertyStash.model_validate(result["meta"])
    return result


class Node(_Frozen):
    """A scene node: an id, a kind, and its named properties."""

    id: str
    type: NodeKind
    name: str = ""
    properties: dict[str, Property] = Field(default_factory=dict)

    def with_property(self, key: str, prop: Property) -> Node:
        return self.model_copy(update={"properties": {**self.properties, key: prop}})


class ProjectMeta(_Frozen):
    current_time: float = 0.0
    duration: float = 10.0
    fps: int = 60
    width: int = 800
    height: int = 600
    is_playing: bool = False


class AudioFrame(_Frozen):
    """Audio analysis for the current frame, as supplied by the audio collaborator."""

    bass: float = 0.0
    mid: float = 0.0
    high: float = 0.0
    treble: float = 0.0
    fft: tuple[float, ...] = ()


class ProjectState(_Frozen):
    """The whole document.

    ``root_node_ids`` is the layer order: index 0 is the topmost node.
    """

    nodes: dict[str, Node] = Field(default_factory=dict)
    root_node_ids: tuple[str, ...] = ()
    selection: str | None = None
    meta: ProjectMeta = Field(default_factory=ProjectMeta)

    def get_property(self, node_id: str, prop_key: str) -> Property | None:
        node = self.nodes.get(node_id)
        if node is None:
            return None
        return node.properties.get(prop_key)

    def with_node(self, node: Node) -> ProjectState:
        """Return a copy where ``node`` replaces the node with the same id."""
        return self.model_copy(update={"nodes": {**self.nodes, node.id: node}})

    def variable_ids(self) -> list[str]:
        """Ids of all ``value`` nodes."""
        return [node.id for node in self.nodes.values() if node.type is NodeKind.VALUE]
