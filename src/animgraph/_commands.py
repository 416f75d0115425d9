"""Reversible edits of a project.

Every edit is a :class:`Command`: a pair of pure functions from one
:class:`ProjectState` to the next. Commands close over the ids and property
records they captured when they were built, never over live nodes, so they
stay valid however many other edits happen in between.

Use the factories on :class:`Commands` to build them.
"""

from __future__ import annotations

import json
import logging
import re
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, TypeAlias

from ._enums import NodeKind, PropertyKind
from ._factory import create_node
from ._keyframes import find_keyframe, insert_keyframe, to_number
from ._models import Keyframe, Node, Property, PropertyPatch, ProjectState, PropertyStash, new_id
from ._refs import PropertyRef

logger = logging.getLogger(__name__)

Transform: TypeAlias = Callable[[ProjectState], ProjectState]


class CommandError(Exception):
    """A command could not be built against the given project."""


@dataclass(frozen=True, slots=True)
class Command:
    """A named, reversible edit.

    Attributes:
        name: Label shown in the history.
        undo: Maps the state after the edit to the state before it.
        redo: Maps the state before the edit to the state after it.
        id: Unique id of this command.
        timestamp: Creation time (seconds since the epoch).
        children: The commands a batch is made of; empty otherwise.

    """

    name: str
    undo: Transform
    redo: Transform
    id: str = field(default_factory=new_id)
    timestamp: float = field(default_factory=time.time)
    children: tuple[Command, ...] = ()


@dataclass(frozen=True, slots=True)
class AddNodeResult:
    command: Command
    node_id: str


def _next_node_id(kind: NodeKind, project: ProjectState) -> str:
    index = 0
    while f"{kind.id_prefix}_{index}" in project.nodes:
        index += 1
    return f"{kind.id_prefix}_{index}"


def _drop_node(state: ProjectState, node_id: str) -> ProjectState:
    return state.model_copy(
        update={
            "nodes": {k: v for k, v in state.nodes.items() if k != node_id},
            "root_node_ids": tuple(i for i in state.root_node_ids if i != node_id),
            "selection": None if state.selection == node_id else state.selection,
        },
    )


def _clamp_index(ids: Sequence[str], index: int) -> int:
    return min(max(index, 0), len(ids) - 1)


def _move(ids: Sequence[str], from_index: int, to_index: int) -> tuple[str, ...]:
    if not (0 <= from_index < len(ids) and 0 <= to_index < len(ids)):
        return tuple(ids)
    result = list(ids)
    moved = result.pop(from_index)
    result.insert(to_index, moved)
    return tuple(result)


def _rewrite_expression(source: str, old_id: str, new_id: str) -> str:
    source = re.sub(rf"""ctx\.get\(['"]{re.escape(old_id)}['"]""", lambda _: f"ctx.get('{new_id}'", source)
    return re.sub(rf"\b{re.escape(old_id)}\b", lambda _: new_id, source)


def _rewrite_property(prop: Property, old_id: str, new_id: str) -> Property:
    if prop.type is PropertyKind.REF and isinstance(prop.value, str):
        if prop.value.startswith(f"{old_id}{PropertyRef.SEPARATOR}"):
            suffix = prop.value.split(PropertyRef.SEPARATOR)[1]
            return prop.model_copy(update={"value": str(PropertyRef(new_id, suffix))})
    elif prop.type is PropertyKind.EXPRESSION:
        source = str(prop.value)
        rewritten = _rewrite_expression(source, old_id, new_id)
        if rewritten != source:
            return prop.model_copy(update={"value": rewritten})
    return prop


def _rename(state: ProjectState, old_id: str, new_id: str) -> ProjectState:
    if old_id not in state.nodes:
        return state

    nodes: dict[str, Node] = {}
    for key, node in state.nodes.items():
        if key == old_id:
            node = node.model_copy(update={"id": new_id})  # noqa: PLW2901
        properties = {k: _rewrite_property(p, old_id, new_id) for k, p in node.properties.items()}
        if any(properties[k] is not p for k, p in node.properties.items()):
            node = node.model_copy(update={"properties": properties})  # noqa: PLW2901
        nodes[node.id] = node

    return state.model_copy(
        update={
            "nodes": nodes,
            "root_node_ids": tuple(new_id if i == old_id else i for i in state.root_node_ids),
            "selection": new_id if state.selection == old_id else state.selection,
        },
    )


def _apply_patch(state: ProjectState, node_id: str, prop_key: str, patch: PropertyPatch) -> ProjectState:
    node = state.nodes.get(node_id)
    if node is None or prop_key not in node.properties:
        return state
    return state.with_node(node.with_property(prop_key, node.properties[prop_key].merged(patch)))


def infer_kind(value: Any) -> PropertyKind:
    """Property kind for a plain Python value; ``#``/``rgb`` strings are colours."""
    match value:
        case bool():
            return PropertyKind.BOOLEAN
        case str() if value.startswith(("#", "rgb")):
            return PropertyKind.COLOR
        case str():
            return PropertyKind.STRING
        case list() | tuple():
            return PropertyKind.ARRAY
        case dict():
            return PropertyKind.OBJECT
        case _:
            return PropertyKind.NUMBER


def _switched_value(prop: Property, stash: PropertyStash, target: PropertyKind) -> Any:
    if target is PropertyKind.EXPRESSION:
        if stash.last_expression is not None:
            return stash.last_expression
        wrapped = 0 if prop.type.is_derived else prop.value
        try:
            return f"return {json.dumps(wrapped)}"
        except (TypeError, ValueError):
            return f"return {wrapped!r}"

    if target is PropertyKind.REF:
        return ""

    if stash.last_value is not None and stash.last_type is target:
        return stash.last_value

    if prop.type is PropertyKind.EXPRESSION:
        defaults: dict[PropertyKind, Any] = {
            PropertyKind.NUMBER: 0,
            PropertyKind.STRING: "",
            PropertyKind.COLOR: "",
            PropertyKind.BOOLEAN: False,
            PropertyKind.ARRAY: [],
            PropertyKind.OBJECT: {},
        }
        return defaults.get(target, prop.value)

    match target:
        case PropertyKind.NUMBER:
            return to_number(prop.value)
        case PropertyKind.STRING:
            return "" if prop.value is None else str(prop.value)
        case PropertyKind.BOOLEAN:
            return bool(prop.value)
        case _:
            return prop.value


class Commands:
    """Factories for every kind of project edit."""

    @staticmethod
    def add_node(kind: NodeKind | str, project: ProjectState) -> AddNodeResult:
        """Add a default node of ``kind`` on top of the layer stack and select it.

        The id is ``<prefix>_<n>`` with the lowest unused ``n``; the prefix is
        ``var`` for value nodes and the kind name otherwise.
        """
        kind = NodeKind(kind)
        node = create_node(kind, _next_node_id(kind, project))

        def redo(state: ProjectState) -> ProjectState:
            return state.model_copy(
                update={
                    "nodes": {**state.nodes, node.id: node},
                    "root_node_ids": (node.id, *state.root_node_ids),
                    "selection": node.id,
                },
            )

        return AddNodeResult(
            command=Command(name=f"New {node.id}", undo=lambda s: _drop_node(s, node.id), redo=redo),
            node_id=node.id,
        )

    @staticmethod
    def remove_node(node_id: str, project: ProjectState) -> Command:
        """Delete a node. Undo puts it back at its layer position and selects it.

        Raises:
            CommandError: If the node does not exist.

        """
        node = project.nodes.get(node_id)
        if node is None:
            msg = f"Node {node_id} not found"
            raise CommandError(msg)
        original_index = project.root_node_ids.index(node_id) if node_id in project.root_node_ids else -1

        def restore(state: ProjectState) -> ProjectState:
            roots = list(state.root_node_ids)
            if 0 <= original_index <= len(roots):
                roots.insert(original_index, node_id)
            else:
                roots.append(node_id)
            return state.model_copy(
                update={
                    "nodes": {**state.nodes, node_id: node},
                    "root_node_ids": tuple(roots),
                    "selection": node_id,
                },
            )

        return Command(name=f"Delete {node_id}", undo=restore, redo=lambda s: _drop_node(s, node_id))

    @staticmethod
    def rename_node(old_id: str, new_id: str, project: ProjectState) -> Command | None:
        """Change a node id and every reference to it.

        Refs of the form ``"<old>:<key>"`` are relinked; in expressions,
        ``ctx.get('<old>'`` calls and whole-word occurrences of the old id are
        rewritten.

        Returns:
            The command, or None when either id is empty after stripping, the
            ids are equal, ``new_id`` is taken or ``old_id`` does not exist.

        """
        from_id, to_id = old_id.strip(), new_id.strip()
        if not from_id or not to_id or from_id == to_id:
            return None
        if to_id in project.nodes or from_id not in project.nodes:
            logger.debug("Rename %s -> %s rejected", from_id, to_id)
            return None

        return Command(
            name=f"Rename {from_id} -> {to_id}",
            undo=lambda s: _rename(s, to_id, from_id),
            redo=lambda s: _rename(s, from_id, to_id),
        )

    @staticmethod
    def reorder_node(from_index: int, to_index: int) -> Command:
        """Move the layer at ``from_index`` to ``to_index``.

        ``to_index`` is clamped to the layer stack, so a too large or negative
        target moves the layer to the bottom or the top. An out-of-range
        ``from_index`` makes both directions a no-op.
        """

        def redo(state: ProjectState) -> ProjectState:
            ids = state.root_node_ids
            return state.model_copy(update={"root_node_ids": _move(ids, from_index, _clamp_index(ids, to_index))})

        def undo(state: ProjectState) -> ProjectState:
            ids = state.root_node_ids
            return state.model_copy(update={"root_node_ids": _move(ids, _clamp_index(ids, to_index), from_index)})

        return Command(name="Reorder Node", undo=undo, redo=redo)

    @staticmethod
    def move_node_up(node_id: str, project: ProjectState) -> Command | None:
        """Raise a node one layer (towards index 0). None if already on top or unknown."""
        if node_id not in project.root_node_ids:
            return None
        index = project.root_node_ids.index(node_id)
        if index == 0:
            return None
        return Commands.reorder_node(index, index - 1)

    @staticmethod
    def move_node_down(node_id: str, project: ProjectState) -> Command | None:
        """Lower a node one layer. None if already at the bottom or unknown."""
        if node_id not in project.root_node_ids:
            return None
        index = project.root_node_ids.index(node_id)
        if index == len(project.root_node_ids) - 1:
            return None
        return Commands.reorder_node(index, index + 1)

    @staticmethod
    def move_node(node_id: str, from_pos: tuple[float, float], to_pos: tuple[float, float]) -> Command:
        """Set the ``x``/``y`` values of a node, as at the end of a drag."""

        def place(state: ProjectState, pos: tuple[float, float]) -> ProjectState:
            state = _apply_patch(state, node_id, "x", {"value": pos[0]})
            return _apply_patch(state, node_id, "y", {"value": pos[1]})

        return Command(name=f"Move {node_id}", undo=lambda s: place(s, from_pos), redo=lambda s: place(s, to_pos))

    @staticmethod
    def set(  # noqa: PLR0913
        project: ProjectState,
        node_id: str,
        prop_key: str,
        new_partial: PropertyPatch,
        old_partial: PropertyPatch | None = None,
        label: str | None = None,
    ) -> Command:
        """Change some fields of a property.

        The patch is shallow-merged onto the property, so fields it does not
        mention (such as ``keyframes`` when only ``type`` changes) are kept.

        Args:
            project: State the previous record is captured from.
            node_id: Node owning the property.
            prop_key: Key of the property.
            new_partial: Fields to change.
            old_partial: Fields restored by undo. Captured now from ``project``
                when omitted, not when the command is applied.
            label: History label; defaults to ``"Set <prop_key>"``.

        Raises:
            CommandError: If the node or the property does not exist.
            ValueError: If a patch names an unknown field.

        """
        prop = project.get_property(node_id, prop_key)
        if prop is None:
            msg = f"Property {node_id}:{prop_key} not found"
            raise CommandError(msg)

        previous = dict(old_partial) if old_partial is not None else prop.snapshot()
        following = {**previous, **new_partial}
        # Fail at construction, not at apply time.
        prop.merged(following)

        return Command(
            name=label or f"Set {prop_key}",
            undo=lambda s: _apply_patch(s, node_id, prop_key, previous),
            redo=lambda s: _apply_patch(s, node_id, prop_key, following),
        )

    @staticmethod
    def batch(commands: Sequence[Command], label: str) -> Command:
        """Combine commands into one step: redo in order, undo in reverse."""
        steps = tuple(commands)

        def redo(state: ProjectState) -> ProjectState:
            for command in steps:
                state = command.redo(state)
            return state

        def undo(state: ProjectState) -> ProjectState:
            for command in reversed(steps):
                state = command.undo(state)
            return state

        return Command(name=label, undo=undo, redo=redo, children=steps)

    @staticmethod
    def clear_project(project: ProjectState) -> Command:
        """Remove every node."""
        nodes, roots, selection = project.nodes, project.root_node_ids, project.selection
        return Command(
            name="Clear Project",
            undo=lambda s: s.model_copy(update={"nodes": nodes, "root_node_ids": roots, "selection": selection}),
            redo=lambda s: s.model_copy(update={"nodes": {}, "root_node_ids": (), "selection": None}),
        )

    @staticmethod
    def switch_property_type(
        project: ProjectState,
        node_id: str,
        prop_key: str,
        target: PropertyKind | str,
    ) -> Command | None:
        """Change the kind of a property, keeping what it held before in its stash.

        Leaving an expression stashes its source; leaving a literal kind
        stashes the value and kind. Switching back restores the stashed
        content, otherwise a value is derived from the current one.

        Returns:
            The command, or None when the property already has that kind.

        Raises:
            CommandError: If the property does not exist.

        """
        target = PropertyKind(target)
        prop = project.get_property(node_id, prop_key)
        if prop is None:
            msg = f"Property {node_id}:{prop_key} not found"
            raise CommandError(msg)
        if prop.type is target:
            return None

        stash = prop.meta or PropertyStash()
        if prop.type is PropertyKind.EXPRESSION:
            stash = stash.model_copy(update={"last_expression": str(prop.value)})
        elif prop.type is not PropertyKind.REF:
            stash = stash.model_copy(update={"last_value": prop.value, "last_type": prop.type})

        update = {"type": target, "value": _switched_value(prop, stash, target), "meta": stash}
        old = {"type": prop.type, "value": prop.value, "meta": prop.meta}
        return Commands.set(project, node_id, prop_key, update, old, f"Change {prop_key} Type")

    @staticmethod
    def toggle_keyframe(
        project: ProjectState,
        node_id: str,
        prop_key: str,
        time: float,
        value: Any,
    ) -> Command:
        """Remove the keyframe at ``time`` or add one with ``value``.

        A keyframe within :data:`~animgraph._keyframes.KEYFRAME_TOLERANCE` of
        ``time`` counts as being at that time. Expression and ref properties
        are first turned into a literal of the kind inferred from ``value``.

        Raises:
            CommandError: If the property does not exist.

        """
        prop = project.get_property(node_id, prop_key)
        if prop is None:
            msg = f"Property {node_id}:{prop_key} not found"
            raise CommandError(msg)

        patch: dict[str, Any] = {}
        if prop.type.is_derived:
            patch = {"type": infer_kind(value), "value": value}
            keyframes: tuple[Keyframe, ...] = ()
        else:
            keyframes = prop.keyframes

        existing = find_keyframe(keyframes, time)
        if existing is not None:
            patch["keyframes"] = tuple(kf for kf in keyframes if kf.id != existing.id)
            label = f"Remove Keyframe {prop_key}"
        else:
            patch["keyframes"] = insert_keyframe(keyframes, Keyframe(time=time, value=value))
            label = f"Add Keyframe {prop_key}"
        return Commands.set(project, node_id, prop_key, patch, label=label)

