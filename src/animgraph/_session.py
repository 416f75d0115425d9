"""An editing session: the project, its history and its console."""

import logging
from typing import Any

from ._commands import Command, Commands
from ._console import ConsoleLog
from ._enums import LogLevel, NodeKind, PropertyKind
from ._eval_engine import EvaluationContext, FrameResult, evaluate_frame
from ._factory import initial_project
from ._graph import expression_cycle_targets, would_create_cycle
from ._history import DEFAULT_LIMIT, History
from ._models import AudioFrame, PropertyPatch, ProjectState
from ._refs import PropertyRef
from ._scripting import execute_script

logger = logging.getLogger(__name__)


class Session:
    """Everything an editor front end needs to drive a project.

    Structural edits go straight through the command engine into the
    history. Property edits made while the user is still typing or dragging
    are applied with :meth:`update_property`, which bypasses the history,
    and turned into one undoable command by :meth:`commit_property`.

    Args:
        project: The project to edit. Defaults to the demo project.
        console: Console receiving expression and script output.
        history_limit: Maximum number of undoable steps.

    """

    def __init__(
        self,
        project: ProjectState | None = None,
        console: ConsoleLog | None = None,
        history_limit: int = DEFAULT_LIMIT,
    ) -> None:
        self.history = History(project if project is not None else initial_project(), limit=history_limit)
        self.console = console if console is not None else ConsoleLog()
        # Property records captured when a live edit started, per property.
        self._snapshots: dict[PropertyRef, dict[str, Any]] = {}

    @property
    def project(self) -> ProjectState:
        return self.history.state

    # --- history ------------------------------------------------------------

    def commit(self, command: Command) -> None:
        self.history.commit(command)

    def undo(self) -> bool:
        return self.history.undo()

    def redo(self) -> bool:
        return self.history.redo()

    def jump_to_history(self, index: int) -> None:
        self.history.jump_to(index)

    # --- structure ----------------------------------------------------------

    def add_node(self, kind: NodeKind | str) -> str:
        result = Commands.add_node(kind, self.project)
        self.commit(result.command)
        return result.node_id

    def remove_node(self, node_id: str) -> bool:
        if node_id not in self.project.nodes:
            return False
        self.commit(Commands.remove_node(node_id, self.project))
        return True

    def rename_node(self, old_id: str, new_id: str) -> bool:
        command = Commands.rename_node(old_id, new_id, self.project)
        if command is None:
            return False
        self.commit(command)
        return True

    def reorder_node(self, from_index: int, to_index: int) -> None:
        if from_index == to_index:
            return
        self.commit(Commands.reorder_node(from_index, to_index))

    def clear(self) -> None:
        self.commit(Commands.clear_project(self.project))

    # --- transient state (not recorded) -------------------------------------

    def select(self, node_id: str | None) -> None:
        self.history.replace_state(self.project.model_copy(update={"selection": node_id}))

    def update_meta(self, **changes: Any) -> None:
        meta = self.project.meta.model_copy(update=changes)
        self.history.replace_state(self.project.model_copy(update={"meta": meta}))

    def set_time(self, time: float) -> None:
        """Seek; stops playback."""
        self.update_meta(current_time=time, is_playing=False)

    def toggle_play(self) -> None:
        self.update_meta(is_playing=not self.project.meta.is_playing)

    def tick(self, delta: float) -> None:
        """Advance playback by ``delta`` seconds, wrapping to 0 after the duration."""
        meta = self.project.meta
        if not meta.is_playing:
            return
        next_time = meta.current_time + delta
        if next_time > meta.duration:
            next_time = 0.0
        self.update_meta(current_time=next_time)

    # --- property edits -----------------------------------------------------

    def update_property(self, node_id: str, prop_key: str, patch: PropertyPatch) -> None:
        """Apply a live edit without recording it.

        The property record as it was before the first live edit is kept
        until :meth:`commit_property` or :meth:`cancel_property`.
        """
        prop = self.project.get_property(node_id, prop_key)
        if prop is None:
            return
        self._snapshots.setdefault(PropertyRef(node_id, prop_key), prop.snapshot())
        node = self.project.nodes[node_id]
        self.history.replace_state(self.project.with_node(node.with_property(prop_key, prop.merged(patch))))

    def commit_property(self, node_id: str, prop_key: str, label: str | None = None) -> bool:
        """Record the live edits of a property as one undoable step.

        Returns:
            True if a command was recorded, False when nothing changed.

        """
        before = self._snapshots.pop(PropertyRef(node_id, prop_key), None)
        prop = self.project.get_property(node_id, prop_key)
        if before is None or prop is None:
            return False
        after = prop.snapshot()
        if after == before:
            return False
        self.history.record(Commands.set(self.project, node_id, prop_key, after, before, label))
        return True

    def cancel_property(self, node_id: str, prop_key: str) -> None:
        """Discard live edits of a property, restoring the record from before them."""
        before = self._snapshots.pop(PropertyRef(node_id, prop_key), None)
        prop = self.project.get_property(node_id, prop_key)
        if before is None or prop is None:
            return
        node = self.project.nodes[node_id]
        self.history.replace_state(self.project.with_node(node.with_property(prop_key, prop.merged(before))))

    def set_property(self, node_id: str, prop_key: str, patch: PropertyPatch, label: str | None = None) -> bool:
        """Commit a property edit directly.

        Returns:
            Whether the new value closes a reference cycle. The edit is made
            either way; the flag is for the user.

        """
        self.commit(Commands.set(self.project, node_id, prop_key, patch, label=label))
        return self.has_cycle(node_id, prop_key)

    def has_cycle(self, node_id: str, prop_key: str) -> bool:
        """Whether a ref or expression property currently reads itself back."""
        prop = self.project.get_property(node_id, prop_key)
        if prop is None:
            return False
        if prop.type is PropertyKind.REF:
            target = PropertyRef.parse(prop.value)
            return target is not None and would_create_cycle(
                self.project.nodes, node_id, prop_key, target.node_id, target.prop_key
            )
        if prop.type is PropertyKind.EXPRESSION:
            return bool(expression_cycle_targets(self.project.nodes, node_id, prop_key, str(prop.value)))
        return False

    def switch_property_type(self, node_id: str, prop_key: str, target: PropertyKind | str) -> None:
        command = Commands.switch_property_type(self.project, node_id, prop_key, target)
        if command is not None:
            self.commit(command)

    def toggle_keyframe(self, node_id: str, prop_key: str, time: float | None = None) -> None:
        """Add or remove a keyframe holding the property's current value."""
        time = self.project.meta.current_time if time is None else time
        value = EvaluationContext(self.project, time).get(node_id, prop_key)
        self.commit(Commands.toggle_keyframe(self.project, node_id, prop_key, time, value))

    # --- scripts and evaluation ---------------------------------------------

    def run_script(self, source: str) -> bool:
        """Run a script; all of its edits become a single history entry."""
        self.console.log(LogLevel.INFO, "> Running Script...")
        committed: list[Command] = []

        def commit(command: Command) -> None:
            committed.append(command)
            self.commit(command)

        ok = execute_script(source, lambda: self.project, commit, self.console)
        if not ok:
            return False
        if committed:
            count = sum(len(command.children) for command in committed)
            self.console.log(LogLevel.INFO, f"Script executed. {count} operations committed.")
        else:
            self.console.log(LogLevel.INFO, "Script executed (No changes made).")
        return True

    def evaluate(self, time: float | None = None, audio: AudioFrame | None = None) -> FrameResult:
        """Evaluate the whole project, by default at the current time."""
        return evaluate_frame(self.project, time, audio=audio, console=self.console)
