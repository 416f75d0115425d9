"""Node handles: the objects scripts use to read and edit nodes."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, NoReturn, Protocol

from animgraph._commands import Command, Commands, CommandError, infer_kind
from animgraph._enums import LogLevel, NodeKind, PropertyKind
from animgraph._eval_engine import EvaluationContext
from animgraph._models import AudioFrame, ProjectState
from animgraph._sandbox import HostObject, SandboxFunction, check_attribute, unwrap

logger = logging.getLogger(__name__)


class ScriptError(Exception):
    """A script asked for something that cannot be done, such as setting an unknown property."""


class ScriptLogger(Protocol):
    def log(self, level: LogLevel, args: list[Any]) -> None: ...


def _parse_number(value: Any) -> Any:
    """Numeric form of ``value``, or ``value`` itself when it does not parse.

    Unparsable strings are kept as they are; the evaluator reads them as 0.
    """
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int | float):
        return value
    try:
        return float(str(value).strip() or 0)
    except ValueError:
        return value


class ScriptContext:
    """Shared state of the handles of one script run.

    Reads go through ``project_getter`` and writes through ``commit``, which
    during a script are the working state and the pending command list.
    """

    def __init__(
        self,
        project_getter: Callable[[], ProjectState],
        commit: Callable[[Command], None],
        log: ScriptLogger,
    ) -> None:
        self.project_getter = project_getter
        self.commit = commit
        self.logger = log
        self._handles: dict[str, NodeHandle] = {}

    @property
    def project(self) -> ProjectState:
        return self.project_getter()

    def log(self, level: LogLevel, *args: Any) -> None:
        self.logger.log(level, list(args))

    def evaluate(self, node_id: str, prop_key: str) -> Any:
        project = self.project
        return EvaluationContext(project, project.meta.current_time).get(node_id, prop_key)

    def handle(self, node_id: str) -> NodeHandle:
        """The handle of a node, created on first use."""
        handle = self._handles.get(node_id)
        if handle is None:
            handle = self._handles[node_id] = NodeHandle(self, node_id)
        return handle

    def rekey(self, old_id: str, new_id: str) -> None:
        handle = self._handles.pop(old_id, None)
        if handle is not None:
            self._handles[new_id] = handle

    def forget(self, node_id: str | None = None) -> None:
        """Drop one cached handle, or all of them."""
        if node_id is None:
            self._handles.clear()
        else:
            self._handles.pop(node_id, None)


class NodeHandle(HostObject):
    """Script-side view of a node.

    ``handle.x`` reads the evaluated ``x`` property of the node in the current
    working state; ``handle.x = 5`` records a ``set`` command. A handle keeps
    following its node when the script renames it.
    """

    def __init__(self, context: ScriptContext, node_id: str) -> None:
        self._context = context
        self._node_id = node_id

    @property
    def node_id(self) -> str:
        return self._node_id

    def __repr__(self) -> str:
        return f"NodeHandle({self._node_id!r})"

    def __str__(self) -> str:
        node = self._context.project.nodes.get(self._node_id)
        if node is None or "value" not in node.properties:
            return f"[Node: {self._node_id}]"
        return str(self.resolve())

    def resolve(self) -> Any:
        """The evaluated ``value`` property; None when the node has none."""
        node = self._context.project.nodes.get(self._node_id)
        if node is None or "value" not in node.properties:
            return None
        return self._context.evaluate(self._node_id, "value")

    def get(self, name: str) -> Any:
        node = self._context.project.nodes.get(self._node_id)
        if node is None:
            return None
        if name in node.properties:
            return self._context.evaluate(self._node_id, name)

        if node.type is NodeKind.VALUE and "value" in node.properties:
            inner = self._context.evaluate(self._node_id, "value")
            if isinstance(inner, dict) and name in inner:
                return inner[name]
            if not isinstance(inner, dict) and hasattr(inner, name):
                check_attribute(name)
                return getattr(inner, name)

        if name == "id":
            return node.id
        if name == "type":
            return node.type.value
        return None

    def call(self, *args: Any, **kwargs: Any) -> Any:
        node = self._context.project.nodes.get(self._node_id)
        if node is not None and node.type is NodeKind.VALUE and "value" in node.properties:
            function = self._context.evaluate(self._node_id, "value")
            if callable(function):
                return function(*args, **kwargs)
        return super().call(*args, **kwargs)

    def set(self, name: str, value: Any) -> None:
        project = self._context.project
        node = project.nodes.get(self._node_id)
        if node is None:
            self._fail(LogLevel.ERROR, f"Cannot set '{name}' of undefined node '{self._node_id}'.")

        if name == "id":
            self._rename(str(unwrap(value)).strip())
            return

        if name not in node.properties:
            self._fail(LogLevel.WARN, f"Property '{name}' does not exist on node '{self._node_id}'")

        update = self._property_update(name, value)
        try:
            command = Commands.set(project, self._node_id, name, update, label=f"Script: Set {name}")
        except (CommandError, ValueError) as e:
            self._fail(LogLevel.ERROR, f"Error setting {self._node_id}.{name}: {e}")
        self._context.commit(command)

    def _fail(self, level: LogLevel, message: str) -> NoReturn:
        self._context.log(level, message)
        raise ScriptError(message)

    def _rename(self, new_id: str) -> None:
        if new_id == self._node_id:
            return
        command = Commands.rename_node(self._node_id, new_id, self._context.project)
        if command is None:
            self._fail(LogLevel.WARN, f"Cannot rename '{self._node_id}' to '{new_id}'. ID might be taken or invalid.")
        self._context.commit(command)
        self._context.rekey(self._node_id, new_id)
        self._node_id = new_id

    def _property_update(self, name: str, value: Any) -> dict[str, Any]:
        project = self._context.project
        if isinstance(value, NodeHandle):
            source = project.nodes.get(value.node_id)
            if source is None or source.type is not NodeKind.VALUE:
                return {"type": PropertyKind.NUMBER, "value": 0}
            snapshot = value.resolve()
            source_prop = source.properties.get("value")
            if (source_prop is not None and source_prop.type is PropertyKind.FUNCTION) or callable(snapshot):
                return {"type": PropertyKind.EXPRESSION, "value": f"return {value.node_id}"}
            kind = infer_kind(snapshot)
            return {"type": PropertyKind.STRING if kind is PropertyKind.COLOR else kind, "value": snapshot}

        if isinstance(value, SandboxFunction):
            return {"type": PropertyKind.EXPRESSION, "value": value.to_expression_source()}

        node = project.nodes[self._node_id]
        kind = node.properties[name].type
        if node.type is NodeKind.VALUE and name == "value" and value is not None:
            kind = infer_kind(value)

        match kind:
            case PropertyKind.NUMBER:
                value = _parse_number(value)
                if not isinstance(value, int | float | str):
                    message = f"Cannot set {self._node_id}.{name}: {type(value).__name__} is not a number"
                    self._fail(LogLevel.ERROR, message)
            case PropertyKind.STRING | PropertyKind.COLOR:
                value = str(value)
            case PropertyKind.BOOLEAN:
                value = bool(value)
            case PropertyKind.EXPRESSION | PropertyKind.REF:
                if isinstance(value, bool):
                    kind = PropertyKind.BOOLEAN
                elif isinstance(value, int | float):
                    kind = PropertyKind.NUMBER
                elif isinstance(value, str):
                    kind = PropertyKind.STRING
            case PropertyKind.ARRAY if isinstance(value, tuple):
                value = list(value)
        return {"type": kind, "value": value}


class ScriptCtx:
    """The ``ctx`` object of scripts: silent audio and reads of the working state."""

    def __init__(self, context: ScriptContext) -> None:
        self._context = context
        self.audio = AudioFrame()

    def get(self, node_id: str, prop_key: str) -> Any:
        return self._context.evaluate(node_id, prop_key)
