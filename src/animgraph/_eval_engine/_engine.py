"""Per-frame property evaluation."""

import copy
import logging
from collections.abc import Iterator, Mapping
from typing import Any, Final

from animgraph._console import ConsoleLog
from animgraph._enums import LogLevel, NodeKind, PropertyKind
from animgraph._keyframes import interpolate_keyframes, to_number
from animgraph._models import AudioFrame, Property, ProjectState
from animgraph._refs import PropertyRef
from animgraph._sandbox import Scope, compile_source, describe_error

logger = logging.getLogger(__name__)

MAX_DEPTH: Final = 20
"""Deepest chain of ref/expression lookups followed before giving up."""

_SCALAR_KINDS: Final = frozenset({PropertyKind.NUMBER, PropertyKind.STRING, PropertyKind.COLOR})


class EvaluationContext:
    """Cross-node accessor used while evaluating one frame.

    Attributes:
        project: The project state being rendered.
        time: The frame time in seconds.
        audio: Audio analysis for the frame.
        console: Where expression output and errors go. None discards them.

    """

    def __init__(
        self,
        project: ProjectState,
        time: float | None = None,
        *,
        audio: AudioFrame | None = None,
        console: ConsoleLog | None = None,
    ) -> None:
        self.project = project
        self.time = project.meta.current_time if time is None else time
        self.audio = audio or AudioFrame()
        self.console = console

    def get(self, node_id: str, prop_key: str, depth: int = 0) -> Any:
        """Evaluate another property. Missing nodes and properties resolve to 0."""
        prop = self.project.get_property(node_id, prop_key)
        if prop is None:
            return 0
        return evaluate_property(prop, self.time, self, depth, PropertyRef(node_id, prop_key))


class _ExpressionCtx:
    """The ``ctx`` object visible to expressions."""

    __slots__ = ("_context", "_depth", "audio")

    def __init__(self, context: EvaluationContext | None, depth: int) -> None:
        self._context = context
        self._depth = depth
        self.audio = context.audio if context is not None else AudioFrame()

    def get(self, node_id: str, prop_key: str) -> Any:
        if self._context is None:
            return 0
        return self._context.get(node_id, prop_key, self._depth + 1)


class _ExpressionConsole:
    """The ``console`` object visible to expressions."""

    __slots__ = ("_console", "_enabled", "_source")

    def __init__(self, console: ConsoleLog | None, source: PropertyRef | None, *, enabled: bool) -> None:
        self._console = console
        self._source = source
        self._enabled = enabled

    def _emit(self, level: LogLevel, args: tuple[Any, ...]) -> None:
        if self._console is None or self._source is None or not self._enabled:
            return
        self._console.log(level, args, self._source.node_id, self._source.prop_key)

    def log(self, *args: Any) -> None:
        self._emit(LogLevel.INFO, args)

    def warn(self, *args: Any) -> None:
        self._emit(LogLevel.WARN, args)

    def error(self, *args: Any) -> None:
        self._emit(LogLevel.ERROR, args)


class _VariableLookup(Mapping[str, Any]):
    """Resolves bare identifiers that name a ``value`` node to that node's value."""

    def __init__(self, context: EvaluationContext, depth: int) -> None:
        self._context = context
        self._depth = depth

    def _ids(self) -> list[str]:
        return self._context.project.variable_ids()

    def __contains__(self, name: object) -> bool:
        node = self._context.project.nodes.get(name) if isinstance(name, str) else None
        return node is not None and node.type is NodeKind.VALUE

    def __getitem__(self, name: str) -> Any:
        if name not in self:
            raise KeyError(name)
        return self._context.get(name, "value", self._depth + 1)

    def __iter__(self) -> Iterator[str]:
        return iter(self._ids())

    def __len__(self) -> int:
        return len(self._ids())


def _detach(value: Any) -> Any:
    """Copy mutable containers so callers cannot alter stored project data."""
    if isinstance(value, dict | list):
        return copy.deepcopy(value)
    return value


def _evaluate_expression(
    prop: Property,
    time: float,
    context: EvaluationContext | None,
    depth: int,
    debug_info: PropertyRef | None,
) -> Any:
    source = "" if prop.value is None else str(prop.value)
    console = context.console if context is not None else None

    should_log = True
    if debug_info is not None and console is not None:
        should_log = console.should_log(debug_info.node_id, debug_info.prop_key, time, source)

    def sibling(key: str) -> Any:
        if debug_info is None or context is None:
            return 0
        return context.get(debug_info.node_id, key, depth + 1)

    scope = Scope(
        {
            "t": time,
            "val": 0,
            "ctx": _ExpressionCtx(context, depth),
            "prop": sibling,
            "console": _ExpressionConsole(console, debug_info, enabled=should_log),
        },
        fallback=_VariableLookup(context, depth) if context is not None else None,
        protected=True,
    )

    try:
        return compile_source(source).run(scope)
    except Exception as e:  # noqa: BLE001 - any failure of user code yields 0 for this frame
        logger.debug("Expression %s failed at t=%s: %s", debug_info, time, e)
        if console is not None and debug_info is not None and should_log:
            console.log(LogLevel.ERROR, [describe_error(e)], debug_info.node_id, debug_info.prop_key)
        return 0


def evaluate_property(
    prop: Property | None,
    time: float,
    context: EvaluationContext | None = None,
    depth: int = 0,
    debug_info: PropertyRef | None = None,
) -> Any:
    """Resolve the value of a property at a point in time.

    Args:
        prop: The property to evaluate. None yields None.
        time: Frame time in seconds.
        context: Accessor for other properties, audio and the console.
        depth: Number of ref/expression hops already followed.
        debug_info: Address of ``prop``; enables ``prop()``, console output
            and error reporting for expressions.

    Returns:
        The resolved value. Never raises for user errors: failing expressions
        and broken refs evaluate to 0.

    """
    if prop is None:
        return None

    if depth > MAX_DEPTH:
        logger.debug("Depth limit reached at %s", debug_info)
        return prop.value if prop.type in _SCALAR_KINDS else 0

    if prop.type is PropertyKind.EXPRESSION:
        return _evaluate_expression(prop, time, context, depth, debug_info)

    if prop.type is PropertyKind.REF:
        target = PropertyRef.parse(prop.value)
        if target is None or context is None:
            return 0
        return context.get(target.node_id, target.prop_key, depth + 1)

    if prop.keyframes:
        return _detach(interpolate_keyframes(prop.keyframes, time, prop.type))

    if prop.type is PropertyKind.NUMBER:
        return to_number(prop.value)

    return _detach(prop.value)
