"""User-facing console for expression and script output.

The console is passed explicitly to the evaluator and to the scripting layer.
It keeps a bounded buffer of entries and groups repeated messages coming from
the same property into a single entry with a counter, so a failing expression
evaluated at 60 fps produces one line instead of thousands.
"""

import json
import logging
import time
import uuid
from collections import deque
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from itertools import count
from typing import Any, TypeAlias

from ._enums import LogLevel
from ._refs import PropertyRef

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 1000

Listener: TypeAlias = Callable[[list["LogEntry"]], None]

_sequence = count()


@dataclass(slots=True)
class LogEntry:
    level: LogLevel
    message: str
    node_id: str | None = None
    prop_key: str | None = None
    count: int = 1
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    timestamp: float = field(default_factory=time.time)
    sequence: int = field(default_factory=lambda: next(_sequence))

    @property
    def source(self) -> PropertyRef | None:
        if self.node_id is None or self.prop_key is None:
            return None
        return PropertyRef(self.node_id, self.prop_key)


def format_message(args: Iterable[Any]) -> str:
    """Join log arguments with spaces, rendering containers as JSON."""
    parts: list[str] = []
    for arg in args:
        if isinstance(arg, dict | list | tuple):
            try:
                parts.append(json.dumps(arg))
            except (TypeError, ValueError):
                parts.append(str(arg))
        else:
            parts.append(str(arg))
    return " ".join(parts)


class ConsoleLog:
    """Bounded, de-duplicating log buffer."""

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        self._entries: deque[LogEntry] = deque(maxlen=max_entries)
        self._listeners: set[Listener] = set()
        # Properties whose expression field currently has focus.
        self._editing: set[PropertyRef] = set()
        self._last_by_source: dict[PropertyRef, LogEntry] = {}
        # (time, source) of the last evaluation allowed to log, per property.
        self._last_evaluation: dict[PropertyRef, tuple[float, str]] = {}

    @property
    def entries(self) -> list[LogEntry]:
        return list(self._entries)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener called with a copy of the entries on every change.

        Returns:
            A function that removes the listener again.

        """
        self._listeners.add(listener)
        return lambda: self._listeners.discard(listener)

    def _notify(self) -> None:
        snapshot = self.entries
        for listener in list(self._listeners):
            listener(snapshot)

    def clear(self) -> None:
        self._entries.clear()
        self._last_by_source.clear()
        self._notify()

    def start_editing(self, node_id: str, prop_key: str) -> None:
        self._editing.add(PropertyRef(node_id, prop_key))

    def stop_editing(self, node_id: str, prop_key: str) -> None:
        self._editing.discard(PropertyRef(node_id, prop_key))

    def is_editing(self, node_id: str, prop_key: str) -> bool:
        return PropertyRef(node_id, prop_key) in self._editing

    def should_log(self, node_id: str, prop_key: str, time: float, source: str) -> bool:
        """Decide whether an expression evaluation may write to the console.

        Returns False when the property was last evaluated at the same time with
        the same source, which is what happens while playback is paused and the
        frame is rendered again.
        """
        key = PropertyRef(node_id, prop_key)
        if self._last_evaluation.get(key) == (time, source):
            return False
        self._last_evaluation[key] = (time, source)
        return True

    def _is_retained(self, entry: LogEntry) -> bool:
        return bool(self._entries) and entry.sequence >= self._entries[0].sequence

    def log(
        self,
        level: LogLevel | str,
        args: Iterable[Any] | str,
        node_id: str | None = None,
        prop_key: str | None = None,
    ) -> None:
        level = LogLevel(level)
        message = args if isinstance(args, str) else format_message(args)
        source = PropertyRef(node_id, prop_key) if node_id is not None and prop_key is not None else None

        if source is not None:
            if level is LogLevel.ERROR and source in self._editing:
                return

            # Group by source so interleaved output of two properties still collapses.
            last = self._last_by_source.get(source)
            if last is not None and self._is_retained(last) and last.message == message and last.level is level:
                self._bump(last)
                return

        if self._entries:
            tail = self._entries[-1]
            if (
                tail.message == message
                and tail.level is level
                and tail.node_id == node_id
                and tail.prop_key == prop_key
            ):
                self._bump(tail)
                return

        entry = LogEntry(level=level, message=message, node_id=node_id, prop_key=prop_key)
        self._entries.append(entry)
        if source is not None:
            self._last_by_source[source] = entry
        logger.debug("[%s] %s%s", level, f"{source} " if source else "", message)
        self._notify()

    def _bump(self, entry: LogEntry) -> None:
        entry.count += 1
        entry.timestamp = time.time()
        self._notify()

    def info(self, *args: Any) -> None:
        self.log(LogLevel.INFO, args)

    def warn(self, *args: Any) -> None:
        self.log(LogLevel.WARN, args)

    def error(self, *args: Any) -> None:
        self.log(LogLevel.ERROR, args)
