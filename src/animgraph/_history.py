"""Undo/redo stacks of commands."""

import logging
from collections.abc import Callable
from typing import TypeAlias

from ._commands import Command
from ._models import ProjectState

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 50

StateListener: TypeAlias = Callable[[ProjectState], None]


class History:
    """The current project state plus the commands that led to it.

    ``past`` holds applied commands, oldest first. ``future`` holds undone
    commands, ``future[0]`` being the next one to redo. Committing a new
    command discards ``future``. Once ``past`` grows beyond ``limit`` its
    oldest entries are dropped and can no longer be undone.
    """

    def __init__(self, state: ProjectState, limit: int = DEFAULT_LIMIT) -> None:
        if limit < 1:
            msg = f"History limit must be positive, got {limit}"
            raise ValueError(msg)
        self._state = state
        self._limit = limit
        self._past: list[Command] = []
        self._future: list[Command] = []
        self._listeners: list[StateListener] = []

    @property
    def state(self) -> ProjectState:
        return self._state

    @property
    def past(self) -> tuple[Command, ...]:
        return tuple(self._past)

    @property
    def future(self) -> tuple[Command, ...]:
        return tuple(self._future)

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def can_undo(self) -> bool:
        return bool(self._past)

    @property
    def can_redo(self) -> bool:
        return bool(self._future)

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Call ``listener`` with the new state after every change.

        Returns:
            A function that removes the listener again.

        """
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _set_state(self, state: ProjectState) -> None:
        self._state = state
        for listener in list(self._listeners):
            listener(state)

    def _push(self, command: Command) -> None:
        self._past.append(command)
        self._future.clear()
        overflow = len(self._past) - self._limit
        if overflow > 0:
            logger.debug("History full, dropping %d oldest command(s)", overflow)
            del self._past[:overflow]

    def commit(self, command: Command) -> None:
        """Apply a command and record it."""
        logger.debug("Commit: %s", command.name)
        state = command.redo(self._state)
        self._push(command)
        self._set_state(state)

    def record(self, command: Command) -> None:
        """Record a command whose effect is already part of the current state.

        Used for live edits: the state is updated while the user drags or
        types, and the command is recorded once the edit is finished.
        """
        logger.debug("Record: %s", command.name)
        self._push(command)
        self._set_state(self._state)

    def replace_state(self, state: ProjectState) -> None:
        """Set the state without touching the stacks (live edits, playback)."""
        self._set_state(state)

    def undo(self) -> bool:
        """Revert the last command. Returns False when there is nothing to undo."""
        if not self._past:
            return False
        command = self._past[-1]
        logger.debug("Undo: %s", command.name)
        state = command.undo(self._state)
        self._future.insert(0, self._past.pop())
        self._set_state(state)
        return True

    def redo(self) -> bool:
        """Re-apply the next undone command. Returns False when there is none."""
        if not self._future:
            return False
        command = self._future[0]
        logger.debug("Redo: %s", command.name)
        state = command.redo(self._state)
        self._past.append(self._future.pop(0))
        self._set_state(state)
        return True

    def jump_to(self, index: int) -> None:
        """Return to the state right after ``past[index]`` was applied.

        All later commands are undone at once and move to the front of
        ``future`` in redo order. Out-of-range indices are ignored.
        """
        steps = len(self._past) - 1 - index
        if index < 0 or steps <= 0:
            return

        state = self._state
        undone: list[Command] = []
        for _ in range(steps):
            command = self._past.pop()
            state = command.undo(state)
            undone.insert(0, command)
        logger.debug("Jump to history entry %d (%d undone)", index, steps)
        self._future[:0] = undone
        self._set_state(state)
