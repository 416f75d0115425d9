"""Transactional execution of user scripts."""

import keyword
import logging
from collections.abc import Callable
from typing import Any

from animgraph._commands import Command, Commands, infer_kind
from animgraph._enums import LogLevel, NodeKind, PropertyKind
from animgraph._models import ProjectState
from animgraph._sandbox import Interpreter, SandboxFunction, Scope, compile_source, describe_error, unwrap

from ._handle import NodeHandle, ScriptContext, ScriptCtx, ScriptError, ScriptLogger
from ._transform import name_variables

logger = logging.getLogger(__name__)

SCRIPT_BATCH_LABEL = "Run Script"


def _initial_value_update(value: Any) -> dict[str, Any]:
    value = unwrap(value)
    if isinstance(value, SandboxFunction):
        return {"type": PropertyKind.EXPRESSION, "value": value.to_expression_source()}
    if isinstance(value, tuple):
        value = list(value)
    return {"type": infer_kind(value), "value": value}


def _target_id(node_or_id: Any) -> str:
    if isinstance(node_or_id, NodeHandle):
        return node_or_id.node_id
    if isinstance(node_or_id, str):
        return node_or_id
    msg = f"Expected a node or a node id, got {type(node_or_id).__name__}"
    raise ScriptError(msg)


def create_script_scope(context: ScriptContext) -> Scope:
    """Build the global scope of a script.

    Every root node whose id is a valid identifier is bound to its handle;
    the scripting functions below take precedence over node ids.
    """

    def add_node(kind: str) -> NodeHandle:
        result = Commands.add_node(kind, context.project)
        context.commit(result.command)
        return context.handle(result.node_id)

    def create_variable(*args: Any) -> NodeHandle:
        name: str | None = None
        value: Any = None
        if len(args) >= 2:  # noqa: PLR2004
            name, value = str(args[0]), args[1]
        elif args:
            value = args[0]

        result = Commands.add_node(NodeKind.VALUE, context.project)
        context.commit(result.command)
        node_id = result.node_id

        if name and name != node_id:
            rename = Commands.rename_node(node_id, name, context.project)
            if rename is None:
                context.log(LogLevel.WARN, f"Cannot name variable '{name}', keeping '{node_id}'.")
            else:
                context.commit(rename)
                node_id = name

        if value is not None:
            update = _initial_value_update(value)
            context.commit(Commands.set(context.project, node_id, "value", update, label="Set Initial Value"))
        return context.handle(node_id)

    def remove_node(node_or_id: Any) -> None:
        node_id = _target_id(node_or_id)
        context.commit(Commands.remove_node(node_id, context.project))
        context.forget(node_id)

    def move_up(node_or_id: Any) -> None:
        command = Commands.move_node_up(_target_id(node_or_id), context.project)
        if command is not None:
            context.commit(command)

    def move_down(node_or_id: Any) -> None:
        command = Commands.move_node_down(_target_id(node_or_id), context.project)
        if command is not None:
            context.commit(command)

    def clear() -> None:
        context.commit(Commands.clear_project(context.project))
        context.forget()

    bindings: dict[str, Any] = {
        node_id: context.handle(node_id)
        for node_id in context.project.root_node_ids
        if node_id.isidentifier() and not keyword.iskeyword(node_id)
    }
    api: dict[str, Callable[..., Any] | Any] = {
        "addNode": add_node,
        "createVariable": create_variable,
        "addVariable": create_variable,
        "removeNode": remove_node,
        "moveUp": move_up,
        "moveDown": move_down,
        "clear": clear,
        "log": lambda *args: context.log(LogLevel.INFO, *args),
        "warn": lambda *args: context.log(LogLevel.WARN, *args),
        "error": lambda *args: context.log(LogLevel.ERROR, *args),
        "t": 0,
        "ctx": ScriptCtx(context),
    }
    api |= {
        "add_node": add_node,
        "create_variable": create_variable,
        "add_variable": create_variable,
        "remove_node": remove_node,
        "move_up": move_up,
        "move_down": move_down,
    }
    bindings.update(api)
    return Scope(bindings, protected=False)


def execute_script(
    source: str,
    project_getter: Callable[[], ProjectState],
    commit: Callable[[Command], None],
    console: ScriptLogger,
) -> bool:
    """Run a script as one all-or-nothing edit.

    The script works on a private copy of the project: each command it
    produces is applied to that copy at once, so later statements see the
    effect of earlier ones, and is also collected. Only when the script
    finishes are the collected commands committed, as a single batch.

    Args:
        source: Python statements.
        project_getter: Returns the live project the script starts from.
        commit: Receives the batch command. Not called when the script
            fails or makes no changes.
        console: Receives script output and the error message on failure.

    Returns:
        True if the script ran to completion, False if it raised.

    """
    working_state = project_getter()
    pending: list[Command] = []

    def local_commit(command: Command) -> None:
        nonlocal working_state
        pending.append(command)
        working_state = command.redo(working_state)

    context = ScriptContext(lambda: working_state, local_commit, console)

    try:
        tree = name_variables(compile_source(source).tree)
        Interpreter().run(tree, create_script_scope(context))
    except Exception as e:  # noqa: BLE001 - any failure aborts the transaction
        logger.debug("Script failed after %d command(s): %s", len(pending), e)
        console.log(LogLevel.ERROR, [describe_error(e)])
        return False

    if pending:
        logger.debug("Script produced %d command(s)", len(pending))
        commit(Commands.batch(pending, SCRIPT_BATCH_LABEL))
    return True
