"""Scripting layer: batch edits written as Python statements.

A script runs in the sandbox against a private working copy of the project.
Node handles translate attribute reads and writes into evaluations and
``set`` commands; on success all commands are committed as one batch.

Key types:
- execute_script: run a script transactionally
- NodeHandle: script-side view of a node
- ScriptError: a script asked for an impossible edit
"""

from ._handle import NodeHandle, ScriptContext, ScriptError, ScriptLogger
from ._runner import SCRIPT_BATCH_LABEL, create_script_scope, execute_script
from ._transform import name_variables

__all__ = [
    "SCRIPT_BATCH_LABEL",
    "NodeHandle",
    "ScriptContext",
    "ScriptError",
    "ScriptLogger",
    "create_script_scope",
    "execute_script",
    "name_variables",
]
