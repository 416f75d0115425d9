"""Sandboxed execution of user-authored code.

Code is parsed with :mod:`ast` and run by a small interpreter against an
explicit symbol table. There is no access to the host environment beyond a
fixed allow-list of pure globals.

Key types:
- Scope: symbol table with bindings, allow-listed globals and a fallback
- CompiledCode / compile_source: parse and validate once, run many times
- HostObject: base for objects whose attributes are served by methods
- SandboxFunction: functions and lambdas defined by sandboxed code
"""

from ._interpreter import (
    CompiledCode,
    HostObject,
    Interpreter,
    SandboxError,
    SandboxFunction,
    check_attribute,
    check_syntax,
    compile_source,
    describe_error,
    unwrap,
)
from ._scope import ALLOWED_GLOBALS, Scope

__all__ = [
    "ALLOWED_GLOBALS",
    "CompiledCode",
    "HostObject",
    "Interpreter",
    "SandboxError",
    "SandboxFunction",
    "Scope",
    "check_attribute",
    "check_syntax",
    "compile_source",
    "describe_error",
    "unwrap",
]
