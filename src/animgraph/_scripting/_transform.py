"""Source rewrites applied to scripts before they run."""

import ast
import copy
from typing import Final

VARIABLE_FACTORIES: Final = frozenset({"createVariable", "addVariable", "create_variable", "add_variable"})


class _NameVariables(ast.NodeTransformer):
    """Turn ``speed = createVariable(5)`` into ``speed = createVariable("speed", 5)``."""

    def visit_Assign(self, node: ast.Assign) -> ast.Assign:  # noqa: N802
        match node:
            case ast.Assign(
                targets=[ast.Name(id=name)],
                value=ast.Call(func=ast.Name(id=func), args=args, keywords=[]) as call,
            ) if func in VARIABLE_FACTORIES and len(args) <= 1:
                value = args[0] if args else ast.Constant(value=None)
                call.args = [ast.Constant(value=name), value]
                ast.fix_missing_locations(call)
        return node


def name_variables(tree: ast.Module) -> ast.Module:
    """Return a copy of ``tree`` where variable factories learn the name they are assigned to.

    Only single-target assignments of a call with at most one argument are
    rewritten; an explicit name argument is left alone.
    """
    return _NameVariables().visit(copy.deepcopy(tree))
