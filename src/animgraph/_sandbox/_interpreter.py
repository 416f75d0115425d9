"""Tree-walking interpreter for a restricted subset of Python.

Source code is parsed with :mod:`ast` and executed node by node against an
explicit :class:`Scope`. Only the node types listed in ``_ALLOWED_NODES`` are
accepted; imports, class definitions, ``global``/``nonlocal``, ``del``,
``with``, ``try`` and async constructs are rejected before anything runs.

The value of a piece of code is the value of its first executed ``return``
statement, or of its last top-level expression statement.
"""

import ast
import logging
import operator
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Final

from ._scope import Scope

logger = logging.getLogger(__name__)


class SandboxError(Exception):
    """Code uses syntax or attributes that the sandbox does not allow."""


class HostObject(ABC):
    """Object whose attributes are served by explicit methods.

    The interpreter maps ``obj.name`` to :meth:`get`, ``obj.name = value`` to
    :meth:`set`, ``obj(...)`` to :meth:`call`, and uses :meth:`resolve` when the
    object takes part in arithmetic, comparisons or string formatting.
    """

    @abstractmethod
    def get(self, name: str) -> Any: ...

    @abstractmethod
    def set(self, name: str, value: Any) -> None: ...

    @abstractmethod
    def resolve(self) -> Any: ...

    def call(self, *args: Any, **kwargs: Any) -> Any:
        msg = f"{type(self).__name__} is not callable"
        raise TypeError(msg)


_ALLOWED_NODES: Final = frozenset(
    {
        # Structure
        ast.Module,
        ast.Expr,
        ast.Load,
        ast.Store,
        # Statements
        ast.Assign,
        ast.AugAssign,
        ast.AnnAssign,
        ast.Return,
        ast.If,
        ast.For,
        ast.While,
        ast.Break,
        ast.Continue,
        ast.Pass,
        ast.FunctionDef,
        ast.Raise,
        ast.Assert,
        # Expressions
        ast.BoolOp,
        ast.BinOp,
        ast.UnaryOp,
        ast.Lambda,
        ast.IfExp,
        ast.Dict,
        ast.Set,
        ast.ListComp,
        ast.SetComp,
        ast.DictComp,
        ast.GeneratorExp,
        ast.Compare,
        ast.Call,
        ast.FormattedValue,
        ast.JoinedStr,
        ast.Constant,
        ast.Attribute,
        ast.Subscript,
        ast.Starred,
        ast.Name,
        ast.List,
        ast.Tuple,
        ast.Slice,
        ast.NamedExpr,
        # Helpers
        ast.comprehension,
        ast.arguments,
        ast.arg,
        ast.keyword,
        ast.And,
        ast.Or,
        ast.Not,
        ast.Invert,
        ast.UAdd,
        ast.USub,
        ast.Eq,
        ast.NotEq,
        ast.Lt,
        ast.LtE,
        ast.Gt,
        ast.GtE,
        ast.Is,
        ast.IsNot,
        ast.In,
        ast.NotIn,
        ast.Add,
        ast.Sub,
        ast.Mult,
        ast.MatMult,
        ast.Div,
        ast.FloorDiv,
        ast.Mod,
        ast.Pow,
        ast.LShift,
        ast.RShift,
        ast.BitOr,
        ast.BitXor,
        ast.BitAnd,
    },
)

# Attributes that lead out of the sandbox even though they are public.
_BLOCKED_ATTRIBUTES: Final = frozenset(
    {
        "format",
        "format_map",
        "mro",
        "gi_frame",
        "gi_code",
        "cr_frame",
        "cr_code",
        "ag_frame",
        "ag_code",
        "f_back",
        "f_globals",
        "f_locals",
        "f_builtins",
        "f_code",
        "tb_frame",
        "tb_next",
    },
)

_BINARY_OPERATORS: Final[dict[type[ast.operator], Callable[[Any, Any], Any]]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.MatMult: operator.matmul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
    ast.LShift: operator.lshift,
    ast.RShift: operator.rshift,
    ast.BitOr: operator.or_,
    ast.BitXor: operator.xor,
    ast.BitAnd: operator.and_,
}

_UNARY_OPERATORS: Final[dict[type[ast.unaryop], Callable[[Any], Any]]] = {
    ast.Not: operator.not_,
    ast.Invert: operator.invert,
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}

_COMPARE_OPERATORS: Final[dict[type[ast.cmpop], Callable[[Any, Any], bool]]] = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.Is: operator.is_,
    ast.IsNot: operator.is_not,
    ast.In: lambda a, b: a in b,
    ast.NotIn: lambda a, b: a not in b,
}


class _Return(Exception):  # noqa: N818
    def __init__(self, value: Any) -> None:
        self.value = value


class _Break(Exception):  # noqa: N818
    pass


class _Continue(Exception):  # noqa: N818
    pass


def check_attribute(name: str) -> None:
    """Raise SandboxError for private, dunder and escape-prone attribute names."""
    if name.startswith("_") or name in _BLOCKED_ATTRIBUTES:
        msg = f"Access to attribute '{name}' is not allowed"
        raise SandboxError(msg)


def _validate(tree: ast.AST) -> None:
    for node in ast.walk(tree):
        if type(node) not in _ALLOWED_NODES:
            msg = f"Unsupported syntax: {type(node).__name__}"
            raise SandboxError(msg)
        if isinstance(node, ast.Attribute):
            check_attribute(node.attr)
        elif isinstance(node, ast.FunctionDef) and node.decorator_list:
            msg = "Decorators are not supported"
            raise SandboxError(msg)


@dataclass(frozen=True, slots=True)
class CompiledCode:
    """Parsed and validated source, ready to run any number of times."""

    source: str
    tree: ast.Module

    def run(self, scope: Scope) -> Any:
        return Interpreter().run(self.tree, scope)


@lru_cache(maxsize=512)
def compile_source(source: str) -> CompiledCode:
    """Parse and validate source code.

    Raises:
        SandboxError: If the source does not parse or uses disallowed syntax.

    """
    try:
        tree = ast.parse(source, mode="exec")
    except SyntaxError as e:
        msg = f"{e.msg} (line {e.lineno})" if e.lineno else str(e.msg)
        logger.debug("Rejected source: %s", msg)
        raise SandboxError(msg) from e
    except ValueError as e:
        # Null bytes in the source.
        raise SandboxError(str(e)) from e
    _validate(tree)
    return CompiledCode(source=source, tree=tree)


def check_syntax(source: str) -> str | None:
    """Return the error message for invalid source, or None when it compiles."""
    try:
        compile_source(source)
    except SandboxError as e:
        return str(e)
    return None


def unwrap(value: Any) -> Any:
    return value.resolve() if isinstance(value, HostObject) else value


def describe_error(error: BaseException) -> str:
    """Render an exception raised by sandboxed code as a one-line message."""
    text = str(error)
    return f"{type(error).__name__}: {text}" if text else type(error).__name__


class SandboxFunction:
    """A function or lambda defined inside sandboxed code."""

    __slots__ = ("_closure", "_interpreter", "_node")

    def __init__(self, node: ast.FunctionDef | ast.Lambda, closure: Scope, interpreter: "Interpreter") -> None:
        self._node = node
        self._closure = closure
        self._interpreter = interpreter

    @property
    def name(self) -> str:
        return self._node.name if isinstance(self._node, ast.FunctionDef) else "<lambda>"

    @property
    def takes_arguments(self) -> bool:
        args = self._node.args
        return bool(args.posonlyargs or args.args or args.vararg or args.kwonlyargs or args.kwarg)

    def to_expression_source(self) -> str:
        """Render source whose evaluation yields what calling this function would.

        A function without parameters becomes its own body, so it is evaluated
        every frame. A function with parameters becomes an expression that
        produces the function itself.
        """
        node = self._node
        if not self.takes_arguments:
            if isinstance(node, ast.Lambda):
                return ast.unparse(node.body)
            return "\n".join(ast.unparse(stmt) for stmt in node.body)
        if isinstance(node, ast.Lambda):
            return ast.unparse(node)
        return f"{ast.unparse(node)}\nreturn {node.name}"

    def __repr__(self) -> str:
        return f"<sandbox function {self.name}>"

    def _bind(self, args: tuple[Any, ...], kwargs: dict[str, Any]) -> Scope:  # noqa: C901
        spec = self._node.args
        scope = self._closure.child()
        positional = [*spec.posonlyargs, *spec.args]
        defaults = self._interpreter.evaluate_all(spec.defaults, self._closure)
        first_default = len(positional) - len(defaults)

        if len(args) > len(positional) and spec.vararg is None:
            msg = f"{self.name}() takes {len(positional)} positional arguments but {len(args)} were given"
            raise TypeError(msg)

        for index, param in enumerate(positional):
            if index < len(args):
                scope.assign(param.arg, args[index])
            elif param.arg in kwargs:
                scope.assign(param.arg, kwargs.pop(param.arg))
            elif index >= first_default:
                scope.assign(param.arg, defaults[index - first_default])
            else:
                msg = f"{self.name}() missing argument '{param.arg}'"
                raise TypeError(msg)
        if spec.vararg is not None:
            scope.assign(spec.vararg.arg, tuple(args[len(positional) :]))

        for param, default in zip(spec.kwonlyargs, spec.kw_defaults, strict=True):
            if param.arg in kwargs:
                scope.assign(param.arg, kwargs.pop(param.arg))
            elif default is not None:
                scope.assign(param.arg, self._interpreter.evaluate(default, self._closure))
            else:
                msg = f"{self.name}() missing keyword argument '{param.arg}'"
                raise TypeError(msg)

        if spec.kwarg is not None:
            scope.assign(spec.kwarg.arg, kwargs)
        elif kwargs:
            msg = f"{self.name}() got unexpected keyword arguments {sorted(kwargs)}"
            raise TypeError(msg)
        return scope

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        scope = self._bind(args, dict(kwargs))
        if isinstance(self._node, ast.Lambda):
            return self._interpreter.evaluate(self._node.body, scope)
        try:
            self._interpreter.execute_block(self._node.body, scope)
        except _Return as ret:
            return ret.value
        return None


class Interpreter:
    """Evaluates validated syntax trees.

    Expression nodes are dispatched to ``_eval_<NodeType>`` methods and
    statements to ``_exec_<NodeType>`` methods.
    """

    def run(self, tree: ast.Module, scope: Scope) -> Any:
        result = None
        try:
            for stmt in tree.body:
                if isinstance(stmt, ast.Expr):
                    result = self.evaluate(stmt.value, scope)
                else:
                    result = None
                    self.execute(stmt, scope)
        except _Return as ret:
            return ret.value
        except (_Break, _Continue) as e:
            msg = "'break' or 'continue' outside loop"
            raise SandboxError(msg) from e
        return result

    # --- statements ---------------------------------------------------------

    def execute(self, node: ast.stmt, scope: Scope) -> None:
        handler = getattr(self, f"_exec_{type(node).__name__}", None)
        if handler is None:
            msg = f"Unsupported statement: {type(node).__name__}"
            raise SandboxError(msg)
        handler(node, scope)

    def execute_block(self, body: list[ast.stmt], scope: Scope) -> None:
        for stmt in body:
            self.execute(stmt, scope)

    def _exec_Expr(self, node: ast.Expr, scope: Scope) -> None:  # noqa: N802
        self.evaluate(node.value, scope)

    def _exec_Pass(self, node: ast.Pass, scope: Scope) -> None:  # noqa: N802
        pass

    def _exec_Return(self, node: ast.Return, scope: Scope) -> None:  # noqa: N802
        raise _Return(None if node.value is None else self.evaluate(node.value, scope))

    def _exec_Break(self, node: ast.Break, scope: Scope) -> None:  # noqa: N802
        raise _Break

    def _exec_Continue(self, node: ast.Continue, scope: Scope) -> None:  # noqa: N802
        raise _Continue

    def _exec_Assign(self, node: ast.Assign, scope: Scope) -> None:  # noqa: N802
        value = self.evaluate(node.value, scope)
        for target in node.targets:
            self.assign(target, value, scope)

    def _exec_AnnAssign(self, node: ast.AnnAssign, scope: Scope) -> None:  # noqa: N802
        if node.value is not None:
            self.assign(node.target, self.evaluate(node.value, scope), scope)

    def _exec_AugAssign(self, node: ast.AugAssign, scope: Scope) -> None:  # noqa: N802
        load = _as_load(node.target)
        current = unwrap(self.evaluate(load, scope))
        value = _BINARY_OPERATORS[type(node.op)](current, unwrap(self.evaluate(node.value, scope)))
        self.assign(node.target, value, scope)

    def _exec_If(self, node: ast.If, scope: Scope) -> None:  # noqa: N802
        if unwrap(self.evaluate(node.test, scope)):
            self.execute_block(node.body, scope)
        else:
            self.execute_block(node.orelse, scope)

    def _exec_For(self, node: ast.For, scope: Scope) -> None:  # noqa: N802
        for item in self.evaluate(node.iter, scope):
            self.assign(node.target, item, scope)
            try:
                self.execute_block(node.body, scope)
            except _Break:
                return
            except _Continue:
                continue
        self.execute_block(node.orelse, scope)

    def _exec_While(self, node: ast.While, scope: Scope) -> None:  # noqa: N802
        while unwrap(self.evaluate(node.test, scope)):
            try:
                self.execute_block(node.body, scope)
            except _Break:
                return
            except _Continue:
                continue
        self.execute_block(node.orelse, scope)

    def _exec_FunctionDef(self, node: ast.FunctionDef, scope: Scope) -> None:  # noqa: N802
        scope.assign(node.name, SandboxFunction(node, scope, self))

    def _exec_Raise(self, node: ast.Raise, scope: Scope) -> None:  # noqa: N802
        if node.exc is None:
            msg = "Bare 'raise' is not supported"
            raise SandboxError(msg)
        exc = self.evaluate(node.exc, scope)
        if isinstance(exc, BaseException) or (isinstance(exc, type) and issubclass(exc, Exception)):
            raise exc
        raise SandboxError(str(exc))

    def _exec_Assert(self, node: ast.Assert, scope: Scope) -> None:  # noqa: N802
        if not unwrap(self.evaluate(node.test, scope)):
            message = "" if node.msg is None else str(self.evaluate(node.msg, scope))
            raise AssertionError(message)

    def assign(self, target: ast.expr, value: Any, scope: Scope) -> None:
        match target:
            case ast.Name(id=name):
                scope.assign(name, value)
            case ast.Attribute(value=owner_node, attr=attr):
                owner = self.evaluate(owner_node, scope)
                if not isinstance(owner, HostObject):
                    msg = f"Cannot assign attribute '{attr}' on {type(owner).__name__}"
                    raise SandboxError(msg)
                owner.set(attr, value)
            case ast.Subscript(value=owner_node, slice=key_node):
                owner = unwrap(self.evaluate(owner_node, scope))
                owner[self.evaluate(key_node, scope)] = value
            case ast.Tuple(elts=elts) | ast.List(elts=elts):
                self._assign_sequence(elts, value, scope)
            case _:
                msg = f"Cannot assign to {type(target).__name__}"
                raise SandboxError(msg)

    def _assign_sequence(self, elts: list[ast.expr], value: Any, scope: Scope) -> None:
        items = list(value)
        starred = [i for i, elt in enumerate(elts) if isinstance(elt, ast.Starred)]
        if not starred:
            if len(items) != len(elts):
                msg = f"Expected {len(elts)} values to unpack, got {len(items)}"
                raise ValueError(msg)
            for elt, item in zip(elts, items, strict=True):
                self.assign(elt, item, scope)
            return
        star = starred[0]
        after = len(elts) - star - 1
        if len(items) < star + after:
            msg = f"Expected at least {star + after} values to unpack, got {len(items)}"
            raise ValueError(msg)
        for elt, item in zip(elts[:star], items[:star], strict=True):
            self.assign(elt, item, scope)
        star_node = elts[star]
        assert isinstance(star_node, ast.Starred)  # noqa: S101
        self.assign(star_node.value, items[star : len(items) - after], scope)
        for elt, item in zip(elts[star + 1 :], items[len(items) - after :], strict=True):
            self.assign(elt, item, scope)

    # --- expressions --------------------------------------------------------

    def evaluate(self, node: ast.expr, scope: Scope) -> Any:
        handler = getattr(self, f"_eval_{type(node).__name__}", None)
        if handler is None:
            msg = f"Unsupported expression: {type(node).__name__}"
            raise SandboxError(msg)
        return handler(node, scope)

    def evaluate_all(self, nodes: list[ast.expr], scope: Scope) -> list[Any]:
        result: list[Any] = []
        for node in nodes:
            if isinstance(node, ast.Starred):
                result.extend(self.evaluate(node.value, scope))
            else:
                result.append(self.evaluate(node, scope))
        return result

    def _eval_Constant(self, node: ast.Constant, scope: Scope) -> Any:  # noqa: N802
        return node.value

    def _eval_Name(self, node: ast.Name, scope: Scope) -> Any:  # noqa: N802
        return scope.lookup(node.id)

    def _eval_NamedExpr(self, node: ast.NamedExpr, scope: Scope) -> Any:  # noqa: N802
        value = self.evaluate(node.value, scope)
        self.assign(node.target, value, scope)
        return value

    def _eval_List(self, node: ast.List, scope: Scope) -> list[Any]:  # noqa: N802
        return self.evaluate_all(node.elts, scope)

    def _eval_Tuple(self, node: ast.Tuple, scope: Scope) -> tuple[Any, ...]:  # noqa: N802
        return tuple(self.evaluate_all(node.elts, scope))

    def _eval_Set(self, node: ast.Set, scope: Scope) -> set[Any]:  # noqa: N802
        return set(self.evaluate_all(node.elts, scope))

    def _eval_Dict(self, node: ast.Dict, scope: Scope) -> dict[Any, Any]:  # noqa: N802
        result: dict[Any, Any] = {}
        for key, value in zip(node.keys, node.values, strict=True):
            if key is None:
                result.update(self.evaluate(value, scope))
            else:
                result[self.evaluate(key, scope)] = self.evaluate(value, scope)
        return result

    def _eval_BoolOp(self, node: ast.BoolOp, scope: Scope) -> Any:  # noqa: N802
        value: Any = None
        for operand in node.values:
            value = self.evaluate(operand, scope)
            truthy = bool(unwrap(value))
            if isinstance(node.op, ast.And) and not truthy:
                return value
            if isinstance(node.op, ast.Or) and truthy:
                return value
        return value

    def _eval_BinOp(self, node: ast.BinOp, scope: Scope) -> Any:  # noqa: N802
        left = unwrap(self.evaluate(node.left, scope))
        right = unwrap(self.evaluate(node.right, scope))
        return _BINARY_OPERATORS[type(node.op)](left, right)

    def _eval_UnaryOp(self, node: ast.UnaryOp, scope: Scope) -> Any:  # noqa: N802
        return _UNARY_OPERATORS[type(node.op)](unwrap(self.evaluate(node.operand, scope)))

    def _eval_Compare(self, node: ast.Compare, scope: Scope) -> bool:  # noqa: N802
        left = unwrap(self.evaluate(node.left, scope))
        for op, comparator in zip(node.ops, node.comparators, strict=True):
            right = unwrap(self.evaluate(comparator, scope))
            if not _COMPARE_OPERATORS[type(op)](left, right):
                return False
            left = right
        return True

    def _eval_IfExp(self, node: ast.IfExp, scope: Scope) -> Any:  # noqa: N802
        if unwrap(self.evaluate(node.test, scope)):
            return self.evaluate(node.body, scope)
        return self.evaluate(node.orelse, scope)

    def _eval_Attribute(self, node: ast.Attribute, scope: Scope) -> Any:  # noqa: N802
        owner = self.evaluate(node.value, scope)
        check_attribute(node.attr)
        if isinstance(owner, HostObject):
            return owner.get(node.attr)
        return getattr(owner, node.attr)

    def _eval_Subscript(self, node: ast.Subscript, scope: Scope) -> Any:  # noqa: N802
        owner = unwrap(self.evaluate(node.value, scope))
        return owner[self.evaluate(node.slice, scope)]

    def _eval_Slice(self, node: ast.Slice, scope: Scope) -> slice:  # noqa: N802
        def bound(part: ast.expr | None) -> Any:
            return None if part is None else unwrap(self.evaluate(part, scope))

        return slice(bound(node.lower), bound(node.upper), bound(node.step))

    def _eval_Call(self, node: ast.Call, scope: Scope) -> Any:  # noqa: N802
        func = self.evaluate(node.func, scope)
        args = self.evaluate_all(node.args, scope)
        kwargs: dict[str, Any] = {}
        for keyword in node.keywords:
            if keyword.arg is None:
                kwargs.update(self.evaluate(keyword.value, scope))
            else:
                kwargs[keyword.arg] = self.evaluate(keyword.value, scope)
        if isinstance(func, HostObject):
            return func.call(*args, **kwargs)
        if not callable(func):
            name = ast.unparse(node.func)
            msg = f"'{name}' is not a function"
            raise TypeError(msg)
        return func(*args, **kwargs)

    def _eval_Lambda(self, node: ast.Lambda, scope: Scope) -> SandboxFunction:  # noqa: N802
        return SandboxFunction(node, scope, self)

    def _eval_JoinedStr(self, node: ast.JoinedStr, scope: Scope) -> str:  # noqa: N802
        return "".join(str(self.evaluate(part, scope)) for part in node.values)

    def _eval_FormattedValue(self, node: ast.FormattedValue, scope: Scope) -> str:  # noqa: N802
        value = unwrap(self.evaluate(node.value, scope))
        if node.conversion == ord("r"):
            value = repr(value)
        elif node.conversion == ord("s"):
            value = str(value)
        elif node.conversion == ord("a"):
            value = ascii(value)
        spec = "" if node.format_spec is None else self.evaluate(node.format_spec, scope)
        return format(value, spec)

    def _eval_ListComp(self, node: ast.ListComp, scope: Scope) -> list[Any]:  # noqa: N802
        return [self.evaluate(node.elt, inner) for inner in self._comprehend(node.generators, scope)]

    def _eval_GeneratorExp(self, node: ast.GeneratorExp, scope: Scope) -> list[Any]:  # noqa: N802
        # Evaluated eagerly: no generator objects are handed to sandboxed code.
        return [self.evaluate(node.elt, inner) for inner in self._comprehend(node.generators, scope)]

    def _eval_SetComp(self, node: ast.SetComp, scope: Scope) -> set[Any]:  # noqa: N802
        return {self.evaluate(node.elt, inner) for inner in self._comprehend(node.generators, scope)}

    def _eval_DictComp(self, node: ast.DictComp, scope: Scope) -> dict[Any, Any]:  # noqa: N802
        return {
            self.evaluate(node.key, inner): self.evaluate(node.value, inner)
            for inner in self._comprehend(node.generators, scope)
        }

    def _comprehend(self, generators: list[ast.comprehension], scope: Scope) -> Iterator[Scope]:
        inner = scope.child()

        def walk(index: int) -> Iterator[Scope]:
            if index == len(generators):
                yield inner
                return
            generator = generators[index]
            for item in self.evaluate(generator.iter, inner):
                self.assign(generator.target, item, inner)
                if all(unwrap(self.evaluate(cond, inner)) for cond in generator.ifs):
                    yield from walk(index + 1)

        return walk(0)


def _as_load(target: ast.expr) -> ast.expr:
    """Copy an assignment target so it can be evaluated as a load."""
    match target:
        case ast.Name(id=name):
            return ast.Name(id=name, ctx=ast.Load())
        case ast.Attribute(value=value, attr=attr):
            return ast.Attribute(value=value, attr=attr, ctx=ast.Load())
        case ast.Subscript(value=value, slice=key):
            return ast.Subscript(value=value, slice=key, ctx=ast.Load())
        case _:
            msg = f"Cannot augment-assign to {type(target).__name__}"
            raise SandboxError(msg)
