"""Symbol tables for sandboxed code.

Name lookup order for a root scope:

1. names assigned by the code itself (locals),
2. explicit bindings supplied by the caller (``t``, ``ctx``, ...),
3. the fixed allow-list of host globals below,
4. an optional fallback mapping (used for implicit variable nodes),
5. otherwise ``None``.

Nothing else from the host environment is reachable.
"""

import datetime
import json
import math
import re
from collections.abc import Mapping
from types import MappingProxyType, SimpleNamespace
from typing import Any, Final

_MISSING: Final = object()

ALLOWED_GLOBALS: Final[Mapping[str, Any]] = MappingProxyType(
    {
        # Counterparts of Math, Date, JSON and RegExp.
        "math": math,
        "datetime": datetime.datetime,
        "json": SimpleNamespace(loads=json.loads, dumps=json.dumps),
        "re": SimpleNamespace(
            match=re.match,
            search=re.search,
            fullmatch=re.fullmatch,
            findall=re.findall,
            sub=re.sub,
            split=re.split,
        ),
        # Counterparts of Array, Object, String, Number, Boolean, parseInt, parseFloat.
        "list": list,
        "dict": dict,
        "str": str,
        "float": float,
        "bool": bool,
        "int": int,
        # Counterparts of isNaN and isFinite.
        "isnan": math.isnan,
        "isfinite": math.isfinite,
        "abs": abs,
        "min": min,
        "max": max,
        "round": round,
        "pow": pow,
        "divmod": divmod,
        "len": len,
        "range": range,
        "sum": sum,
        "sorted": sorted,
        "reversed": reversed,
        "enumerate": enumerate,
        "zip": zip,
        "map": map,
        "filter": filter,
        "tuple": tuple,
        "set": set,
        "any": any,
        "all": all,
        # Counterpart of Error, for `raise`.
        "Exception": Exception,
        "ValueError": ValueError,
        "TypeError": TypeError,
        "KeyError": KeyError,
        "IndexError": IndexError,
        "pi": math.pi,
        "inf": math.inf,
        "nan": math.nan,
    },
)


class Scope:
    """A chain of symbol tables.

    Child scopes (function calls, comprehensions) hold only locals and defer
    every other lookup to their parent. Root scopes hold the bindings, the
    allowed globals and the fallback.

    When ``protected`` is true, assignments to a binding, a global or a
    fallback name are silently ignored so that code cannot change the values
    it is evaluated against.
    """

    __slots__ = ("_bindings", "_fallback", "_globals", "_locals", "_parent", "_protected")

    def __init__(
        self,
        bindings: Mapping[str, Any] | None = None,
        *,
        fallback: Mapping[str, Any] | None = None,
        protected: bool = True,
        allowed_globals: Mapping[str, Any] = ALLOWED_GLOBALS,
        parent: "Scope | None" = None,
    ) -> None:
        self._locals: dict[str, Any] = {}
        self._bindings = dict(bindings or {})
        self._fallback = fallback
        self._protected = protected
        self._globals = allowed_globals
        self._parent = parent

    def child(self) -> "Scope":
        return Scope(parent=self, protected=False, allowed_globals={})

    def _lookup_root(self, name: str) -> Any:
        if name in self._bindings:
            return self._bindings[name]
        if name in self._globals:
            return self._globals[name]
        if self._fallback is not None and name in self._fallback:
            return self._fallback[name]
        return _MISSING

    def lookup(self, name: str) -> Any:
        scope: Scope | None = self
        while scope is not None:
            if name in scope._locals:  # noqa: SLF001
                return scope._locals[name]  # noqa: SLF001
            if scope._parent is None:  # noqa: SLF001
                value = scope._lookup_root(name)  # noqa: SLF001
                return None if value is _MISSING else value
            scope = scope._parent  # noqa: SLF001
        return None

    def is_reserved(self, name: str) -> bool:
        """Whether assigning ``name`` in this root scope is swallowed."""
        if not self._protected or self._parent is not None:
            return False
        return (
            name in self._bindings
            or name in self._globals
            or (self._fallback is not None and name in self._fallback)
        )

    def assign(self, name: str, value: Any) -> None:
        if self.is_reserved(name):
            return
        self._locals[name] = value

    @property
    def locals(self) -> Mapping[str, Any]:
        return MappingProxyType(self._locals)
