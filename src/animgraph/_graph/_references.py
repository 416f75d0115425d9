"""Textual scanning of expression source for references to other properties.

These are heuristics over source text, not a parse: references built
dynamically (``ctx.get(name + "_0", "x")``) are missed, and ids that appear
inside string literals are picked up by the whole-word scan.
"""

import re
from collections.abc import Collection, Iterator
from functools import lru_cache
from typing import Final

from animgraph._refs import PropertyRef

CTX_GET_CALL: Final = re.compile(r"""ctx\.get\(\s*['"]([^'"]+)['"]\s*,\s*['"]([^'"]+)['"]\s*\)""")
"""``ctx.get('node', 'key')`` with either quote style and any spacing."""

CTX_GET_TARGET: Final = re.compile(r"""ctx\.get\(\s*['"]([^'"]+)['"]""")
"""The node id argument of a ``ctx.get(`` call."""

_IDENTIFIER_START: Final = re.compile(r"[A-Za-z_]")
_IDENTIFIER: Final = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


@lru_cache(maxsize=256)
def _word_pattern(word: str) -> re.Pattern[str]:
    return re.compile(rf"\b{re.escape(word)}\b")


def contains_word(source: str, word: str) -> bool:
    """Whether ``word`` occurs in ``source`` as a whole-word token."""
    return _word_pattern(word).search(source) is not None


def ctx_get_refs(source: str) -> list[PropertyRef]:
    """Every ``ctx.get('node', 'key')`` call in ``source``, in order."""
    return [PropertyRef(m[1], m[2]) for m in CTX_GET_CALL.finditer(source)]


def expression_refs(source: str, variable_ids: Collection[str]) -> list[PropertyRef]:
    """Properties an expression reads.

    Explicit ``ctx.get`` calls come first, followed by ``(<id>, "value")`` for
    every variable id that appears as a whole word.
    """
    refs = ctx_get_refs(source)
    refs.extend(PropertyRef(var_id, "value") for var_id in variable_ids if contains_word(source, var_id))
    return refs


def _skip_string(code: str, i: int) -> int:
    """Return the index just past the string literal starting at ``code[i]``."""
    quote = code[i]
    if code.startswith(quote * 3, i):
        end = code.find(quote * 3, i + 3)
        return len(code) if end == -1 else end + 3
    i += 1
    while i < len(code):
        if code[i] == "\\":
            i += 2
        elif code[i] in (quote, "\n"):
            return i + 1
        else:
            i += 1
    return i


def iter_identifiers(code: str) -> Iterator[str]:
    """Yield the bare identifiers of ``code``.

    Comments and string literals are skipped, as are attribute names
    (identifiers preceded by a dot).
    """
    i = 0
    while i < len(code):
        char = code[i]
        if char == "#":
            newline = code.find("\n", i)
            i = len(code) if newline == -1 else newline
            continue
        if char in "'\"":
            i = _skip_string(code, i)
            continue
        if _IDENTIFIER_START.match(char):
            match = _IDENTIFIER.match(code, i)
            assert match is not None  # noqa: S101
            before = code[:i].rstrip()
            if not before.endswith("."):
                yield match[0]
            i = match.end()
            continue
        i += 1
