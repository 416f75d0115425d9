"""String enums used by the property model.

Members carry a docstring so that the JSON schema and the CLI can describe them.
Implementation of the docstring trick based on this article:
https://guicommits.com/add-docstrings-python-enum-members/
"""

from enum import StrEnum
from typing import Self


class StrEnumWithDoc(StrEnum):
    """Base class for string enums whose members carry a docstring."""

    def __new__(cls, value: str, doc: str = "") -> Self:
        obj = str.__new__(cls, value)
        obj._value_ = value
        obj.__doc__ = doc
        return obj


class PropertyKind(StrEnumWithDoc):
    """How the ``value`` of a property is interpreted."""

    NUMBER = "number", "Numeric literal, coerced to a float on evaluation."
    STRING = "string", "Text literal."
    BOOLEAN = "boolean", "Boolean literal."
    COLOR = "color", "Hex colour literal such as '#3b82f6'."
    VECTOR2 = "vector2", "Two-component literal, passed through unchanged."
    OBJECT = "object", "Mapping literal."
    ARRAY = "array", "List literal."
    FUNCTION = "function", "Callable value, passed through unchanged."
    EXPRESSION = "expression", "Source code evaluated every frame."
    REF = "ref", "Link to another property, written as 'nodeId:propKey'."

    @property
    def is_derived(self) -> bool:
        """Whether the value is computed rather than stored (no keyframes apply)."""
        return self in (PropertyKind.EXPRESSION, PropertyKind.REF)


class Easing(StrEnumWithDoc):
    """Interpolation applied from a keyframe to the next one."""

    LINEAR = "linear", "Interpolate continuously towards the next keyframe."
    STEP = "step", "Hold this keyframe's value until the next keyframe."


class NodeKind(StrEnumWithDoc):
    """Kind of scene node."""

    RECT = "rect", "Rectangle anchored at its top-left corner."
    CIRCLE = "circle", "Circle anchored at the top-left of its bounding box."
    VECTOR = "vector", "SVG path."
    VALUE = "value", "Non-visual variable holder referenced by id from expressions."

    @property
    def id_prefix(self) -> str:
        """Prefix used when allocating ids for new nodes of this kind."""
        return "var" if self is NodeKind.VALUE else self.value


class LogLevel(StrEnumWithDoc):
    """Severity of a console entry."""

    INFO = "info", "Regular output such as console.log."
    WARN = "warn", "Something looks wrong but evaluation continued."
    ERROR = "error", "Evaluation or script failure."
