"""Keyframe interpolation."""

import math
import re
from collections.abc import Sequence
from typing import Any, Final

from ._enums import Easing, PropertyKind
from ._models import Keyframe

_HEX_COLOR: Final = re.compile(r"^#?([a-f\d]{2})([a-f\d]{2})([a-f\d]{2})$", re.IGNORECASE)

# Distance (seconds) under which a time counts as "on" an existing keyframe.
KEYFRAME_TOLERANCE: Final = 0.05


def lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


def to_number(value: Any) -> float:
    """Numeric coercion where anything unparsable, and NaN, becomes 0."""
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, int | float):
        return 0 if math.isnan(value) else value
    try:
        result = float(str(value).strip() or 0)
    except ValueError:
        return 0
    return 0 if math.isnan(result) else result


def hex_to_rgb(value: str) -> tuple[int, int, int]:
    """Decompose ``#rrggbb`` into channels. Anything else is black."""
    match = _HEX_COLOR.match(value)
    if match is None:
        return (0, 0, 0)
    return (int(match[1], 16), int(match[2], 16), int(match[3], 16))


def rgb_to_hex(r: float, g: float, b: float) -> str:
    return "#" + "".join(f"{max(0, min(255, round(c))):02x}" for c in (r, g, b))


def interpolate_value(a: Any, b: Any, t: float, kind: PropertyKind) -> Any:
    """Blend two keyframe values of the given property kind.

    Numbers blend linearly, colours blend per RGB channel, and every other kind
    switches from ``a`` to ``b`` halfway through.
    """
    if kind is PropertyKind.NUMBER:
        return lerp(to_number(a), to_number(b), t)
    if kind is PropertyKind.COLOR:
        r1, g1, b1 = hex_to_rgb(str(a))
        r2, g2, b2 = hex_to_rgb(str(b))
        return rgb_to_hex(lerp(r1, r2, t), lerp(g1, g2, t), lerp(b1, b2, t))
    return a if t < 0.5 else b  # noqa: PLR2004


def interpolate_keyframes(keyframes: Sequence[Keyframe], time: float, kind: PropertyKind) -> Any:
    """Evaluate an animation curve at ``time``.

    The list is scanned in the order given and is expected to be sorted by
    time; it is not re-sorted here.

    Returns:
        The curve value, or None when there are no keyframes.

    """
    if not keyframes:
        return None
    if len(keyframes) == 1:
        return keyframes[0].value

    first, last = keyframes[0], keyframes[-1]
    if time <= first.time:
        return first.value
    if time >= last.time:
        return last.value

    for k1, k2 in zip(keyframes, keyframes[1:], strict=False):
        if k1.time <= time < k2.time:
            if k1.easing is Easing.STEP:
                return k1.value
            t = (time - k1.time) / (k2.time - k1.time)
            return interpolate_value(k1.value, k2.value, t, kind)

    return last.value


def insert_keyframe(keyframes: Sequence[Keyframe], keyframe: Keyframe) -> tuple[Keyframe, ...]:
    """Insert a keyframe after every keyframe at or before its time."""
    index = next((i for i, kf in enumerate(keyframes) if kf.time > keyframe.time), len(keyframes))
    return (*keyframes[:index], keyframe, *keyframes[index:])


def find_keyframe(keyframes: Sequence[Keyframe], time: float, tolerance: float = KEYFRAME_TOLERANCE) -> Keyframe | None:
    return next((kf for kf in keyframes if abs(kf.time - time) < tolerance), None)
