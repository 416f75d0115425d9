"""Evaluation engine for animgraph projects.

Properties are resolved on demand: refs and expressions pull the values they
depend on through an EvaluationContext, with a depth limit as the guard
against reference cycles.

Key types:
- EvaluationContext: cross-node accessor for one frame
- FrameResult: resolved values of a whole project at one time
- evaluate_property: resolve a single property
- evaluate_frame: resolve every property of a project
"""

from ._engine import MAX_DEPTH, EvaluationContext, evaluate_property
from ._frame import FrameResult, evaluate_frame, render_order

__all__ = [
    "MAX_DEPTH",
    "EvaluationContext",
    "FrameResult",
    "evaluate_frame",
    "evaluate_property",
    "render_order",
]
