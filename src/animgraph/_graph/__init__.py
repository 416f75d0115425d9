"""Reference analysis for property graphs.

This module contains:
- would_create_cycle: edit-time check that a new link does not close a loop
- expression_cycle_targets: the same check for every reference in an expression
- find_unused_variables: variable nodes nothing refers to
- DependencyGraph[T]: a generic, immutable dependency graph
- build_reference_graph / analyze_project: whole-project static analysis
"""

from ._algorithms import strongly_connected_components
from ._analysis import (
    ProjectAnalysis,
    analyze_project,
    build_reference_graph,
    find_unused_variables,
    property_dependencies,
)
from ._cycles import expression_cycle_targets, would_create_cycle
from ._dependency_graph import DependencyGraph
from ._references import contains_word, ctx_get_refs, expression_refs, iter_identifiers

__all__ = [
    "DependencyGraph",
    "ProjectAnalysis",
    "analyze_project",
    "build_reference_graph",
    "contains_word",
    "ctx_get_refs",
    "expression_cycle_targets",
    "expression_refs",
    "find_unused_variables",
    "iter_identifiers",
    "property_dependencies",
    "strongly_connected_components",
    "would_create_cycle",
]
