"""Whole-project static analysis."""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field

from animgraph._enums import NodeKind, PropertyKind
from animgraph._models import Node, ProjectState
from animgraph._refs import PropertyRef
from animgraph._sandbox import check_syntax

from ._dependency_graph import DependencyGraph
from ._references import CTX_GET_TARGET, expression_refs, iter_identifiers

logger = logging.getLogger(__name__)


def find_unused_variables(nodes: Mapping[str, Node]) -> set[str]:
    """Ids of ``value`` nodes that no expression or ref mentions.

    Expressions are scanned for bare identifiers (comments, strings and
    attribute names are skipped) and for ``ctx.get('<id>'`` calls. A ref
    mentions the node before its separator.
    """
    variables = {node.id for node in nodes.values() if node.type is NodeKind.VALUE}
    unused = set(variables)

    for node in nodes.values():
        for prop in node.properties.values():
            if prop.type is PropertyKind.EXPRESSION:
                source = str(prop.value)
                unused.difference_update(name for name in iter_identifiers(source) if name in variables)
                unused.difference_update(m[1] for m in CTX_GET_TARGET.finditer(source))
            elif prop.type is PropertyKind.REF:
                link = str(prop.value)
                if PropertyRef.SEPARATOR in link:
                    unused.discard(link.split(PropertyRef.SEPARATOR)[0])

    return unused


def property_dependencies(project: ProjectState, ref: PropertyRef) -> list[PropertyRef]:
    """Direct reads of a property: its ref target or the references in its expression."""
    prop = project.get_property(ref.node_id, ref.prop_key)
    if prop is None:
        return []
    if prop.type is PropertyKind.REF:
        target = PropertyRef.parse(prop.value)
        return [] if target is None else [target]
    if prop.type is PropertyKind.EXPRESSION:
        return expression_refs(str(prop.value), project.variable_ids())
    return []


def build_reference_graph(project: ProjectState) -> DependencyGraph[PropertyRef]:
    """Static graph of which property reads which.

    Every property of the project is a node, even when it reads nothing.
    Dangling targets appear as nodes too.
    """
    refs = [PropertyRef(node.id, key) for node in project.nodes.values() for key in node.properties]
    edges = [(dep, ref) for ref in refs for dep in property_dependencies(project, ref)]
    return DependencyGraph.from_edges(edges, nodes=refs)


@dataclass(frozen=True, slots=True)
class ProjectAnalysis:
    """Problems found by :func:`analyze_project`.

    Attributes:
        cycles: Groups of properties that read each other.
        dangling_refs: ``(property, target)`` pairs whose target does not exist.
        unused_variables: Ids of variable nodes nothing refers to.
        syntax_errors: Expression properties whose source does not compile, with the message.

    """

    cycles: list[frozenset[PropertyRef]] = field(default_factory=list)
    dangling_refs: list[tuple[PropertyRef, PropertyRef]] = field(default_factory=list)
    unused_variables: set[str] = field(default_factory=set)
    syntax_errors: dict[PropertyRef, str] = field(default_factory=dict)

    @property
    def has_errors(self) -> bool:
        """Cycles and syntax errors are errors; the rest are warnings."""
        return bool(self.cycles or self.syntax_errors)


def analyze_project(project: ProjectState) -> ProjectAnalysis:
    """Run every static check over a project."""
    graph = build_reference_graph(project)

    dangling: list[tuple[PropertyRef, PropertyRef]] = []
    syntax_errors: dict[PropertyRef, str] = {}
    for node in project.nodes.values():
        for key, prop in node.properties.items():
            ref = PropertyRef(node.id, key)
            if prop.type is PropertyKind.EXPRESSION:
                error = check_syntax(str(prop.value))
                if error is not None:
                    syntax_errors[ref] = error
            dangling.extend(
                (ref, dep)
                for dep in property_dependencies(project, ref)
                if project.get_property(dep.node_id, dep.prop_key) is None
            )

    analysis = ProjectAnalysis(
        cycles=graph.cycles(),
        dangling_refs=dangling,
        unused_variables=find_unused_variables(project.nodes),
        syntax_errors=syntax_errors,
    )
    logger.debug(
        "Analysis of %d properties: %d cycles, %d dangling refs, %d unused variables, %d syntax errors",
        len(graph),
        len(analysis.cycles),
        len(analysis.dangling_refs),
        len(analysis.unused_variables),
        len(analysis.syntax_errors),
    )
    return analysis
