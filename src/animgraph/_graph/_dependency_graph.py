"""Immutable dependency graph."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from ._algorithms import strongly_connected_components

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class DependencyGraph(Generic[T]):
    """Directed graph of "depends on" relationships.

    An edge ``(a, b)`` means "b reads a": ``predecessors(b)`` contains ``a``
    and ``successors(a)`` contains ``b``. Unlike the evaluator, which follows
    references lazily, the graph is a static snapshot and may contain cycles;
    :meth:`cycles` reports them.

    Attributes:
        _predecessors: Mapping from node to the nodes it reads.
        _successors: Mapping from node to the nodes reading it.

    """

    _predecessors: dict[T, frozenset[T]] = field(default_factory=dict)
    _successors: dict[T, frozenset[T]] = field(default_factory=dict)

    @classmethod
    def from_edges(cls, edges: Iterable[tuple[T, T]], nodes: Iterable[T] = ()) -> DependencyGraph[T]:
        """Build a graph from ``(dependency, dependent)`` pairs.

        Args:
            edges: Pairs ``(a, b)`` meaning "b depends on a".
            nodes: Extra nodes to include even when they have no edges.

        Example:
            >>> graph = DependencyGraph.from_edges([("speed", "rect_0:x")])
            >>> graph.predecessors("rect_0:x")
            frozenset({'speed'})

        """
        predecessors: defaultdict[T, set[T]] = defaultdict(set)
        successors: defaultdict[T, set[T]] = defaultdict(set)
        for node in nodes:
            predecessors.setdefault(node, set())
            successors.setdefault(node, set())
        for src, dst in edges:
            predecessors[dst].add(src)
            successors[src].add(dst)
            predecessors.setdefault(src, set())
            successors.setdefault(dst, set())
        return cls(
            _predecessors={k: frozenset(v) for k, v in predecessors.items()},
            _successors={k: frozenset(v) for k, v in successors.items()},
        )

    @property
    def nodes(self) -> frozenset[T]:
        return frozenset(self._predecessors) | frozenset(self._successors)

    def predecessors(self, node: T) -> frozenset[T]:
        """Direct dependencies of ``node``."""
        return self._predecessors.get(node, frozenset())

    def successors(self, node: T) -> frozenset[T]:
        """Direct dependents of ``node``."""
        return self._successors.get(node, frozenset())

    def cycles(self) -> list[frozenset[T]]:
        """Groups of nodes that (transitively) depend on each other."""
        return [
            component
            for component in strongly_connected_components(self._successors)
            if len(component) > 1 or any(n in self.successors(n) for n in component)
        ]

    def __len__(self) -> int:
        return len(self.nodes)
