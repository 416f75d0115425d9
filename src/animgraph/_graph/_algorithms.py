"""Graph algorithms over successor mappings."""

from collections import defaultdict
from collections.abc import Collection, Hashable, Mapping
from typing import TypeVar

T = TypeVar("T", bound=Hashable)


def strongly_connected_components(successors: Mapping[T, Collection[T]]) -> list[frozenset[T]]:
    """Group nodes into strongly connected components (Tarjan, iterative).

    Every node reachable in ``successors`` appears in exactly one component.
    A component with more than one node, or a single node with an edge to
    itself, is a cycle.
    """
    graph: defaultdict[T, list[T]] = defaultdict(list)
    for node, targets in successors.items():
        graph[node].extend(targets)
        for target in targets:
            graph.setdefault(target, [])

    index: dict[T, int] = {}
    lowlink: dict[T, int] = {}
    on_stack: set[T] = set()
    stack: list[T] = []
    components: list[frozenset[T]] = []

    for start in list(graph):
        if start in index:
            continue
        work: list[tuple[T, int]] = [(start, 0)]
        while work:
            node, child = work.pop()
            if child == 0:
                index[node] = lowlink[node] = len(index)
                stack.append(node)
                on_stack.add(node)
            targets = graph[node]
            if child < len(targets):
                work.append((node, child + 1))
                target = targets[child]
                if target not in index:
                    work.append((target, 0))
                elif target in on_stack:
                    lowlink[node] = min(lowlink[node], index[target])
                continue
            if lowlink[node] == index[node]:
                members: set[T] = set()
                while True:
                    member = stack.pop()
                    on_stack.discard(member)
                    members.add(member)
                    if member == node:
                        break
                components.append(frozenset(members))
            if work:
                parent = work[-1][0]
                lowlink[parent] = min(lowlink[parent], lowlink[node])

    return components
