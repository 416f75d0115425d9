"""Edit-time detection of reference cycles."""

import logging
from collections import deque
from collections.abc import Mapping

from animgraph._enums import NodeKind, PropertyKind
from animgraph._models import Node
from animgraph._refs import PropertyRef

from ._references import expression_refs

logger = logging.getLogger(__name__)


def _variable_ids(nodes: Mapping[str, Node]) -> list[str]:
    return [node.id for node in nodes.values() if node.type is NodeKind.VALUE]


def would_create_cycle(
    nodes: Mapping[str, Node],
    source_node_id: str,
    source_prop_key: str,
    target_node_id: str,
    target_prop_key: str,
) -> bool:
    """Check whether making the source property read the target closes a loop.

    Walks breadth-first from the target through ``ref`` links, ``ctx.get``
    calls and implicit variable references, and reports whether the source
    property is reachable. The check is advisory; the evaluator's depth limit
    still bounds evaluation if a cycle is created anyway.

    Args:
        nodes: All nodes of the project.
        source_node_id: Node of the property being edited.
        source_prop_key: Key of the property being edited.
        target_node_id: Node of the property it would read.
        target_prop_key: Key of the property it would read.

    Returns:
        True if the target (transitively) reads the source.

    """
    source = PropertyRef(source_node_id, source_prop_key)
    variable_ids = _variable_ids(nodes)
    visited: set[PropertyRef] = set()
    queue = deque([PropertyRef(target_node_id, target_prop_key)])

    while queue:
        current = queue.popleft()
        if current == source:
            logger.debug("Cycle: %s -> %s -> ... -> %s", source, PropertyRef(target_node_id, target_prop_key), source)
            return True
        if current in visited:
            continue
        visited.add(current)

        node = nodes.get(current.node_id)
        prop = node.properties.get(current.prop_key) if node is not None else None
        if prop is None:
            continue

        if prop.type is PropertyKind.REF:
            target = PropertyRef.parse(prop.value)
            if target is not None:
                queue.append(target)
        elif prop.type is PropertyKind.EXPRESSION:
            queue.extend(expression_refs(str(prop.value), variable_ids))

    return False


def expression_cycle_targets(
    nodes: Mapping[str, Node],
    node_id: str,
    prop_key: str,
    source: str,
) -> list[PropertyRef]:
    """References in a candidate expression that would lead back to its own property.

    Used to flag an expression while it is being authored, before it is
    committed. Explicit ``ctx.get`` calls and implicit variable references are
    both checked.
    """
    candidates = expression_refs(source, _variable_ids(nodes))
    return [
        ref
        for ref in dict.fromkeys(candidates)
        if would_create_cycle(nodes, node_id, prop_key, ref.node_id, ref.prop_key)
    ]
