"""Tests for DependencyGraph and graph algorithms."""

import pytest

from animgraph._enums import PropertyKind
from animgraph._factory import create_property, initial_project
from animgraph._graph import DependencyGraph, build_reference_graph, strongly_connected_components
from animgraph._refs import PropertyRef


class TestStronglyConnectedComponents:
    """Tests for Tarjan's algorithm."""

    def test_acyclic_graph_has_singleton_components(self) -> None:
        components = strongly_connected_components({"a": ["b"], "b": ["c"]})
        assert sorted(components, key=sorted) == [frozenset({"a"}), frozenset({"b"}), frozenset({"c"})]

    def test_two_node_cycle(self) -> None:
        components = strongly_connected_components({"a": ["b"], "b": ["a"], "c": ["a"]})
        assert frozenset({"a", "b"}) in components
        assert frozenset({"c"}) in components

    def test_every_node_in_exactly_one_component(self) -> None:
        graph = {"a": ["b"], "b": ["c"], "c": ["a", "d"], "d": ["e"], "e": ["d"]}
        components = strongly_connected_components(graph)
        members = [node for component in components for node in component]
        assert sorted(members) == ["a", "b", "c", "d", "e"]
        assert frozenset({"a", "b", "c"}) in components
        assert frozenset({"d", "e"}) in components

    def test_long_chain_does_not_recurse(self) -> None:
        chain = {i: [i + 1] for i in range(5000)}
        assert len(strongly_connected_components(chain)) == 5001


class TestDependencyGraph:
    """Tests for DependencyGraph construction and queries."""

    def test_empty_graph(self) -> None:
        graph = DependencyGraph.from_edges([])
        assert graph.nodes == frozenset()
        assert len(graph) == 0

    def test_isolated_nodes(self) -> None:
        graph = DependencyGraph.from_edges([("a", "b")], nodes=["c"])
        assert graph.nodes == frozenset({"a", "b", "c"})
        assert graph.predecessors("c") == frozenset()

    def test_predecessors_and_successors(self) -> None:
        graph = DependencyGraph.from_edges([("a", "c"), ("b", "c"), ("a", "d")])
        assert graph.predecessors("c") == frozenset({"a", "b"})
        assert graph.successors("a") == frozenset({"c", "d"})
        assert graph.predecessors("nonexistent") == frozenset()

    def test_cycles(self) -> None:
        graph = DependencyGraph.from_edges([("a", "b"), ("b", "a"), ("b", "c")])
        assert graph.cycles() == [frozenset({"a", "b"})]

    def test_self_loop_is_a_cycle(self) -> None:
        graph = DependencyGraph.from_edges([("a", "a")])
        assert graph.cycles() == [frozenset({"a"})]

    def test_acyclic_graph_has_no_cycles(self) -> None:
        graph = DependencyGraph.from_edges([("a", "b"), ("b", "c")])
        assert graph.cycles() == []

    def test_graph_is_frozen(self) -> None:
        graph = DependencyGraph.from_edges([("a", "b")])
        with pytest.raises(AttributeError):
            graph._predecessors = {}  # type: ignore[misc]


class TestReferenceGraph:
    """Tests for the property graph built from a project."""

    def test_every_property_is_a_node(self) -> None:
        project = initial_project()
        graph = build_reference_graph(project)
        expected = sum(len(node.properties) for node in project.nodes.values())
        assert len(graph) == expected
        assert graph.cycles() == []

    def test_ctx_get_becomes_an_edge(self) -> None:
        project = initial_project()
        rect = project.nodes["rect_0"]
        rect = rect.with_property("width", create_property(PropertyKind.EXPRESSION, "ctx.get('circle_0', 'radius')"))
        graph = build_reference_graph(project.with_node(rect))
        assert graph.predecessors(PropertyRef("rect_0", "width")) == frozenset({PropertyRef("circle_0", "radius")})
