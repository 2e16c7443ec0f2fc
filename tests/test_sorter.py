"""
Tests for cycle-safe topological sorting
"""

import random

import pytest

from terrasolver.errors import CycleError, SortError, VertexNotFoundError
from terrasolver.graph import ModuleGraph
from terrasolver.sorter import (
    Direction,
    TopologicalSorter,
    direction_for_command,
    sort_modules,
)


def build_graph(edges, modules=()):
    """Graph from (dependent, prerequisite) pairs of absolute paths."""
    graph = ModuleGraph(parse_dependencies=lambda path: [])
    for module in modules:
        graph.add_module(module)
    for dependent, prerequisite in edges:
        graph.add_dependency(dependent, prerequisite)
    return graph


def assert_valid_order(order, graph, direction):
    assert sorted(order) == sorted(graph.paths())
    assert len(order) == len(set(order))
    position = {path: i for i, path in enumerate(order)}
    for dependent in graph.paths():
        for prerequisite in graph.prerequisites_of(dependent):
            if direction is Direction.FORWARD:
                assert position[prerequisite] < position[dependent]
            else:
                assert position[prerequisite] > position[dependent]


class TestDirection:

    def test_destroy_selects_reverse(self):
        assert direction_for_command(["destroy"]) is Direction.REVERSE
        assert direction_for_command(["run-all", "DESTROY", "-lock=false"]) is Direction.REVERSE

    def test_other_commands_forward(self):
        assert direction_for_command(["apply", "-auto-approve"]) is Direction.FORWARD
        assert direction_for_command([]) is Direction.FORWARD
        assert direction_for_command(["plan", "-destroy"]) is Direction.FORWARD


class TestTopologicalSorter:

    def test_chain_forward_and_reverse(self):
        graph = build_graph([("/m/b", "/m/a"), ("/m/c", "/m/b")])

        assert sort_modules(graph, Direction.FORWARD) == ["/m/a", "/m/b", "/m/c"]
        assert sort_modules(graph, Direction.REVERSE) == ["/m/c", "/m/b", "/m/a"]

    def test_insertion_order_does_not_matter(self):
        graph = build_graph([("/m/c", "/m/b"), ("/m/b", "/m/a")])

        assert sort_modules(graph) == ["/m/a", "/m/b", "/m/c"]

    def test_isolated_modules_included(self):
        graph = build_graph([("/m/b", "/m/a")], modules=["/m/lonely"])
        order = sort_modules(graph)

        assert sorted(order) == ["/m/a", "/m/b", "/m/lonely"]

    def test_diamond(self):
        graph = build_graph([
            ("/m/app", "/m/db"),
            ("/m/app", "/m/cache"),
            ("/m/db", "/m/vpc"),
            ("/m/cache", "/m/vpc"),
        ])

        for direction in Direction:
            assert_valid_order(sort_modules(graph, direction), graph, direction)

    def test_random_acyclic_graphs(self):
        rng = random.Random(1234)
        for _ in range(25):
            names = [f"/m/n{i}" for i in range(rng.randint(1, 15))]
            edges = []
            # Only point from later to earlier names so the graph stays acyclic
            for i, dependent in enumerate(names):
                for prerequisite in names[:i]:
                    if rng.random() < 0.3:
                        edges.append((dependent, prerequisite))
            shuffled = list(names)
            rng.shuffle(shuffled)
            graph = build_graph(edges, modules=shuffled)

            for direction in Direction:
                assert_valid_order(sort_modules(graph, direction), graph, direction)

    def test_empty_graph(self):
        assert sort_modules(build_graph([])) == []

    def test_two_module_cycle(self):
        graph = build_graph([("/m/a", "/m/b"), ("/m/b", "/m/a")])

        with pytest.raises(CycleError) as exc:
            sort_modules(graph)

        assert exc.value.chain == ["/m/a", "/m/b", "/m/a"]
        assert "/m/a -> /m/b -> /m/a" in str(exc.value)

    def test_self_dependency_is_a_cycle(self):
        graph = build_graph([("/m/a", "/m/a")])

        with pytest.raises(CycleError) as exc:
            sort_modules(graph)

        assert exc.value.chain == ["/m/a", "/m/a"]

    def test_cycle_behind_acyclic_part(self):
        graph = build_graph([
            ("/m/app", "/m/vpc"),
            ("/m/x", "/m/y"),
            ("/m/y", "/m/z"),
            ("/m/z", "/m/x"),
        ])

        with pytest.raises(CycleError) as exc:
            sort_modules(graph, Direction.REVERSE)

        assert exc.value.chain == ["/m/x", "/m/y", "/m/z", "/m/x"]
        # Work done before the cycle was found is returned, reversed
        assert exc.value.partial == ["/m/app", "/m/vpc"]

    def test_cycle_reported_from_any_start(self):
        # Visiting the acyclic branch first must not hide the cycle
        graph = build_graph([
            ("/m/a", "/m/b"),
            ("/m/c", "/m/b"),
            ("/m/b", "/m/c"),
        ])

        with pytest.raises(CycleError):
            sort_modules(graph)

    def test_lookup_failure_reported_with_partial_order(self):
        graph = build_graph([("/m/b", "/m/a")])
        a_id = graph.id_of("/m/a")
        graph.store._out[a_id]["ghost"] = None

        with pytest.raises(SortError) as exc:
            TopologicalSorter(graph).sort()

        assert not isinstance(exc.value, CycleError)
        assert isinstance(exc.value.__cause__, VertexNotFoundError)
        assert "ghost" in str(exc.value)


class TestLongChains:
    """Deep graphs are ordered without recursion limits."""

    def test_chain_inserted_dependents_first(self):
        n = 2000
        graph = ModuleGraph(parse_dependencies=lambda path: [])
        for i in range(n - 1, 0, -1):
            graph.add_dependency(f"/m/n{i}", f"/m/n{i - 1}")

        order = sort_modules(graph)

        assert order == [f"/m/n{i}" for i in range(n)]
        assert sort_modules(graph, Direction.REVERSE) == order[::-1]

    def test_cycle_at_the_end_of_a_long_chain(self):
        n = 2000
        graph = ModuleGraph(parse_dependencies=lambda path: [])
        for i in range(n - 1, 0, -1):
            graph.add_dependency(f"/m/n{i}", f"/m/n{i - 1}")
        graph.add_dependency("/m/n0", "/m/n1")

        with pytest.raises(CycleError) as exc:
            sort_modules(graph)

        assert exc.value.chain == ["/m/n1", "/m/n0", "/m/n1"]
