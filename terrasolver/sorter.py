"""
Cycle-safe topological ordering of the module graph.

Depth-first traversal from every vertex, following edges from a dependent to its
prerequisites, recording vertices in post-order. Prerequisites therefore finish
first and the recorded sequence is the apply ("forward") order. Teardown
("reverse") order is the same sequence reversed.

Each vertex is in one of three states during the traversal. Reaching a vertex
that is still in progress means the active path loops back on itself.

Author: Terrasolver contributors | github.com/Burmuley/terrasolver | 2026-10-19
"""

import logging
from enum import Enum
from typing import Dict, Iterator, List, Sequence, Tuple

from terrasolver.errors import CycleError, GraphError, SortError
from terrasolver.graph import ModuleGraph

logger = logging.getLogger(__name__)

DESTRUCTIVE_COMMANDS = ("destroy",)


class Direction(str, Enum):
    """Execution direction relative to the dependency edges."""
    FORWARD = "forward"  # prerequisites first (apply)
    REVERSE = "reverse"  # dependents first (destroy)


class VisitState(Enum):
    UNVISITED = 0
    IN_PROGRESS = 1
    FINISHED = 2


def direction_for_command(args: Sequence[str]) -> Direction:
    """
    Pick the execution direction for a command line.

    Any argument naming a destructive command (case-insensitive) selects
    REVERSE.
    """
    for arg in args:
        if arg.lower() in DESTRUCTIVE_COMMANDS:
            return Direction.REVERSE
    return Direction.FORWARD


class TopologicalSorter:
    """
    Computes the execution order of a ModuleGraph.

    Example:
        sorter = TopologicalSorter(graph, direction_for_command(["destroy"]))
        try:
            order = sorter.sort()
        except CycleError as e:
            print(e.chain)
    """

    def __init__(self, graph: ModuleGraph, direction: Direction = Direction.FORWARD):
        self.graph = graph
        self.direction = Direction(direction)

    def sort(self) -> List[str]:
        """
        Order every module exactly once.

        Returns:
            Module paths in execution order

        Raises:
            CycleError: If the graph contains a cycle
            SortError: If the traversal hits an unknown vertex
        """
        store = self.graph.store
        state: Dict[str, VisitState] = {v: VisitState.UNVISITED for v in store.vertices()}
        order: List[str] = []

        try:
            for vertex_id in store.vertices():
                if state[vertex_id] is VisitState.UNVISITED:
                    self._visit(vertex_id, state, order, [])
        except _CycleDetected as cycle:
            chain = [self.graph.path_of(v) for v in cycle.ids]
            raise CycleError(chain, self._finalize(order)) from None
        except GraphError as e:
            raise SortError(self.graph.describe_error(e), self._finalize(order)) from e

        result = self._finalize(order)
        logger.debug(f"Sorted {len(result)} modules ({self.direction.value})")
        return result

    def _visit(
        self,
        root_id: str,
        state: Dict[str, VisitState],
        order: List[str],
        active: List[str],
    ) -> None:
        # Explicit stack of (vertex, remaining prerequisites); active mirrors
        # the vertices on the stack and gives the cycle chain.
        store = self.graph.store
        stack: List[Tuple[str, Iterator[str]]] = []

        def enter(vertex_id: str) -> None:
            state[vertex_id] = VisitState.IN_PROGRESS
            active.append(vertex_id)
            stack.append((vertex_id, iter(store.prerequisites(vertex_id))))

        enter(root_id)
        while stack:
            vertex_id, prerequisites = stack[-1]
            for prerequisite in prerequisites:
                current = state.get(prerequisite, VisitState.UNVISITED)
                if current is VisitState.IN_PROGRESS:
                    start = active.index(prerequisite)
                    raise _CycleDetected(active[start:] + [prerequisite])
                if current is VisitState.UNVISITED:
                    enter(prerequisite)
                    break
            else:
                stack.pop()
                active.pop()
                state[vertex_id] = VisitState.FINISHED
                order.append(vertex_id)

    def _finalize(self, order: List[str]) -> List[str]:
        paths = [self.graph.path_of(v) for v in order]
        if self.direction is Direction.REVERSE:
            paths.reverse()
        return paths


class _CycleDetected(Exception):
    """Internal signal carrying the vertex identifiers of a cycle."""

    def __init__(self, ids: List[str]):
        super().__init__()
        self.ids = ids


def sort_modules(graph: ModuleGraph, direction: Direction = Direction.FORWARD) -> List[str]:
    """Convenience wrapper around TopologicalSorter."""
    return TopologicalSorter(graph, direction).sort()
