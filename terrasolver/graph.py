"""
Module Dependency Graph

Two layers:

- GraphStore: a plain directed graph keyed by opaque vertex identifiers.
  It knows nothing about modules or files.
- ModuleGraph: the builder. It owns a GraphStore, maps canonical module paths
  to identifiers, and fills the store from declaration files, optionally
  following prerequisites outside the scanned tree (deep dive).

Edges point from a dependent module to the prerequisite it declares. Cycles are
accepted at insertion time; the sorter reports them.

Author: Terrasolver contributors | github.com/Burmuley/terrasolver | 2026-10-19
"""

import logging
import os
import uuid
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Set

from terrasolver.declarations import parse_dependencies as parse_hcl_dependencies
from terrasolver.errors import (
    EdgeDuplicateError,
    GraphError,
    VertexDuplicateError,
    VertexNotFoundError,
)
from terrasolver.files import DEFAULT_EXTENSION, find_files_by_ext

logger = logging.getLogger(__name__)

ParseFunc = Callable[[str], List[str]]
EnumerateFunc = Callable[[str], List[str]]


# =============================================================================
# Graph Store
# =============================================================================

class GraphStore:
    """
    Directed graph with opaque string identifiers.

    Vertices keep insertion order. Each vertex stores the set of vertices it
    points to ("prerequisites"), also in insertion order.
    """

    def __init__(self):
        self._values: Dict[str, str] = {}
        self._ids: Dict[str, str] = {}
        self._out: Dict[str, Dict[str, None]] = {}

    def add_vertex(self, value: str) -> str:
        """
        Add a vertex and return its new identifier.

        Raises:
            VertexDuplicateError: If a vertex with this value exists
        """
        if value in self._ids:
            raise VertexDuplicateError(self._ids[value])
        vertex_id = str(uuid.uuid4())
        self._values[vertex_id] = value
        self._ids[value] = vertex_id
        self._out[vertex_id] = {}
        return vertex_id

    def get_vertex(self, vertex_id: str) -> str:
        """Get the value stored for vertex_id."""
        try:
            return self._values[vertex_id]
        except KeyError:
            raise VertexNotFoundError(vertex_id) from None

    def find(self, value: str) -> Optional[str]:
        """Get the identifier of a value, or None."""
        return self._ids.get(value)

    def add_edge(self, src_id: str, dst_id: str) -> None:
        """
        Add a directed edge src -> dst.

        Raises:
            VertexNotFoundError: If either endpoint is unknown
            EdgeDuplicateError: If the edge already exists
        """
        for vertex_id in (src_id, dst_id):
            if vertex_id not in self._values:
                raise VertexNotFoundError(vertex_id)
        if dst_id in self._out[src_id]:
            raise EdgeDuplicateError(src_id, dst_id)
        self._out[src_id][dst_id] = None

    def prerequisites(self, vertex_id: str) -> List[str]:
        """Get the identifiers vertex_id points to."""
        if vertex_id not in self._out:
            raise VertexNotFoundError(vertex_id)
        return list(self._out[vertex_id])

    def vertices(self) -> List[str]:
        """All vertex identifiers in insertion order."""
        return list(self._values)

    def edge_count(self) -> int:
        return sum(len(targets) for targets in self._out.values())

    def __len__(self) -> int:
        return len(self._values)


# =============================================================================
# Module Graph Builder
# =============================================================================

def canonical_path(path: str) -> str:
    """Absolute, normalised form of a module path."""
    return os.path.abspath(path)


class ModuleGraph:
    """
    Builds the module dependency graph from declaration files.

    Example:
        graph = ModuleGraph(enumerate_files=lambda d: find_files_by_ext(d, ".hcl"))
        graph.fill_from_files(find_files_by_ext("/infra/dev"), deep_dive=True)
        order = TopologicalSorter(graph).sort()
    """

    def __init__(
        self,
        parse_dependencies: Optional[ParseFunc] = None,
        enumerate_files: Optional[EnumerateFunc] = None,
        warnings: bool = True,
    ):
        """
        Initialize an empty graph.

        Args:
            parse_dependencies: Returns raw dependency targets for a declaration
                file (default: HCL parser)
            enumerate_files: Returns declaration files under a module directory,
                used by deep dive (default: all .hcl files)
            warnings: Log duplicate edges as warnings instead of debug messages
        """
        self.store = GraphStore()
        self.parse_dependencies = parse_dependencies or parse_hcl_dependencies
        self.enumerate_files = enumerate_files or (
            lambda root: find_files_by_ext(root, DEFAULT_EXTENSION)
        )
        self.warnings = warnings

        self._scanned_files: Set[str] = set()
        self._visited_dirs: Set[str] = set()

    # ------------------------ Vertices & Edges ------------------------

    def add_module(self, path: str) -> str:
        """
        Add a module and return its vertex identifier.

        Idempotent: a known path returns the existing identifier.
        """
        path = canonical_path(path)
        vertex_id = self.store.find(path)
        if vertex_id is None:
            vertex_id = self.store.add_vertex(path)
            logger.debug(f"Added module {path}")
        return vertex_id

    def add_dependency(self, module_path: str, raw_target: str) -> str:
        """
        Record that module_path depends on raw_target.

        Args:
            module_path: Dependent module directory
            raw_target: Dependency reference, relative to module_path or absolute

        Returns:
            Canonical path of the prerequisite module
        """
        module_path = canonical_path(module_path)
        prerequisite = canonical_path(os.path.join(module_path, raw_target))

        src_id = self.add_module(module_path)
        dst_id = self.add_module(prerequisite)

        try:
            self.store.add_edge(src_id, dst_id)
        except EdgeDuplicateError as e:
            message = f"{self.describe_error(e)}, skipping"
            if self.warnings:
                logger.warning(message)
            else:
                logger.debug(message)

        return prerequisite

    # ------------------------ Filling ------------------------

    def fill_from_files(self, files: Iterable[str], deep_dive: bool = False) -> None:
        """
        Add every module and dependency declared in files.

        Args:
            files: Declaration file paths; each file's directory is a module
            deep_dive: Also scan prerequisite modules for their own declarations

        Raises:
            DeclarationParseError: If any declaration file cannot be parsed
        """
        # Work stack of file iterators; a deep dive pushes the files of newly
        # discovered prerequisites on top, so long chains never recurse.
        pending: List[Iterator[str]] = [iter(files)]
        while pending:
            declaration = next(pending[-1], None)
            if declaration is None:
                pending.pop()
                continue

            declaration = canonical_path(declaration)
            if declaration in self._scanned_files:
                continue
            self._scanned_files.add(declaration)

            module_path = os.path.dirname(declaration)
            self._visited_dirs.add(module_path)
            self.add_module(module_path)

            discovered = []
            for target in self.parse_dependencies(declaration):
                prerequisite = self.add_dependency(module_path, target)

                if deep_dive and prerequisite not in self._visited_dirs:
                    self._visited_dirs.add(prerequisite)
                    discovered.append(prerequisite)

            if discovered:
                pending.append(self._files_under(discovered))

    def _files_under(self, module_dirs: List[str]) -> Iterator[str]:
        for module_dir in module_dirs:
            logger.debug(f"Deep dive into {module_dir}")
            yield from self.enumerate_files(module_dir)

    # ------------------------ Queries ------------------------

    def path_of(self, vertex_id: str) -> str:
        return self.store.get_vertex(vertex_id)

    def id_of(self, path: str) -> Optional[str]:
        return self.store.find(canonical_path(path))

    def paths(self) -> List[str]:
        """All module paths in insertion order."""
        return [self.store.get_vertex(v) for v in self.store.vertices()]

    def prerequisites_of(self, path: str) -> List[str]:
        """Paths of the modules that path depends on."""
        vertex_id = self.id_of(path)
        if vertex_id is None:
            raise KeyError(f"Unknown module: {path}")
        return [self.store.get_vertex(v) for v in self.store.prerequisites(vertex_id)]

    def edge_count(self) -> int:
        return self.store.edge_count()

    def describe_error(self, error: GraphError) -> str:
        """Render a graph error with module paths instead of identifiers."""

        def resolve(vertex_id: str) -> str:
            try:
                return self.store.get_vertex(vertex_id)
            except VertexNotFoundError:
                return vertex_id

        return error.describe(resolve)

    def __len__(self) -> int:
        return len(self.store)

    def __contains__(self, path: str) -> bool:
        return self.id_of(path) is not None
