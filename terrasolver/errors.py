"""
Terrasolver Exceptions

Every error raised by terrasolver derives from TerrasolverError so the CLI can
tell expected failures apart from programming errors.

Graph store errors carry the internal vertex identifiers they refer to. Use
GraphError.describe() with a resolver to render them with module paths instead.

Author: Terrasolver contributors | github.com/Burmuley/terrasolver | 2026-10-19
"""

from typing import Callable, List, Optional, Sequence


class TerrasolverError(Exception):
    """Base class for all terrasolver errors."""
    pass


class ConfigurationError(TerrasolverError):
    """Raised when a configuration value cannot be interpreted."""
    pass


# =============================================================================
# Declarations
# =============================================================================

class DeclarationParseError(TerrasolverError):
    """Raised when a module declaration file cannot be parsed."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"error parsing {path}: {reason}")
        self.path = path
        self.reason = reason


# =============================================================================
# Graph
# =============================================================================

class GraphError(TerrasolverError):
    """
    Error raised by the graph store.

    The message is a format template with one positional field per vertex
    identifier, so the same error can be shown with identifiers (str) or with
    module paths (describe).
    """

    def __init__(self, template: str, *vertex_ids: str):
        self.template = template
        self.vertex_ids = vertex_ids
        super().__init__(template.format(*(f"'{v}'" for v in vertex_ids)))

    def describe(self, resolve: Callable[[str], str]) -> str:
        """
        Render the error with each vertex identifier replaced by resolve(id).

        Args:
            resolve: Callable mapping a vertex identifier to a readable name

        Returns:
            Human-readable message
        """
        return self.template.format(*(f"'{resolve(v)}'" for v in self.vertex_ids))


class VertexNotFoundError(GraphError):
    def __init__(self, vertex_id: str):
        super().__init__("{0} is unknown", vertex_id)


class VertexDuplicateError(GraphError):
    def __init__(self, vertex_id: str):
        super().__init__("{0} is already known", vertex_id)


class EdgeDuplicateError(GraphError):
    def __init__(self, src_id: str, dst_id: str):
        super().__init__("edge between {0} and {1} is already known", src_id, dst_id)


# =============================================================================
# Sorting
# =============================================================================

class SortError(TerrasolverError):
    """
    Raised when the execution order cannot be computed.

    Attributes:
        partial: Module paths ordered before the failure was detected
    """

    def __init__(self, message: str, partial: Optional[Sequence[str]] = None):
        super().__init__(message)
        self.partial: List[str] = list(partial or [])


class CycleError(SortError):
    """
    Raised when the dependency graph is not acyclic.

    Attributes:
        chain: Module paths forming the cycle; the first path is repeated last
    """

    def __init__(self, chain: Sequence[str], partial: Optional[Sequence[str]] = None):
        self.chain = list(chain)
        super().__init__(
            "dependency cycle detected: " + " -> ".join(self.chain),
            partial,
        )


# =============================================================================
# Cache
# =============================================================================

class CacheLoadError(TerrasolverError):
    """Raised when a persisted cache record cannot be parsed."""

    def __init__(self, cache_file: str, line_number: int, reason: str):
        super().__init__(f"{cache_file}:{line_number}: {reason}")
        self.cache_file = cache_file
        self.line_number = line_number


class CacheDumpError(TerrasolverError):
    """Raised when the cache backing store cannot be written."""
    pass


# =============================================================================
# Execution
# =============================================================================

class ActionExecutionError(TerrasolverError):
    """
    Raised when a module action fails to launch, exits non-zero or times out.

    Attributes:
        module_path: Working directory of the failed action
        returncode: Exit status, or None when the process never completed
    """

    def __init__(self, module_path: str, reason: str, returncode: Optional[int] = None):
        super().__init__(f"module '{module_path}' failed: {reason}")
        self.module_path = module_path
        self.reason = reason
        self.returncode = returncode
