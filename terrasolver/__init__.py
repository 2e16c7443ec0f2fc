"""
Terrasolver - Run Terragrunt modules in dependency order

Builds the dependency graph of a Terragrunt module tree, sorts it (reversed for
destroy) and runs a command in every module, skipping modules that succeeded
recently.

Author: Terrasolver contributors | github.com/Burmuley/terrasolver | 2026-10-19
"""

from .version import __version__, VersionInfo, get_version_info
from .errors import (
    TerrasolverError,
    ConfigurationError,
    DeclarationParseError,
    GraphError,
    VertexNotFoundError,
    VertexDuplicateError,
    EdgeDuplicateError,
    SortError,
    CycleError,
    CacheLoadError,
    CacheDumpError,
    ActionExecutionError,
)
from .graph import GraphStore, ModuleGraph, canonical_path
from .sorter import Direction, TopologicalSorter, direction_for_command, sort_modules
from .cache import ExecutionCache
from .coordinator import (
    ExecModule,
    ExecQueue,
    ExecutionCoordinator,
    ExecutionReport,
    ExecutionStatus,
    ModuleAction,
    ModuleStatus,
)
from .config import TerrasolverConfig, load_config

__all__ = [
    "__version__",
    "VersionInfo",
    "get_version_info",
    # Errors
    "TerrasolverError",
    "ConfigurationError",
    "DeclarationParseError",
    "GraphError",
    "VertexNotFoundError",
    "VertexDuplicateError",
    "EdgeDuplicateError",
    "SortError",
    "CycleError",
    "CacheLoadError",
    "CacheDumpError",
    "ActionExecutionError",
    # Graph
    "GraphStore",
    "ModuleGraph",
    "canonical_path",
    "Direction",
    "TopologicalSorter",
    "direction_for_command",
    "sort_modules",
    # Execution
    "ExecutionCache",
    "ExecModule",
    "ExecQueue",
    "ExecutionCoordinator",
    "ExecutionReport",
    "ExecutionStatus",
    "ModuleAction",
    "ModuleStatus",
    # Config
    "TerrasolverConfig",
    "load_config",
]
