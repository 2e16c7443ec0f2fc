"""
Terrasolver CLI: Run a Terragrunt command over modules in dependency order.

Scans a directory tree for Terragrunt declaration files, builds the dependency
graph, prints the running order and then runs the command in every module, one
at a time. Modules that succeeded within the cache window are skipped.

Usage:
    terrasolver [flags] [terragrunt command and parameters]

Example:
    terrasolver --path /home/user/infrastructure/dev apply

    12:01:18 | INFO    | Terragrunt modules directory: /home/user/infrastructure/dev
    Running order for modules in '/home/user/infrastructure/dev':
    #1: /home/user/infrastructure/dev/us-west-2/ecs-clusters
    #2: /home/user/infrastructure/dev/us-west-2/target-groups
    #3: /home/user/infrastructure/dev/us-west-2/load-balancers
    Press ENTER to continue...

Every flag can be overridden by its TERRASOLVER_* environment variable, which
takes precedence over the command line.

Author: Terrasolver contributors | github.com/Burmuley/terrasolver | 2026-10-19
"""

import argparse
import logging
import os
import sys
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from terrasolver.cache import ExecutionCache
from terrasolver.config import (
    TerrasolverConfig,
    action_environment,
    inject_auto_approve,
    load_config,
)
from terrasolver.coordinator import ExecutionCoordinator, ModuleAction
from terrasolver.errors import (
    ActionExecutionError,
    CacheDumpError,
    CacheLoadError,
    ConfigurationError,
    DeclarationParseError,
    SortError,
)
from terrasolver.files import find_files_by_ext
from terrasolver.graph import ModuleGraph
from terrasolver.logging_utils import RunLogger, setup_logging
from terrasolver.sorter import Direction, TopologicalSorter, direction_for_command
from terrasolver.terminal import TerminalAction
from terrasolver.version import VersionInfo, get_version_info

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    """Build argument parser for the terrasolver CLI."""
    parser = argparse.ArgumentParser(
        prog="terrasolver",
        description="Run a Terragrunt command over modules in dependency order",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        allow_abbrev=False,
        epilog="""
Examples:
  # Apply every module under the current directory
  terrasolver apply

  # Destroy in reverse dependency order, without the confirmation prompt
  terrasolver --path ./dev --skip-confirm destroy

  # Only print the running order
  terrasolver --dry-run --path ./dev

Environment variables (take precedence over flags):
  TERRASOLVER_PATH, TERRASOLVER_SKIP_CONFIRM, TERRASOLVER_TERRAGRUNT_BIN,
  TERRASOLVER_DEEP_DIVE, TERRASOLVER_AUTO_APPROVE, TERRASOLVER_PLUGIN_CACHE_DIR,
  TERRASOLVER_SUPPRESS_WARNINGS, TERRASOLVER_NO_CACHE, TERRASOLVER_CACHE_DURATION,
  TERRASOLVER_CACHE_FILE, TERRASOLVER_ACTION_TIMEOUT, TERRASOLVER_LOG_DIR,
  TERRASOLVER_DRY_RUN, TERRASOLVER_CONFIG
        """,
    )

    parser.add_argument("--path", help="Terragrunt modules directory (default: current directory)")
    parser.add_argument("--skip-confirm", action="store_true", default=None,
                        help="Skip the confirmation prompt after the running order is shown")
    parser.add_argument("--terragrunt", dest="terragrunt_bin",
                        help="Path to the Terragrunt binary (default: from PATH)")
    parser.add_argument("--deep-dive", action=argparse.BooleanOptionalAction, default=None,
                        help="Follow dependencies outside the modules directory (default: on)")
    parser.add_argument("--auto-approve", action=argparse.BooleanOptionalAction, default=None,
                        help="Add -auto-approve to apply commands (default: on)")
    parser.add_argument("--tf-cache-dir", dest="plugin_cache_dir",
                        help="Terraform plugin cache directory, empty to disable "
                             "(default: ~/.terraform.d/plugin-cache)")
    parser.add_argument("--suppress-warnings", action=argparse.BooleanOptionalAction, default=None,
                        help="Suppress dependency graph warnings (default: on)")
    parser.add_argument("--no-cache", action="store_true", default=None,
                        help="Ignore and do not update the execution cache")
    parser.add_argument("--cache-duration", type=int,
                        help="Minutes a successful module is skipped for (default: 30)")
    parser.add_argument("--cache-file", help="Execution cache file (default: .terrasolver-cache)")
    parser.add_argument("--ext", dest="declaration_ext",
                        help="Declaration file extension (default: .hcl)")
    parser.add_argument("--timeout", dest="action_timeout", type=float,
                        help="Seconds before a module action is terminated (default: none)")
    parser.add_argument("--log-dir", help="Write a command log to this directory")
    parser.add_argument("--dry-run", action="store_true", default=None,
                        help="Print the running order and exit")
    parser.add_argument("--config", type=Path, help="Path to terrasolver.yaml")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument("--version", action="store_true", help="Show version information")
    parser.add_argument("command", nargs=argparse.REMAINDER,
                        help="Terragrunt command and parameters")

    return parser


def cli_values(args: argparse.Namespace) -> Dict[str, Any]:
    """Settings given on the command line (None when not given)."""
    return {
        "path": args.path,
        "skip_confirm": args.skip_confirm,
        "terragrunt_bin": args.terragrunt_bin,
        "deep_dive": args.deep_dive,
        "auto_approve": args.auto_approve,
        "plugin_cache_dir": args.plugin_cache_dir,
        "suppress_warnings": args.suppress_warnings,
        "no_cache": args.no_cache,
        "cache_duration": args.cache_duration,
        "cache_file": args.cache_file,
        "declaration_ext": args.declaration_ext,
        "action_timeout": args.action_timeout,
        "log_dir": args.log_dir,
        "dry_run": args.dry_run,
        "log_level": "DEBUG" if args.verbose else None,
    }


# =============================================================================
# Steps
# =============================================================================

def compute_order(config: TerrasolverConfig, direction: Direction) -> List[str]:
    """
    Build the dependency graph for config.path and sort it.

    Raises:
        DeclarationParseError: If a declaration file is invalid
        SortError: If the graph has a cycle
        FileNotFoundError: If the modules directory does not exist
    """
    modules_path = os.path.abspath(config.path)

    def enumerate_files(root: str) -> List[str]:
        return find_files_by_ext(root, config.declaration_ext, config.ignore_paths)

    graph = ModuleGraph(
        enumerate_files=enumerate_files,
        warnings=not config.suppress_warnings,
    )
    graph.fill_from_files(enumerate_files(modules_path), deep_dive=config.deep_dive)
    logger.debug(f"Graph: {len(graph)} modules, {graph.edge_count()} dependencies")

    return TopologicalSorter(graph, direction).sort()


def print_order(modules_path: str, order: List[str]) -> None:
    print(f"Running order for modules in '{modules_path}':")
    for n, path in enumerate(order, start=1):
        print(f"#{n}: {path}")


def wait_for_confirmation() -> None:
    print("Press ENTER to continue...", flush=True)
    sys.stdin.readline()


def _flush(cache: ExecutionCache) -> None:
    try:
        cache.dump()
    except CacheDumpError as e:
        logger.error(f"Error dumping cache: {e}")


def run(
    config: TerrasolverConfig,
    tg_args: List[str],
    action: Optional[ModuleAction] = None,
    clock: Callable[[], datetime] = datetime.now,
    confirm: Callable[[], None] = wait_for_confirmation,
) -> int:
    """
    Execute one terrasolver run with a resolved configuration.

    Args:
        config: Resolved configuration
        tg_args: Terragrunt command and parameters
        action: Module action (default: TerminalAction)
        clock: Current time source for the cache
        confirm: Blocks until the user confirms the running order

    Returns:
        Process exit status
    """
    modules_path = os.path.abspath(config.path)
    logger.info(f"Terragrunt modules directory: {modules_path}")

    try:
        order = compute_order(config, direction_for_command(tg_args))
    except (DeclarationParseError, SortError) as e:
        logger.error(str(e))
        return EXIT_FAILURE
    except OSError as e:
        logger.error(f"Error scanning modules: {e}")
        return EXIT_FAILURE

    if not order:
        logger.warning(f"No '{config.declaration_ext}' files found in {modules_path}")
        return EXIT_OK

    print_order(modules_path, order)

    if config.dry_run:
        return EXIT_OK

    if not tg_args:
        logger.error("No Terragrunt command given")
        return EXIT_CONFIG

    if not config.skip_confirm:
        confirm()

    run_logger = None
    if config.log_dir:
        try:
            run_logger = RunLogger(config.log_dir)
        except OSError as e:
            logger.error(f"Cannot use log directory {config.log_dir}: {e}")
            return EXIT_CONFIG

    cache = ExecutionCache(config.cache_file, clock=clock)
    if config.no_cache:
        cache.disable()
    try:
        cache.load()
    except CacheLoadError as e:
        logger.error(f"Error loading cache: {e}")
        return EXIT_FAILURE

    if action is None:
        action = TerminalAction(env=action_environment(config), timeout=config.action_timeout)

    coordinator = ExecutionCoordinator(
        order,
        cache,
        action,
        config.terragrunt_bin,
        tg_args,
        ttl=timedelta(minutes=config.cache_duration),
        clock=clock,
        run_logger=run_logger,
    )

    try:
        coordinator.run()
    except ActionExecutionError:
        return EXIT_FAILURE
    except KeyboardInterrupt:
        logger.error("Interrupted")
        _flush(cache)
        return EXIT_INTERRUPTED
    except Exception as e:
        logger.error(f"Unexpected error while running modules: {e}")
        _flush(cache)
        return EXIT_FAILURE

    return EXIT_OK


def main(argv: Optional[List[str]] = None, version_info: Optional[VersionInfo] = None) -> int:
    """CLI entry point."""
    version_info = version_info or get_version_info()
    args = build_parser().parse_args(argv)

    if args.version:
        for line in version_info.lines():
            print(line)
        return EXIT_OK

    setup_logging("DEBUG" if args.verbose else "INFO")

    try:
        config = load_config(cli_values(args), config_path=args.config)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_CONFIG

    setup_logging(config.log_level)

    tg_args = list(args.command)
    if config.auto_approve:
        tg_args = inject_auto_approve(tg_args)

    try:
        return run(config, tg_args)
    except KeyboardInterrupt:
        print()
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    sys.exit(main())
