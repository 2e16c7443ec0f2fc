"""
Terragrunt declaration parsing.

Only the dependency blocks matter here:

    dependency "vpc" {
      config_path = "../vpc"
    }

Everything else in the file is ignored. Targets are returned raw; resolving them
against the module directory is the graph builder's job.

Author: Terrasolver contributors | github.com/Burmuley/terrasolver | 2026-10-19
"""

import logging
from typing import Any, Dict, List

import hcl2

from terrasolver.errors import DeclarationParseError

logger = logging.getLogger(__name__)


def _unquote(value: str) -> str:
    """Strip the literal quotes some python-hcl2 releases keep on strings."""
    if len(value) >= 2 and value[0] == value[-1] == '"':
        return value[1:-1]
    return value


def _iter_dependency_blocks(document: Dict[str, Any]):
    """Yield (name, body) for every dependency block in a parsed document."""
    blocks = document.get("dependency", [])
    if isinstance(blocks, dict):
        blocks = [blocks]

    for block in blocks:
        if not isinstance(block, dict):
            continue
        for name, body in block.items():
            # python-hcl2 metadata keys (__start_line__, __is_block__, ...)
            if name.startswith("__"):
                continue
            yield _unquote(name), body


def parse_dependencies(path: str) -> List[str]:
    """
    Extract dependency targets from a declaration file.

    Args:
        path: Path to the .hcl file

    Returns:
        Raw config_path values, in declaration order

    Raises:
        DeclarationParseError: If the file cannot be read or parsed, or a
            dependency block has no string config_path
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            document = hcl2.load(f)
    except Exception as e:
        raise DeclarationParseError(path, f"error parsing HCL: {e}") from e

    targets = []
    for name, body in _iter_dependency_blocks(document):
        config_path = body.get("config_path") if isinstance(body, dict) else None
        if not isinstance(config_path, str):
            raise DeclarationParseError(
                path, f"dependency '{name}' has no string config_path"
            )
        config_path = _unquote(config_path)
        if "${" in config_path:
            raise DeclarationParseError(
                path,
                f"dependency '{name}' uses an expression in config_path: {config_path}",
            )
        targets.append(config_path)

    logger.debug(f"{path}: {len(targets)} dependencies")
    return targets
