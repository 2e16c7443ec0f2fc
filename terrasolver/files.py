"""
Declaration file discovery.

Walks a module tree and collects declaration files by extension, skipping the
working directories Terragrunt and Terraform create inside modules.

Author: Terrasolver contributors | github.com/Burmuley/terrasolver | 2026-10-19
"""

import logging
import os
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = ".hcl"
DEFAULT_IGNORE_PATHS = [
    ".terragrunt-cache",
    ".terraform",
]


def is_ignored(path: str, ignore: Iterable[str]) -> bool:
    """Check if path contains any of the ignore substrings."""
    return any(pattern in path for pattern in ignore)


def find_files_by_ext(
    root: str,
    ext: str = DEFAULT_EXTENSION,
    ignore: Optional[Iterable[str]] = None,
) -> List[str]:
    """
    Find all files with the given extension under root.

    Args:
        root: Directory to walk
        ext: File extension including the dot (e.g. ".hcl")
        ignore: Substrings; any path containing one is skipped

    Returns:
        Sorted list of absolute file paths

    Raises:
        FileNotFoundError: If root does not exist
        NotADirectoryError: If root is not a directory
    """
    root = os.path.abspath(root)
    if not os.path.exists(root):
        raise FileNotFoundError(f"Modules directory not found: {root}")
    if not os.path.isdir(root):
        raise NotADirectoryError(f"Not a directory: {root}")

    ignore = list(DEFAULT_IGNORE_PATHS if ignore is None else ignore)
    files = []

    for dirpath, dirnames, filenames in os.walk(root):
        # Prune ignored directories so we never descend into provider caches
        dirnames[:] = sorted(
            d for d in dirnames if not is_ignored(os.path.join(dirpath, d), ignore)
        )
        for name in filenames:
            if os.path.splitext(name)[1] != ext:
                continue
            path = os.path.join(dirpath, name)
            if not is_ignored(path, ignore):
                files.append(path)

    files.sort()
    logger.debug(f"Found {len(files)} '{ext}' files under {root}")
    return files
