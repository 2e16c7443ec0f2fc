"""
Terrasolver Version Management

Build metadata is passed to the CLI as a VersionInfo value. Release builds can
override the defaults with TERRASOLVER_BUILD_VERSION / TERRASOLVER_BUILD_COMMIT
at process start.

Author: Terrasolver contributors | github.com/Burmuley/terrasolver | 2026-10-19
"""

import os
from dataclasses import dataclass

__version__ = "0.4.0"

REPOSITORY = "github.com/Burmuley/terrasolver"


@dataclass(frozen=True)
class VersionInfo:
    """Build information shown by --version."""
    version: str = __version__
    commit: str = "no commit set"
    repository: str = REPOSITORY

    def lines(self):
        return [
            f"Version:  {self.version}",
            f"Repository:  {self.repository}",
            f"Git commit:  {self.commit}",
        ]


def get_version_info() -> VersionInfo:
    """Build the VersionInfo for this process."""
    return VersionInfo(
        version=os.environ.get("TERRASOLVER_BUILD_VERSION") or __version__,
        commit=os.environ.get("TERRASOLVER_BUILD_COMMIT") or "no commit set",
    )
