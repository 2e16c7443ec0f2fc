"""
Pytest Configuration and Fixtures
"""

import os
import sys
import tempfile
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Generator, List, Optional

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(os.path.realpath(tmpdir))


def write_module(root: Path, name: str, dependencies: Optional[List[str]] = None) -> Path:
    """Create a Terragrunt module directory with a terragrunt.hcl file."""
    module_dir = root / name
    module_dir.mkdir(parents=True, exist_ok=True)

    blocks = ['terraform {\n  source = "git::https://example.com/modules.git//x"\n}\n']
    for i, target in enumerate(dependencies or []):
        blocks.append(f'dependency "dep{i}" {{\n  config_path = "{target}"\n}}\n')

    (module_dir / "terragrunt.hcl").write_text("\n".join(blocks))
    return module_dir


@pytest.fixture
def module_tree(temp_dir: Path) -> Path:
    """
    Sample infrastructure tree:

        live/vpc            (no dependencies)
        live/database  ->   vpc
        live/app       ->   database, vpc
    """
    live = temp_dir / "live"
    write_module(live, "vpc")
    write_module(live, "database", ["../vpc"])
    write_module(live, "app", ["../database", "../vpc"])
    return live


class FakeClock:
    """Settable clock for cache and coordinator tests."""

    def __init__(self, now: Optional[datetime] = None):
        self.now = now or datetime(2024, 6, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


class RecordingAction:
    """ModuleAction that records calls and fails for selected modules."""

    def __init__(self, fail: Optional[Callable[[str], bool]] = None):
        self.calls = []
        self.fail = fail or (lambda path: False)

    def exec(self, working_dir: str, name: str, *args: str) -> None:
        from terrasolver.errors import ActionExecutionError

        self.calls.append((working_dir, name, list(args)))
        if self.fail(working_dir):
            raise ActionExecutionError(working_dir, f"{name} exited with status 1", 1)

    @property
    def paths(self) -> List[str]:
        return [call[0] for call in self.calls]


@pytest.fixture
def recording_action() -> RecordingAction:
    return RecordingAction()
