"""
Execution Coordinator: Runs the module action over the sorted order.

One module at a time, in order:
1. Skip modules that succeeded within the cooldown window
2. Run the action for the others
3. Record each success in the cache
4. Stop at the first failure, after saving the cache

Later modules may rely on earlier ones having succeeded, so nothing runs after
a failure.

Author: Terrasolver contributors | github.com/Burmuley/terrasolver | 2026-10-19
"""

import logging
import shlex
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, List, Optional, Protocol, Sequence

from terrasolver.cache import ExecutionCache
from terrasolver.errors import ActionExecutionError, CacheDumpError
from terrasolver.logging_utils import RunLogger, mask_secrets

logger = logging.getLogger(__name__)


class ModuleAction(Protocol):
    """Runs a command in a module directory; raises ActionExecutionError on failure."""

    def exec(self, working_dir: str, name: str, *args: str) -> None:
        ...


class ModuleStatus(str, Enum):
    PENDING = "pending"
    SKIPPED = "skipped"
    COMPLETED = "completed"
    FAILED = "failed"


class ExecutionStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class ExecModule:
    """A module scheduled for execution."""
    path: str
    status: ModuleStatus = ModuleStatus.PENDING


class ExecQueue:
    """
    Single-pass cursor over the ordered modules.

    next() returns each module once, then None forever.
    """

    def __init__(self, paths: Sequence[str]):
        self.modules: List[ExecModule] = [ExecModule(path=p) for p in paths]
        self._current = -1

    def next(self) -> Optional[ExecModule]:
        if self._current >= len(self.modules) - 1:
            self._current = len(self.modules)
            return None
        self._current += 1
        return self.modules[self._current]

    def __len__(self) -> int:
        return len(self.modules)


@dataclass
class ExecutionReport:
    """
    Outcome of a coordinator run.

    Attributes:
        status: COMPLETED if every module succeeded or was skipped
        executed: Modules whose action succeeded, in order
        skipped: Modules skipped by the cache
        failed: Module whose action failed (at most one)
        pending: Modules never reached
        duration_seconds: Wall time of the run
        error: The failure, if any
    """
    status: ExecutionStatus
    executed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    pending: List[str] = field(default_factory=list)
    duration_seconds: float = 0.0
    error: Optional[ActionExecutionError] = None


class ExecutionCoordinator:
    """
    Drives the module action over an ordered list of modules.

    Example:
        coordinator = ExecutionCoordinator(
            order, cache, TerminalAction(), "terragrunt", ["apply"],
            ttl=timedelta(minutes=30),
        )
        report = coordinator.run()
    """

    def __init__(
        self,
        order: Sequence[str],
        cache: ExecutionCache,
        action: ModuleAction,
        command: str,
        args: Sequence[str] = (),
        ttl: timedelta = timedelta(minutes=30),
        clock: Callable[[], datetime] = datetime.now,
        run_logger: Optional[RunLogger] = None,
    ):
        """
        Initialize the coordinator.

        Args:
            order: Module paths in execution order
            cache: Loaded execution cache
            action: Module action contract
            command: Executable to run in each module
            args: Arguments passed to the executable
            ttl: Cooldown window
            clock: Returns the current time (timestamps recorded in the cache)
            run_logger: Optional file log of actions
        """
        self.queue = ExecQueue(order)
        self.cache = cache
        self.action = action
        self.command = command
        self.args = list(args)
        self.ttl = ttl
        self.clock = clock
        self.run_logger = run_logger

    @property
    def command_line(self) -> str:
        return shlex.join([self.command, *self.args])

    def run(self) -> ExecutionReport:
        """
        Process every module in order.

        Returns:
            ExecutionReport of a completed run

        Raises:
            ActionExecutionError: If a module action fails; the cache has been
                saved (best effort) and no later module was attempted
        """
        report = ExecutionReport(status=ExecutionStatus.COMPLETED)
        start = time.monotonic()

        module = self.queue.next()
        while module is not None:
            logger.info(f"Working on {module.path} ...")

            if not self.cache.expired(module.path, self.ttl):
                logger.info(f"Module '{module.path}' has been applied recently, skipping...")
                module.status = ModuleStatus.SKIPPED
                report.skipped.append(module.path)
                if self.run_logger:
                    self.run_logger.log_event("skip", module.path)
                module = self.queue.next()
                continue

            try:
                self._execute(module)
            except ActionExecutionError as e:
                module.status = ModuleStatus.FAILED
                report.status = ExecutionStatus.FAILED
                report.failed.append(module.path)
                report.pending = [m.path for m in self.queue.modules if m.status is ModuleStatus.PENDING]
                report.duration_seconds = time.monotonic() - start
                report.error = e
                self._abort(report)
                raise

            module.status = ModuleStatus.COMPLETED
            self.cache.add(module.path, self.clock())
            report.executed.append(module.path)
            module = self.queue.next()

        report.duration_seconds = time.monotonic() - start
        self._save_cache()
        logger.info(
            f"Done: {len(report.executed)} executed, {len(report.skipped)} skipped "
            f"({report.duration_seconds:.1f}s)"
        )
        return report

    def _execute(self, module: ExecModule) -> None:
        logger.info(mask_secrets(self.command_line))
        started = time.monotonic()
        returncode: Optional[int] = 0
        error: Optional[str] = None
        try:
            self.action.exec(module.path, self.command, *self.args)
        except ActionExecutionError as e:
            returncode, error = e.returncode, e.reason
            raise
        finally:
            if self.run_logger:
                self.run_logger.log_command(
                    self.command_line,
                    module.path,
                    returncode,
                    duration_ms=(time.monotonic() - started) * 1000,
                    error=error,
                )

    def _abort(self, report: ExecutionReport) -> None:
        self._save_cache()
        logger.error(
            f"Stopping: {report.error}. "
            f"{len(report.pending)} remaining module(s) not attempted"
        )
        if self.run_logger:
            self.run_logger.log_event("abort", str(report.error))

    def _save_cache(self) -> None:
        try:
            self.cache.dump()
        except CacheDumpError as e:
            logger.error(f"Error dumping cache: {e}")
