"""
Terminal-attached module actions.

TerminalAction runs the external command (terragrunt) inside a pseudo-terminal
so it behaves exactly as when launched by hand: colours, prompts and progress
output all work. While the process runs, a TerminalSession keeps three threads
alive:

- input:  forwards the controlling terminal's input to the pty
- output: forwards the pty's output to the controlling terminal
- resize: copies the terminal size to the pty on every SIGWINCH

The session is stopped and its threads joined when the process exits, and the
terminal mode is restored on every exit path.

Author: Terrasolver contributors | github.com/Burmuley/terrasolver | 2026-10-19
"""

import contextlib
import fcntl
import logging
import os
import pty
import select
import signal
import subprocess
import sys
import termios
import threading
import tty
from typing import List, Mapping, Optional

from terrasolver.errors import ActionExecutionError

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.05
READ_SIZE = 4096
JOIN_TIMEOUT = 2.0
TERMINATE_GRACE = 10.0


def _stream_fd(stream) -> Optional[int]:
    """File descriptor of a standard stream, or None if it has none."""
    try:
        return stream.fileno()
    except (AttributeError, ValueError, OSError):
        return None


def _acquire_controlling_tty() -> None:
    # Runs in the child after setsid(); fd 0 is already the pty slave.
    with contextlib.suppress(OSError):
        fcntl.ioctl(0, termios.TIOCSCTTY, 0)


def copy_window_size(src_fd: int, dst_fd: int) -> None:
    """Copy the terminal window size of src_fd to dst_fd."""
    size = fcntl.ioctl(src_fd, termios.TIOCGWINSZ, b"\0" * 8)
    fcntl.ioctl(dst_fd, termios.TIOCSWINSZ, size)


class TerminalSession:
    """
    Connects a pty master to the controlling terminal for one process lifetime.

    Usage:
        session = TerminalSession(master_fd, stdin_fd, stdout_fd)
        session.start()
        try:
            proc.wait()
        finally:
            session.stop()
    """

    def __init__(self, master_fd: int, stdin_fd: Optional[int], stdout_fd: Optional[int]):
        self.master_fd = master_fd
        self.stdin_fd = stdin_fd
        self.stdout_fd = stdout_fd

        self._stop = threading.Event()
        self._winch = threading.Event()
        self._threads: List[threading.Thread] = []
        self._saved_mode = None
        self._saved_handler = None
        self._interactive = stdin_fd is not None and os.isatty(stdin_fd)

    def start(self) -> None:
        if self._interactive:
            self._resize()
            self._install_resize_handler()
            self._saved_mode = termios.tcgetattr(self.stdin_fd)
            tty.setraw(self.stdin_fd)

        self._spawn(self._pump_output, "pty-output")
        if self.stdin_fd is not None:
            self._spawn(self._pump_input, "pty-input")
        if self._interactive:
            self._spawn(self._watch_resize, "pty-resize")

    def stop(self) -> None:
        self._stop.set()
        try:
            for thread in self._threads:
                thread.join(JOIN_TIMEOUT)
                if thread.is_alive():
                    logger.debug(f"Thread {thread.name} still running after stop")
        finally:
            if self._saved_mode is not None:
                termios.tcsetattr(self.stdin_fd, termios.TCSADRAIN, self._saved_mode)
                self._saved_mode = None
            if self._saved_handler is not None:
                signal.signal(signal.SIGWINCH, self._saved_handler)
                self._saved_handler = None

    # ------------------------ Threads ------------------------

    def _spawn(self, target, name: str) -> None:
        thread = threading.Thread(target=target, name=name, daemon=True)
        self._threads.append(thread)
        thread.start()

    def _pump_output(self) -> None:
        while True:
            try:
                readable, _, _ = select.select([self.master_fd], [], [], POLL_INTERVAL)
                if not readable:
                    if self._stop.is_set():
                        return
                    continue
                data = os.read(self.master_fd, READ_SIZE)
            except (OSError, ValueError):
                # EIO: every slave descriptor is closed
                return
            if not data:
                return
            if self.stdout_fd is not None:
                try:
                    os.write(self.stdout_fd, data)
                except OSError as e:
                    logger.debug(f"Terminal output closed: {e}")
                    self.stdout_fd = None

    def _pump_input(self) -> None:
        while not self._stop.is_set():
            try:
                readable, _, _ = select.select([self.stdin_fd], [], [], POLL_INTERVAL)
                if not readable:
                    continue
                data = os.read(self.stdin_fd, READ_SIZE)
                if not data:
                    return
                os.write(self.master_fd, data)
            except (OSError, ValueError):
                return

    def _watch_resize(self) -> None:
        while not self._stop.is_set():
            if self._winch.wait(POLL_INTERVAL):
                self._winch.clear()
                self._resize()

    # ------------------------ Resize ------------------------

    def _install_resize_handler(self) -> None:
        # Signal handlers can only be installed from the main thread
        if threading.current_thread() is not threading.main_thread():
            return
        self._saved_handler = signal.signal(
            signal.SIGWINCH, lambda signum, frame: self._winch.set()
        )

    def _resize(self) -> None:
        try:
            copy_window_size(self.stdin_fd, self.master_fd)
        except OSError as e:
            logger.warning(f"error resizing pty: {e}")


class TerminalAction:
    """
    Runs a command in a module directory attached to the controlling terminal.

    Implements the ModuleAction contract used by ExecutionCoordinator.
    """

    def __init__(
        self,
        env: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
        stdin_fd: Optional[int] = None,
        stdout_fd: Optional[int] = None,
    ):
        """
        Initialize the action.

        Args:
            env: Process environment (default: os.environ)
            timeout: Seconds before the process group is terminated (None: wait forever)
            stdin_fd: Terminal input descriptor (default: sys.stdin)
            stdout_fd: Terminal output descriptor (default: sys.stdout)
        """
        self.env = dict(os.environ if env is None else env)
        self.timeout = timeout
        self.stdin_fd = _stream_fd(sys.stdin) if stdin_fd is None else stdin_fd
        self.stdout_fd = _stream_fd(sys.stdout) if stdout_fd is None else stdout_fd

    def exec(self, working_dir: str, name: str, *args: str) -> None:
        """
        Run name with args in working_dir and wait for it to exit.

        Raises:
            ActionExecutionError: On launch failure, non-zero exit or timeout
        """
        try:
            master_fd, slave_fd = pty.openpty()
        except OSError as e:
            raise ActionExecutionError(working_dir, f"failed to open a pty: {e}") from e

        try:
            try:
                proc = subprocess.Popen(
                    [name, *args],
                    cwd=working_dir,
                    env=self.env,
                    stdin=slave_fd,
                    stdout=slave_fd,
                    stderr=slave_fd,
                    start_new_session=True,
                    preexec_fn=_acquire_controlling_tty,
                )
            except (OSError, subprocess.SubprocessError) as e:
                raise ActionExecutionError(working_dir, f"failed to start {name}: {e}") from e
            finally:
                os.close(slave_fd)

            session = TerminalSession(master_fd, self.stdin_fd, self.stdout_fd)
            try:
                try:
                    session.start()
                except (OSError, termios.error) as e:
                    raise ActionExecutionError(
                        working_dir, f"failed to attach terminal: {e}"
                    ) from e
                returncode = self._wait(proc, working_dir)
            except BaseException:
                if proc.poll() is None:
                    self._terminate(proc)
                raise
            finally:
                session.stop()
        finally:
            os.close(master_fd)

        if returncode != 0:
            raise ActionExecutionError(
                working_dir, f"{name} exited with status {returncode}", returncode
            )

    def _wait(self, proc: subprocess.Popen, working_dir: str) -> int:
        try:
            return proc.wait(timeout=self.timeout)
        except subprocess.TimeoutExpired:
            logger.error(f"Action in {working_dir} exceeded {self.timeout}s, terminating")
            self._terminate(proc)
            raise ActionExecutionError(
                working_dir, f"timed out after {self.timeout}s"
            ) from None

    @staticmethod
    def _terminate(proc: subprocess.Popen) -> None:
        with contextlib.suppress(ProcessLookupError):
            os.killpg(proc.pid, signal.SIGTERM)
        try:
            proc.wait(timeout=TERMINATE_GRACE)
        except subprocess.TimeoutExpired:
            with contextlib.suppress(ProcessLookupError):
                os.killpg(proc.pid, signal.SIGKILL)
            proc.wait()
