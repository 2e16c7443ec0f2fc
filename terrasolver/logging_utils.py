"""
Logging Utilities for Terrasolver

setup_logging() configures the console logger used by every module.
RunLogger optionally records each module action to a log directory, with secrets
masked, so a run can be audited after the terminal output is gone.

Author: Terrasolver contributors | github.com/Burmuley/terrasolver | 2026-10-19
"""

import json
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

LOG_FORMAT = "%(asctime)s | %(levelname)-7s | %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"

# Every -var value and TF_VAR_* assignment is masked, whatever its name.
SECRET_PATTERNS = [
    # -var 'name=value', -var=name=value
    (re.compile(r"(-var[=\s]+['\"]?)([A-Za-z_][A-Za-z0-9_\-]*)=([^'\"\s]*)"), r"\1\2=***"),
    # TF_VAR_db_password=value
    (re.compile(r"\b(TF_VAR_[A-Za-z0-9_]+)=([^'\"\s]+)"), r"\1=***"),
    # AWS_SECRET_ACCESS_KEY=..., GITHUB_TOKEN: ..., db_password=...
    (re.compile(r"([A-Za-z0-9_]*(?:SECRET|TOKEN|PASSWORD|API_KEY)[A-Za-z0-9_]*)[=:]\s*['\"]?([^'\"\s]+)", re.I), r"\1=***"),
    # AWS access key ids
    (re.compile(r"\b(AKIA|ASIA)[A-Z0-9]{16}\b"), "***"),
]


def setup_logging(level: Union[str, int] = "INFO") -> None:
    """Configure console logging for the CLI."""
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        force=True,
    )


def mask_secrets(text: str) -> str:
    """
    Mask secrets in text before logging.

    Args:
        text: Raw text that may contain secrets

    Returns:
        Text with secrets replaced by ***
    """
    masked = text
    for pattern, replacement in SECRET_PATTERNS:
        masked = pattern.sub(replacement, masked)
    return masked


class RunLogger:
    """
    File-based log of module actions.

    Logs are written to:
    - {log_dir}/commands.log - Human-readable text log
    - {log_dir}/events.jsonl - Structured JSONL log
    """

    def __init__(self, log_dir: Union[str, Path], mask_secrets_enabled: bool = True):
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.mask_secrets_enabled = mask_secrets_enabled

        self.text_log = self.log_dir / "commands.log"
        self.json_log = self.log_dir / "events.jsonl"

    def _mask_if_enabled(self, text: str) -> str:
        if self.mask_secrets_enabled:
            return mask_secrets(text)
        return text

    def log_text(self, line: str) -> None:
        """Append a timestamped line to the text log."""
        timestamp = datetime.now().isoformat(timespec="seconds")
        with self.text_log.open("a", encoding="utf-8") as f:
            f.write(f"[{timestamp}] {self._mask_if_enabled(line)}\n")

    def log_jsonl(self, event_type: str, data: Dict[str, Any]) -> None:
        """Append a structured event to the events log."""
        event = {
            "timestamp": datetime.now().isoformat(timespec="seconds"),
            "type": event_type,
            "data": data,
        }
        with self.json_log.open("a", encoding="utf-8") as f:
            f.write(self._mask_if_enabled(json.dumps(event)) + "\n")

    def log_command(
        self,
        command: str,
        cwd: str,
        returncode: Optional[int],
        duration_ms: Optional[float] = None,
        error: Optional[str] = None,
    ) -> None:
        """
        Log a module action to both text and JSONL logs.

        Args:
            command: Command line that was executed
            cwd: Module directory
            returncode: Exit status, or None if the process never completed
            duration_ms: Execution duration in milliseconds
            error: Failure description, if any
        """
        summary = f'CMD="{command}" CWD=\'{cwd}\' RC={returncode}'
        if duration_ms is not None:
            summary += f" DURATION={duration_ms:.1f}ms"
        if error:
            summary += f" ERROR={error}"
        self.log_text(summary)

        data: Dict[str, Any] = {"command": command, "cwd": cwd, "returncode": returncode}
        if duration_ms is not None:
            data["duration_ms"] = duration_ms
        if error:
            data["error"] = error
        self.log_jsonl("command", data)

    def log_event(self, event: str, details: str = "") -> None:
        """Log a non-command event (skip, abort) to both logs."""
        line = f"EVENT={event}"
        if details:
            line += f" DETAILS={details}"
        self.log_text(line)
        self.log_jsonl(event, {"details": details})
