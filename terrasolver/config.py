"""
Terrasolver Configuration
=========================

Settings are resolved in layers, each overriding the previous one:

1. Built-in defaults
2. terrasolver.yaml (if found)
3. Command-line flags
4. TERRASOLVER_* environment variables

Environment variables take precedence over command-line flags, so a CI job can
pin a setting regardless of how the tool is invoked.

Author: Terrasolver contributors | github.com/Burmuley/terrasolver | 2026-10-19
"""

import logging
import os
import shutil
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from terrasolver.errors import ConfigurationError
from terrasolver.files import DEFAULT_EXTENSION, DEFAULT_IGNORE_PATHS

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "terrasolver.yaml"
TERRAGRUNT_BIN_DEFAULT = "/usr/local/bin/terragrunt"
PLUGIN_CACHE_ENV = "TF_PLUGIN_CACHE_DIR"
AUTO_APPROVE_FLAG = "-auto-approve"

TRUE_VALUES = ("true", "1", "yes")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


# =============================================================================
# Configuration Data Class
# =============================================================================

@dataclass
class TerrasolverConfig:
    """Resolved settings for one run."""
    path: str = field(default_factory=os.getcwd)
    skip_confirm: bool = False
    terragrunt_bin: str = ""  # empty: look up on PATH
    deep_dive: bool = True
    auto_approve: bool = True
    plugin_cache_dir: str = "~/.terraform.d/plugin-cache"  # empty: disabled
    suppress_warnings: bool = True
    no_cache: bool = False
    cache_duration: int = 30  # minutes
    cache_file: str = ".terrasolver-cache"
    declaration_ext: str = DEFAULT_EXTENSION
    ignore_paths: List[str] = field(default_factory=lambda: list(DEFAULT_IGNORE_PATHS))
    action_timeout: Optional[float] = None  # seconds
    log_dir: Optional[str] = None
    dry_run: bool = False
    log_level: str = "INFO"


BOOL_FIELDS = {"skip_confirm", "deep_dive", "auto_approve", "suppress_warnings", "no_cache", "dry_run"}
INT_FIELDS = {"cache_duration"}
FLOAT_FIELDS = {"action_timeout"}
LIST_FIELDS = {"ignore_paths"}

ENV_VARS = {
    "path": "TERRASOLVER_PATH",
    "skip_confirm": "TERRASOLVER_SKIP_CONFIRM",
    "terragrunt_bin": "TERRASOLVER_TERRAGRUNT_BIN",
    "deep_dive": "TERRASOLVER_DEEP_DIVE",
    "auto_approve": "TERRASOLVER_AUTO_APPROVE",
    "plugin_cache_dir": "TERRASOLVER_PLUGIN_CACHE_DIR",
    "suppress_warnings": "TERRASOLVER_SUPPRESS_WARNINGS",
    "no_cache": "TERRASOLVER_NO_CACHE",
    "cache_duration": "TERRASOLVER_CACHE_DURATION",
    "cache_file": "TERRASOLVER_CACHE_FILE",
    "declaration_ext": "TERRASOLVER_DECLARATION_EXT",
    "ignore_paths": "TERRASOLVER_IGNORE_PATHS",
    "action_timeout": "TERRASOLVER_ACTION_TIMEOUT",
    "log_dir": "TERRASOLVER_LOG_DIR",
    "dry_run": "TERRASOLVER_DRY_RUN",
    "log_level": "TERRASOLVER_LOG_LEVEL",
}

# Read only when the TERRASOLVER_ variable is unset
LEGACY_ENV_VARS = {
    "plugin_cache_dir": PLUGIN_CACHE_ENV,
}

CONFIG_ENV_VAR = "TERRASOLVER_CONFIG"


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in TRUE_VALUES


def coerce_value(name: str, value: Any) -> Any:
    """
    Convert a raw setting (YAML, flag or environment string) to the field's type.

    Raises:
        ConfigurationError: If a numeric value cannot be parsed
    """
    if value is None:
        return None
    if name in BOOL_FIELDS:
        return parse_bool(value)
    try:
        if name in INT_FIELDS:
            return int(value)
        if name in FLOAT_FIELDS:
            return float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Invalid value for {name}: {value!r}") from None
    if name in LIST_FIELDS:
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return [str(item) for item in value]
    return str(value)


# =============================================================================
# Configuration Loader
# =============================================================================

def find_config_file(start_path: Optional[Path] = None) -> Optional[Path]:
    """
    Find terrasolver.yaml by searching upward from start_path.

    Search order:
    1. start_path / terrasolver.yaml
    2. start_path / .terrasolver / terrasolver.yaml
    3. Parent directories (recursive)
    4. ~/.config/terrasolver/terrasolver.yaml

    Args:
        start_path: Starting directory (defaults to cwd)

    Returns:
        Path to config file or None if not found
    """
    if start_path is None:
        start_path = Path.cwd()

    current = Path(start_path).resolve()
    while True:
        for candidate in (current / CONFIG_FILE_NAME, current / ".terrasolver" / CONFIG_FILE_NAME):
            if candidate.is_file():
                return candidate
        if current.parent == current:
            break
        current = current.parent

    user_config = Path.home() / ".config" / "terrasolver" / CONFIG_FILE_NAME
    if user_config.is_file():
        return user_config

    return None


def load_config(
    cli_values: Optional[Mapping[str, Any]] = None,
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> TerrasolverConfig:
    """
    Resolve the configuration for a run.

    Args:
        cli_values: Settings given on the command line; None values are ignored
        config_path: Explicit YAML file (otherwise TERRASOLVER_CONFIG or search)
        environ: Environment mapping (defaults to os.environ)

    Returns:
        TerrasolverConfig instance

    Raises:
        ConfigurationError: If an explicit config file is missing or a value is invalid
    """
    environ = os.environ if environ is None else environ
    cli_values = {k: v for k, v in (cli_values or {}).items() if v is not None}
    config = TerrasolverConfig()

    if config_path is None and environ.get(CONFIG_ENV_VAR):
        config_path = Path(environ[CONFIG_ENV_VAR])

    if config_path is not None:
        if not Path(config_path).is_file():
            raise ConfigurationError(f"Config file not found: {config_path}")
    else:
        start = environ.get(ENV_VARS["path"]) or cli_values.get("path")
        config_path = find_config_file(Path(start) if start else None)

    if config_path:
        logger.debug(f"Loading config from: {config_path}")
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                raise ValueError("top level must be a mapping")
            _apply_values(config, data, source=str(config_path))
        except (OSError, ValueError, yaml.YAMLError) as e:
            logger.warning(f"Failed to load config {config_path}: {e}, ignoring it")

    _apply_values(config, cli_values, source="command line")
    _apply_env_overrides(config, environ)
    _validate_config(config)

    if not config.terragrunt_bin:
        config.terragrunt_bin = lookup_terragrunt_bin(TERRAGRUNT_BIN_DEFAULT)

    return config


def _apply_values(config: TerrasolverConfig, values: Mapping[str, Any], source: str) -> None:
    known = {f.name for f in fields(config)}
    for name, value in values.items():
        if name not in known:
            logger.warning(f"Unknown setting '{name}' in {source}, ignoring it")
            continue
        setattr(config, name, coerce_value(name, value))


def _apply_env_overrides(config: TerrasolverConfig, environ: Mapping[str, str]) -> None:
    """Apply environment variable overrides to config."""
    for name, var in ENV_VARS.items():
        value = environ.get(var)
        if not value and name in LEGACY_ENV_VARS:
            value = environ.get(LEGACY_ENV_VARS[name])
        if value:
            setattr(config, name, coerce_value(name, value))


def _validate_config(config: TerrasolverConfig) -> None:
    """Validate configuration; fix soft problems with a warning."""
    if config.cache_duration < 0:
        raise ConfigurationError(f"cache_duration must be >= 0, got {config.cache_duration}")

    if config.action_timeout is not None and config.action_timeout <= 0:
        raise ConfigurationError(f"action_timeout must be > 0, got {config.action_timeout}")

    if config.log_level.upper() not in LOG_LEVELS:
        logger.warning(f"Unknown log level '{config.log_level}', defaulting to 'INFO'")
        config.log_level = "INFO"
    config.log_level = config.log_level.upper()

    if not config.declaration_ext.startswith("."):
        config.declaration_ext = "." + config.declaration_ext


# =============================================================================
# Derived Settings
# =============================================================================

def lookup_terragrunt_bin(default_path: str = TERRAGRUNT_BIN_DEFAULT) -> str:
    """Locate terragrunt on PATH, falling back to default_path."""
    path = shutil.which("terragrunt")
    if path is None:
        logger.info(f"Terragrunt binary was not found in path, using default value {default_path}")
        return default_path
    return path


def inject_auto_approve(args: List[str]) -> List[str]:
    """
    Append -auto-approve to an apply command line that lacks it.

    Only `apply` accepts the flag, so other commands are returned unchanged.
    """
    if "apply" in args and AUTO_APPROVE_FLAG not in args:
        return [*args, AUTO_APPROVE_FLAG]
    return list(args)


def prepare_plugin_cache_dir(path: str) -> Optional[str]:
    """
    Expand and create the Terraform plugin cache directory.

    Args:
        path: Configured directory; "~" and "$HOME" are expanded

    Returns:
        Absolute directory path, or None if it is disabled or cannot be created
    """
    if not path:
        return None

    home = str(Path.home())
    path = path.replace("$HOME", home)
    path = os.path.abspath(os.path.expanduser(path))

    try:
        os.makedirs(path, exist_ok=True)
    except OSError as e:
        logger.error(f"error creating Terraform cache directory: {e}")
        return None

    return path


def action_environment(
    config: TerrasolverConfig, base: Optional[Mapping[str, str]] = None
) -> Dict[str, str]:
    """Environment for module actions: base (os.environ) plus overrides."""
    env = dict(os.environ if base is None else base)
    plugin_cache = prepare_plugin_cache_dir(config.plugin_cache_dir)
    if plugin_cache:
        env[PLUGIN_CACHE_ENV] = plugin_cache
    return env
