"""Configuration loading for renvcheck.

Precedence, lowest to highest: built-in defaults from ``constants``, the YAML
(or JSON) config file, environment variables, CLI options. Invalid values
raise ``ConfigError`` which the CLI maps to the configuration exit code.
"""

from __future__ import annotations

import json
import logging
import os
import shlex
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

from analysis.models import ScanMode
from common.errors import ConfigError
from constants import Constants
from scan.name_filter import FilterConfig

logger = logging.getLogger(__name__)

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass
class ScanSettings:
    standard_dirs: Tuple[str, ...] = Constants.STANDARD_DIRS
    strict_dirs: Tuple[str, ...] = Constants.STRICT_DIRS
    extensions: Tuple[str, ...] = Constants.FILE_EXTENSIONS
    exclude: Tuple[str, ...] = ()
    include_top_level: bool = True
    declaration_fields: Tuple[str, ...] = Constants.DECLARATION_FIELDS
    strict_declaration_fields: Tuple[str, ...] = Constants.STRICT_DECLARATION_FIELDS


@dataclass
class FilterSettings:
    ignore: Tuple[str, ...] = ()
    placeholders: Tuple[str, ...] = ()
    protected: Tuple[str, ...] = Constants.PROTECTED_PACKAGES
    min_length: int = Constants.MIN_PACKAGE_LENGTH


@dataclass
class RegistrySettings:
    url: str = Constants.REGISTRY_URL
    timeout: float = Constants.REQUEST_TIMEOUT
    retries: int = Constants.HTTP_RETRY_MAX
    backoff: float = Constants.HTTP_RETRY_BASE_DELAY_SEC
    max_workers: int = 1
    check_declared: bool = False


@dataclass
class SnapshotSettings:
    enabled: bool = True
    adjust_timestamp: bool = True
    backdate_days: float = Constants.SNAPSHOT_BACKDATE_DAYS
    command: Tuple[str, ...] = Constants.SNAPSHOT_COMMAND
    timeout: float = Constants.SNAPSHOT_TIMEOUT_SEC


@dataclass
class RenvCheckConfig:
    """Resolved runtime configuration."""
    scan: ScanSettings = field(default_factory=ScanSettings)
    filter: FilterSettings = field(default_factory=FilterSettings)
    registry: RegistrySettings = field(default_factory=RegistrySettings)
    snapshot: SnapshotSettings = field(default_factory=SnapshotSettings)
    fail_on_unused: bool = False
    source: Optional[str] = None

    def scan_roots(self, mode: ScanMode) -> Tuple[str, ...]:
        return self.scan.strict_dirs if mode is ScanMode.STRICT else self.scan.standard_dirs

    def declaration_fields(self, mode: ScanMode) -> Tuple[str, ...]:
        """DESCRIPTION fields whose packages count as declared in ``mode``."""
        if mode is ScanMode.STRICT:
            return self.scan.strict_declaration_fields
        return self.scan.declaration_fields

    def filter_config(self, self_package: Optional[str] = None) -> FilterConfig:
        base = FilterConfig(min_length=self.filter.min_length)
        return base.with_extra(
            placeholder_words=self.filter.placeholders,
            ignored=self.filter.ignore,
            exclude_globs=self.scan.exclude,
        ).with_self_package(self_package)


def _as_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ConfigError(f"'{key}' must be a boolean, got {value!r}")


def _as_number(value: Any, key: str, kind=float, minimum: float = 0) -> Any:
    if isinstance(value, bool):
        raise ConfigError(f"'{key}' must be a number, got {value!r}")
    try:
        number = kind(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"'{key}' must be a number, got {value!r}") from exc
    if number < minimum:
        raise ConfigError(f"'{key}' must be >= {minimum}, got {number}")
    return number


def _as_str_tuple(value: Any, key: str) -> Tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
        return tuple(value)
    raise ConfigError(f"'{key}' must be a list of strings")


def _as_command(value: Any, key: str) -> Tuple[str, ...]:
    if isinstance(value, str):
        parts = shlex.split(value)
    else:
        parts = list(_as_str_tuple(value, key))
    if not parts:
        raise ConfigError(f"'{key}' must not be empty")
    return tuple(parts)


def _section(data: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{name}' section must be a mapping")
    return value


def config_from_dict(data: Mapping[str, Any], source: Optional[str] = None) -> RenvCheckConfig:
    """Build a RenvCheckConfig from a parsed config mapping."""
    if not isinstance(data, dict):
        raise ConfigError("configuration root must be a mapping")
    cfg = RenvCheckConfig(source=source)

    scan = _section(data, "scan")
    for key in ("standard_dirs", "strict_dirs", "extensions", "exclude", "declaration_fields",
                "strict_declaration_fields"):
        if key in scan:
            setattr(cfg.scan, key, _as_str_tuple(scan[key], f"scan.{key}"))
    if "include_top_level" in scan:
        cfg.scan.include_top_level = _as_bool(scan["include_top_level"], "scan.include_top_level")

    flt = _section(data, "filter")
    for key in ("ignore", "placeholders", "protected"):
        if key in flt:
            setattr(cfg.filter, key, _as_str_tuple(flt[key], f"filter.{key}"))
    if "min_length" in flt:
        cfg.filter.min_length = _as_number(flt["min_length"], "filter.min_length", int, 1)

    reg = _section(data, "registry")
    if "url" in reg:
        if not isinstance(reg["url"], str) or not reg["url"].startswith(("http://", "https://")):
            raise ConfigError("'registry.url' must be an http(s) URL")
        cfg.registry.url = reg["url"]
    if "timeout" in reg:
        cfg.registry.timeout = _as_number(reg["timeout"], "registry.timeout", float, 0.1)
    if "retries" in reg:
        cfg.registry.retries = _as_number(reg["retries"], "registry.retries", int, 1)
    if "backoff" in reg:
        cfg.registry.backoff = _as_number(reg["backoff"], "registry.backoff", float, 0)
    if "max_workers" in reg:
        cfg.registry.max_workers = _as_number(reg["max_workers"], "registry.max_workers", int, 1)
    if "check_declared" in reg:
        cfg.registry.check_declared = _as_bool(reg["check_declared"], "registry.check_declared")

    snap = _section(data, "snapshot")
    if "enabled" in snap:
        cfg.snapshot.enabled = _as_bool(snap["enabled"], "snapshot.enabled")
    if "adjust_timestamp" in snap:
        cfg.snapshot.adjust_timestamp = _as_bool(snap["adjust_timestamp"], "snapshot.adjust_timestamp")
    if "backdate_days" in snap:
        cfg.snapshot.backdate_days = _as_number(snap["backdate_days"], "snapshot.backdate_days", float, 0)
    if "command" in snap:
        cfg.snapshot.command = _as_command(snap["command"], "snapshot.command")
    if "timeout" in snap:
        cfg.snapshot.timeout = _as_number(snap["timeout"], "snapshot.timeout", float, 1)

    if "fail_on_unused" in data:
        cfg.fail_on_unused = _as_bool(data["fail_on_unused"], "fail_on_unused")
    return cfg


def find_config_file(project_dir: str) -> Optional[str]:
    """Return the first default config file present in ``project_dir``."""
    for name in Constants.CONFIG_FILES:
        candidate = os.path.join(project_dir, name)
        if os.path.isfile(candidate):
            return candidate
    return None


def load_config(config_path: Optional[str], project_dir: str) -> RenvCheckConfig:
    """Load configuration from an explicit path or the project defaults.

    Raises:
        ConfigError: If an explicit path is missing or any file is invalid.
    """
    path = config_path
    if path and not os.path.isfile(path):
        raise ConfigError(f"Config file not found: {path}")
    if not path:
        path = find_config_file(project_dir)
    if not path:
        return RenvCheckConfig()

    try:
        with open(path, "r", encoding="utf-8") as fh:
            if path.lower().endswith(".json"):
                data = json.load(fh)
            else:
                data = yaml.safe_load(fh)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        raise ConfigError(f"Failed to load config {path}: {exc}") from exc

    logger.debug("Loaded config from %s", path)
    return config_from_dict(data or {}, source=path)


def _env_bool(env: Mapping[str, str], name: str, default: bool, lenient: bool) -> bool:
    value = env.get(name)
    if not value:
        return default
    try:
        return _as_bool(value, name)
    except ConfigError as exc:
        if not lenient:
            raise
        logger.warning("%s; keeping %s", exc, default)
        return default


def apply_env_overrides(
    cfg: RenvCheckConfig,
    environ: Optional[Mapping[str, str]] = None,
    lenient: bool = False,
) -> RenvCheckConfig:
    """Apply environment variable overrides (snapshot toggles, registry URL).

    With ``lenient`` a malformed toggle is logged and ignored instead of
    raising ``ConfigError``.
    """
    env = os.environ if environ is None else environ
    cfg.snapshot.enabled = _env_bool(env, Constants.ENV_AUTO_SNAPSHOT, cfg.snapshot.enabled, lenient)
    cfg.snapshot.adjust_timestamp = _env_bool(
        env, Constants.ENV_TIMESTAMP_ADJUST, cfg.snapshot.adjust_timestamp, lenient
    )
    value = env.get(Constants.ENV_REGISTRY_URL)
    if value:
        cfg.registry.url = value
    return cfg


def apply_cli_overrides(cfg: RenvCheckConfig, args: Any) -> RenvCheckConfig:
    """Apply CLI overrides with highest precedence."""
    if getattr(args, "FAIL_ON_UNUSED", False):
        cfg.fail_on_unused = True
    if getattr(args, "REGISTRY_URL", None):
        cfg.registry.url = args.REGISTRY_URL
    if getattr(args, "CHECK_REGISTRY", False):
        cfg.registry.check_declared = True
    if getattr(args, "NO_TIMESTAMP_ADJUST", False):
        cfg.snapshot.adjust_timestamp = False
    workers = getattr(args, "WORKERS", None)
    if workers is not None:
        cfg.registry.max_workers = _as_number(workers, "--workers", int, 1)
    return cfg


def resolve_project_dir(cli_value: Optional[str], environ: Optional[Mapping[str, str]] = None) -> str:
    """Project directory from the CLI, the environment, or the CWD.

    Raises:
        ConfigError: If the directory does not exist.
    """
    env = os.environ if environ is None else environ
    project_dir = cli_value or env.get(Constants.ENV_PROJECT_DIR) or os.getcwd()
    if not os.path.isdir(project_dir):
        raise ConfigError(f"Project directory not found: {project_dir}")
    return os.path.abspath(project_dir)


def describe(cfg: RenvCheckConfig) -> Dict[str, Any]:
    """Flattened view of the effective config for DEBUG logging."""
    return {
        "source": cfg.source or "defaults",
        "standard_dirs": list(cfg.scan.standard_dirs),
        "strict_dirs": list(cfg.scan.strict_dirs),
        "registry": cfg.registry.url,
        "snapshot_enabled": cfg.snapshot.enabled,
        "adjust_timestamp": cfg.snapshot.adjust_timestamp,
    }
