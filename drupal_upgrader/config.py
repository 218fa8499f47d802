"""Configuration loader for drupal-upgrader.

Handles discovery, loading, parsing, and validation of configuration files.
Supports two formats:

- ``drupal-upgrader.toml``: settings under the ``[drupal-upgrader]`` table
- ``drupal-upgrader.json``: a flat JSON object (legacy format, which also
  accepts ``phpstan_level`` for ``static_analysis_level``)

Discovery order:

1. Explicit path from ``--config`` or ``DRUPAL_UPGRADER_CONFIG``
2. ``drupal-upgrader.toml`` in the project directory
3. ``drupal-upgrader.json`` in the project directory

Configuration precedence: defaults < config file < command-line options.
The merged :class:`UpgradeConfig` is frozen; it is built once per command
and shared read-only by every component.

Example (``drupal-upgrader.toml``)::

    [drupal-upgrader]
    static_analysis_level = 6
    ignore_paths = ["web/modules/custom/legacy"]
    export_config = true
"""

from __future__ import annotations

import json
from pathlib import Path
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

import tomli as tomllib

from drupal_upgrader.exceptions import ConfigError
from drupal_upgrader.utils.logger import get_logger
from drupal_upgrader.constants import (
    CONFIG_FILE_NAMES,
    CONFIG_SECTION,
    DEFAULT_CRITICAL_KEYWORDS,
    DEFAULT_STATIC_ANALYSIS_LEVEL,
)

logger = get_logger("config")

#: PHPStan accepts rule levels 0 through 10.
MAX_STATIC_ANALYSIS_LEVEL = 10


@dataclass(frozen=True)
class UpgradeConfig:
    """Validated, immutable settings for one upgrade run.

    Attributes:
        dry_run: Log every mutating action instead of performing it.
        skip_backup: Do not archive the project before upgrading.
        skip_compatibility_checks: Skip Upgrade Status and PHPStan.
        auto_fix_dependencies: Rewrite pinned ``drupal/*`` constraints to
            caret constraints before the first step.
        upgrade_contrib_modules: Rewrite constraints of contributed
            ``drupal/*`` packages on every step.
        upgrade_custom_modules: Include custom code in the Upgrade Status
            scan.
        static_analysis_level: PHPStan rule level.
        ignore_paths: Paths excluded from static analysis.
        verbose: Echo external tool output.
        export_config: Run ``drush config:export`` after each step.
        critical_keywords: Words that mark a compatibility issue critical.
        source_path: Config file the values came from, if any.
    """

    dry_run: bool = False
    skip_backup: bool = False
    skip_compatibility_checks: bool = False
    auto_fix_dependencies: bool = True
    upgrade_contrib_modules: bool = True
    upgrade_custom_modules: bool = True
    static_analysis_level: int = DEFAULT_STATIC_ANALYSIS_LEVEL
    ignore_paths: Tuple[str, ...] = ()
    verbose: bool = False
    export_config: bool = False
    critical_keywords: Tuple[str, ...] = tuple(DEFAULT_CRITICAL_KEYWORDS)

    # Metadata (not a user-facing option)
    source_path: Optional[Path] = field(default=None, repr=False, compare=False)

    def to_log_dict(self) -> Dict[str, Any]:
        """Return the options as a dictionary for debug logging."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name != "source_path"
        }

    def with_overrides(self, **overrides: Any) -> "UpgradeConfig":
        """Return a copy with command-line values applied.

        ``None`` values mean "option not given" and leave the current value
        untouched, so unset flags never clobber the config file.

        Raises:
            ConfigError: Unknown option or invalid value.
        """
        given = {key: value for key, value in overrides.items() if value is not None}
        if not given:
            return self
        return replace(self, **_validate_options(given, config_path=None))


#: Options accepted from config files and the command line.
_KNOWN_OPTIONS = frozenset(
    f.name for f in fields(UpgradeConfig) if f.name != "source_path"
)

_BOOL_OPTIONS = frozenset(
    {
        "dry_run",
        "skip_backup",
        "skip_compatibility_checks",
        "auto_fix_dependencies",
        "upgrade_contrib_modules",
        "upgrade_custom_modules",
        "verbose",
        "export_config",
    }
)

_LIST_OPTIONS = frozenset({"ignore_paths", "critical_keywords"})

#: Option names used by drupal-upgrader.json that were renamed since.
_LEGACY_JSON_KEYS: Dict[str, str] = {"phpstan_level": "static_analysis_level"}


def discover_config_file(
    explicit_path: Optional[Path] = None,
    project_dir: Optional[Path] = None,
) -> Optional[Path]:
    """Find the configuration file to load.

    Args:
        explicit_path: Explicit config path. If provided, must exist.
        project_dir: Directory searched for the default file names;
            defaults to the current working directory.

    Returns:
        Resolved path to the config file, or ``None`` if none exists.

    Raises:
        ConfigError: Explicit path provided but does not exist.
    """
    if explicit_path is not None:
        resolved = explicit_path.resolve()
        if not resolved.is_file():
            raise ConfigError(
                f"Configuration file not found: {explicit_path}",
                config_path=str(explicit_path),
            )
        logger.debug("Using explicit config: %s", resolved)
        return resolved

    base = project_dir if project_dir is not None else Path.cwd()
    for name in CONFIG_FILE_NAMES:
        candidate = base / name
        if candidate.is_file():
            logger.debug("Found %s: %s", name, candidate)
            return candidate

    logger.debug("No configuration file found in %s", base)
    return None


def load_config(
    config_path: Optional[Path] = None,
    project_dir: Optional[Path] = None,
) -> UpgradeConfig:
    """Load the file layer of the configuration over the defaults.

    Command-line options are applied afterwards with
    :meth:`UpgradeConfig.with_overrides`.

    Raises:
        ConfigError: File cannot be parsed, has unknown keys, or invalid values.
    """
    resolved = discover_config_file(config_path, project_dir)

    if resolved is None:
        logger.debug("No config file found, using defaults")
        return UpgradeConfig()

    logger.info("Loading configuration from %s", resolved)

    if resolved.suffix == ".json":
        section = _read_json(resolved)
    else:
        section = _read_toml(resolved).get(CONFIG_SECTION, {})

    if not isinstance(section, dict):
        raise ConfigError(
            "Configuration must be a table of options",
            config_path=str(resolved),
        )

    if resolved.suffix == ".json":
        section = _rename_legacy_keys(section, config_path=str(resolved))

    values = _validate_options(section, config_path=str(resolved))
    config = UpgradeConfig(source_path=resolved, **values)

    logger.debug("Loaded configuration: %s", config.to_log_dict())
    return config


def _rename_legacy_keys(
    options: Mapping[str, Any],
    *,
    config_path: Optional[str],
) -> Dict[str, Any]:
    """Map option names of the JSON format onto their current names.

    Raises:
        ConfigError: Both the legacy and the current name are set.
    """
    renamed = dict(options)
    for legacy, current in _LEGACY_JSON_KEYS.items():
        if legacy not in renamed:
            continue
        if current in renamed:
            raise ConfigError(
                f"Set either {legacy} or {current}, not both",
                config_path=config_path,
            )
        logger.debug("Reading legacy option %s as %s", legacy, current)
        renamed[current] = renamed.pop(legacy)
    return renamed


def _read_toml(path: Path) -> Dict[str, Any]:
    """Read and parse a TOML file.

    Raises:
        ConfigError: File cannot be read or is not valid TOML.
    """
    try:
        with open(path, "rb") as fh:
            return tomllib.load(fh)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(
            f"Invalid TOML in {path.name}: {exc}",
            config_path=str(path),
        ) from exc
    except OSError as exc:
        raise ConfigError(
            f"Cannot read configuration file {path}: {exc}",
            config_path=str(path),
        ) from exc


def _read_json(path: Path) -> Any:
    """Read and parse a JSON configuration file.

    Raises:
        ConfigError: File cannot be read or is not valid JSON.
    """
    try:
        with open(path, "r", encoding="utf-8") as fh:
            return json.load(fh)
    except json.JSONDecodeError as exc:
        raise ConfigError(
            f"Invalid JSON in {path.name}: {exc}",
            config_path=str(path),
        ) from exc
    except OSError as exc:
        raise ConfigError(
            f"Cannot read configuration file {path}: {exc}",
            config_path=str(path),
        ) from exc


def _validate_options(
    options: Mapping[str, Any],
    *,
    config_path: Optional[str],
) -> Dict[str, Any]:
    """Validate raw option values and normalize them for :class:`UpgradeConfig`.

    Rejects unknown keys and type mismatches. Lists are converted to
    de-duplicated tuples that keep their first-seen order.

    Raises:
        ConfigError: Unknown keys or incorrect types.
    """
    unknown = set(options) - _KNOWN_OPTIONS
    if unknown:
        raise ConfigError(
            f"Unknown configuration keys: {', '.join(sorted(unknown))}",
            config_path=config_path,
        )

    values: Dict[str, Any] = {}

    for key, val in options.items():
        if key in _BOOL_OPTIONS:
            if not isinstance(val, bool):
                raise ConfigError(
                    f"{key} must be a boolean, got {type(val).__name__}",
                    config_path=config_path,
                    option=key,
                )
            values[key] = val

        elif key == "static_analysis_level":
            # bool is a subclass of int; reject it explicitly
            if isinstance(val, bool) or not isinstance(val, int):
                raise ConfigError(
                    f"{key} must be an integer, got {type(val).__name__}",
                    config_path=config_path,
                    option=key,
                )
            if not 0 <= val <= MAX_STATIC_ANALYSIS_LEVEL:
                raise ConfigError(
                    f"{key} must be between 0 and {MAX_STATIC_ANALYSIS_LEVEL}, got {val}",
                    config_path=config_path,
                    option=key,
                )
            values[key] = val

        elif key in _LIST_OPTIONS:
            values[key] = _string_tuple(val, key=key, config_path=config_path)

    return values


def _string_tuple(
    value: Any,
    *,
    key: str,
    config_path: Optional[str],
) -> Tuple[str, ...]:
    if isinstance(value, str) or not isinstance(value, Iterable):
        raise ConfigError(
            f"{key} must be a list of strings, got {type(value).__name__}",
            config_path=config_path,
            option=key,
        )

    items = list(value)
    if not all(isinstance(item, str) and item.strip() for item in items):
        raise ConfigError(
            f"{key} must contain only non-empty strings",
            config_path=config_path,
            option=key,
        )

    return tuple(dict.fromkeys(item.strip() for item in items))
