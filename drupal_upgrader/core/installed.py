"""Installed package metadata.

Composer records what is actually installed in
``vendor/composer/installed.json``; when the vendor directory is missing
``composer.lock`` describes what would be installed. Either is enough to
find out which Drupal core release the project runs.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from drupal_upgrader.constants import CORE_DETECTION_PACKAGES, INSTALLED_FILE, LOCK_FILE
from drupal_upgrader.exceptions import CoreVersionNotDetectedError, FileOperationError
from drupal_upgrader.utils.filesystem import safe_read_file
from drupal_upgrader.utils.logger import get_logger

logger = get_logger("core.installed")


@dataclass(frozen=True)
class InstalledCore:
    """The core package the version was read from."""

    package: str
    version: str
    source: Path


def read_installed_versions(path: Path) -> Dict[str, str]:
    """Return package name → version from an installed.json or composer.lock.

    Handles the Composer 1 format (a JSON list), the Composer 2 format
    (``{"packages": [...]}``) and lock files (``packages`` plus
    ``packages-dev``). Unreadable or malformed files yield an empty mapping.
    """
    try:
        data = json.loads(safe_read_file(path))
    except (FileOperationError, json.JSONDecodeError) as exc:
        logger.debug("Ignoring %s: %s", path, exc)
        return {}

    entries: List[Any]
    if isinstance(data, list):
        entries = data
    elif isinstance(data, dict):
        entries = list(data.get("packages") or []) + list(data.get("packages-dev") or [])
    else:
        return {}

    versions: Dict[str, str] = {}
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        name = entry.get("name")
        version = entry.get("version")
        if isinstance(name, str) and isinstance(version, str):
            versions[name] = _strip_tag_prefix(version)
    return versions


def _strip_tag_prefix(version: str) -> str:
    return version[1:] if version[:1] in ("v", "V") and version[1:2].isdigit() else version


def detect_core_version(project_dir: Path) -> InstalledCore:
    """Find the installed Drupal core version.

    ``drupal/core-recommended`` is preferred over ``drupal/core`` when both
    are installed. Installed metadata is preferred over the lock file.

    Raises:
        CoreVersionNotDetectedError: No metadata file lists a core package.
    """
    candidates = [Path(project_dir) / INSTALLED_FILE, Path(project_dir) / LOCK_FILE]
    searched: List[str] = []

    for source in candidates:
        if not source.is_file():
            continue
        searched.append(str(source))
        versions = read_installed_versions(source)
        found = _pick_core(versions)
        if found is not None:
            package, version = found
            logger.debug("Core %s %s found in %s", package, version, source)
            return InstalledCore(package=package, version=version, source=source)

    raise CoreVersionNotDetectedError(searched=searched or [str(c) for c in candidates])


def _pick_core(versions: Dict[str, str]) -> Optional[tuple]:
    for package in CORE_DETECTION_PACKAGES:
        if package in versions:
            return package, versions[package]
    return None


def parse_pm_list(output: str) -> Dict[str, Dict[str, Any]]:
    """Parse ``drush pm:list --format=json`` output.

    Returns machine name → extension record (``package``, ``status``,
    ``version``...). Output that is not a JSON object yields an empty
    mapping; Drush prints ``[]`` when nothing matches.
    """
    try:
        data = json.loads(output or "")
    except json.JSONDecodeError:
        logger.debug("Unparseable pm:list output: %.200s", output)
        return {}
    if not isinstance(data, dict):
        return {}
    return {
        name: record if isinstance(record, dict) else {}
        for name, record in data.items()
    }
