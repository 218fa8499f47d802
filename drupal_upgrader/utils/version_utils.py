"""
Version string helpers for drupal-upgrader.

Composer versions and constraints are mostly PEP 440 compatible once
their leading operator is removed (``^10.2.1`` → ``10.2.1``), so the
``packaging`` library is used for comparisons.
"""

from __future__ import annotations

import re
from typing import Optional, Tuple

from packaging.version import InvalidVersion, Version, parse

#: Leading constraint operators and the ``v`` tag prefix.
_CONSTRAINT_PREFIX = re.compile(r"^\s*(?:\^|~|>=|<=|==|>|<|=)?\s*v?", re.IGNORECASE)


def strip_constraint(value: str) -> str:
    """Remove a leading constraint operator and ``v`` prefix.

    Examples:
        >>> strip_constraint("^10.2.1")
        '10.2.1'
        >>> strip_constraint(">= 9.5")
        '9.5'
        >>> strip_constraint("v11.0.0")
        '11.0.0'
    """
    return _CONSTRAINT_PREFIX.sub("", value, count=1).strip()


def parse_release(value: str) -> Optional[Version]:
    """Parse a Composer version or single constraint into a ``Version``.

    Returns:
        The parsed version, or ``None`` if it is not a plain release
        (``dev-main``, ``9.5.x-dev``, ranges, ...).
    """
    try:
        parsed = parse(strip_constraint(value))
    except InvalidVersion:
        return None
    return parsed if isinstance(parsed, Version) else None


def get_update_type(
    current_version: Optional[str],
    target_version: Optional[str],
) -> str:
    """Determine the semantic update type between two versions.

    Returns:
        One of ``"new"``, ``"same"``, ``"downgrade"``, ``"major"``,
        ``"minor"``, ``"patch"``, ``"update"`` or ``"unknown"``.

    Examples:
        >>> get_update_type("9.5.9", "10.0.0")
        'major'
        >>> get_update_type(None, "10.0.0")
        'new'
        >>> get_update_type("^10.2", "10.3.0")
        'minor'
    """
    if current_version is None and target_version is None:
        return "unknown"

    if current_version is None:
        return "new"

    if target_version is None:
        return "unknown"

    current = parse_release(current_version)
    target = parse_release(target_version)
    if current is None or target is None:
        return "unknown"

    if target == current:
        return "same"

    if target < current:
        return "downgrade"

    return _classify_upgrade(current, target)


def _classify_upgrade(current: Version, target: Version) -> str:
    """Classify an upgrade between two valid versions."""
    current_major, current_minor, current_patch = _normalize_release(current)
    target_major, target_minor, target_patch = _normalize_release(target)

    if current_major != target_major:
        return "major"

    if current_minor != target_minor:
        return "minor"

    if current_patch != target_patch:
        return "patch"

    return "update"


def _normalize_release(version: Version) -> Tuple[int, int, int]:
    """Normalize a version's release segment to (major, minor, patch)."""
    release = version.release
    major = release[0] if len(release) > 0 else 0
    minor = release[1] if len(release) > 1 else 0
    patch = release[2] if len(release) > 2 else 0
    return major, minor, patch
