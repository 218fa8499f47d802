"""Upgrade path planning and constraint computation.

Pure functions, no I/O. Given the installed core version this module
decides which releases the project has to pass through, and what version
constraints ``composer.json`` needs for each of them.

Drupal only supports major upgrades from the final minor of the previous
major, so a path always starts by moving to the latest minor of the
installed major before jumping::

    >>> [str(step) for step in compute_upgrade_path("9.5.9")]
    ['9.5.0', '10.0.0', '11.0.0']
    >>> [str(step) for step in compute_upgrade_path("10.1.4", 11)]
    ['10.3.0', '11.0.0']
    >>> compute_upgrade_path("11.0.1")
    []
"""

from __future__ import annotations

import re
from typing import Dict, List, Mapping, Optional

from drupal_upgrader.constants import (
    CORE_PACKAGES,
    DRUPAL_NAMESPACE,
    LATEST_MINOR_RELEASES,
    MAX_SUPPORTED_MAJOR,
    MIN_SUPPORTED_MAJOR,
)
from drupal_upgrader.exceptions import (
    InvalidTargetError,
    InvalidVersionError,
    UnsupportedSourceError,
    UnsupportedTargetError,
)
from drupal_upgrader.models.step import UpgradeStep
from drupal_upgrader.utils.logger import get_logger
from drupal_upgrader.utils.version_utils import strip_constraint

logger = get_logger("core.version_policy")

#: Exact release such as ``1.0.0``, ``=2.3`` or ``v1.4.2``.
_EXACT_RELEASE = re.compile(r"^=?\s*v?\d+(?:\.\d+)*$")


def major_version_of(version: str) -> int:
    """Return the major component of a version or single constraint.

    Args:
        version: ``"10.2.1"``, ``"^10.2.1"``, ``"~9.5"``, ``"v11.0.0"``,
            ``"9.5.x-dev"``...

    Raises:
        InvalidVersionError: Empty string or non-numeric first segment.
    """
    if version is None or not str(version).strip():
        raise InvalidVersionError("Cannot determine major version of an empty string")

    first = strip_constraint(str(version)).split(".", 1)[0]
    if not first.isdigit():
        raise InvalidVersionError(
            f"Cannot determine major version of '{version}'",
            current_version=str(version),
        )
    return int(first)


def compute_upgrade_path(
    current_version: str,
    target_major: Optional[int] = None,
) -> List[UpgradeStep]:
    """Plan the ordered releases between ``current_version`` and the target.

    Args:
        current_version: Installed core version.
        target_major: Major version to end on; defaults to the newest
            supported major.

    Returns:
        Steps in strictly increasing order. Empty when the project is
        already at (or above) the target; callers treat that as
        "nothing to do", not as an error.

    Raises:
        InvalidVersionError: ``current_version`` has no numeric major.
        UnsupportedSourceError: Installed major below the supported floor.
        InvalidTargetError: Target below the installed major.
        UnsupportedTargetError: Target above the supported maximum.
    """
    current_major = major_version_of(current_version)

    if current_major < MIN_SUPPORTED_MAJOR:
        raise UnsupportedSourceError(
            f"Upgrading from Drupal {current_major} is not supported; "
            f"the oldest supported version is Drupal {MIN_SUPPORTED_MAJOR}",
            current_version=current_version,
            target_major=target_major,
        )

    if target_major is None:
        target = MAX_SUPPORTED_MAJOR
        if current_major >= target:
            logger.debug("Drupal %s is at or above the newest supported major", current_version)
            return []
    else:
        target = int(target_major)
        if target < current_major:
            raise InvalidTargetError(
                f"Target version {target} is lower than current version {current_major}",
                current_version=current_version,
                target_major=target,
            )
        if target > MAX_SUPPORTED_MAJOR:
            raise UnsupportedTargetError(
                f"Target version {target} is not supported. "
                f"Maximum supported version is {MAX_SUPPORTED_MAJOR}.",
                current_version=current_version,
                target_major=target,
            )

    if target == current_major:
        return []

    path: List[UpgradeStep] = []
    latest_minor = LATEST_MINOR_RELEASES.get(current_major)
    if latest_minor is not None:
        path.append(UpgradeStep(latest_minor))
    for major in range(current_major + 1, target + 1):
        path.append(UpgradeStep(f"{major}.0.0"))

    logger.debug(
        "Planned path from %s to %d: %s",
        current_version,
        target,
        " -> ".join(str(step) for step in path),
    )
    return path


def compatible_constraint_for(package: str, target_version: str) -> str:
    """Return a caret constraint allowing any release of the target's major.

    ``package`` is accepted for future per-package policies; today every
    package gets the same constraint.

        >>> compatible_constraint_for("drupal/token", "11.0.0")
        '^11.0'
    """
    return f"^{major_version_of(target_version)}.0"


def is_managed_package(name: str) -> bool:
    """True for packages under the ``drupal/`` namespace."""
    return name.startswith(DRUPAL_NAMESPACE) and len(name) > len(DRUPAL_NAMESPACE)


def plan_step_constraints(
    require: Mapping[str, str],
    step: UpgradeStep,
    *,
    include_contrib: bool,
) -> Dict[str, str]:
    """Compute the constraint changes for one step.

    Only packages already present in ``require`` are considered; nothing
    is ever added. Core bundle packages are forced to the step's core
    constraint, other ``drupal/*`` packages (when ``include_contrib``) to
    :func:`compatible_constraint_for`.

    Returns:
        Package name → new constraint, core packages first, in
        ``require`` order otherwise.
    """
    changes: Dict[str, str] = {}

    for package in CORE_PACKAGES:
        if package in require:
            changes[package] = step.core_constraint

    if include_contrib:
        for package in require:
            if package in changes or package in CORE_PACKAGES:
                continue
            if is_managed_package(package):
                changes[package] = compatible_constraint_for(package, step.version)

    return changes


def find_pinned_constraints(require: Mapping[str, str]) -> Dict[str, str]:
    """Return ``drupal/*`` packages pinned to an exact version.

    A constraint is pinned when it names a single exact release
    (``1.0.0``, ``=1.5``, ``v2.1``). Caret, tilde, wildcard, range and
    dev-branch constraints are left alone.
    """
    pinned: Dict[str, str] = {}
    for package, constraint in require.items():
        if not is_managed_package(package) or not isinstance(constraint, str):
            continue
        value = constraint.strip()
        if not value:
            continue
        if _EXACT_RELEASE.match(value):
            pinned[package] = value
    return pinned


def unpinned_constraint(constraint: str) -> str:
    """Turn a pinned constraint into a caret constraint (``1.0.0`` → ``^1.0.0``)."""
    return f"^{strip_constraint(constraint)}"
