"""
Upgrade run state and report.

The upgrade orchestrator moves through :class:`UpgradeState` values in a
fixed order and records what happened on an :class:`UpgradeReport`. The
report is the only mutable object of a run and is owned by the
orchestrator.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional

from drupal_upgrader.exceptions import UpgraderError
from drupal_upgrader.models.issue import CompatibilityIssue
from drupal_upgrader.models.step import UpgradeStep


class UpgradeState(str, Enum):
    """States of an upgrade run.

    ``START → BACKED_UP → VERSION_DETECTED → PATH_PLANNED → CHECKS_GATED
    → UPDATING* → COMPLETED``. ``ABORTED`` is reached when the user declines
    at the compatibility gate, ``FAILED`` from any state on a fault.
    """

    START = "start"
    BACKED_UP = "backed_up"
    VERSION_DETECTED = "version_detected"
    PATH_PLANNED = "path_planned"
    CHECKS_GATED = "checks_gated"
    UPDATING = "updating"
    COMPLETED = "completed"
    ABORTED = "aborted"
    FAILED = "failed"


@dataclass
class UpgradeReport:
    """Outcome and history of one upgrade or auto-update run.

    Attributes:
        state: Current (after the run: terminal) state.
        history: Every state entered, in order, starting with ``START``.
        core_package: Installed package the version was detected from.
        current_version: Detected core version.
        target_major: Requested target major, if any.
        path: Planned steps.
        completed_steps: Steps that finished, in order.
        issues: Compatibility issues found at the gate.
        backup_path: Project archive created before mutation.
        manifest_snapshots: ``composer.json`` copies taken before each write.
        updated_packages: Packages passed to ``composer update``.
        error: The fault that moved the run to ``FAILED``.
    """

    state: UpgradeState = UpgradeState.START
    history: List[UpgradeState] = field(default_factory=lambda: [UpgradeState.START])
    core_package: Optional[str] = None
    current_version: Optional[str] = None
    target_major: Optional[int] = None
    path: List[UpgradeStep] = field(default_factory=list)
    completed_steps: List[UpgradeStep] = field(default_factory=list)
    issues: List[CompatibilityIssue] = field(default_factory=list)
    backup_path: Optional[Path] = None
    manifest_snapshots: List[Path] = field(default_factory=list)
    updated_packages: List[str] = field(default_factory=list)
    error: Optional[UpgraderError] = None

    def enter(self, state: UpgradeState) -> None:
        self.state = state
        self.history.append(state)

    @property
    def nothing_to_do(self) -> bool:
        """True when the run completed because the path was empty."""
        return self.state is UpgradeState.COMPLETED and not self.path

    @property
    def exit_code(self) -> int:
        """``1`` for a failed run; completion and user abort both exit ``0``."""
        return 1 if self.state is UpgradeState.FAILED else 0
