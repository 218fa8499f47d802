"""
Multi-step Drupal core upgrade orchestration.

:class:`Upgrader` drives one run through a fixed sequence of states:

1. back up the project tree,
2. detect the installed core version,
3. plan the upgrade path,
4. gate on the compatibility checks (the user may abort),
5. for every step: rewrite ``composer.json``, run ``composer update``,
   apply database updates and rebuild caches.

Any fault halts the remaining path. Nothing is rolled back: the project
archive and the per-step ``composer.json`` snapshots are the recovery
points.

Example::

    upgrader = Upgrader(UpgradeConfig(dry_run=True), Path("/srv/site"))
    report = upgrader.run(target_major=10)
    print(report.state, [str(step) for step in report.path])
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from drupal_upgrader.config import UpgradeConfig
from drupal_upgrader.constants import (
    COMPOSER_BINARY,
    COMPOSER_TIMEOUT,
    COMPOSER_UPDATE_FLAGS,
    CORE_PACKAGES,
    RUN_LOCK_FILE,
)
from drupal_upgrader.core.backup import BackupManager
from drupal_upgrader.core.compatibility import CompatibilityChecker
from drupal_upgrader.core.database import DatabaseUpdater
from drupal_upgrader.core.installed import detect_core_version
from drupal_upgrader.core.manifest import (
    Manifest,
    ManifestEditor,
    apply_constraints,
    require_section,
)
from drupal_upgrader.core.process import ProcessRunner
from drupal_upgrader.core.version_policy import (
    compute_upgrade_path,
    find_pinned_constraints,
    plan_step_constraints,
    unpinned_constraint,
)
from drupal_upgrader.exceptions import ManifestError, UpgraderError
from drupal_upgrader.models.report import UpgradeReport, UpgradeState
from drupal_upgrader.models.step import UpgradeStep
from drupal_upgrader.utils import console
from drupal_upgrader.utils.filesystem import run_lock
from drupal_upgrader.utils.logger import get_logger
from drupal_upgrader.utils.reporter import ProgressReporter

logger = get_logger("core.upgrader")

ConfirmFn = Callable[..., bool]


def composer_update_command(packages: Iterable[str]) -> List[str]:
    """Build a ``composer update`` restricted to ``packages``."""
    return [COMPOSER_BINARY, "update", *packages, *COMPOSER_UPDATE_FLAGS]


def run_composer_update(
    runner: ProcessRunner,
    packages: List[str],
    *,
    error_message: str = "Composer update failed",
) -> None:
    """Run a restricted ``composer update``.

    Raises:
        ExternalCommandError: Composer failed or timed out.
    """
    runner.run_checked(
        composer_update_command(packages),
        error_message=error_message,
        timeout=COMPOSER_TIMEOUT,
    )


class Upgrader:
    """Runs a core upgrade for one project.

    Collaborators are created from ``config`` unless given; tests pass a
    scripted runner and a non-echoing reporter.

    Args:
        config: Run configuration.
        project_dir: Drupal project root (where ``composer.json`` lives).
        runner: Executes external commands.
        reporter: Progress sink.
        confirm: Asks the user a yes/no question; called as
            ``confirm(message, default=False)``.
        clock: Current-time source for archive names.
    """

    def __init__(
        self,
        config: UpgradeConfig,
        project_dir: Path,
        *,
        runner: Optional[ProcessRunner] = None,
        reporter: Optional[ProgressReporter] = None,
        confirm: ConfirmFn = console.confirm,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.config = config
        self.project_dir = Path(project_dir)
        self.reporter = reporter or ProgressReporter(verbose=config.verbose)
        self.runner = runner or ProcessRunner(self.project_dir, reporter=self.reporter)
        self.confirm = confirm

        self.manifest = ManifestEditor(self.project_dir)
        self.checker = CompatibilityChecker(config, self.project_dir, self.runner, self.reporter)
        self.backups = BackupManager(
            self.project_dir, self.runner, self.reporter, dry_run=config.dry_run, clock=clock
        )
        self.database = DatabaseUpdater(self.runner, self.reporter, dry_run=config.dry_run)

        #: Report of the most recent run, available even when it raised.
        self.report: Optional[UpgradeReport] = None

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def run(self, target_major: Optional[int] = None) -> UpgradeReport:
        """Execute the upgrade.

        Args:
            target_major: Major version to end on; defaults to the newest
                supported major.

        Returns:
            The run report in state ``COMPLETED`` or ``ABORTED``.

        Raises:
            UpgraderError: Any fault. The report (see :attr:`report`) is
                left in state ``FAILED`` with the error recorded.
        """
        report = UpgradeReport(target_major=target_major)
        self.report = report
        logger.debug("Starting upgrade with %s", self.config.to_log_dict())

        try:
            if self.config.dry_run:
                self._execute(report)
            else:
                with run_lock(self.project_dir / RUN_LOCK_FILE):
                    self._execute(report)
        except UpgraderError as exc:
            report.error = exc
            report.enter(UpgradeState.FAILED)
            logger.debug("Upgrade failed in %s", report.history[-2].value)
            raise

        return report

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _execute(self, report: UpgradeReport) -> None:
        # Backup
        if self.config.skip_backup:
            self.reporter.log("Skipping backup as requested")
        else:
            report.backup_path = self.backups.create_backup()
        report.enter(UpgradeState.BACKED_UP)

        # Detection
        installed = detect_core_version(self.project_dir)
        report.core_package = installed.package
        report.current_version = installed.version
        report.enter(UpgradeState.VERSION_DETECTED)

        # Planning
        path = compute_upgrade_path(installed.version, report.target_major)
        report.path = path
        report.enter(UpgradeState.PATH_PLANNED)
        self._show_plan(installed.version, path)

        if not path:
            self.reporter.success(
                f"Drupal {installed.version} is already at the requested version. Nothing to do."
            )
            report.enter(UpgradeState.COMPLETED)
            return

        document = self.manifest.read_manifest()
        self._require_core_packages(document)

        # Compatibility gate
        if not self._gate(report):
            self.reporter.log("Upgrade aborted by user.")
            report.enter(UpgradeState.ABORTED)
            return
        report.enter(UpgradeState.CHECKS_GATED)

        document = self._fix_pinned_versions(document, report)

        for step in path:
            report.enter(UpgradeState.UPDATING)
            document = self._upgrade_step(step, document, report)
            report.completed_steps.append(step)

        self.reporter.section("Upgrade Completed Successfully")
        report.enter(UpgradeState.COMPLETED)

    def _show_plan(self, current_version: str, path: List[UpgradeStep]) -> None:
        self.reporter.section("Upgrade Plan")
        self.reporter.log(f"Current version: {current_version}")
        if path:
            self.reporter.log("Upgrade path: " + " → ".join(str(step) for step in path))

    def _require_core_packages(self, document: Manifest) -> None:
        require = require_section(document)
        if not any(package in require for package in CORE_PACKAGES):
            raise ManifestError(
                "composer.json does not require any Drupal core package",
                file_path=str(self.manifest.path),
                operation="plan",
            )

    def _gate(self, report: UpgradeReport) -> bool:
        """Run the compatibility checks; return False if the user declines."""
        if self.config.skip_compatibility_checks:
            self.reporter.log("Skipping compatibility checks as requested")
            return True

        issues = self.checker.run_checks()
        report.issues = issues
        self.checker.display_issues(issues)
        if not issues:
            return True

        if self.checker.classify_severity(issues):
            question = "Critical compatibility issues found. Continue anyway?"
        else:
            question = "Compatibility issues found. Continue anyway?"
        return bool(self.confirm(question, default=False))

    def _fix_pinned_versions(self, document: Manifest, report: UpgradeReport) -> Manifest:
        self.reporter.section("Checking for pinned versions")
        pinned = find_pinned_constraints(require_section(document))

        if not pinned:
            self.reporter.log("No pinned package versions found.")
            return document

        self.reporter.log("Found pinned package versions that may prevent automatic upgrades:")
        for package, constraint in pinned.items():
            self.reporter.log(f"  - {package}: {constraint}")

        if not self.config.auto_fix_dependencies:
            self.reporter.warning(
                "Consider enabling auto_fix_dependencies in configuration "
                "to automatically fix these issues."
            )
            return document

        changes = {package: unpinned_constraint(c) for package, c in pinned.items()}
        updated = apply_constraints(document, changes)

        if self.config.dry_run:
            self.reporter.intent("convert pinned versions to caret constraints")
            return updated

        self._write(updated, report)
        for package, constraint in changes.items():
            self.reporter.log(f"  - Changed {package} from {pinned[package]} to {constraint}")
        self.reporter.log("Updated composer.json with flexible version constraints")
        return updated

    def _upgrade_step(
        self,
        step: UpgradeStep,
        document: Manifest,
        report: UpgradeReport,
    ) -> Manifest:
        self.reporter.section(f"Upgrading to Drupal {step}")

        changes = plan_step_constraints(
            require_section(document),
            step,
            include_contrib=self.config.upgrade_contrib_modules,
        )
        for package, constraint in changes.items():
            self.reporter.log(f"Setting {package} to {constraint}")
        updated = apply_constraints(document, changes)
        packages = list(changes)

        if self.config.dry_run:
            self.reporter.intent(f"update dependencies to version {step}")
            self.reporter.intent(" ".join(["run"] + composer_update_command(packages)))
        else:
            self._write(updated, report)
            self.reporter.log("Updated composer.json with new version constraints")
            self.reporter.log("Running composer update...")
            run_composer_update(self.runner, packages)
            self.reporter.log("Dependencies updated successfully")

        for package in packages:
            if package not in report.updated_packages:
                report.updated_packages.append(package)

        self.database.run_updates()
        if self.config.export_config:
            self.database.export_config()

        self.reporter.success(f"Successfully upgraded to Drupal {step}")
        return updated

    def _write(self, document: Manifest, report: UpgradeReport) -> None:
        snapshot = self.manifest.snapshot_manifest()
        if snapshot is not None:
            report.manifest_snapshots.append(snapshot)
        self.manifest.write_manifest(document)
