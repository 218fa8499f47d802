"""Minor and patch updates within the installed core major.

Where :class:`~drupal_upgrader.core.upgrader.Upgrader` walks across majors,
:class:`AutoUpdater` keeps the major and moves core (and optionally the
enabled contrib modules and themes) to the newest compatible release.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

from drupal_upgrader.config import UpgradeConfig
from drupal_upgrader.constants import (
    CORE_PACKAGES,
    DRUPAL_NAMESPACE,
    DRUSH_BINARY,
    DRUSH_QUERY_TIMEOUT,
    RUN_LOCK_FILE,
)
from drupal_upgrader.core.backup import BackupManager
from drupal_upgrader.core.database import DatabaseUpdater
from drupal_upgrader.core.installed import detect_core_version, parse_pm_list
from drupal_upgrader.core.manifest import Manifest, ManifestEditor, apply_constraints, require_section
from drupal_upgrader.core.process import ProcessRunner
from drupal_upgrader.core.upgrader import composer_update_command, run_composer_update
from drupal_upgrader.core.version_policy import compatible_constraint_for
from drupal_upgrader.exceptions import ManifestError, UpgraderError
from drupal_upgrader.models.report import UpgradeReport, UpgradeState
from drupal_upgrader.utils.filesystem import run_lock
from drupal_upgrader.utils.logger import get_logger
from drupal_upgrader.utils.reporter import ProgressReporter

logger = get_logger("core.updater")

#: Drupal's own extensions report this package name in ``pm:list``.
_CORE_EXTENSION_PACKAGE = "Core"


class AutoUpdater:
    """Updates a project to the latest release of its current major.

    Args:
        config: Run configuration; ``dry_run``, ``skip_backup`` and
            ``verbose`` apply.
        project_dir: Drupal project root.
        runner: Executes external commands.
        reporter: Progress sink.
        clock: Current-time source for archive names.
    """

    def __init__(
        self,
        config: UpgradeConfig,
        project_dir: Path,
        *,
        runner: Optional[ProcessRunner] = None,
        reporter: Optional[ProgressReporter] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.config = config
        self.project_dir = Path(project_dir)
        self.reporter = reporter or ProgressReporter(verbose=config.verbose)
        self.runner = runner or ProcessRunner(self.project_dir, reporter=self.reporter)

        self.manifest = ManifestEditor(self.project_dir)
        self.backups = BackupManager(
            self.project_dir, self.runner, self.reporter, dry_run=config.dry_run, clock=clock
        )
        self.database = DatabaseUpdater(self.runner, self.reporter, dry_run=config.dry_run)
        self.report: Optional[UpgradeReport] = None

    def run(self, update_modules: bool = False, update_themes: bool = False) -> UpgradeReport:
        """Run the update.

        Raises:
            UpgraderError: Any fault; :attr:`report` is left ``FAILED``.
        """
        report = UpgradeReport()
        self.report = report

        try:
            if self.config.dry_run:
                self._execute(report, update_modules, update_themes)
            else:
                with run_lock(self.project_dir / RUN_LOCK_FILE):
                    self._execute(report, update_modules, update_themes)
        except UpgraderError as exc:
            report.error = exc
            report.enter(UpgradeState.FAILED)
            raise

        return report

    def _execute(self, report: UpgradeReport, update_modules: bool, update_themes: bool) -> None:
        if self.config.skip_backup:
            self.reporter.log("Skipping backup as requested")
        else:
            report.backup_path = self.backups.create_backup()
        report.enter(UpgradeState.BACKED_UP)

        installed = detect_core_version(self.project_dir)
        report.core_package = installed.package
        report.current_version = installed.version
        document = self.manifest.read_manifest()
        report.enter(UpgradeState.VERSION_DETECTED)

        report.enter(UpgradeState.UPDATING)
        self.update_core(document, installed.version, report)
        if update_modules:
            self.update_extensions("module", report)
        if update_themes:
            self.update_extensions("theme", report)

        self.database.run_updates()
        self.reporter.section("Update Completed Successfully")
        report.enter(UpgradeState.COMPLETED)

    def update_core(self, document: Manifest, current_version: str, report: UpgradeReport) -> Manifest:
        """Widen core constraints to the current major and update core."""
        self.reporter.section("Updating Drupal core")
        self.reporter.log(f"Current Drupal version: {current_version}")

        require = require_section(document)
        packages = [package for package in CORE_PACKAGES if package in require]
        if not packages:
            raise ManifestError(
                "composer.json does not require any Drupal core package",
                file_path=str(self.manifest.path),
                operation="update",
            )

        changes = {
            package: compatible_constraint_for(package, current_version) for package in packages
        }
        for package, constraint in changes.items():
            self.reporter.log(f"Setting {package} to {constraint}")
        updated = apply_constraints(document, changes)

        if self.config.dry_run:
            self.reporter.intent("update Drupal core")
            self.reporter.intent(" ".join(["run"] + composer_update_command(packages)))
            return updated

        snapshot = self.manifest.snapshot_manifest()
        if snapshot is not None:
            report.manifest_snapshots.append(snapshot)
        self.manifest.write_manifest(updated)
        self.reporter.log("Updated composer.json with new version constraints")

        run_composer_update(self.runner, packages)
        report.updated_packages.extend(packages)
        self.reporter.success("Drupal core updated successfully")
        return updated

    def update_extensions(self, kind: str, report: UpgradeReport) -> List[str]:
        """Update enabled contrib modules or themes that ``composer.json`` requires.

        Args:
            kind: ``"module"`` or ``"theme"``.

        Returns:
            Composer packages that were (or in dry-run would be) updated.
        """
        self.reporter.section(f"Updating contributed {kind}s")

        if self.config.dry_run:
            self.reporter.intent(f"update contributed {kind}s")
            return []

        listing = self.runner.run_checked(
            [DRUSH_BINARY, "pm:list", f"--type={kind}", "--status=enabled", "--format=json"],
            error_message=f"Could not get list of {kind}s",
            timeout=DRUSH_QUERY_TIMEOUT,
        )
        extensions = parse_pm_list(listing.stdout)
        if not extensions:
            self.reporter.log(f"No {kind}s found to update")
            return []

        require = require_section(self.manifest.read_manifest())
        packages: List[str] = []
        for name, record in extensions.items():
            if name.startswith("core_") or record.get("package") == _CORE_EXTENSION_PACKAGE:
                continue
            package = f"{DRUPAL_NAMESPACE}{name}"
            if package in require:
                self.reporter.log(f"Will update {package}")
                packages.append(package)

        if not packages:
            self.reporter.log(f"No contributed {kind}s found in composer.json")
            return []

        run_composer_update(
            self.runner,
            packages,
            error_message=f"{kind.capitalize()} update failed",
        )
        report.updated_packages.extend(packages)
        self.reporter.success(f"Contributed {kind}s updated successfully")
        return packages
