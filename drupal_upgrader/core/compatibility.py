"""Pre-upgrade compatibility checks.

Two analyses run before anything is modified:

- **Upgrade Status** (Drupal module, driven through Drush) scans enabled
  contrib and custom modules for code that will break on the next major.
- **PHPStan** scans ``web/modules/custom`` for deprecated API usage.

A missing or failing tool is not fatal: the check logs why it was skipped
and contributes no issues.
"""

from __future__ import annotations

import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence, Union

from drupal_upgrader.config import UpgradeConfig
from drupal_upgrader.constants import (
    CUSTOM_MODULES_PATH,
    DRUSH_BINARY,
    DRUSH_QUERY_TIMEOUT,
    PHPSTAN_BINARY,
    PHPSTAN_CONFIG_FILE,
    PHPSTAN_DEFAULT_EXCLUDES,
    STATIC_ANALYSIS_TIMEOUT,
    UPGRADE_STATUS_MODULE,
)
from drupal_upgrader.core.extractors import PhpStanExtractor, UpgradeStatusExtractor
from drupal_upgrader.core.installed import parse_pm_list
from drupal_upgrader.core.process import ProcessRunner
from drupal_upgrader.exceptions import ExternalCommandError, FileOperationError
from drupal_upgrader.models.issue import CompatibilityIssue, Severity, severity_for
from drupal_upgrader.utils.filesystem import safe_write_file
from drupal_upgrader.utils.logger import get_logger
from drupal_upgrader.utils.reporter import ProgressReporter

logger = get_logger("core.compatibility")


def render_phpstan_config(level: int, ignore_paths: Sequence[str] = ()) -> str:
    """Return a minimal ``phpstan.neon`` for scanning custom modules."""
    excludes = list(PHPSTAN_DEFAULT_EXCLUDES)
    excludes.extend(path for path in ignore_paths if path not in excludes)

    lines = [
        "parameters:",
        f"    level: {level}",
        "    paths:",
        f"        - {CUSTOM_MODULES_PATH}",
        "    excludePaths:",
    ]
    lines.extend(f"        - {path}" for path in excludes)
    return "\n".join(lines) + "\n"


def render_phpstan_overlay(base_config: str, ignore_paths: Sequence[str] = ()) -> str:
    """Return a configuration that includes ``base_config`` and excludes ``ignore_paths``."""
    lines = ["includes:", f"    - {base_config}"]
    if ignore_paths:
        lines.extend(["parameters:", "    excludePaths:"])
        lines.extend(f"        - {path}" for path in ignore_paths)
    return "\n".join(lines) + "\n"


class CompatibilityChecker:
    """Runs the compatibility analyses for one project.

    Args:
        config: Run configuration.
        project_dir: Drupal project root.
        runner: Executes Drush and PHPStan.
        reporter: Progress sink.
    """

    def __init__(
        self,
        config: UpgradeConfig,
        project_dir: Path,
        runner: ProcessRunner,
        reporter: ProgressReporter,
    ) -> None:
        self.config = config
        self.project_dir = Path(project_dir)
        self.runner = runner
        self.reporter = reporter

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    def run_checks(self) -> List[CompatibilityIssue]:
        """Run every applicable analysis and return the combined issues."""
        self.reporter.section("Running compatibility checks")
        issues: List[CompatibilityIssue] = []

        if self.config.upgrade_contrib_modules or self.config.upgrade_custom_modules:
            self.reporter.log("Running upgrade_status checks...")
            issues.extend(self.check_upgrade_status())

        self.reporter.log("Running PHPStan analysis...")
        issues.extend(self.check_static_analysis())

        logger.debug("Compatibility checks found %d issue(s)", len(issues))
        return issues

    def check_upgrade_status(self) -> List[CompatibilityIssue]:
        """Scan enabled modules with the Upgrade Status module."""
        try:
            listing = self.runner.run(
                [DRUSH_BINARY, "pm:list", "--status=enabled", "--format=json"],
                timeout=DRUSH_QUERY_TIMEOUT,
            )
        except ExternalCommandError as exc:
            logger.debug("drush pm:list failed: %s", exc)
            self.reporter.log("Could not check for upgrade_status module. Skipping this check.")
            return []

        if not listing.succeeded:
            self.reporter.log("Could not check for upgrade_status module. Skipping this check.")
            return []

        if UPGRADE_STATUS_MODULE not in parse_pm_list(listing.stdout):
            self.reporter.log(
                f"The {UPGRADE_STATUS_MODULE} module is not installed. Installing it temporarily..."
            )
            if self.config.dry_run:
                self.reporter.intent(f"install {UPGRADE_STATUS_MODULE} module")
                return []
            try:
                self.runner.run_checked(
                    [DRUSH_BINARY, "pm:install", UPGRADE_STATUS_MODULE, "-y"],
                    error_message=f"Could not install {UPGRADE_STATUS_MODULE}",
                    timeout=DRUSH_QUERY_TIMEOUT,
                )
            except ExternalCommandError as exc:
                logger.debug("%s", exc)
                self.reporter.log(
                    f"Could not install {UPGRADE_STATUS_MODULE} module. Skipping this check."
                )
                return []

        if self.config.dry_run:
            self.reporter.intent("run upgrade_status checks")
            return []

        try:
            analysis = self.runner.run(
                [DRUSH_BINARY, "upgrade_status:analyze", "--all"],
                timeout=STATIC_ANALYSIS_TIMEOUT,
            )
        except ExternalCommandError as exc:
            self.reporter.warning(f"Upgrade Status analysis failed: {exc.message}")
            return []

        if not analysis.succeeded:
            self.reporter.warning(
                f"Upgrade Status analysis exited with status {analysis.returncode}"
            )
            return []

        return UpgradeStatusExtractor(self.config.critical_keywords).extract(analysis.stdout)

    def check_static_analysis(self) -> List[CompatibilityIssue]:
        """Scan custom modules with PHPStan.

        PHPStan exits non-zero whenever it reports errors, so its exit
        status is ignored and both output streams are parsed.

        The project's ``phpstan.neon`` is created when missing but never
        edited afterwards. Each run instead points PHPStan at a throwaway
        configuration that includes it and adds the configured ignore
        paths, so changes to ``ignore_paths`` apply to existing projects
        and to dry runs.
        """
        if not (self.project_dir / PHPSTAN_BINARY).is_file():
            self.reporter.log("PHPStan is not installed. Skipping this check.")
            return []

        config_path = self.project_dir / PHPSTAN_CONFIG_FILE
        if not config_path.exists():
            self.reporter.log("PHPStan configuration not found. Creating a basic one...")
            self._write_phpstan_config(config_path)

        level = str(self.config.static_analysis_level)
        try:
            with self._run_config(config_path) as run_config:
                command = [
                    PHPSTAN_BINARY,
                    "analyse",
                    "--no-progress",
                    "--error-format=raw",
                    "-l",
                    level,
                    "-c",
                    run_config,
                    CUSTOM_MODULES_PATH,
                ]
                result = self.runner.run(command, timeout=STATIC_ANALYSIS_TIMEOUT)
        except FileOperationError as exc:
            self.reporter.warning(f"Could not prepare PHPStan configuration: {exc.message}")
            return []
        except ExternalCommandError as exc:
            self.reporter.warning(f"PHPStan analysis failed: {exc.message}")
            return []

        return PhpStanExtractor(self.config.critical_keywords).extract(result.combined_output)

    def _write_phpstan_config(self, config_path: Path) -> None:
        if self.config.dry_run:
            self.reporter.intent("create PHPStan configuration")
            return
        content = render_phpstan_config(self.config.static_analysis_level)
        try:
            safe_write_file(config_path, content)
        except FileOperationError as exc:
            self.reporter.warning(f"Could not write {PHPSTAN_CONFIG_FILE}: {exc.message}")

    @contextmanager
    def _run_config(self, config_path: Path) -> Iterator[str]:
        """Yield the name of a temporary PHPStan configuration for one run.

        The file lives in the project root because PHPStan resolves
        ``includes`` and ``excludePaths`` relative to the configuration file.
        It is removed when the block exits.
        """
        if config_path.exists():
            content = render_phpstan_overlay(config_path.name, self.config.ignore_paths)
        else:
            content = render_phpstan_config(
                self.config.static_analysis_level, self.config.ignore_paths
            )

        try:
            with tempfile.NamedTemporaryFile(
                mode="w",
                encoding="utf-8",
                dir=str(self.project_dir),
                delete=False,
                prefix=".phpstan-upgrade.",
                suffix=".neon",
            ) as tmp:
                tmp.write(content)
        except OSError as exc:
            raise FileOperationError(
                f"Failed to write temporary PHPStan configuration: {exc}",
                file_path=str(self.project_dir),
                operation="write",
                original_error=exc,
            ) from exc

        temp_path = Path(tmp.name)
        logger.debug("PHPStan run configuration %s:\n%s", temp_path.name, content)
        try:
            yield temp_path.name
        finally:
            try:
                temp_path.unlink()
            except OSError as exc:
                logger.warning("Failed to remove %s: %s", temp_path, exc)

    # ------------------------------------------------------------------
    # Severity & display
    # ------------------------------------------------------------------

    def classify_severity(
        self,
        issues: Iterable[Union[CompatibilityIssue, str]],
        keywords: Optional[Iterable[str]] = None,
    ) -> bool:
        """Return True if any issue is critical.

        Issues keep the severity assigned at extraction unless ``keywords``
        is given, in which case every message is re-matched against it.
        Plain strings are matched against the configured keywords.
        """
        words = tuple(keywords) if keywords is not None else self.config.critical_keywords
        for issue in issues:
            if isinstance(issue, CompatibilityIssue) and keywords is None:
                if issue.is_critical:
                    return True
            elif severity_for(str(issue), words) is Severity.CRITICAL:
                return True
        return False

    def display_issues(self, issues: Sequence[CompatibilityIssue]) -> None:
        if not issues:
            self.reporter.success("No compatibility issues found!")
            return

        self.reporter.section("Compatibility Issues Found")
        for issue in issues:
            marker = " (critical)" if issue.is_critical else ""
            self.reporter.log(f"- {issue}{marker}")
        self.reporter.warning("Please review these issues before proceeding with the upgrade.")
