from __future__ import annotations

import json
from pathlib import Path
from typing import List, Optional

import pytest
from filelock import FileLock

from conftest import FakeRunner, read_require, snapshot_tree, write_project
from drupal_upgrader.config import UpgradeConfig
from drupal_upgrader.core.upgrader import Upgrader, composer_update_command
from drupal_upgrader.exceptions import (
    CoreVersionNotDetectedError,
    ExternalCommandError,
    LockError,
    ManifestError,
    UnsupportedSourceError,
)
from drupal_upgrader.models.report import UpgradeState
from drupal_upgrader.utils.reporter import EntryKind, ProgressReporter

DRUSH = "vendor/bin/drush"
MUTATING = ("composer", "tar")


class Prompt:
    """Scripted answer to the compatibility confirmation."""

    def __init__(self, answer: bool) -> None:
        self.answer = answer
        self.questions: List[str] = []

    def __call__(self, message: str, default: bool = False) -> bool:
        self.questions.append(message)
        return self.answer


def _upgrader(
    project: Path,
    runner: FakeRunner,
    reporter: ProgressReporter,
    *,
    prompt: Optional[Prompt] = None,
    **options,
) -> Upgrader:
    return Upgrader(
        UpgradeConfig(**options),
        project,
        runner=runner,
        reporter=reporter,
        confirm=prompt or Prompt(False),
    )


def _with_issues(runner: FakeRunner, output: str = "Token: 2 errors\n") -> None:
    runner.on(DRUSH, "pm:list", stdout=json.dumps({"upgrade_status": {"package": "Other"}}))
    runner.on(DRUSH, "upgrade_status:analyze", stdout=output)


@pytest.mark.unit
class TestComposerUpdateCommand:
    def test_flags(self) -> None:
        assert composer_update_command(["drupal/core"]) == [
            "composer",
            "update",
            "drupal/core",
            "--with-dependencies",
            "--prefer-dist",
            "--no-dev",
        ]


@pytest.mark.unit
class TestEndToEnd:
    """A Drupal 9.5.9 project upgraded all the way to 11."""

    def test_upgrades_through_every_step(
        self, project: Path, runner: FakeRunner, reporter: ProgressReporter
    ) -> None:
        seen: List[str] = []

        def record_manifest(argv) -> None:
            if argv[:2] == ("composer", "update"):
                seen.append(read_require(project)["drupal/core-recommended"])

        runner.observer = record_manifest

        report = _upgrader(project, runner, reporter).run()

        assert report.state is UpgradeState.COMPLETED
        assert [str(step) for step in report.completed_steps] == ["9.5.0", "10.0.0", "11.0.0"]
        assert seen == ["^9.5", "^10.0", "^11.0"]
        assert report.current_version == "9.5.9"
        assert report.core_package == "drupal/core-recommended"
        assert report.history == [
            UpgradeState.START,
            UpgradeState.BACKED_UP,
            UpgradeState.VERSION_DETECTED,
            UpgradeState.PATH_PLANNED,
            UpgradeState.CHECKS_GATED,
            UpgradeState.UPDATING,
            UpgradeState.UPDATING,
            UpgradeState.UPDATING,
            UpgradeState.COMPLETED,
        ]
        assert report.exit_code == 0

    def test_final_manifest(self, project: Path, runner: FakeRunner, reporter: ProgressReporter) -> None:
        _upgrader(project, runner, reporter).run()

        require = read_require(project)
        assert require == {
            "php": ">=8.1",
            "composer/installers": "^2.0",
            "drupal/core-recommended": "^11.0",
            "drupal/core-composer-scaffold": "^11.0",
            "drupal/admin_toolbar": "^11.0",
            "drupal/token": "^11.0",
            "drush/drush": "^11.0",
        }

    def test_command_order(self, project: Path, runner: FakeRunner, reporter: ProgressReporter) -> None:
        _upgrader(project, runner, reporter, skip_compatibility_checks=True).run(target_major=10)

        names = [argv[0] if argv[0] != DRUSH else argv[1] for argv in runner.commands]
        assert names == [
            "tar",
            "composer",
            "updatedb",
            "cache:rebuild",
            "composer",
            "updatedb",
            "cache:rebuild",
        ]
        assert runner.timeout_of("composer") == 3600

    def test_composer_updates_only_touched_packages(
        self, project: Path, runner: FakeRunner, reporter: ProgressReporter
    ) -> None:
        _upgrader(project, runner, reporter, skip_compatibility_checks=True).run(target_major=10)

        composer_calls = [argv for argv in runner.commands if argv[0] == "composer"]
        assert composer_calls[0][2:6] == (
            "drupal/core-recommended",
            "drupal/core-composer-scaffold",
            "drupal/admin_toolbar",
            "drupal/token",
        )
        assert all("drush/drush" not in argv and "php" not in argv for argv in composer_calls)

    def test_contrib_left_alone_when_disabled(
        self, project: Path, runner: FakeRunner, reporter: ProgressReporter
    ) -> None:
        _upgrader(
            project, runner, reporter, upgrade_contrib_modules=False, auto_fix_dependencies=False
        ).run()

        require = read_require(project)
        assert require["drupal/admin_toolbar"] == "^3.4"
        assert require["drupal/token"] == "1.11.0"
        assert require["drupal/core-recommended"] == "^11.0"

    def test_export_config_each_step(
        self, project: Path, runner: FakeRunner, reporter: ProgressReporter
    ) -> None:
        _upgrader(project, runner, reporter, export_config=True).run(target_major=10)

        assert runner.commands.count((DRUSH, "config:export", "-y")) == 2

    def test_snapshots_and_backup_recorded(
        self, project: Path, runner: FakeRunner, reporter: ProgressReporter
    ) -> None:
        report = _upgrader(project, runner, reporter).run(target_major=10)

        # One for the pinned-version pass, one per step
        assert len(report.manifest_snapshots) == 3
        assert all(path.exists() for path in report.manifest_snapshots)
        assert report.backup_path is not None
        assert report.backup_path.parent == project / "backups"

    def test_no_package_is_ever_added(self, tmp_path: Path, reporter: ProgressReporter) -> None:
        project = write_project(
            tmp_path, require={"drupal/core": "^9.5", "drupal/token": "^1.11"}, core_package="drupal/core"
        )
        runner = FakeRunner(project)

        _upgrader(project, runner, reporter).run()

        assert set(read_require(project)) == {"drupal/core", "drupal/token"}


@pytest.mark.unit
class TestPinnedVersions:
    """Tests for the pinned-constraint pass."""

    def test_pins_are_relaxed_before_first_step(
        self, project: Path, runner: FakeRunner, reporter: ProgressReporter
    ) -> None:
        tokens: List[str] = []
        runner.observer = lambda argv: (
            tokens.append(read_require(project)["drupal/token"]) if argv[0] == "composer" else None
        )

        _upgrader(project, runner, reporter, upgrade_contrib_modules=False).run(target_major=10)

        assert tokens == ["^1.11.0", "^1.11.0"]
        assert "  - Changed drupal/token from 1.11.0 to ^1.11.0" in reporter.texts(EntryKind.MESSAGE)

    def test_warns_when_auto_fix_disabled(
        self, project: Path, runner: FakeRunner, reporter: ProgressReporter
    ) -> None:
        _upgrader(
            project, runner, reporter, auto_fix_dependencies=False, upgrade_contrib_modules=False
        ).run(target_major=10)

        assert read_require(project)["drupal/token"] == "1.11.0"
        assert any("auto_fix_dependencies" in text for text in reporter.texts(EntryKind.WARNING))


@pytest.mark.unit
class TestDryRun:
    """Dry runs read the project but never change it."""

    def test_no_file_changes_and_no_mutating_commands(
        self, project: Path, runner: FakeRunner, reporter: ProgressReporter
    ) -> None:
        before = snapshot_tree(project)

        report = _upgrader(project, runner, reporter, dry_run=True).run()

        assert snapshot_tree(project) == before
        assert report.state is UpgradeState.COMPLETED
        assert [str(step) for step in report.path] == ["9.5.0", "10.0.0", "11.0.0"]
        for argv in runner.commands:
            assert argv[0] not in MUTATING
            assert not {"updatedb", "cache:rebuild", "pm:install", "config:export"} & set(argv)

    def test_intents_cover_every_skipped_action(
        self, project: Path, runner: FakeRunner, reporter: ProgressReporter
    ) -> None:
        _upgrader(project, runner, reporter, dry_run=True).run(target_major=10)

        intents = reporter.intents
        assert intents[0] == "DRY RUN: Would create backup"
        assert "DRY RUN: Would convert pinned versions to caret constraints" in intents
        assert "DRY RUN: Would update dependencies to version 9.5.0" in intents
        assert "DRY RUN: Would update dependencies to version 10.0.0" in intents
        assert intents.count("DRY RUN: Would run database updates via Drush") == 2
        assert all(text.startswith("DRY RUN: Would ") for text in intents)

    def test_no_run_lock_in_dry_run(self, project: Path, runner: FakeRunner, reporter: ProgressReporter) -> None:
        _upgrader(project, runner, reporter, dry_run=True).run()

        assert not (project / ".drupal-upgrader.lock").exists()


@pytest.mark.unit
class TestCompatibilityGate:
    """Tests for the pre-upgrade confirmation."""

    def test_declining_aborts_before_any_mutation(
        self, project: Path, runner: FakeRunner, reporter: ProgressReporter
    ) -> None:
        _with_issues(runner)
        prompt = Prompt(False)
        before = read_require(project)

        report = _upgrader(project, runner, reporter, prompt=prompt).run()

        assert report.state is UpgradeState.ABORTED
        assert report.exit_code == 0
        assert [str(issue) for issue in report.issues] == ["Token has 2 error(s)"]
        assert prompt.questions == ["Compatibility issues found. Continue anyway?"]
        assert read_require(project) == before
        assert not runner.ran("composer")
        assert "Upgrade aborted by user." in reporter.texts(EntryKind.MESSAGE)

    def test_accepting_continues(self, project: Path, runner: FakeRunner, reporter: ProgressReporter) -> None:
        _with_issues(runner)

        report = _upgrader(project, runner, reporter, prompt=Prompt(True)).run(target_major=10)

        assert report.state is UpgradeState.COMPLETED
        assert runner.ran("composer", "update")

    def test_critical_issues_change_the_question(
        self, project: Path, runner: FakeRunner, reporter: ProgressReporter
    ) -> None:
        _with_issues(runner, "Deprecated API: 4 errors\n")
        prompt = Prompt(False)

        _upgrader(project, runner, reporter, prompt=prompt).run()

        assert prompt.questions == ["Critical compatibility issues found. Continue anyway?"]

    def test_no_issues_passes_without_prompt(
        self, project: Path, runner: FakeRunner, reporter: ProgressReporter
    ) -> None:
        prompt = Prompt(False)

        report = _upgrader(project, runner, reporter, prompt=prompt).run(target_major=10)

        assert prompt.questions == []
        assert report.state is UpgradeState.COMPLETED

    def test_skip_checks(self, project: Path, runner: FakeRunner, reporter: ProgressReporter) -> None:
        _with_issues(runner)
        prompt = Prompt(False)

        report = _upgrader(
            project, runner, reporter, prompt=prompt, skip_compatibility_checks=True
        ).run(target_major=10)

        assert report.state is UpgradeState.COMPLETED
        assert prompt.questions == []
        assert not runner.ran(DRUSH, "pm:list")


@pytest.mark.unit
class TestNothingToDo:
    def test_already_on_target(self, tmp_path: Path, reporter: ProgressReporter) -> None:
        project = write_project(tmp_path, core_version="10.2.5")
        runner = FakeRunner(project)

        report = _upgrader(project, runner, reporter, skip_backup=True).run(target_major=10)

        assert report.state is UpgradeState.COMPLETED
        assert report.nothing_to_do
        assert runner.commands == []
        assert any("Nothing to do" in text for text in reporter.texts(EntryKind.SUCCESS))

    def test_unreadable_manifest_is_not_needed(self, tmp_path: Path, reporter: ProgressReporter) -> None:
        project = write_project(tmp_path, core_version="11.0.4")
        (project / "composer.json").write_text("{", encoding="utf-8")

        report = _upgrader(project, FakeRunner(project), reporter, skip_backup=True).run()

        assert report.state is UpgradeState.COMPLETED
        assert report.nothing_to_do


@pytest.mark.unit
class TestFailures:
    """Faults halt the path and leave the report in FAILED."""

    def test_composer_failure_halts_path(
        self, project: Path, runner: FakeRunner, reporter: ProgressReporter
    ) -> None:
        seen: List[str] = []

        def fail_second_composer(argv) -> None:
            if argv[0] == "composer":
                seen.append(read_require(project)["drupal/core-recommended"])
                if len(seen) == 2:
                    runner.on("composer", returncode=2, stderr="Your requirements could not be resolved")

        runner.observer = fail_second_composer
        upgrader = _upgrader(project, runner, reporter)

        with pytest.raises(ExternalCommandError) as exc_info:
            upgrader.run()

        report = upgrader.report
        assert report is not None
        assert report.state is UpgradeState.FAILED
        assert report.error is exc_info.value
        assert report.exit_code == 1
        assert [str(step) for step in report.completed_steps] == ["9.5.0"]
        assert "Your requirements could not be resolved" in str(exc_info.value)
        # No rollback: the failing step's manifest write stays in place
        assert read_require(project)["drupal/core-recommended"] == "^10.0"
        assert runner.commands.count((DRUSH, "updatedb", "-y")) == 1

    def test_backup_failure_happens_before_mutation(
        self, project: Path, runner: FakeRunner, reporter: ProgressReporter
    ) -> None:
        runner.on("tar", returncode=2, stderr="No space left on device")
        before = read_require(project)
        upgrader = _upgrader(project, runner, reporter)

        with pytest.raises(ExternalCommandError):
            upgrader.run()

        assert upgrader.report.history == [UpgradeState.START, UpgradeState.FAILED]
        assert read_require(project) == before

    def test_unsupported_source(self, tmp_path: Path, reporter: ProgressReporter) -> None:
        project = write_project(tmp_path, core_version="8.9.20")
        runner = FakeRunner(project)
        upgrader = _upgrader(project, runner, reporter, skip_backup=True)

        with pytest.raises(UnsupportedSourceError):
            upgrader.run()

        assert upgrader.report.state is UpgradeState.FAILED
        assert upgrader.report.history[-2] is UpgradeState.VERSION_DETECTED

    def test_undetectable_version(self, tmp_path: Path, reporter: ProgressReporter) -> None:
        project = write_project(tmp_path, core_version=None)

        with pytest.raises(CoreVersionNotDetectedError):
            _upgrader(project, FakeRunner(project), reporter, skip_backup=True).run()

    def test_manifest_without_core_packages(self, tmp_path: Path, reporter: ProgressReporter) -> None:
        project = write_project(tmp_path, require={"drupal/token": "^1.11"})

        with pytest.raises(ManifestError, match="does not require any Drupal core package"):
            _upgrader(project, FakeRunner(project), reporter, skip_backup=True).run()

    def test_unreadable_manifest_fails_after_planning(self, project: Path, reporter: ProgressReporter) -> None:
        (project / "composer.json").write_text("{", encoding="utf-8")
        upgrader = _upgrader(project, FakeRunner(project), reporter, skip_backup=True)

        with pytest.raises(ManifestError, match="Invalid JSON"):
            upgrader.run()

        assert upgrader.report.history[-2] is UpgradeState.PATH_PLANNED

    def test_concurrent_run_is_rejected(
        self, project: Path, runner: FakeRunner, reporter: ProgressReporter
    ) -> None:
        with FileLock(str(project / ".drupal-upgrader.lock"), timeout=0):
            upgrader = _upgrader(project, runner, reporter)

            with pytest.raises(LockError):
                upgrader.run()

        assert runner.commands == []
        assert upgrader.report.state is UpgradeState.FAILED

    def test_lock_released_after_failure(
        self, project: Path, runner: FakeRunner, reporter: ProgressReporter
    ) -> None:
        runner.on("tar", returncode=1, stderr="boom")
        with pytest.raises(ExternalCommandError):
            _upgrader(project, runner, reporter).run()

        runner.on("tar", returncode=0)
        report = _upgrader(project, runner, reporter).run(target_major=10)

        assert report.state is UpgradeState.COMPLETED
