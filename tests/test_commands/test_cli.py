from __future__ import annotations

import json
from pathlib import Path
from typing import Iterator, List, Optional
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from conftest import FakeRunner, read_require, write_project
from drupal_upgrader.cli import cli, main
from drupal_upgrader.commands import auto_update as auto_update_module
from drupal_upgrader.commands import upgrade as upgrade_module
from drupal_upgrader.core.updater import AutoUpdater
from drupal_upgrader.core.upgrader import Upgrader
from drupal_upgrader.utils.logger import disable_logging
from drupal_upgrader.utils.reporter import ProgressReporter

DRUSH = "vendor/bin/drush"


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Keep color and logging changes made by the CLI inside the test."""
    monkeypatch.setenv("NO_COLOR", "1")
    monkeypatch.delenv("DRUPAL_UPGRADER_CONFIG", raising=False)
    monkeypatch.delenv("DRUPAL_UPGRADER_COLOR", raising=False)
    yield
    disable_logging()


class Wiring:
    """Scripted responses shared by every runner the commands create."""

    def __init__(self) -> None:
        self.responses: list = []
        self.runners: List[FakeRunner] = []

    def on(self, *prefix: str, **response) -> None:
        self.responses.append((prefix, response))

    def runner(self, project_dir: Path) -> FakeRunner:
        runner = FakeRunner(project_dir)
        for prefix, response in self.responses:
            runner.on(*prefix, **response)
        self.runners.append(runner)
        return runner


@pytest.fixture
def wiring(monkeypatch: pytest.MonkeyPatch) -> Wiring:
    """Build the commands' orchestrators with scripted runners."""
    wiring = Wiring()

    def make_upgrader(config, project_dir):
        return Upgrader(
            config, project_dir, runner=wiring.runner(project_dir), reporter=ProgressReporter(echo=False)
        )

    def make_updater(config, project_dir):
        return AutoUpdater(
            config, project_dir, runner=wiring.runner(project_dir), reporter=ProgressReporter(echo=False)
        )

    monkeypatch.setattr(upgrade_module, "Upgrader", make_upgrader)
    monkeypatch.setattr(auto_update_module, "AutoUpdater", make_updater)
    return wiring


def _invoke(*args: str, input: Optional[str] = None):
    return CliRunner().invoke(cli, list(args), input=input)


@pytest.mark.unit
class TestGroup:
    """Tests for global options."""

    def test_version(self) -> None:
        result = _invoke("--version")

        assert result.exit_code == 0
        assert result.output.strip() == "drupal-upgrader 0.3.0"

    def test_help_lists_commands(self) -> None:
        result = _invoke("--help")

        assert result.exit_code == 0
        assert "upgrade" in result.output
        assert "auto-update" in result.output

    def test_invalid_config_file(self, project: Path) -> None:
        bad = project / "drupal-upgrader.toml"
        bad.write_text("[drupal-upgrader]\nstatic_analysis_level = 42\n", encoding="utf-8")

        result = _invoke("-d", str(project), "upgrade", "--dry-run")

        assert result.exit_code == 1
        assert "between 0 and 10" in result.output

    def test_missing_project_dir(self, tmp_path: Path) -> None:
        result = _invoke("-d", str(tmp_path / "nope"), "upgrade")

        assert result.exit_code == 2


@pytest.mark.unit
class TestUpgradeCommand:
    """Tests for ``drupal-upgrader upgrade``."""

    def test_dry_run(self, project: Path, wiring: Wiring) -> None:
        before = read_require(project)

        result = _invoke("-d", str(project), "upgrade", "--dry-run")

        assert result.exit_code == 0, result.output
        assert "Upgrade Path (Dry Run)" in result.output
        assert "Dry run mode - no changes applied" in result.output
        assert read_require(project) == before
        assert not wiring.runners[0].ran("composer")

    def test_upgrade_to_target(self, project: Path, wiring: Wiring) -> None:
        result = _invoke("-d", str(project), "upgrade", "-t", "10", "--skip-compatibility", "--skip-backup")

        assert result.exit_code == 0, result.output
        assert "Drupal upgraded from 9.5.9 to 10.0.0" in result.output
        assert read_require(project)["drupal/core-recommended"] == "^10.0"
        assert not wiring.runners[0].ran("tar")

    def test_config_file_applies(self, project: Path, wiring: Wiring) -> None:
        (project / "drupal-upgrader.toml").write_text(
            "[drupal-upgrader]\nskip_backup = true\nskip_compatibility_checks = true\n",
            encoding="utf-8",
        )

        result = _invoke("-d", str(project), "upgrade", "-t", "10")

        assert result.exit_code == 0, result.output
        assert not wiring.runners[0].ran("tar")
        assert not wiring.runners[0].ran(DRUSH, "pm:list")

    def test_user_aborts_at_prompt(self, project: Path, wiring: Wiring) -> None:
        wiring.on(DRUSH, "pm:list", stdout=json.dumps({"upgrade_status": {"package": "Other"}}))
        wiring.on(DRUSH, "upgrade_status:analyze", stdout="Token: 2 errors\n")
        before = read_require(project)

        result = _invoke("-d", str(project), "upgrade", input="n\n")

        assert result.exit_code == 0, result.output
        assert "Compatibility issues found. Continue anyway? [y/N]:" in result.output
        assert "Upgrade aborted; no changes were made" in result.output
        assert read_require(project) == before

    def test_failure_exits_one(self, project: Path, wiring: Wiring) -> None:
        wiring.on("composer", returncode=2, stderr="Your requirements could not be resolved")

        result = _invoke("-d", str(project), "upgrade", "--skip-compatibility")

        assert result.exit_code == 1
        assert "Error: Composer update failed" in result.output
        assert wiring.runners[0].commands.count((DRUSH, "updatedb", "-y")) == 0

    def test_target_below_current(self, project: Path, wiring: Wiring) -> None:
        result = _invoke("-d", str(project), "upgrade", "-t", "8", "--skip-backup")

        assert result.exit_code == 1
        assert "lower than current version" in result.output

    def test_target_must_be_positive(self, project: Path) -> None:
        result = _invoke("-d", str(project), "upgrade", "-t", "0")

        assert result.exit_code == 2

    def test_nothing_to_do(self, tmp_path: Path, wiring: Wiring) -> None:
        project = write_project(tmp_path, core_version="11.0.4")

        result = _invoke("-d", str(project), "upgrade", "--skip-backup")

        assert result.exit_code == 0, result.output
        assert "Upgrade Path" not in result.output


@pytest.mark.unit
class TestAutoUpdateCommand:
    """Tests for ``drupal-upgrader auto-update``."""

    def test_updates_core(self, project: Path, wiring: Wiring) -> None:
        result = _invoke("-d", str(project), "auto-update", "--skip-backup")

        assert result.exit_code == 0, result.output
        assert "Drupal update completed successfully" in result.output
        assert wiring.runners[0].ran("composer", "update", "drupal/core-recommended", "drupal/core-composer-scaffold")

    def test_dry_run(self, project: Path, wiring: Wiring) -> None:
        result = _invoke("-d", str(project), "auto-update", "--dry-run", "--update-modules")

        assert result.exit_code == 0, result.output
        assert "Dry run mode - no changes applied" in result.output
        assert wiring.runners[0].commands == []

    def test_failure(self, tmp_path: Path, wiring: Wiring) -> None:
        project = write_project(tmp_path, core_version=None)

        result = _invoke("-d", str(project), "auto-update", "--skip-backup")

        assert result.exit_code == 1
        assert "Error:" in result.output


@pytest.mark.unit
class TestMain:
    """Tests for the exit-code mapping of ``main()``."""

    def test_usage_error(self, project: Path) -> None:
        with patch("sys.argv", ["drupal-upgrader", "-d", str(project), "upgrade", "-t", "0"]):
            assert main() == 2

    def test_command_exit_code(self, project: Path, wiring: Wiring) -> None:
        with patch("sys.argv", ["drupal-upgrader", "-d", str(project), "upgrade", "--dry-run"]):
            assert main() == 0

    def test_keyboard_interrupt(self) -> None:
        with patch("drupal_upgrader.cli.cli", side_effect=KeyboardInterrupt):
            assert main() == 130

    def test_unexpected_error(self) -> None:
        with patch("drupal_upgrader.cli.cli", side_effect=RuntimeError("boom")):
            assert main() == 1
