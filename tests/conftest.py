from __future__ import annotations

import json
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

import pytest

from drupal_upgrader.core.process import CommandResult, ProcessRunner
from drupal_upgrader.utils.reporter import ProgressReporter

DEFAULT_REQUIRE: Dict[str, str] = {
    "php": ">=8.1",
    "composer/installers": "^2.0",
    "drupal/core-recommended": "^9.5",
    "drupal/core-composer-scaffold": "^9.5",
    "drupal/admin_toolbar": "^3.4",
    "drupal/token": "1.11.0",
    "drush/drush": "^11.0",
}


class FakeRunner(ProcessRunner):
    """ProcessRunner that records commands instead of executing them.

    Responses are matched by argument-vector prefix; the most recently
    registered match wins. Unmatched commands succeed with empty output.
    """

    def __init__(self, cwd: Path) -> None:
        super().__init__(cwd)
        self.calls: List[Tuple[Tuple[str, ...], Optional[float]]] = []
        self._responses: List[tuple] = []
        self.observer: Optional[Callable[[Tuple[str, ...]], None]] = None

    def on(
        self,
        *prefix: str,
        returncode: int = 0,
        stdout: str = "",
        stderr: str = "",
        error: Optional[Exception] = None,
    ) -> "FakeRunner":
        self._responses.append((tuple(prefix), returncode, stdout, stderr, error))
        return self

    def run(self, command: Sequence[str], *, timeout: Optional[float] = None) -> CommandResult:
        argv = tuple(str(part) for part in command)
        self.calls.append((argv, timeout))
        if self.observer is not None:
            self.observer(argv)

        for prefix, returncode, stdout, stderr, error in reversed(self._responses):
            if argv[: len(prefix)] == prefix:
                if error is not None:
                    raise error
                return CommandResult(argv, returncode, stdout, stderr)
        return CommandResult(argv, 0, "", "")

    @property
    def commands(self) -> List[Tuple[str, ...]]:
        return [argv for argv, _ in self.calls]

    def ran(self, *prefix: str) -> bool:
        return any(argv[: len(prefix)] == prefix for argv in self.commands)

    def timeout_of(self, *prefix: str) -> Optional[float]:
        for argv, timeout in self.calls:
            if argv[: len(prefix)] == prefix:
                return timeout
        raise AssertionError(f"{' '.join(prefix)} was not run")


def write_project(
    root: Path,
    *,
    core_version: Optional[str] = "9.5.9",
    require: Optional[Mapping[str, str]] = None,
    core_package: str = "drupal/core-recommended",
) -> Path:
    """Lay out a minimal Composer-managed Drupal project under ``root``."""
    manifest = {
        "name": "acme/site",
        "type": "project",
        "require": dict(DEFAULT_REQUIRE if require is None else require),
        "minimum-stability": "stable",
    }
    (root / "composer.json").write_text(json.dumps(manifest, indent=4) + "\n", encoding="utf-8")

    if core_version is not None:
        installed = root / "vendor" / "composer"
        installed.mkdir(parents=True, exist_ok=True)
        packages = [
            {"name": core_package, "version": core_version},
            {"name": "drupal/core", "version": core_version},
            {"name": "drupal/token", "version": "1.11.0"},
        ]
        (installed / "installed.json").write_text(
            json.dumps({"packages": packages}), encoding="utf-8"
        )
    return root


def read_require(root: Path) -> Dict[str, str]:
    return json.loads((root / "composer.json").read_text(encoding="utf-8"))["require"]


def snapshot_tree(root: Path) -> Dict[str, bytes]:
    """Map every file below ``root`` to its content."""
    return {
        str(path.relative_to(root)): path.read_bytes()
        for path in sorted(root.rglob("*"))
        if path.is_file()
    }


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A Drupal 9.5.9 project with core, contrib and a pinned module."""
    return write_project(tmp_path)


@pytest.fixture
def runner(project: Path) -> FakeRunner:
    return FakeRunner(project)


@pytest.fixture
def reporter() -> ProgressReporter:
    return ProgressReporter(echo=False)
