"""Project archives taken before an upgrade modifies anything."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from drupal_upgrader.constants import (
    BACKUP_DIR,
    BACKUP_EXCLUDES,
    BACKUP_TIMEOUT,
    BACKUP_TIMESTAMP_FORMAT,
    TAR_BINARY,
)
from drupal_upgrader.core.process import ProcessRunner
from drupal_upgrader.exceptions import FileOperationError
from drupal_upgrader.utils.logger import get_logger
from drupal_upgrader.utils.reporter import ProgressReporter

logger = get_logger("core.backup")


class BackupManager:
    """Creates ``backups/drupal_backup_<timestamp>.tar.gz`` archives.

    The archive covers the whole project directory except the backup
    directory itself, ``vendor`` and ``node_modules``; those are rebuilt by
    Composer and npm.

    Args:
        project_dir: Directory to archive.
        runner: Runs ``tar``.
        reporter: Progress sink.
        dry_run: Only report the intent.
        clock: Returns the current time; used for the archive name.
    """

    def __init__(
        self,
        project_dir: Path,
        runner: ProcessRunner,
        reporter: ProgressReporter,
        *,
        dry_run: bool = False,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.project_dir = Path(project_dir)
        self.runner = runner
        self.reporter = reporter
        self.dry_run = dry_run
        self.clock = clock

    def archive_name(self) -> str:
        return f"drupal_backup_{self.clock().strftime(BACKUP_TIMESTAMP_FORMAT)}.tar.gz"

    def create_backup(self) -> Optional[Path]:
        """Archive the project.

        Returns:
            Path of the new archive, or ``None`` in dry-run mode.

        Raises:
            ExternalCommandError: ``tar`` failed or timed out.
            FileOperationError: The backup directory cannot be created.
        """
        self.reporter.section("Creating backup")

        if self.dry_run:
            self.reporter.intent("create backup")
            return None

        backup_dir = self.project_dir / BACKUP_DIR
        try:
            backup_dir.mkdir(mode=0o755, parents=True, exist_ok=True)
        except OSError as exc:
            raise FileOperationError(
                f"Cannot create backup directory: {exc}",
                file_path=str(backup_dir),
                operation="backup",
                original_error=exc,
            ) from exc

        relative = Path(BACKUP_DIR) / self.archive_name()
        command = [TAR_BINARY, "-czf", str(relative)]
        command.extend(f"--exclude={path}" for path in BACKUP_EXCLUDES)
        command.append(".")

        self.reporter.log("Creating backup archive...")
        self.runner.run_checked(
            command,
            error_message="Backup creation failed",
            timeout=BACKUP_TIMEOUT,
        )

        archive = self.project_dir / relative
        self.reporter.success(f"Backup created successfully: {archive}")
        logger.debug("Backup archive at %s", archive)
        return archive
