"""Post-update Drush tasks: schema updates, cache rebuild, config export."""

from __future__ import annotations

from drupal_upgrader.constants import (
    CACHE_REBUILD_TIMEOUT,
    DATABASE_UPDATE_TIMEOUT,
    DRUSH_BINARY,
    DRUSH_QUERY_TIMEOUT,
)
from drupal_upgrader.core.process import ProcessRunner
from drupal_upgrader.exceptions import ExternalCommandError
from drupal_upgrader.utils.logger import get_logger
from drupal_upgrader.utils.reporter import ProgressReporter

logger = get_logger("core.database")


class DatabaseUpdater:
    """Runs Drush maintenance commands after Composer changed the codebase.

    Args:
        runner: Runs Drush.
        reporter: Progress sink.
        dry_run: Only report the intent.
    """

    def __init__(
        self,
        runner: ProcessRunner,
        reporter: ProgressReporter,
        *,
        dry_run: bool = False,
    ) -> None:
        self.runner = runner
        self.reporter = reporter
        self.dry_run = dry_run

    def run_updates(self) -> None:
        """Apply pending database updates and rebuild caches.

        Raises:
            ExternalCommandError: ``updatedb`` or ``cache:rebuild`` failed.
        """
        self.reporter.section("Running database updates")

        if self.dry_run:
            self.reporter.intent("run database updates via Drush")
            return

        self.reporter.log("Running drush updatedb...")
        self.runner.run_checked(
            [DRUSH_BINARY, "updatedb", "-y"],
            error_message="Database update failed",
            timeout=DATABASE_UPDATE_TIMEOUT,
        )

        self.rebuild_caches()
        self.reporter.log("Database updates completed successfully")

    def rebuild_caches(self) -> None:
        """Run ``drush cache:rebuild``.

        Raises:
            ExternalCommandError: The rebuild failed.
        """
        if self.dry_run:
            self.reporter.intent("rebuild caches")
            return

        self.reporter.log("Rebuilding caches...")
        self.runner.run_checked(
            [DRUSH_BINARY, "cache:rebuild", "-y"],
            error_message="Cache rebuild failed",
            timeout=CACHE_REBUILD_TIMEOUT,
        )

    def export_config(self) -> bool:
        """Export active configuration; failures are logged, not raised.

        Returns:
            True if the export ran and succeeded (or would in dry-run).
        """
        self.reporter.section("Exporting configuration")

        if self.dry_run:
            self.reporter.intent("export configuration via Drush")
            return True

        try:
            result = self.runner.run(
                [DRUSH_BINARY, "config:export", "-y"],
                timeout=DRUSH_QUERY_TIMEOUT,
            )
        except ExternalCommandError as exc:
            logger.debug("config:export did not run: %s", exc)
            result = None

        if result is None or not result.succeeded:
            self.reporter.log("Configuration export failed or not available. Continuing anyway.")
            return False

        self.reporter.log("Configuration exported successfully")
        return True
