"""Auto-update command implementation for drupal-upgrader.

Keeps the installed core major and updates core, and optionally enabled
contrib modules and themes, to their newest compatible releases.

Typical usage::

    $ drupal-upgrader auto-update
    $ drupal-upgrader auto-update --update-modules --update-themes
    $ drupal-upgrader auto-update --dry-run
"""

from __future__ import annotations

import sys

import click

from drupal_upgrader.context import UpgraderContext, pass_context
from drupal_upgrader.core.updater import AutoUpdater
from drupal_upgrader.exceptions import UpgraderError
from drupal_upgrader.utils import get_logger, print_error, print_success, print_warning

logger = get_logger("commands.auto_update")


@click.command(name="auto-update")
@click.option(
    "--dry-run",
    is_flag=True,
    help="Show every action without changing the project.",
)
@click.option(
    "--skip-backup",
    is_flag=True,
    help="Do not archive the project before updating.",
)
@click.option(
    "--update-modules",
    is_flag=True,
    help="Also update enabled contributed modules.",
)
@click.option(
    "--update-themes",
    is_flag=True,
    help="Also update enabled contributed themes.",
)
@pass_context
def auto_update(
    ctx: UpgraderContext,
    dry_run: bool,
    skip_backup: bool,
    update_modules: bool,
    update_themes: bool,
) -> None:
    """Update Drupal to the latest release of its current major version."""
    try:
        config = ctx.base_config().with_overrides(
            dry_run=dry_run or None,
            skip_backup=skip_backup or None,
            verbose=(ctx.verbose > 0) or None,
        )
        updater = AutoUpdater(config, ctx.project_dir)
        report = updater.run(update_modules=update_modules, update_themes=update_themes)

    except UpgraderError as e:
        print_error(f"Error: {e}")
        logger.debug("Auto-update failed", exc_info=True)
        sys.exit(1)

    if config.dry_run:
        print_warning("Dry run mode - no changes applied")
    else:
        updated = ", ".join(report.updated_packages) or "nothing"
        print_success(f"Drupal update completed successfully (updated: {updated})")
    sys.exit(0)
