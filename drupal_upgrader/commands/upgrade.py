"""Upgrade command implementation for drupal-upgrader.

Moves a Drupal project across one or more core majors, step by step:

1. **BackupManager** archives the project
2. **VersionPolicy** plans the path from the installed version
3. **CompatibilityChecker** runs Upgrade Status and PHPStan; the user may
   abort when issues are found
4. For each step, ``composer.json`` is rewritten, Composer updates the
   touched packages and Drush applies database updates

Typical usage::

    # Upgrade to the newest supported major
    $ drupal-upgrader upgrade

    # Preview every action without changing anything
    $ drupal-upgrader upgrade --dry-run

    # Stop at Drupal 10
    $ drupal-upgrader upgrade --target-version 10
"""

from __future__ import annotations

import sys
from typing import List, Optional

import click

from drupal_upgrader.context import UpgraderContext, pass_context
from drupal_upgrader.core.upgrader import Upgrader
from drupal_upgrader.exceptions import UpgraderError
from drupal_upgrader.models.report import UpgradeReport, UpgradeState
from drupal_upgrader.models.step import UpgradeStep
from drupal_upgrader.utils import (
    colorize_update_type,
    get_logger,
    get_update_type,
    parse_release,
    print_error,
    print_success,
    print_table,
    print_warning,
)

logger = get_logger("commands.upgrade")


@click.command()
@click.option(
    "--dry-run",
    is_flag=True,
    help="Show every action without changing the project.",
)
@click.option(
    "--target-version",
    "-t",
    type=click.IntRange(min=1),
    default=None,
    help="Major version to upgrade to (default: newest supported).",
)
@click.option(
    "--skip-compatibility",
    is_flag=True,
    help="Skip the Upgrade Status and PHPStan checks.",
)
@click.option(
    "--skip-backup",
    is_flag=True,
    help="Do not archive the project before upgrading.",
)
@pass_context
def upgrade(
    ctx: UpgraderContext,
    dry_run: bool,
    target_version: Optional[int],
    skip_compatibility: bool,
    skip_backup: bool,
) -> None:
    """Upgrade Drupal core to a newer major version.

    Each major is reached through the latest minor of the previous one,
    e.g. 9.5.9 → 9.5 → 10.0 → 11.0. Options given here override the
    configuration file.

    Exits:
        0 if the upgrade completed, there was nothing to do, or the user
        aborted at the compatibility prompt; 1 on any error.
    """
    try:
        config = ctx.base_config().with_overrides(
            dry_run=dry_run or None,
            skip_compatibility_checks=skip_compatibility or None,
            skip_backup=skip_backup or None,
            verbose=(ctx.verbose > 0) or None,
        )
        upgrader = Upgrader(config, ctx.project_dir)
        report = upgrader.run(target_major=target_version)

    except UpgraderError as e:
        print_error(f"Error: {e}")
        logger.debug("Upgrade failed", exc_info=True)
        sys.exit(1)

    _display_summary(report, config.dry_run)
    sys.exit(report.exit_code)


def _display_summary(report: UpgradeReport, dry_run: bool) -> None:
    """Print the path as a table and a closing status line.

    Example output::

        ┏━━━━━━━━┳━━━━━━━━━━━━┳━━━━━━━━┳━━━━━━━━━━━┓
        ┃ Step   ┃ Constraint ┃ Change ┃ Status    ┃
        ┡━━━━━━━━╇━━━━━━━━━━━━╇━━━━━━━━╇━━━━━━━━━━━┩
        │ 10.3.0 │ ^10.3      │ minor  │ completed │
        │ 11.0.0 │ ^11.0      │ major  │ completed │
        └────────┴────────────┴────────┴───────────┘
    """
    if report.state is UpgradeState.ABORTED:
        print_warning("Upgrade aborted; no changes were made")
        return

    if report.nothing_to_do:
        return

    title = "Upgrade Path (Dry Run)" if dry_run else "Upgrade Path"
    print_table(
        _summary_rows(report, dry_run),
        title=title,
        column_styles={
            "Step": {"style": "bold cyan", "no_wrap": True},
            "Constraint": {"justify": "center"},
            "Change": {"justify": "center"},
            "Status": {"justify": "center"},
        },
    )

    if dry_run:
        print_warning("Dry run mode - no changes applied")
    else:
        last = report.completed_steps[-1]
        print_success(f"Drupal upgraded from {report.current_version} to {last}")


def _summary_rows(report: UpgradeReport, dry_run: bool) -> List[dict]:
    rows = []
    # First step is compared against the installed minor, not the patch
    previous = _release_line(report.current_version)
    for step in report.path:
        rows.append(
            {
                "Step": str(step),
                "Constraint": step.core_constraint,
                "Change": colorize_update_type(get_update_type(previous, step.version)),
                "Status": _step_status(step, report, dry_run),
            }
        )
        previous = step.version
    return rows


def _step_status(step: UpgradeStep, report: UpgradeReport, dry_run: bool) -> str:
    if dry_run:
        return "[cyan]planned[/cyan]"
    if step in report.completed_steps:
        return "[green]completed[/green]"
    return "[dim]pending[/dim]"


def _release_line(version: Optional[str]) -> Optional[str]:
    parsed = parse_release(version) if version else None
    if parsed is None:
        return version
    return f"{parsed.major}.{parsed.minor}"
