"""
Command-line interface for drupal-upgrader.

This module provides the main CLI entry point and handles global options,
configuration loading, and command registration.
"""

from __future__ import annotations

import os
import sys
import logging
from pathlib import Path
from typing import Optional

import click

from drupal_upgrader.config import load_config
from drupal_upgrader.__version__ import __version__
from drupal_upgrader.context import UpgraderContext
from drupal_upgrader.exceptions import ConfigError, UpgraderError
from drupal_upgrader.utils.logger import get_logger, level_for_verbosity, setup_logging
from drupal_upgrader.utils.console import print_error, print_warning, reconfigure_console

logger = get_logger("cli")


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to configuration file.",
    envvar="DRUPAL_UPGRADER_CONFIG",
)
@click.option(
    "--project-dir",
    "-d",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Drupal project root (default: current directory).",
)
@click.option(
    "--verbose",
    "-v",
    count=True,
    help="Increase verbosity (can be repeated: -v, -vv).",
)
@click.option(
    "--color/--no-color",
    default=True,
    help="Enable or disable colored output.",
    envvar="DRUPAL_UPGRADER_COLOR",
)
@click.version_option(
    version=__version__,
    prog_name="drupal-upgrader",
    message="%(prog)s %(version)s",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config: Optional[Path],
    project_dir: Optional[Path],
    verbose: int,
    color: bool,
) -> None:
    """drupal-upgrader: automated multi-step Drupal core upgrades.

    \b
    Available commands:
      drupal-upgrader upgrade        Upgrade core to a newer major version
      drupal-upgrader auto-update    Update within the current major version

    \b
    Examples:
      drupal-upgrader upgrade --dry-run
      drupal-upgrader upgrade --target-version 10
      drupal-upgrader -v auto-update --update-modules

    Use ``drupal-upgrader COMMAND --help`` for command-specific options.
    """
    _configure_logging(verbose)

    # Respect NO_COLOR for downstream libraries
    if color:
        os.environ.pop("NO_COLOR", None)
    else:
        os.environ["NO_COLOR"] = "1"
    reconfigure_console()

    root = (project_dir or Path.cwd()).resolve()

    try:
        loaded_config = load_config(config, project_dir=root)
    except ConfigError as exc:
        print_error(str(exc))
        raise SystemExit(1) from exc

    upgrader_ctx = UpgraderContext()
    upgrader_ctx.config_path = config or loaded_config.source_path
    upgrader_ctx.project_dir = root
    upgrader_ctx.color = color
    upgrader_ctx.verbose = verbose
    upgrader_ctx.config = loaded_config
    ctx.obj = upgrader_ctx

    logger.debug("drupal-upgrader v%s", __version__)
    logger.debug("Project directory: %s", root)
    logger.debug("Config path: %s", upgrader_ctx.config_path)
    logger.debug("Verbosity: %s | Color: %s", verbose, color)


def _configure_logging(verbose: int) -> None:
    """Configure logging level based on verbosity flags."""
    level = level_for_verbosity(verbose)
    setup_logging(level=level, verbose=verbose >= 2)
    logger.debug("Logging initialized at %s level", logging.getLevelName(level))


# Register CLI subcommands
from drupal_upgrader.commands.upgrade import upgrade  # noqa: E402
from drupal_upgrader.commands.auto_update import auto_update  # noqa: E402

cli.add_command(upgrade)
cli.add_command(auto_update)


def main() -> int:
    """Main entry point for the drupal-upgrader CLI.

    Returns:
        Exit code:
            0   Success or upgrade aborted by the user
            1   Unhandled or application error
            2   Usage error (Click)
            130 Interrupted by user (Ctrl+C)
    """
    try:
        cli(standalone_mode=False)
        return 0

    except click.ClickException as exc:
        exc.show()
        return exc.exit_code

    except click.exceptions.Abort:
        print_warning("\nOperation cancelled by user")
        return 130

    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else (0 if exc.code is None else 1)

    except UpgraderError as exc:
        print_error(str(exc))
        logger.debug(
            "UpgraderError details: %s",
            exc.details or "<none>",
            exc_info=True,
        )
        return 1

    except KeyboardInterrupt:
        print_warning("\nOperation cancelled by user")
        return 130

    except Exception as exc:
        print_error(f"Unexpected error: {exc}")
        logger.exception("Unhandled exception in CLI")
        return 1


if __name__ == "__main__":
    sys.exit(main())
