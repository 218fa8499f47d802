"""
Executable module for drupal-upgrader.

Running:
    python -m drupal_upgrader

is equivalent to:
    drupal-upgrader

This module simply forwards execution to the CLI entrypoint defined in
`drupal_upgrader.cli`.
"""

from __future__ import annotations

import sys


def _print_startup_error(exc: BaseException) -> None:
    """Report a CLI import failure on stderr."""
    sys.stderr.write("drupal-upgrader CLI could not be loaded.\n")
    sys.stderr.write(f"Python version : {sys.version}\n")
    try:
        from drupal_upgrader.__version__ import __version__

        sys.stderr.write(f"drupal-upgrader version: {__version__}\n")
    except ImportError:
        sys.stderr.write("drupal-upgrader version: <unknown>\n")
    sys.stderr.write("\n")
    sys.stderr.write(f"ImportError: {exc}\n")


def main() -> int:
    """
    Main entrypoint when executing `python -m drupal_upgrader`.

    Returns:
        Exit code returned by the CLI.
    """
    try:
        # Import lazily so dependencies are only loaded during CLI use
        from drupal_upgrader.cli import main as cli_main
    except ImportError as exc:
        _print_startup_error(exc)
        return 1

    return cli_main()


if __name__ == "__main__":
    sys.exit(main())
