"""
Shared helpers for the upgrade and auto-update commands.

The console and logger modules split output between the operator and the
log. ``reporter`` records each step of a run. ``filesystem`` holds the
atomic write, snapshot and run-lock helpers. ``version_utils`` reads
Drupal release strings and Composer constraints.
"""

from __future__ import annotations

from drupal_upgrader.utils.console import (
    colorize_update_type,
    confirm,
    get_console,
    print_error,
    print_message,
    print_section,
    print_success,
    print_table,
    print_warning,
    reconfigure_console,
)
from drupal_upgrader.utils.filesystem import (
    create_timestamped_backup,
    run_lock,
    safe_read_file,
    safe_write_file,
)
from drupal_upgrader.utils.logger import (
    disable_logging,
    get_logger,
    get_tool_logger,
    is_logging_configured,
    level_for_verbosity,
    setup_logging,
)
from drupal_upgrader.utils.reporter import EntryKind, JournalEntry, ProgressReporter
from drupal_upgrader.utils.version_utils import (
    get_update_type,
    parse_release,
    strip_constraint,
)

__all__ = [
    "colorize_update_type",
    "confirm",
    "get_console",
    "print_error",
    "print_message",
    "print_section",
    "print_success",
    "print_table",
    "print_warning",
    "reconfigure_console",
    "create_timestamped_backup",
    "run_lock",
    "safe_read_file",
    "safe_write_file",
    "disable_logging",
    "get_logger",
    "get_tool_logger",
    "is_logging_configured",
    "level_for_verbosity",
    "setup_logging",
    "EntryKind",
    "JournalEntry",
    "ProgressReporter",
    "get_update_type",
    "parse_release",
    "strip_constraint",
]
