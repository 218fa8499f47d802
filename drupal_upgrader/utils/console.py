"""
Console output for drupal-upgrader commands, rendered with Rich.

Everything the operator is meant to read goes through here: step
progress, the upgrade path table and the compatibility prompt. Diagnostic
detail belongs in :mod:`drupal_upgrader.utils.logger` instead.

Messages routinely embed tool output and Composer package names such as
``[drupal/core]``. They are escaped before printing so Rich does not read
them as markup. Table cells are the exception: callers color them on
purpose.
"""

from __future__ import annotations

import os
import sys
import threading
from typing import Dict, List, Mapping, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.theme import Theme

UPGRADER_THEME = Theme(
    {
        "success": "bold green",
        "error": "bold red",
        "warning": "bold yellow",
        "info": "bold cyan",
        "section": "bold blue",
        "intent": "magenta",
        "dim": "dim",
    }
)

# Release-line changes as reported by version_utils.get_update_type
_CHANGE_COLORS = {
    "major": "red",
    "minor": "yellow",
    "patch": "green",
    "new": "cyan",
    "downgrade": "red",
}

_console: Optional[Console] = None
_console_lock = threading.Lock()


def _should_use_color() -> bool:
    if os.environ.get("NO_COLOR") or os.environ.get("CI"):
        return False
    try:
        return sys.stdout.isatty()
    except (AttributeError, OSError):
        return False


def get_console() -> Console:
    """Return the shared Rich console, creating it on first use."""
    global _console

    if _console is None:
        with _console_lock:
            if _console is None:
                _console = Console(
                    theme=UPGRADER_THEME,
                    no_color=not _should_use_color(),
                    highlight=False,
                )
    return _console


def reconfigure_console() -> None:
    """Drop the shared console so the next print re-reads NO_COLOR and CI."""
    global _console
    with _console_lock:
        _console = None


def print_message(message: str, *, style: Optional[str] = None) -> None:
    get_console().print(escape(message), style=style)


def print_success(message: str, *, prefix: str = "[OK]") -> None:
    get_console().print(escape(f"{prefix} {message}"), style="success")


def print_error(message: str, *, prefix: str = "[ERROR]") -> None:
    get_console().print(escape(f"{prefix} {message}"), style="error")


def print_warning(message: str, *, prefix: str = "[WARNING]") -> None:
    get_console().print(escape(f"{prefix} {message}"), style="warning")


def print_section(title: str) -> None:
    """Print a blank line, then ``title`` underlined with dashes."""
    console = get_console()
    console.print()
    console.print(escape(title), style="section")
    console.print("-" * len(title), style="section")


def print_table(
    rows: List[Dict[str, str]],
    *,
    title: Optional[str] = None,
    column_styles: Optional[Mapping[str, Mapping[str, object]]] = None,
) -> None:
    """Render ``rows`` as a table whose columns follow the first row's keys.

    Args:
        rows: One mapping per table row. Values may contain Rich markup.
        title: Heading printed above the table.
        column_styles: Keyword arguments for ``Table.add_column`` keyed by
            column name, e.g. ``{"Step": {"no_wrap": True}}``.
    """
    if not rows:
        return

    headers = list(rows[0])
    column_styles = column_styles or {}

    table = Table(title=title, show_header=True, header_style="bold")
    for header in headers:
        table.add_column(header, **column_styles.get(header, {}))
    for row in rows:
        table.add_row(*(str(row.get(header, "")) for header in headers))

    get_console().print(table)


def confirm(message: str, *, default: bool = False) -> bool:
    """Ask a yes/no question on the console.

    ``y``/``yes`` and ``n``/``no`` are accepted in any case. Anything else,
    including an empty answer, yields ``default``. Ctrl+C and end of input
    count as "no" so an unattended run never proceeds past the question.
    """
    console = get_console()
    suffix = " [Y/n]: " if default else " [y/N]: "
    console.print(escape(f"{message}{suffix}"), end="", style="info")

    try:
        answer = input().strip().lower()
    except (KeyboardInterrupt, EOFError):
        console.print()
        return False

    if answer in ("y", "yes"):
        return True
    if answer in ("n", "no"):
        return False
    return default


def colorize_update_type(update_type: str) -> str:
    """Wrap a release-line change label in Rich color markup."""
    color = _CHANGE_COLORS.get(update_type.lower())
    return f"[{color}]{update_type}[/{color}]" if color else update_type
