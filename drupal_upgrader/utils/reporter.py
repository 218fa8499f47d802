"""
Progress reporting for upgrade runs.

:class:`ProgressReporter` is the single sink every component writes its
progress to. Each entry is printed through the Rich console helpers and
kept in an in-memory journal, so a dry run doubles as a complete,
inspectable list of the actions a real run would take.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List

from drupal_upgrader.utils import console
from drupal_upgrader.utils.logger import get_logger

logger = get_logger("reporter")


class EntryKind(str, Enum):
    """Kind of a journal entry."""

    SECTION = "section"
    MESSAGE = "message"
    SUCCESS = "success"
    WARNING = "warning"
    INTENT = "intent"
    OUTPUT = "output"


@dataclass(frozen=True)
class JournalEntry:
    kind: EntryKind
    text: str


class ProgressReporter:
    """Formats progress messages and records them.

    Args:
        verbose: Echo captured tool output to the console. When ``False``
            the output is only logged at DEBUG level.
        echo: Print entries to the console. Tests disable this and inspect
            :attr:`entries` instead.
    """

    #: Prefix for dry-run intent statements.
    DRY_RUN_PREFIX = "DRY RUN: Would "

    def __init__(self, *, verbose: bool = False, echo: bool = True) -> None:
        self.verbose = verbose
        self.echo = echo
        self.entries: List[JournalEntry] = []

    def _record(self, kind: EntryKind, text: str) -> None:
        self.entries.append(JournalEntry(kind, text))

    def section(self, title: str) -> None:
        self._record(EntryKind.SECTION, title)
        if self.echo:
            console.print_section(title)

    def log(self, message: str) -> None:
        self._record(EntryKind.MESSAGE, message)
        logger.info(message)
        if self.echo:
            console.print_message(message)

    def success(self, message: str) -> None:
        self._record(EntryKind.SUCCESS, message)
        if self.echo:
            console.print_success(message)

    def warning(self, message: str) -> None:
        self._record(EntryKind.WARNING, message)
        logger.warning(message)
        if self.echo:
            console.print_warning(message)

    def intent(self, action: str) -> None:
        """Record an action a dry run skipped, e.g. ``intent("rebuild caches")``."""
        text = f"{self.DRY_RUN_PREFIX}{action}"
        self._record(EntryKind.INTENT, text)
        if self.echo:
            console.print_message(text, style="intent")

    def output(self, text: str) -> None:
        """Relay a chunk of external tool output."""
        line = text.rstrip("\n")
        if not line:
            return
        if self.verbose:
            self._record(EntryKind.OUTPUT, line)
            if self.echo:
                console.print_message(line, style="dim")

    # ------------------------------------------------------------------
    # Journal queries
    # ------------------------------------------------------------------

    def texts(self, kind: EntryKind) -> List[str]:
        """Return the text of every entry of ``kind``, in order."""
        return [entry.text for entry in self.entries if entry.kind is kind]

    @property
    def intents(self) -> List[str]:
        return self.texts(EntryKind.INTENT)
