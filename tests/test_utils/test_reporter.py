from __future__ import annotations

import pytest

from drupal_upgrader.utils.console import reconfigure_console
from drupal_upgrader.utils.reporter import EntryKind, JournalEntry, ProgressReporter


@pytest.mark.unit
class TestProgressReporter:
    """Tests for the progress journal."""

    def test_journal_order(self) -> None:
        reporter = ProgressReporter(echo=False)

        reporter.section("Upgrade Plan")
        reporter.log("Current version: 9.5.9")
        reporter.warning("Pinned versions found")
        reporter.success("Done")

        assert reporter.entries == [
            JournalEntry(EntryKind.SECTION, "Upgrade Plan"),
            JournalEntry(EntryKind.MESSAGE, "Current version: 9.5.9"),
            JournalEntry(EntryKind.WARNING, "Pinned versions found"),
            JournalEntry(EntryKind.SUCCESS, "Done"),
        ]

    def test_intent_prefix(self) -> None:
        reporter = ProgressReporter(echo=False)

        reporter.intent("rebuild caches")

        assert reporter.intents == ["DRY RUN: Would rebuild caches"]

    def test_output_only_kept_when_verbose(self) -> None:
        quiet = ProgressReporter(echo=False)
        verbose = ProgressReporter(verbose=True, echo=False)

        for reporter in (quiet, verbose):
            reporter.output("Loading composer repositories\n")
            reporter.output("\n")

        assert quiet.entries == []
        assert verbose.texts(EntryKind.OUTPUT) == ["Loading composer repositories"]

    def test_echo(self, capsys: pytest.CaptureFixture, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("NO_COLOR", "1")
        reconfigure_console()
        reporter = ProgressReporter()

        reporter.intent("create backup")
        reporter.success("Backup created")

        assert capsys.readouterr().out.splitlines() == [
            "DRY RUN: Would create backup",
            "[OK] Backup created",
        ]
        reconfigure_console()
