"""Issue extraction from analysis tool output.

Each analysis tool prints findings in its own plain-text format. An
:class:`IssueExtractor` turns that output into
:class:`~drupal_upgrader.models.issue.CompatibilityIssue` objects with a
single regular expression; adding a tool means adding a subclass.
"""

from __future__ import annotations

import re
from typing import ClassVar, Iterable, List, Match, Pattern

from drupal_upgrader.constants import DEFAULT_CRITICAL_KEYWORDS
from drupal_upgrader.models.issue import CompatibilityIssue, severity_for


class IssueExtractor:
    """Base class for regex-driven extractors.

    Subclasses set :attr:`source` and :attr:`pattern` and implement
    :meth:`format_match`.

    Args:
        keywords: Words that make an extracted issue critical.
    """

    source: ClassVar[str] = ""
    pattern: ClassVar[Pattern[str]]

    def __init__(self, keywords: Iterable[str] = DEFAULT_CRITICAL_KEYWORDS) -> None:
        self.keywords = tuple(keywords)

    def format_match(self, match: Match[str]) -> str:
        raise NotImplementedError

    def extract(self, output: str) -> List[CompatibilityIssue]:
        """Return one issue per match in ``output``, in order of appearance."""
        issues: List[CompatibilityIssue] = []
        for match in self.pattern.finditer(output or ""):
            message = self.format_match(match)
            issues.append(
                CompatibilityIssue(
                    message=message,
                    source=self.source,
                    severity=severity_for(message, self.keywords),
                )
            )
        return issues


class UpgradeStatusExtractor(IssueExtractor):
    """Parses ``drush upgrade_status:analyze`` summaries.

    ``Token: 3 errors`` becomes ``Token has 3 error(s)``.
    """

    source = "upgrade_status"
    pattern = re.compile(r"([^\n]+):\s+([0-9]+)\s+errors?", re.IGNORECASE)

    def format_match(self, match: Match[str]) -> str:
        return f"{match.group(1).strip()} has {int(match.group(2))} error(s)"


class PhpStanExtractor(IssueExtractor):
    """Parses PHPStan ``--error-format=raw`` lines.

    ``web/modules/custom/foo/src/Foo.php:12:Call to undefined function``
    becomes ``web/modules/custom/foo/src/Foo.php:12 - Call to undefined
    function``.
    """

    source = "phpstan"
    pattern = re.compile(r"([^\n]+\.php):([0-9]+):([^\n]+)")

    def format_match(self, match: Match[str]) -> str:
        return f"{match.group(1).strip()}:{match.group(2)} - {match.group(3).strip()}"
