"""
Compatibility issue model.

Issues are produced by the analysis tools' extractors and never
persisted. Severity is assigned when the issue is created, by matching the
message against a configurable keyword list; the analyzers' own severity
levels are not consulted.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Pattern

from drupal_upgrader.constants import DEFAULT_CRITICAL_KEYWORDS


class Severity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"


def _keyword_pattern(keywords: Iterable[str]) -> Pattern[str]:
    escaped = [re.escape(word) for word in keywords if word]
    if not escaped:
        # Matches nothing
        return re.compile(r"(?!)")
    return re.compile("|".join(escaped), re.IGNORECASE)


def severity_for(
    message: str,
    keywords: Iterable[str] = DEFAULT_CRITICAL_KEYWORDS,
) -> Severity:
    """Return ``CRITICAL`` if ``message`` contains any keyword, case-insensitively."""
    if _keyword_pattern(keywords).search(message):
        return Severity.CRITICAL
    return Severity.WARNING


@dataclass(frozen=True)
class CompatibilityIssue:
    """One finding reported by a compatibility analysis.

    Attributes:
        message: Human-readable description, e.g.
            ``"web/modules/custom/foo/src/Foo.php:12 - Call to deprecated method"``.
        source: Tool that reported it (``"upgrade_status"`` or ``"phpstan"``).
        severity: Keyword-derived severity.
    """

    message: str
    source: str
    severity: Severity = Severity.WARNING

    def __str__(self) -> str:
        return self.message

    @property
    def is_critical(self) -> bool:
        return self.severity is Severity.CRITICAL
