"""
Unified data model exports for drupal-upgrader.

Example:
    >>> from drupal_upgrader.models import UpgradeStep, CompatibilityIssue
"""

from __future__ import annotations

from drupal_upgrader.models.step import UpgradeStep
from drupal_upgrader.models.issue import CompatibilityIssue, Severity, severity_for
from drupal_upgrader.models.report import UpgradeReport, UpgradeState

__all__ = [
    "UpgradeStep",
    "CompatibilityIssue",
    "Severity",
    "severity_for",
    "UpgradeReport",
    "UpgradeState",
]
