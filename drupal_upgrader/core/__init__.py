"""Upgrade engine: planning, manifest editing, external tools and orchestration."""

from drupal_upgrader.core.backup import BackupManager
from drupal_upgrader.core.compatibility import CompatibilityChecker
from drupal_upgrader.core.database import DatabaseUpdater
from drupal_upgrader.core.extractors import IssueExtractor, PhpStanExtractor, UpgradeStatusExtractor
from drupal_upgrader.core.installed import InstalledCore, detect_core_version
from drupal_upgrader.core.manifest import ManifestEditor
from drupal_upgrader.core.process import CommandResult, ProcessRunner
from drupal_upgrader.core.updater import AutoUpdater
from drupal_upgrader.core.upgrader import Upgrader
from drupal_upgrader.core.version_policy import (
    compatible_constraint_for,
    compute_upgrade_path,
    major_version_of,
)

__all__ = [
    "AutoUpdater",
    "BackupManager",
    "CommandResult",
    "CompatibilityChecker",
    "DatabaseUpdater",
    "InstalledCore",
    "IssueExtractor",
    "ManifestEditor",
    "PhpStanExtractor",
    "ProcessRunner",
    "UpgradeStatusExtractor",
    "Upgrader",
    "compatible_constraint_for",
    "compute_upgrade_path",
    "detect_core_version",
    "major_version_of",
]
