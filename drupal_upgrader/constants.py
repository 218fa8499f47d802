"""
Centralized constants for drupal-upgrader.

This module defines immutable configuration values used across
drupal-upgrader, including version bounds, managed package names, external
tool locations, timeouts, and logging formats. All values are intended to
be treated as read-only.
"""

from typing import Final, Mapping, Sequence

# ---------------------------------------------------------------------------
# Supported Drupal versions
# ---------------------------------------------------------------------------

#: Oldest core major version that can be upgraded automatically.
MIN_SUPPORTED_MAJOR: Final[int] = 9

#: Newest core major version an upgrade can target.
MAX_SUPPORTED_MAJOR: Final[int] = 11

#: Final minor release of each major that must be reached before the next
#: major can be installed.
LATEST_MINOR_RELEASES: Final[Mapping[int, str]] = {
    9: "9.5.0",
    10: "10.3.0",
}

# ---------------------------------------------------------------------------
# Managed packages
# ---------------------------------------------------------------------------

#: Namespace prefix of packages whose constraints are managed.
DRUPAL_NAMESPACE: Final[str] = "drupal/"

#: Core bundle packages, forced to the step version on every upgrade step.
CORE_PACKAGES: Final[Sequence[str]] = (
    "drupal/core-recommended",
    "drupal/core-composer-scaffold",
    "drupal/core-project-message",
    "drupal/core",
)

#: Installed packages consulted for version detection, in preference order.
CORE_DETECTION_PACKAGES: Final[Sequence[str]] = (
    "drupal/core-recommended",
    "drupal/core",
)

# ---------------------------------------------------------------------------
# Project layout
# ---------------------------------------------------------------------------

#: Dependency manifest file name.
MANIFEST_FILE: Final[str] = "composer.json"

#: Lock file consulted when installed metadata is unavailable.
LOCK_FILE: Final[str] = "composer.lock"

#: Composer's record of installed packages.
INSTALLED_FILE: Final[str] = "vendor/composer/installed.json"

#: Directory receiving project archives.
BACKUP_DIR: Final[str] = "backups"

#: Paths excluded from project archives.
BACKUP_EXCLUDES: Final[Sequence[str]] = ("backups", "vendor", "node_modules")

#: Advisory lock file held for the duration of a run.
RUN_LOCK_FILE: Final[str] = ".drupal-upgrader.lock"

#: Custom code scanned by static analysis.
CUSTOM_MODULES_PATH: Final[str] = "web/modules/custom"

#: Paths the synthesized PHPStan configuration always excludes.
PHPSTAN_DEFAULT_EXCLUDES: Final[Sequence[str]] = (
    "vendor",
    "web/core",
    "web/modules/contrib",
)

#: PHPStan configuration file name.
PHPSTAN_CONFIG_FILE: Final[str] = "phpstan.neon"

# ---------------------------------------------------------------------------
# External tools
# ---------------------------------------------------------------------------

COMPOSER_BINARY: Final[str] = "composer"
DRUSH_BINARY: Final[str] = "vendor/bin/drush"
PHPSTAN_BINARY: Final[str] = "vendor/bin/phpstan"
TAR_BINARY: Final[str] = "tar"

#: Flags passed to every restricted ``composer update``.
COMPOSER_UPDATE_FLAGS: Final[Sequence[str]] = (
    "--with-dependencies",
    "--prefer-dist",
    "--no-dev",
)

#: Drupal module used for the module compatibility scan.
UPGRADE_STATUS_MODULE: Final[str] = "upgrade_status"

# ---------------------------------------------------------------------------
# Timeouts (seconds)
# ---------------------------------------------------------------------------

COMPOSER_TIMEOUT: Final[int] = 3600
BACKUP_TIMEOUT: Final[int] = 3600
DATABASE_UPDATE_TIMEOUT: Final[int] = 1800
CACHE_REBUILD_TIMEOUT: Final[int] = 600
STATIC_ANALYSIS_TIMEOUT: Final[int] = 1800
DRUSH_QUERY_TIMEOUT: Final[int] = 300

# ---------------------------------------------------------------------------
# Configuration defaults
# ---------------------------------------------------------------------------

#: Keywords marking a compatibility issue as critical.
DEFAULT_CRITICAL_KEYWORDS: Final[Sequence[str]] = (
    "critical",
    "fatal",
    "deprecated",
    "removed",
    "incompatible",
)

DEFAULT_STATIC_ANALYSIS_LEVEL: Final[int] = 5

#: Config file names searched in the project directory, in order.
CONFIG_FILE_NAMES: Final[Sequence[str]] = (
    "drupal-upgrader.toml",
    "drupal-upgrader.json",
)

#: TOML table holding settings.
CONFIG_SECTION: Final[str] = "drupal-upgrader"

# ---------------------------------------------------------------------------
# Logging configuration
# ---------------------------------------------------------------------------

#: Timestamp format for verbose logging.
LOG_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"

#: Default log format (non-verbose).
LOG_DEFAULT_FORMAT: Final[str] = "%(levelname)s: %(message)s"

#: Verbose log format including timestamp and logger name.
LOG_VERBOSE_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

#: Timestamp format embedded in backup archive names.
BACKUP_TIMESTAMP_FORMAT: Final[str] = "%Y-%m-%d_%H-%M-%S"
