"""
drupal-upgrader: automated multi-step Drupal upgrades.

drupal-upgrader detects the installed Drupal core version, plans the
sequence of intermediate releases needed to reach a target major version,
and walks the project through it:

    • Timestamped project backups before anything is touched
    • Upgrade Status and PHPStan compatibility checks with a confirmation gate
    • composer.json constraint rewriting for core and contributed packages
    • Composer updates, database updates and cache rebuilds via Drush
    • Dry-run mode that reports every intended action without side effects
"""

from __future__ import annotations

from drupal_upgrader.__version__ import __version__

# ---------------------------------------------------------------------------
# Package Metadata
# ---------------------------------------------------------------------------

__author__ = "drupal-upgrader Contributors"
__license__ = "Apache-2.0"
__description__ = "Automated multi-step Drupal core and module upgrades."

# ---------------------------------------------------------------------------
# Public API
#
# Components live in drupal_upgrader.core; only the version is re-exported
# here so that importing the package stays free of side effects.
# ---------------------------------------------------------------------------

__all__ = [
    "__version__",
]
