"""
Shared context object for drupal-upgrader CLI commands.

This module defines the Click context object used to share global options
and the file layer of the configuration across subcommands.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import click

from drupal_upgrader.config import UpgradeConfig


class UpgraderContext:
    """Global context object for drupal-upgrader CLI commands.

    Created once per invocation by the ``cli`` group and handed to
    subcommands through Click's context mechanism.

    Attributes:
        config_path: Path of the loaded configuration file, if any.
        project_dir: Root of the Drupal project (where composer.json lives).
        verbose: Verbosity level (0=WARNING, 1=INFO, 2+=DEBUG).
        color: Whether colored terminal output is enabled.
        config: Defaults merged with the configuration file; commands apply
            their own options on top.
    """

    __slots__ = ("config_path", "project_dir", "verbose", "color", "config")

    def __init__(self) -> None:
        self.config_path: Optional[Path] = None
        self.project_dir: Path = Path.cwd()
        self.verbose: int = 0
        self.color: bool = True
        self.config: Optional[UpgradeConfig] = None

    def base_config(self) -> UpgradeConfig:
        """Return the file-layer configuration, or defaults if none loaded."""
        return self.config if self.config is not None else UpgradeConfig()


#: Click decorator for injecting :class:`UpgraderContext` into commands.
pass_context = click.make_pass_decorator(UpgraderContext, ensure=True)
