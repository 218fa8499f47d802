"""
drupal-upgrader version information.

``__version__`` is read by the CLI ``--version`` option and by the startup
error handler in ``__main__``. Keep it in step with ``pyproject.toml``.
"""

from __future__ import annotations

__version__ = "0.3.0"
