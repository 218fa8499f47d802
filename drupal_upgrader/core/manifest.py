"""Reading and rewriting ``composer.json``.

The manifest is read as a whole, transformed with pure functions and
written back as a whole. Writes are atomic (temporary file + rename) so an
interrupted run never leaves a truncated manifest behind.
"""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any, Dict, Mapping, MutableMapping, Optional

from drupal_upgrader.constants import MANIFEST_FILE
from drupal_upgrader.exceptions import (
    FileOperationError,
    ManifestNotFoundError,
    ManifestParseError,
    ManifestWriteError,
)
from drupal_upgrader.utils.filesystem import (
    create_timestamped_backup,
    safe_read_file,
    safe_write_file,
)
from drupal_upgrader.utils.logger import get_logger

logger = get_logger("core.manifest")

#: Section mapping package names to constraints.
REQUIRE_KEY = "require"

Manifest = Dict[str, Any]


def require_section(document: Mapping[str, Any]) -> Mapping[str, str]:
    """Return the ``require`` mapping of a manifest, or an empty mapping."""
    section = document.get(REQUIRE_KEY)
    return section if isinstance(section, dict) else {}


def set_constraint(document: Manifest, package: str, constraint: str) -> Manifest:
    """Return a copy of ``document`` with ``package`` set to ``constraint``.

    Packages absent from ``require`` are left absent: the manifest's
    dependency list is never extended, only existing entries rewritten.
    The input document is not modified.
    """
    if package not in require_section(document):
        logger.debug("Not setting %s: not required by composer.json", package)
        return document

    updated = copy.deepcopy(document)
    updated[REQUIRE_KEY][package] = constraint
    return updated


def apply_constraints(document: Manifest, changes: Mapping[str, str]) -> Manifest:
    """Apply several :func:`set_constraint` changes in order."""
    for package, constraint in changes.items():
        document = set_constraint(document, package, constraint)
    return document


def dumps_manifest(document: Mapping[str, Any]) -> str:
    """Serialize a manifest the way Composer writes it.

    Four-space indentation, key order preserved, slashes and non-ASCII
    characters left unescaped, trailing newline.
    """
    return json.dumps(document, indent=4, ensure_ascii=False) + "\n"


class ManifestEditor:
    """Loads, snapshots and persists a project's ``composer.json``.

    Args:
        project_dir: Directory containing the manifest.
        filename: Manifest file name.
    """

    def __init__(self, project_dir: Path, filename: str = MANIFEST_FILE) -> None:
        self.path = Path(project_dir) / filename

    def read_manifest(self) -> Manifest:
        """Read and parse the manifest.

        Raises:
            ManifestNotFoundError: The file does not exist.
            ManifestParseError: The file is not a JSON object or cannot be read.
        """
        if not self.path.is_file():
            raise ManifestNotFoundError(
                f"{self.path.name} not found",
                file_path=str(self.path),
                operation="read",
            )

        try:
            text = safe_read_file(self.path)
        except FileOperationError as exc:
            raise ManifestParseError(
                f"Cannot read {self.path.name}",
                file_path=str(self.path),
                operation="read",
                original_error=exc,
            ) from exc

        try:
            document = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ManifestParseError(
                f"Invalid JSON in {self.path.name}: {exc.msg} at line {exc.lineno}",
                file_path=str(self.path),
                operation="parse",
                original_error=exc,
            ) from exc

        if not isinstance(document, dict):
            raise ManifestParseError(
                f"{self.path.name} must contain a JSON object",
                file_path=str(self.path),
                operation="parse",
            )

        section = document.get(REQUIRE_KEY)
        if section is not None and not isinstance(section, MutableMapping):
            raise ManifestParseError(
                f'"{REQUIRE_KEY}" in {self.path.name} must be an object',
                file_path=str(self.path),
                operation="parse",
            )

        return document

    def set_constraint(self, document: Manifest, package: str, constraint: str) -> Manifest:
        """See :func:`set_constraint`."""
        return set_constraint(document, package, constraint)

    def write_manifest(self, document: Mapping[str, Any]) -> None:
        """Atomically replace the manifest with ``document``.

        Raises:
            ManifestWriteError: The file cannot be written.
        """
        try:
            safe_write_file(self.path, dumps_manifest(document))
        except FileOperationError as exc:
            raise ManifestWriteError(
                f"Cannot write {self.path.name}",
                file_path=str(self.path),
                operation="write",
                original_error=exc.original_error or exc,
            ) from exc
        logger.debug("Wrote %s", self.path)

    def snapshot_manifest(self) -> Optional[Path]:
        """Copy the current manifest next to itself before it is rewritten.

        Snapshots are never restored automatically; they are kept for
        manual recovery after a failed step.

        Returns:
            Path of the copy, or ``None`` if there is no manifest yet.
        """
        if not self.path.is_file():
            return None
        try:
            return create_timestamped_backup(self.path)
        except FileOperationError as exc:
            raise ManifestWriteError(
                f"Cannot snapshot {self.path.name}",
                file_path=str(self.path),
                operation="backup",
                original_error=exc.original_error or exc,
            ) from exc
