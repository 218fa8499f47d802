"""
Custom exception hierarchy for drupal-upgrader.

All exceptions inherit from :class:`UpgraderError` and support optional
structured metadata via the ``details`` attribute to improve diagnostics
and logging.

Any of these raised during an upgrade halts the remaining path; recovery
relies on the pre-upgrade backup. Declining the compatibility prompt is
not an error and is reported through the upgrade state instead.
"""

from __future__ import annotations

from typing import Any, Mapping, MutableMapping, Optional, Sequence


class UpgraderError(Exception):
    """Base exception for all drupal-upgrader errors.

    Args:
        message: Human-readable error message.
        details: Optional structured metadata describing the error.
    """

    __slots__ = ("message", "details")

    def __init__(
        self,
        message: str,
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.message: str = message
        # Internally normalize to a mutable dict
        self.details: MutableMapping[str, Any] = dict(details) if details else {}
        super().__init__(message)

    def __str__(self) -> str:
        if not self.details:
            return self.message
        formatted = ", ".join(f"{k}={v}" for k, v in self.details.items())
        return f"{self.message} ({formatted})"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, details={dict(self.details)!r})"
        )


def _add_if(details: MutableMapping[str, Any], key: str, value: Any) -> None:
    """Add a key to ``details`` only if ``value`` is not ``None``."""
    if value is not None:
        details[key] = value


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigError(UpgraderError):
    """Raised when a configuration file is missing, malformed or invalid.

    Args:
        message: Error description.
        config_path: Path to the configuration file involved.
        option: Name of the offending option, if any.
    """

    __slots__ = ("config_path", "option")

    def __init__(
        self,
        message: str,
        *,
        config_path: Optional[str] = None,
        option: Optional[str] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "path", config_path)
        _add_if(details, "option", option)

        super().__init__(message, details)

        self.config_path = config_path
        self.option = option


# ---------------------------------------------------------------------------
# Detection
# ---------------------------------------------------------------------------


class DetectionError(UpgraderError):
    """Raised when the installed core version cannot be determined."""


class CoreVersionNotDetectedError(DetectionError):
    """Raised when no core package appears in the installed metadata.

    Args:
        message: Error description.
        searched: Metadata files that were consulted.
    """

    __slots__ = ("searched",)

    def __init__(
        self,
        message: str = "Could not detect Drupal core version",
        *,
        searched: Optional[Sequence[str]] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        if searched:
            details["searched"] = ", ".join(searched)
        super().__init__(message, details)
        self.searched = list(searched or [])


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------


class PlanningError(UpgraderError):
    """Raised when no valid upgrade path exists.

    Args:
        message: Error description.
        current_version: Detected version the plan started from.
        target_major: Requested target major version.
    """

    __slots__ = ("current_version", "target_major")

    def __init__(
        self,
        message: str,
        *,
        current_version: Optional[str] = None,
        target_major: Optional[int] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "current", current_version)
        _add_if(details, "target", target_major)

        super().__init__(message, details)

        self.current_version = current_version
        self.target_major = target_major


class InvalidVersionError(PlanningError):
    """Raised when a version string has no numeric major component."""


class UnsupportedSourceError(PlanningError):
    """Raised when the installed major is below the supported floor."""


class InvalidTargetError(PlanningError):
    """Raised when the requested target is below the installed major."""


class UnsupportedTargetError(PlanningError):
    """Raised when the requested target exceeds the supported maximum."""


# ---------------------------------------------------------------------------
# Filesystem & manifest
# ---------------------------------------------------------------------------


class FileOperationError(UpgraderError):
    """Raised when file system operations fail.

    Args:
        message: Error description.
        file_path: Path to the file involved.
        operation: Operation being performed (read/write/backup/lock).
        original_error: Original exception that triggered this error.
    """

    __slots__ = ("file_path", "operation", "original_error")

    def __init__(
        self,
        message: str,
        *,
        file_path: Optional[str] = None,
        operation: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "path", file_path)
        _add_if(details, "operation", operation)
        _add_if(
            details,
            "original_error",
            str(original_error) if original_error else None,
        )

        super().__init__(message, details)

        self.file_path = file_path
        self.operation = operation
        self.original_error = original_error


class ManifestError(FileOperationError):
    """Base class for ``composer.json`` failures."""


class ManifestNotFoundError(ManifestError):
    """Raised when ``composer.json`` does not exist."""


class ManifestParseError(ManifestError):
    """Raised when ``composer.json`` is not a valid JSON object."""


class ManifestWriteError(ManifestError):
    """Raised when ``composer.json`` cannot be written."""


class LockError(FileOperationError):
    """Raised when another upgrade run holds the project lock."""


# ---------------------------------------------------------------------------
# External commands
# ---------------------------------------------------------------------------


class ExternalCommandError(UpgraderError):
    """Raised when an external command exits non-zero, times out or is missing.

    The command's captured error stream is appended to the message verbatim
    so the underlying tool's diagnosis reaches the user.

    Args:
        message: Error description.
        command: Argument vector that was executed.
        returncode: Exit status, or ``None`` if the process never finished.
        stderr: Captured standard error.
        timed_out: Whether the process was killed by its timeout.
    """

    __slots__ = ("command", "returncode", "stderr", "timed_out")

    def __init__(
        self,
        message: str,
        *,
        command: Optional[Sequence[str]] = None,
        returncode: Optional[int] = None,
        stderr: Optional[str] = None,
        timed_out: bool = False,
    ) -> None:
        full_message = message
        if stderr and stderr.strip():
            full_message = f"{message}: {stderr.strip()}"

        details: MutableMapping[str, Any] = {}
        if command:
            details["command"] = " ".join(command)
        _add_if(details, "exit_code", returncode)
        if timed_out:
            details["timed_out"] = True

        super().__init__(full_message, details)

        self.command = list(command or [])
        self.returncode = returncode
        self.stderr = stderr or ""
        self.timed_out = timed_out
