"""
Filesystem utilities for drupal-upgrader.

Safe helpers for reading and atomically writing project files, taking
timestamped snapshots, and holding the per-project run lock. All
filesystem errors are normalized to ``FileOperationError``.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path
from datetime import datetime
from contextlib import contextmanager
from typing import Iterator, Optional, Union

from filelock import FileLock, Timeout

from drupal_upgrader.utils.logger import get_logger
from drupal_upgrader.exceptions import FileOperationError, LockError

logger = get_logger("filesystem")

PathLike = Union[str, Path]

#: Upper bound for files read into memory (manifests, lock files).
MAX_FILE_SIZE = 50 * 1024 * 1024


def _validated_file(path: Path) -> Path:
    """Validate that ``path`` is an existing regular file and resolve it."""
    if not path.exists():
        raise FileOperationError(
            f"File not found: {path}",
            file_path=str(path),
            operation="read",
        )
    if not path.is_file():
        raise FileOperationError(
            f"Not a file: {path}",
            file_path=str(path),
            operation="read",
        )
    return path.resolve()


def _atomic_write(target: Path, content: str) -> None:
    """Write text through a temporary sibling file, then replace the target."""
    target.parent.mkdir(parents=True, exist_ok=True)
    temp_path: Optional[Path] = None

    try:
        with tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=str(target.parent),
            delete=False,
            prefix=f".{target.name}.",
            suffix=".tmp",
        ) as tmp:
            temp_path = Path(tmp.name)
            tmp.write(content)
            tmp.flush()
            os.fsync(tmp.fileno())

        if target.exists():
            shutil.copymode(target, temp_path)
        temp_path.replace(target)

    except Exception as exc:
        if temp_path and temp_path.exists():
            try:
                temp_path.unlink()
                logger.debug("Cleaned up temporary file: %s", temp_path)
            except OSError as cleanup_exc:
                logger.warning(
                    "Failed to clean up temporary file %s: %s",
                    temp_path,
                    cleanup_exc,
                )

        raise FileOperationError(
            f"Atomic write failed: {exc}",
            file_path=str(target),
            operation="write",
            original_error=exc,
        ) from exc


def safe_read_file(
    file_path: PathLike,
    *,
    max_size: Optional[int] = MAX_FILE_SIZE,
    encoding: str = "utf-8",
) -> str:
    """Read a text file, enforcing an optional size limit.

    Raises:
        FileOperationError: Missing, oversized or unreadable file.
    """
    path = _validated_file(Path(file_path))
    size = path.stat().st_size

    if max_size is not None and size > max_size:
        raise FileOperationError(
            f"File too large: {size} bytes (max {max_size})",
            file_path=str(path),
            operation="read",
        )

    try:
        return path.read_text(encoding=encoding)
    except (OSError, UnicodeDecodeError) as exc:
        raise FileOperationError(
            f"Failed to read file: {exc}",
            file_path=str(path),
            operation="read",
            original_error=exc,
        ) from exc


def safe_write_file(file_path: PathLike, content: str) -> None:
    """Atomically replace ``file_path`` with ``content``.

    A crash mid-write leaves either the old or the new content on disk,
    never a truncated file.
    """
    _atomic_write(Path(file_path), content)


def create_timestamped_backup(file_path: PathLike) -> Path:
    """Copy a file to ``{stem}.{timestamp}.backup{suffix}`` beside it.

    ``composer.json`` becomes ``composer.20240101_120000_000000.backup.json``.
    """
    path = Path(file_path)

    if not path.exists() or not path.is_file():
        raise FileOperationError(
            f"Cannot backup invalid file: {path}",
            file_path=str(path),
            operation="backup",
        )

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
    backup_path = path.parent / f"{path.stem}.{timestamp}.backup{path.suffix}"

    try:
        shutil.copy2(path, backup_path)
    except OSError as exc:
        raise FileOperationError(
            f"Failed to create backup: {exc}",
            file_path=str(path),
            operation="backup",
            original_error=exc,
        ) from exc

    logger.debug("Created timestamped backup: %s", backup_path)
    return backup_path


@contextmanager
def run_lock(lock_path: PathLike) -> Iterator[Path]:
    """Hold an exclusive lock on ``lock_path`` for the block.

    The lock is taken without waiting: a second upgrade run against the
    same project fails immediately instead of interleaving manifest writes.
    It is released on every exit path, including exceptions.

    Raises:
        LockError: Another process holds the lock.
        FileOperationError: The lock file cannot be opened.
    """
    path = Path(lock_path)
    lock = FileLock(str(path), timeout=0)
    try:
        lock.acquire()
    except Timeout as exc:
        raise LockError(
            "Another upgrade is already running for this project",
            file_path=str(path),
            operation="lock",
            original_error=exc,
        ) from exc
    except OSError as exc:
        raise FileOperationError(
            f"Cannot open lock file: {exc}",
            file_path=str(path),
            operation="lock",
            original_error=exc,
        ) from exc

    logger.debug("Acquired run lock %s", path)
    try:
        yield path
    finally:
        lock.release()
        logger.debug("Released run lock %s", path)
