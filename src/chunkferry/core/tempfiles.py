"""Scratch files owned by the engine.

This module provides:
- TempFiles: Creates temp files and removes only the ones it created
- secure_delete: Overwrite a file with zeros, then unlink it
"""

from __future__ import annotations

import logging
import os
import tempfile
import threading
from pathlib import Path
from types import TracebackType

from chunkferry.errors import TransferIOError

logger = logging.getLogger(__name__)

WIPE_BLOCK_SIZE = 64 * 1024


def secure_delete(path: Path | str) -> None:
    """Overwrite a file's contents with zeros and remove it.

    The zeros are flushed and fsynced before the unlink. This does not
    defeat copy-on-write filesystems or SSD remapping.

    Raises:
        TransferIOError: If the file cannot be opened, written or removed.
    """
    path = Path(path)
    try:
        remaining = path.stat().st_size
        zeros = bytes(WIPE_BLOCK_SIZE)
        with open(path, "r+b") as f:
            while remaining > 0:
                n = min(remaining, WIPE_BLOCK_SIZE)
                f.write(zeros[:n])
                remaining -= n
            f.flush()
            os.fsync(f.fileno())
        path.unlink()
    except OSError as e:
        raise TransferIOError(f"Cannot securely delete {path}: {e}") from e
    logger.debug(f"Securely deleted {path}")


class TempFiles:
    """Tracks temp files created through it.

    cleanup() removes only tracked files, never anything else in the
    temp directory. A file handed off elsewhere (renamed into place, for
    example) should be released so cleanup leaves it alone.
    """

    def __init__(self, directory: Path | str | None = None) -> None:
        self._directory = Path(directory) if directory is not None else None
        self._paths: set[Path] = set()
        self._lock = threading.Lock()

    def __enter__(self) -> TempFiles:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.cleanup()

    @property
    def paths(self) -> list[Path]:
        with self._lock:
            return sorted(self._paths)

    def create(
        self,
        prefix: str = "chunkferry-",
        suffix: str = ".tmp",
        directory: Path | str | None = None,
    ) -> Path:
        """Create an empty temp file and start tracking it.

        Args:
            prefix: File name prefix.
            suffix: File name suffix.
            directory: Where to create it (defaults to this tracker's
                directory, then the system temp dir).

        Raises:
            TransferIOError: If the file cannot be created.
        """
        where = directory if directory is not None else self._directory
        try:
            fd, name = tempfile.mkstemp(prefix=prefix, suffix=suffix, dir=where)
        except OSError as e:
            raise TransferIOError(f"Cannot create temp file in {where or tempfile.gettempdir()}: {e}") from e
        os.close(fd)
        path = Path(name)
        with self._lock:
            self._paths.add(path)
        return path

    def release(self, path: Path) -> None:
        """Stop tracking path without touching it."""
        with self._lock:
            self._paths.discard(path)

    def remove(self, path: Path, secure: bool = False) -> None:
        """Delete a tracked file (if it still exists) and stop tracking it."""
        if secure and path.exists():
            secure_delete(path)
        else:
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                raise TransferIOError(f"Cannot remove temp file {path}: {e}") from e
        self.release(path)

    def cleanup(self, secure: bool = False) -> int:
        """Remove every tracked file.

        Every file is attempted; the first failure is raised after the rest
        have been tried.

        Returns:
            Number of files that existed and were removed.
        """
        with self._lock:
            paths = sorted(self._paths)
        removed = 0
        first_error: TransferIOError | None = None
        for path in paths:
            existed = path.exists()
            try:
                self.remove(path, secure=secure)
            except TransferIOError as e:
                logger.warning(f"Temp file cleanup: {e}")
                if first_error is None:
                    first_error = e
                continue
            if existed:
                removed += 1
        if first_error is not None:
            raise first_error
        if removed:
            logger.debug(f"Removed {removed} temp files")
        return removed
