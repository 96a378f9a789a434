"""File version snapshots.

A version is a full copy of a file at <path>.<timestamp>, where the
timestamp (YYYYMMDDHHMMSSffffff) is the version id. Versions accumulate
until the caller prunes them.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import tempfile
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from chunkferry.errors import ConflictError, TransferIOError

logger = logging.getLogger(__name__)

VERSION_FORMAT = "%Y%m%d%H%M%S%f"
VERSION_ID_PATTERN = re.compile(r"^\d{20}$")


class Versioner:
    """Saves, lists, reverts and prunes version snapshots."""

    def __init__(self, now: Callable[[], datetime] | None = None) -> None:
        """Initialize the versioner.

        Args:
            now: Wall-clock source for version ids (defaults to datetime.now).
        """
        self._now = now or datetime.now

    @staticmethod
    def version_path(path: Path | str, version_id: str) -> Path:
        path = Path(path)
        return path.with_name(f"{path.name}.{version_id}")

    def save_version(self, path: Path | str) -> str:
        """Copy the current content of path to a new snapshot.

        Returns:
            The version id.

        Raises:
            TransferIOError: If the file cannot be copied.
            ConflictError: If a snapshot with the same id already exists.
        """
        path = Path(path)
        version_id = self._now().strftime(VERSION_FORMAT)
        snapshot = self.version_path(path, version_id)
        if snapshot.exists():
            raise ConflictError(f"Version {version_id} of {path} already exists")

        try:
            shutil.copyfile(path, snapshot)
        except OSError as e:
            raise TransferIOError(f"Cannot save version of {path}: {e}") from e

        logger.info(f"Saved version {version_id} of {path}")
        return version_id

    def revert(self, path: Path | str, version_id: str) -> None:
        """Copy a snapshot back over path.

        The copy goes to a temp file next to path and is renamed into place.

        Raises:
            ValueError: If version_id is malformed.
            TransferIOError: If the snapshot is missing or the copy fails.
        """
        if not VERSION_ID_PATTERN.match(version_id):
            raise ValueError(f"Invalid version id: {version_id!r}")

        path = Path(path)
        snapshot = self.version_path(path, version_id)
        if not snapshot.is_file():
            raise TransferIOError(f"Version {version_id} of {path} not found")

        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        os.close(fd)
        try:
            shutil.copyfile(snapshot, tmp_name)
            os.replace(tmp_name, path)
        except OSError as e:
            Path(tmp_name).unlink(missing_ok=True)
            raise TransferIOError(f"Cannot revert {path} to {version_id}: {e}") from e

        logger.info(f"Reverted {path} to version {version_id}")

    def list_versions(self, path: Path | str) -> list[str]:
        """Return the version ids of path, oldest first."""
        path = Path(path)
        prefix = path.name + "."
        if not path.parent.is_dir():
            return []
        ids = [
            name[len(prefix):]
            for name in os.listdir(path.parent)
            if name.startswith(prefix) and VERSION_ID_PATTERN.match(name[len(prefix):])
        ]
        return sorted(ids)

    def prune_versions(self, path: Path | str, keep: int) -> list[str]:
        """Delete all but the newest keep snapshots.

        Returns:
            The version ids that were deleted.
        """
        if keep < 0:
            raise ValueError(f"keep must be >= 0, got {keep}")
        versions = self.list_versions(path)
        doomed = versions[: max(0, len(versions) - keep)]
        for version_id in doomed:
            self.version_path(path, version_id).unlink()
        if doomed:
            logger.info(f"Pruned {len(doomed)} versions of {path}")
        return doomed


def save_version(path: Path | str) -> str:
    """Snapshot path with the system clock. See Versioner.save_version."""
    return Versioner().save_version(path)


def revert(path: Path | str, version_id: str) -> None:
    """Restore a snapshot over path. See Versioner.revert."""
    Versioner().revert(path, version_id)
