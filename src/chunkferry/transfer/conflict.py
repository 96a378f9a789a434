"""Conflict resolution between an existing file and an incoming one.

Policies:
1. OVERWRITE: incoming atomically replaces existing
2. BACKUP_THEN_OVERWRITE: existing is renamed to <path>.bak first
3. ABORT: refuse to touch an existing destination

The existing file is left untouched until the resolution is known to be
able to proceed. Renames use os.rename/os.replace, which are atomic on a
single filesystem; cross-filesystem moves are not supported.
"""

from __future__ import annotations

import logging
import os
from enum import Enum
from pathlib import Path

from chunkferry.errors import ConflictError, TransferIOError

logger = logging.getLogger(__name__)

BACKUP_SUFFIX = ".bak"


class ConflictPolicy(Enum):
    """How to reconcile an incoming file with an existing destination."""

    OVERWRITE = "overwrite"
    BACKUP_THEN_OVERWRITE = "backup"
    ABORT = "abort"

    @classmethod
    def from_name(cls, name: str) -> ConflictPolicy:
        """Look up a policy by its config name ("overwrite", "backup", "abort")."""
        try:
            return cls(name.lower())
        except ValueError:
            valid = ", ".join(p.value for p in cls)
            raise ValueError(f"Unknown conflict policy {name!r} (expected one of {valid})") from None


def backup_path(path: Path) -> Path:
    """Return <path>.bak."""
    return path.with_name(path.name + BACKUP_SUFFIX)


def resolve(
    existing: Path | str,
    incoming: Path | str,
    policy: ConflictPolicy,
    clobber_backup: bool = False,
) -> Path | None:
    """Put incoming in place of existing according to policy.

    Args:
        existing: Destination path (may or may not exist).
        incoming: File that should take its place.
        policy: Resolution policy.
        clobber_backup: Let BACKUP_THEN_OVERWRITE replace an existing .bak.

    Returns:
        Path of the backup if one was made, else None.

    Raises:
        ConflictError: If ABORT applies, or a .bak exists and may not be clobbered.
        TransferIOError: If incoming is missing or a rename fails.
    """
    existing = Path(existing)
    incoming = Path(incoming)

    if not incoming.is_file():
        raise TransferIOError(f"Incoming file not found: {incoming}")

    if not existing.exists():
        _replace(incoming, existing)
        return None

    if policy is ConflictPolicy.ABORT:
        raise ConflictError(f"Destination exists: {existing}")

    if policy is ConflictPolicy.OVERWRITE:
        _replace(incoming, existing)
        logger.info(f"Overwrote {existing}")
        return None

    backup = backup_path(existing)
    if backup.exists() and not clobber_backup:
        raise ConflictError(f"Backup already exists: {backup}")

    _replace(existing, backup)
    try:
        _replace(incoming, existing)
    except TransferIOError:
        # Put the original back so neither file is lost
        os.replace(backup, existing)
        raise

    logger.info(f"Backed up {existing} to {backup.name} and replaced it")
    return backup


def _replace(src: Path, dst: Path) -> None:
    try:
        os.replace(src, dst)
    except OSError as e:
        raise TransferIOError(f"Cannot rename {src} to {dst}: {e}") from e
