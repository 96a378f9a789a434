"""Tests for conflict resolution."""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from chunkferry.errors import ConflictError, TransferIOError
from chunkferry.transfer.conflict import ConflictPolicy, backup_path, resolve


@pytest.fixture
def files(tmp_path: Path) -> tuple[Path, Path]:
    """An existing a.txt ("old") and an incoming file ("new")."""
    existing = tmp_path / "a.txt"
    existing.write_text("old")
    incoming = tmp_path / "incoming.tmp"
    incoming.write_text("new")
    return existing, incoming


class TestConflictPolicy:
    """Tests for ConflictPolicy lookup."""

    @pytest.mark.parametrize(
        "name,policy",
        [
            ("overwrite", ConflictPolicy.OVERWRITE),
            ("backup", ConflictPolicy.BACKUP_THEN_OVERWRITE),
            ("ABORT", ConflictPolicy.ABORT),
        ],
    )
    def test_from_name(self, name: str, policy: ConflictPolicy) -> None:
        assert ConflictPolicy.from_name(name) is policy

    def test_unknown_name(self) -> None:
        with pytest.raises(ValueError, match="Unknown conflict policy"):
            ConflictPolicy.from_name("merge")

    def test_backup_path(self) -> None:
        assert backup_path(Path("/x/a.txt")) == Path("/x/a.txt.bak")


class TestResolve:
    """Tests for resolve()."""

    def test_backup_then_overwrite(self, files: tuple[Path, Path]) -> None:
        """The old content moves to a.txt.bak and a.txt gets the new content."""
        existing, incoming = files
        backup = resolve(existing, incoming, ConflictPolicy.BACKUP_THEN_OVERWRITE)
        assert existing.read_text() == "new"
        assert backup == existing.with_name("a.txt.bak")
        assert backup.read_text() == "old"
        assert not incoming.exists()

    def test_overwrite(self, files: tuple[Path, Path]) -> None:
        existing, incoming = files
        assert resolve(existing, incoming, ConflictPolicy.OVERWRITE) is None
        assert existing.read_text() == "new"
        assert not backup_path(existing).exists()

    def test_abort(self, files: tuple[Path, Path]) -> None:
        """ABORT leaves both files untouched."""
        existing, incoming = files
        with pytest.raises(ConflictError):
            resolve(existing, incoming, ConflictPolicy.ABORT)
        assert existing.read_text() == "old"
        assert incoming.read_text() == "new"

    @pytest.mark.parametrize("policy", list(ConflictPolicy))
    def test_no_existing_file(self, tmp_path: Path, policy: ConflictPolicy) -> None:
        """Without an existing file every policy just moves incoming in place."""
        incoming = tmp_path / "in"
        incoming.write_text("new")
        target = tmp_path / "b.txt"
        assert resolve(target, incoming, policy) is None
        assert target.read_text() == "new"

    def test_existing_backup_not_clobbered(self, files: tuple[Path, Path]) -> None:
        """An earlier .bak is protected unless clobber_backup is set."""
        existing, incoming = files
        backup_path(existing).write_text("older")
        with pytest.raises(ConflictError, match="Backup already exists"):
            resolve(existing, incoming, ConflictPolicy.BACKUP_THEN_OVERWRITE)
        assert existing.read_text() == "old"
        assert backup_path(existing).read_text() == "older"

    def test_existing_backup_clobbered(self, files: tuple[Path, Path]) -> None:
        existing, incoming = files
        backup_path(existing).write_text("older")
        resolve(existing, incoming, ConflictPolicy.BACKUP_THEN_OVERWRITE, clobber_backup=True)
        assert existing.read_text() == "new"
        assert backup_path(existing).read_text() == "old"

    def test_missing_incoming(self, tmp_path: Path) -> None:
        existing = tmp_path / "a.txt"
        existing.write_text("old")
        with pytest.raises(TransferIOError):
            resolve(existing, tmp_path / "missing", ConflictPolicy.OVERWRITE)
        assert existing.read_text() == "old"

    def test_failed_replace_restores_original(self, files: tuple[Path, Path]) -> None:
        """If the second rename fails the backup is moved back."""
        existing, incoming = files
        real_replace = os.replace
        calls = []

        def flaky_replace(src: str, dst: str) -> None:
            calls.append((src, dst))
            if len(calls) == 2:
                raise OSError("disk full")
            real_replace(src, dst)

        with patch("chunkferry.transfer.conflict.os.replace", side_effect=flaky_replace):
            with pytest.raises(TransferIOError):
                resolve(existing, incoming, ConflictPolicy.BACKUP_THEN_OVERWRITE)

        assert existing.read_text() == "old"
        assert not backup_path(existing).exists()
        assert incoming.read_text() == "new"
