"""Tests for chunking module - Fixed-size split and ordered merge."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from chunkferry.core.chunking import (
    Chunk,
    check_order,
    merge,
    part_name,
    parts_in,
    plan_chunk_count,
    read_chunk,
    split,
    split_by_count,
    write_parts,
)
from chunkferry.errors import OrderViolationError, TransferIOError
from tests.fakes import MakeFile


class TestSplitByCount:
    """Tests for split_by_count."""

    def test_remainder_goes_to_last_chunk(self, make_file: MakeFile) -> None:
        """10 bytes in 3 chunks should be 3, 3, 4."""
        path = make_file("ten.bin", b"0123456789")
        chunks = split_by_count(path, 3)
        assert [c.length for c in chunks] == [3, 3, 4]
        assert [c.offset for c in chunks] == [0, 3, 6]
        assert [c.index for c in chunks] == [0, 1, 2]

    def test_chunks_tile_the_file(self, make_file: MakeFile) -> None:
        """Offsets are contiguous and lengths sum to the file size."""
        path = make_file("data.bin", os.urandom(12_345))
        chunks = split_by_count(path, 7)
        assert sum(c.length for c in chunks) == 12_345
        for prev, cur in zip(chunks, chunks[1:]):
            assert cur.offset == prev.end

    def test_empty_file(self, make_file: MakeFile) -> None:
        """An empty file yields zero chunks."""
        assert split_by_count(make_file("empty", b""), 4) == []

    def test_file_smaller_than_count(self, make_file: MakeFile) -> None:
        """Leading chunks are empty and the last holds everything."""
        chunks = split_by_count(make_file("small", b"ab"), 4)
        assert [c.length for c in chunks] == [0, 0, 0, 2]

    def test_single_chunk(self, make_file: MakeFile) -> None:
        chunks = split_by_count(make_file("one", b"abcdef"), 1)
        assert chunks == [Chunk(index=0, offset=0, length=6, source_path=chunks[0].source_path)]

    def test_invalid_count(self, make_file: MakeFile) -> None:
        with pytest.raises(ValueError):
            split_by_count(make_file("x", b"x"), 0)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(TransferIOError):
            split_by_count(tmp_path / "missing", 2)


class TestSplit:
    """Tests for split by part size."""

    def test_fixed_windows(self, make_file: MakeFile) -> None:
        path = make_file("f", b"abcdefghij")
        assert [c.length for c in split(path, 4)] == [4, 4, 2]

    def test_exact_multiple(self, make_file: MakeFile) -> None:
        path = make_file("f", b"abcdefgh")
        assert [c.length for c in split(path, 4)] == [4, 4]

    def test_empty_file(self, make_file: MakeFile) -> None:
        assert split(make_file("f", b""), 4) == []

    def test_invalid_size(self, make_file: MakeFile) -> None:
        with pytest.raises(ValueError):
            split(make_file("f", b"x"), 0)


class TestPlanChunkCount:
    """Tests for plan_chunk_count."""

    def test_reduces_for_small_files(self) -> None:
        """A 3 MB file with a 1 MB minimum gets at most 3 chunks."""
        assert plan_chunk_count(3 * 1024 * 1024, 8, 1024 * 1024) == 3

    def test_never_below_one(self) -> None:
        assert plan_chunk_count(10, 4, 1024) == 1

    def test_keeps_request_for_large_files(self) -> None:
        assert plan_chunk_count(100 * 1024 * 1024, 4, 1024 * 1024) == 4

    def test_zero_minimum_disables(self) -> None:
        assert plan_chunk_count(10, 4, 0) == 4


class TestMerge:
    """Tests for ordered merge."""

    def test_split_then_merge(self, make_file: MakeFile, tmp_path: Path) -> None:
        """Merging the chunks of a file reproduces it."""
        data = os.urandom(50_000)
        path = make_file("src.bin", data)
        out = tmp_path / "out.bin"
        assert merge(split_by_count(path, 5), out) == len(data)
        assert out.read_bytes() == data

    def test_merge_sorts_by_index(self, make_file: MakeFile, tmp_path: Path) -> None:
        """Chunks given out of order are still written in index order."""
        path = make_file("src.bin", b"0123456789")
        chunks = split_by_count(path, 3)
        out = tmp_path / "out.bin"
        merge(list(reversed(chunks)), out)
        assert out.read_bytes() == b"0123456789"

    def test_gap_in_indices(self, make_file: MakeFile, tmp_path: Path) -> None:
        """Indices [0, 2] violate ordering and no output is created."""
        path = make_file("src.bin", b"0123456789")
        chunks = split_by_count(path, 3)
        out = tmp_path / "out.bin"
        with pytest.raises(OrderViolationError):
            merge([chunks[0], chunks[2]], out)
        assert not out.exists()

    def test_duplicate_index(self, make_file: MakeFile) -> None:
        path = make_file("src.bin", b"0123456789")
        chunks = split_by_count(path, 2)
        with pytest.raises(OrderViolationError):
            check_order([chunks[0], chunks[0], chunks[1]])

    def test_not_starting_at_zero(self, make_file: MakeFile) -> None:
        path = make_file("src.bin", b"0123456789")
        chunks = split_by_count(path, 3)
        with pytest.raises(OrderViolationError):
            check_order(chunks[1:])

    def test_zero_chunks(self, tmp_path: Path) -> None:
        """Merging nothing creates an empty file."""
        out = tmp_path / "out.bin"
        assert merge([], out) == 0
        assert out.read_bytes() == b""

    def test_short_source(self, make_file: MakeFile, tmp_path: Path) -> None:
        """A part shorter than its descriptor is an I/O error."""
        path = make_file("src.bin", b"abc")
        chunk = Chunk(index=0, offset=0, length=10, source_path=path)
        with pytest.raises(TransferIOError):
            merge([chunk], tmp_path / "out.bin")


class TestPartFiles:
    """Tests for part naming and part files."""

    def test_part_name(self) -> None:
        assert part_name(Path("/data/video.mp4"), 3) == "video.mp4.part3"

    def test_read_chunk(self, make_file: MakeFile) -> None:
        path = make_file("src.bin", b"0123456789")
        assert read_chunk(split_by_count(path, 3)[1]) == b"345"

    def test_write_parts_and_collect(self, make_file: MakeFile, tmp_path: Path) -> None:
        """Parts written to a directory are found again and merge back."""
        data = os.urandom(1000)
        path = make_file("src.bin", data)
        parts_dir = tmp_path / "parts"
        parts = write_parts(split(path, 300), parts_dir)

        assert [p.source_path.name for p in parts] == [f"src.bin.part{i}" for i in range(4)]
        found = parts_in(parts_dir, "src.bin")
        assert [p.index for p in found] == [0, 1, 2, 3]

        out = tmp_path / "merged.bin"
        merge(found, out)
        assert out.read_bytes() == data

    def test_parts_in_ignores_other_files(self, tmp_path: Path) -> None:
        (tmp_path / "a.bin.part0").write_bytes(b"x")
        (tmp_path / "a.bin.partial").write_bytes(b"y")
        (tmp_path / "b.bin.part0").write_bytes(b"z")
        found = parts_in(tmp_path, "a.bin")
        assert [p.source_path.name for p in found] == ["a.bin.part0"]
