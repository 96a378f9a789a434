"""Fixed-size chunking for chunkferry.

This module provides:
- Chunk: Descriptor of a contiguous byte range of a file
- split / split_by_count: Partition a file into chunks
- merge: Reassemble chunks strictly in index order
- write_parts: Materialise chunks as .partN files
"""

from __future__ import annotations

import os
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path

from chunkferry.errors import OrderViolationError, TransferIOError

COPY_BUFFER_SIZE = 64 * 1024
DEFAULT_MIN_CHUNK_SIZE = 1 * 1024 * 1024  # 1 MB


@dataclass(frozen=True)
class Chunk:
    """A contiguous, index-addressed byte range of a source file."""

    index: int
    offset: int
    length: int
    source_path: Path

    @property
    def end(self) -> int:
        """Offset one past the last byte of this chunk."""
        return self.offset + self.length


def part_name(path: Path | str, index: int) -> str:
    """Return the part file name for a chunk: <basename>.part<index>."""
    return f"{Path(path).name}.part{index}"


def _file_size(path: Path) -> int:
    try:
        return path.stat().st_size
    except OSError as e:
        raise TransferIOError(f"Cannot stat {path}: {e}") from e


def split(path: Path | str, part_size: int) -> list[Chunk]:
    """Split a file into windows of part_size bytes.

    The last chunk holds whatever remains and may be shorter than
    part_size. An empty file yields no chunks.

    Args:
        path: File to split.
        part_size: Bytes per chunk (>= 1).

    Returns:
        Chunks ordered by index.

    Raises:
        ValueError: If part_size < 1.
        TransferIOError: If the file cannot be read.
    """
    if part_size < 1:
        raise ValueError(f"part_size must be >= 1, got {part_size}")

    path = Path(path)
    size = _file_size(path)
    return [
        Chunk(index=index, offset=offset, length=min(part_size, size - offset), source_path=path)
        for index, offset in enumerate(range(0, size, part_size))
    ]


def split_by_count(path: Path | str, chunk_count: int) -> list[Chunk]:
    """Split a file into exactly chunk_count chunks.

    Every chunk but the last is floor(size / chunk_count) bytes; the last
    absorbs the remainder. When the file is smaller than chunk_count, the
    leading chunks are zero-length. An empty file yields no chunks.

    Args:
        path: File to split.
        chunk_count: Number of chunks (>= 1).

    Returns:
        Chunks ordered by index.

    Raises:
        ValueError: If chunk_count < 1.
        TransferIOError: If the file cannot be read.
    """
    if chunk_count < 1:
        raise ValueError(f"chunk_count must be >= 1, got {chunk_count}")

    path = Path(path)
    size = _file_size(path)
    if size == 0:
        return []

    part_size = size // chunk_count
    chunks = []
    for index in range(chunk_count):
        offset = index * part_size
        length = part_size if index < chunk_count - 1 else size - offset
        chunks.append(Chunk(index=index, offset=offset, length=length, source_path=path))
    return chunks


def plan_chunk_count(size: int, requested: int, min_chunk_size: int = DEFAULT_MIN_CHUNK_SIZE) -> int:
    """Reduce a requested chunk count so no chunk is below min_chunk_size.

    Args:
        size: File size in bytes.
        requested: Desired number of chunks.
        min_chunk_size: Smallest chunk worth its own connection.

    Returns:
        A chunk count between 1 and requested.
    """
    if requested < 1:
        raise ValueError(f"chunk count must be >= 1, got {requested}")
    if min_chunk_size <= 0:
        return requested
    return max(1, min(requested, size // min_chunk_size))


def iter_chunk(chunk: Chunk, buffer_size: int = COPY_BUFFER_SIZE) -> Iterator[bytes]:
    """Yield a chunk's bytes from its source file in buffer_size blocks.

    Raises:
        TransferIOError: If the source is unreadable or shorter than the chunk.
    """
    try:
        with open(chunk.source_path, "rb") as f:
            f.seek(chunk.offset)
            remaining = chunk.length
            while remaining > 0:
                block = f.read(min(buffer_size, remaining))
                if not block:
                    raise TransferIOError(
                        f"{chunk.source_path} ended {remaining} bytes early "
                        f"in chunk {chunk.index}"
                    )
                remaining -= len(block)
                yield block
    except TransferIOError:
        raise
    except OSError as e:
        raise TransferIOError(f"Cannot read chunk {chunk.index} of {chunk.source_path}: {e}") from e


def read_chunk(chunk: Chunk) -> bytes:
    """Read a whole chunk into memory."""
    return b"".join(iter_chunk(chunk))


def check_order(chunks: Sequence[Chunk]) -> list[Chunk]:
    """Sort chunks by index and check the indices are exactly 0..n-1.

    Raises:
        OrderViolationError: On a duplicate or missing index.
    """
    ordered = sorted(chunks, key=lambda c: c.index)
    for expected, chunk in enumerate(ordered):
        if chunk.index != expected:
            indices = [c.index for c in ordered]
            raise OrderViolationError(
                f"Chunk indices must be contiguous from 0, got {indices}"
            )
    return ordered


def merge(chunks: Sequence[Chunk], output_path: Path | str) -> int:
    """Concatenate chunk contents in ascending index order.

    The index check runs before the output file is created. Merging zero
    chunks produces an empty file.

    Args:
        chunks: Chunk descriptors (any order, indices 0..n-1).
        output_path: File to write.

    Returns:
        Number of bytes written.

    Raises:
        OrderViolationError: If indices are not contiguous from 0.
        TransferIOError: If a part cannot be read or the output written.
    """
    ordered = check_order(chunks)
    written = 0
    try:
        with open(output_path, "wb") as out:
            for chunk in ordered:
                for block in iter_chunk(chunk):
                    out.write(block)
                    written += len(block)
    except TransferIOError:
        raise
    except OSError as e:
        raise TransferIOError(f"Cannot write {output_path}: {e}") from e
    return written


def write_parts(chunks: Sequence[Chunk], directory: Path | str) -> list[Chunk]:
    """Write each chunk to its own <basename>.part<index> file.

    Args:
        chunks: Chunks to materialise.
        directory: Directory for the part files (created if missing).

    Returns:
        Descriptors pointing at the part files (offset 0).
    """
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)

    parts = []
    for chunk in chunks:
        part_path = directory / part_name(chunk.source_path, chunk.index)
        try:
            with open(part_path, "wb") as out:
                for block in iter_chunk(chunk):
                    out.write(block)
        except TransferIOError:
            raise
        except OSError as e:
            raise TransferIOError(f"Cannot write {part_path}: {e}") from e
        parts.append(Chunk(index=chunk.index, offset=0, length=chunk.length, source_path=part_path))
    return parts


def parts_in(directory: Path | str, basename: str) -> list[Chunk]:
    """Collect <basename>.partN files in a directory as chunk descriptors."""
    directory = Path(directory)
    prefix = f"{basename}.part"
    parts = []
    for entry in os.scandir(directory):
        if not entry.is_file() or not entry.name.startswith(prefix):
            continue
        suffix = entry.name[len(prefix):]
        if not suffix.isdigit():
            continue
        parts.append(
            Chunk(
                index=int(suffix),
                offset=0,
                length=entry.stat().st_size,
                source_path=Path(entry.path),
            )
        )
    return sorted(parts, key=lambda c: c.index)
