"""Transfer coordination.

This module provides:
- TransferCoordinator: Single-stream upload/download and parallel chunk upload

Parallel uploads start one thread per chunk. Each thread owns its file
handle, connection and cipher context, and records its own success or
failure; the coordinator joins every thread before building the result and
never retries a failed chunk.

Usage:
    coordinator = TransferCoordinator(TCPTransport(), RateLimiter(1 << 20))
    result = coordinator.parallel_upload(path, "host:9000", chunk_count=4)
    if not result.success:
        retry = coordinator.parallel_upload(
            path, "host:9000", chunk_count=4, indices=result.failed_chunks
        )
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import BinaryIO

from chunkferry.core.chunking import Chunk, part_name, split_by_count
from chunkferry.core.config import EngineConfig
from chunkferry.core.crypto import Writer, check_key, decrypt_stream, encrypt_stream
from chunkferry.core.integrity import compute_digest, verify_digest
from chunkferry.core.ratelimit import RateLimiter, ThrottledWriter
from chunkferry.core.tempfiles import TempFiles
from chunkferry.errors import (
    DependencyNotFoundError,
    DigestMismatchError,
    TransferError,
    TransferIOError,
)
from chunkferry.transfer.conflict import ConflictPolicy, resolve
from chunkferry.transfer.log import TransferLog
from chunkferry.transfer.transport import Connection, TCPTransport, Transport
from chunkferry.transfer.types import TransferRequest, TransferResult

logger = logging.getLogger(__name__)

# Called with (bytes done, bytes total) as source bytes are sent
ProgressCallback = Callable[[int, int], None]


class _BoundedReader:
    """Read exactly length bytes from a file positioned at a chunk offset."""

    def __init__(self, f: BinaryIO, length: int, label: str) -> None:
        self._f = f
        self._remaining = length
        self._label = label

    def read(self, size: int = -1) -> bytes:
        if self._remaining <= 0:
            return b""
        if size < 0 or size > self._remaining:
            size = self._remaining
        block = self._f.read(size)
        if not block:
            raise TransferIOError(f"{self._label} ended {self._remaining} bytes early")
        self._remaining -= len(block)
        return block


class _Progress:
    """Cumulative byte count shared by every stream of one transfer.

    The callback runs under the lock so reports from chunk threads arrive
    in increasing order of bytes done.
    """

    def __init__(self, callback: ProgressCallback, total: int) -> None:
        self._callback = callback
        self._total = total
        self._done = 0
        self._lock = threading.Lock()

    def advance(self, n: int) -> None:
        with self._lock:
            self._done += n
            self._callback(self._done, self._total)


class _ProgressReader:
    """Reader proxy reporting every block it hands out."""

    def __init__(self, reader: BinaryIO | _BoundedReader, progress: _Progress) -> None:
        self._reader = reader
        self._progress = progress

    def read(self, size: int = -1) -> bytes:
        block = self._reader.read(size)
        if block:
            self._progress.advance(len(block))
        return block


class TransferCoordinator:
    """Moves files to and from remote endpoints.

    The rate limiter is shared by reference: every coordinator (and every
    chunk thread) holding the same RateLimiter draws from one budget.
    """

    def __init__(
        self,
        transport: Transport | None = None,
        limiter: RateLimiter | None = None,
        config: EngineConfig | None = None,
        transfer_log: TransferLog | None = None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            transport: Connection factory (defaults to TCP).
            limiter: Shared rate limiter (defaults to one built from config).
            config: Engine tunables.
            transfer_log: Sink for per-attempt transfer records.
        """
        self._config = config or EngineConfig()
        self._transport = transport or TCPTransport(timeout=self._config.connect_timeout)
        self._limiter = limiter or RateLimiter(self._config.rate_limit)
        self._log = transfer_log or TransferLog()
        self._temp_files = TempFiles()
        self._dependencies: dict[str, list[str]] = {}
        self._deps_lock = threading.Lock()

    @property
    def limiter(self) -> RateLimiter:
        return self._limiter

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def transfer_log(self) -> TransferLog:
        return self._log

    @property
    def temp_files(self) -> TempFiles:
        return self._temp_files

    # ------------------------------------------------------------------
    # File dependencies
    # ------------------------------------------------------------------

    def add_dependency(self, path: Path | str, dependency: Path | str) -> None:
        """Record that path depends on dependency. Duplicates are kept once."""
        key, dep = str(path), str(dependency)
        with self._deps_lock:
            deps = self._dependencies.setdefault(key, [])
            if dep not in deps:
                deps.append(dep)

    def remove_dependency(self, path: Path | str, dependency: Path | str) -> None:
        """Forget one dependency of path.

        Raises:
            DependencyNotFoundError: If the dependency was never recorded.
        """
        key, dep = str(path), str(dependency)
        with self._deps_lock:
            deps = self._dependencies.get(key)
            if not deps or dep not in deps:
                raise DependencyNotFoundError(f"{key} does not depend on {dep}")
            deps.remove(dep)
            if not deps:
                del self._dependencies[key]

    def dependencies(self, path: Path | str) -> list[str]:
        """Dependencies recorded for path, in insertion order."""
        with self._deps_lock:
            return list(self._dependencies.get(str(path), []))

    @staticmethod
    def remote_part_name(endpoint: str, path: Path | str, index: int) -> str:
        """Remote object name of a chunk: <endpoint>/<basename>.part<index>."""
        return f"{endpoint}/{part_name(path, index)}"

    # ------------------------------------------------------------------
    # Single stream
    # ------------------------------------------------------------------

    def upload(
        self,
        endpoint: str,
        path: Path | str,
        key: bytes | None = None,
        remote_name: str | None = None,
        progress: ProgressCallback | None = None,
    ) -> TransferResult:
        """Send a whole file over one connection.

        Args:
            endpoint: Remote "host:port".
            path: Local file to send.
            key: Optional 32-byte key; the stream is then IV || ciphertext.
            remote_name: Remote object name (defaults to <endpoint>/<basename>).
            progress: Called with (bytes sent, file size) after each block.

        Returns:
            TransferResult. A source that changed while streaming is reported
            as a failed result with a DigestMismatchError.

        Raises:
            TransferConnectionError: If the endpoint cannot be dialed or written.
            TransferIOError: If the local file cannot be read.
            InvalidKeyError: If the key is malformed.
        """
        path = Path(path)
        name = remote_name or f"{endpoint}/{path.name}"
        if key is not None:
            check_key(key)

        try:
            source_digest = self._digest(path)
            tracker = _Progress(progress, path.stat().st_size) if progress else None
            with open(path, "rb") as src, self._transport.connect(endpoint, name) as conn:
                sent = self._send(src, conn, key, tracker)
                conn.close_write()
        except TransferError as e:
            self._log.record("upload", name, f"failed: {e}")
            raise
        except OSError as e:
            self._log.record("upload", name, f"failed: {e}")
            raise TransferIOError(f"Cannot upload {path}: {e}") from e

        result = TransferResult(path=str(path), bytes_transferred=sent, remote_names={0: name})
        self._finish_upload(result, path, source_digest)
        self._log.record("upload", name, "success" if result.success else f"failed: {result.error}")
        return result

    def download(
        self,
        endpoint: str,
        path: Path | str,
        key: bytes | None = None,
        expected_digest: str | None = None,
        policy: ConflictPolicy | None = None,
    ) -> TransferResult:
        """Receive a whole stream from one connection into a local file.

        Data lands in a temp file next to path. If path already exists the
        conflict policy decides what happens to it; otherwise the temp file
        is renamed into place.

        Args:
            endpoint: Remote "host:port".
            path: Local destination.
            key: Optional 32-byte key to decrypt the stream with.
            expected_digest: Digest the received content must match.
            policy: Conflict policy (defaults to the configured one).

        Returns:
            TransferResult. A digest mismatch is reported as a failed result
            and the destination is left untouched.

        Raises:
            TransferConnectionError: If the endpoint cannot be dialed or read.
            TransferIOError: If the local file cannot be written.
            ConflictError: If path exists and the policy refuses to replace it.
        """
        path = Path(path)
        name = f"{endpoint}/{path.name}"
        if key is not None:
            check_key(key)
        policy = policy or ConflictPolicy.from_name(self._config.conflict_policy)

        tmp_path: Path | None = None
        try:
            with self._transport.connect(endpoint, name) as conn:
                tmp_path = self._temp_files.create(
                    prefix=f".{path.name}.", suffix=".download", directory=path.parent
                )
                with open(tmp_path, "wb") as out:
                    received = self._receive(conn, out, key)

            result = TransferResult(path=str(path), bytes_transferred=received, remote_names={0: name})
            result.digest = compute_digest(tmp_path, self._config.digest_algorithm)
            if expected_digest is not None and not verify_digest(
                tmp_path, expected_digest, self._config.digest_algorithm
            ):
                result.error = DigestMismatchError(str(path), expected_digest, result.digest)
                self._log.record("download", name, f"failed: {result.error}")
                return result

            resolve(path, tmp_path, policy, clobber_backup=self._config.clobber_backup)
            self._temp_files.release(tmp_path)
            tmp_path = None
        except TransferError as e:
            self._log.record("download", name, f"failed: {e}")
            raise
        except OSError as e:
            self._log.record("download", name, f"failed: {e}")
            raise TransferIOError(f"Cannot download to {path}: {e}") from e
        finally:
            if tmp_path is not None:
                self._temp_files.remove(tmp_path)

        result.digest_match = True
        result.success = True
        self._log.record("download", name, "success")
        return result

    # ------------------------------------------------------------------
    # Parallel
    # ------------------------------------------------------------------

    def parallel_upload(
        self,
        path: Path | str,
        endpoint: str,
        chunk_count: int | None = None,
        key: bytes | None = None,
        indices: Iterable[int] | None = None,
        progress: ProgressCallback | None = None,
    ) -> TransferResult:
        """Upload a file as chunk_count chunks over concurrent connections.

        Every chunk is attempted; failures are collected in
        result.chunk_errors and never stop sibling chunks. Passing indices
        uploads only those chunks, which is how a caller retries the
        failures of an earlier result.

        Args:
            path: Local file to send.
            endpoint: Remote "host:port".
            chunk_count: Number of chunks (defaults to config.chunk_count).
            key: Optional 32-byte key; each chunk is framed with its own IV.
            indices: Optional subset of chunk indices to upload.
            progress: Called with (bytes sent, bytes in the selected chunks)
                after each block of any chunk. Calls are serialized and the
                byte count never decreases.

        Returns:
            TransferResult aggregating every chunk's outcome.

        Raises:
            TransferIOError: If the source cannot be read before splitting.
            InvalidKeyError: If the key is malformed.
            ValueError: If chunk_count < 1 or indices name unknown chunks.
        """
        path = Path(path)
        if chunk_count is None:
            chunk_count = self._config.chunk_count
        if key is not None:
            check_key(key)

        source_digest = self._digest(path)
        chunks = split_by_count(path, chunk_count)
        if indices is not None:
            wanted = set(indices)
            unknown = wanted - {c.index for c in chunks}
            if unknown:
                raise ValueError(f"Unknown chunk indices for {path}: {sorted(unknown)}")
            chunks = [c for c in chunks if c.index in wanted]

        result = TransferResult(path=str(path))
        lock = threading.Lock()
        tracker = _Progress(progress, sum(c.length for c in chunks)) if progress else None

        def run_chunk(chunk: Chunk) -> None:
            name = self.remote_part_name(endpoint, path, chunk.index)
            with lock:
                result.remote_names[chunk.index] = name
            try:
                sent = self._upload_chunk(chunk, endpoint, name, key, tracker)
            except Exception as e:
                logger.warning(f"Chunk {chunk.index} of {path.name} failed: {e}")
                with lock:
                    result.chunk_errors[chunk.index] = e
                self._log.record("chunk-upload", name, f"failed: {e}")
                return
            with lock:
                result.bytes_transferred += sent
            self._log.record("chunk-upload", name, "success")

        threads = [
            threading.Thread(
                target=run_chunk,
                args=(chunk,),
                name=f"ChunkUpload-{path.name}-{chunk.index}",
                daemon=True,
            )
            for chunk in chunks
        ]
        logger.info(f"Uploading {path.name} to {endpoint} in {len(threads)} chunks")
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self._finish_upload(result, path, source_digest)
        status = "success" if result.success else f"failed: {result.summary()}"
        self._log.record("parallel-upload", f"{endpoint}/{path.name}", status)
        return result

    def run(self, request: TransferRequest, progress: ProgressCallback | None = None) -> TransferResult:
        """Execute a TransferRequest.

        A request's rate_limit, when set, replaces the shared ceiling.
        """
        if request.rate_limit is not None:
            self._limiter.set_limit(request.rate_limit)
        if request.chunk_count > 1:
            return self.parallel_upload(
                request.source_path,
                request.endpoint,
                chunk_count=request.chunk_count,
                key=request.encryption_key,
                progress=progress,
            )
        remote_name = (
            f"{request.endpoint}/{request.destination_path}" if request.destination_path else None
        )
        return self.upload(
            request.endpoint,
            request.source_path,
            key=request.encryption_key,
            remote_name=remote_name,
            progress=progress,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _upload_chunk(
        self, chunk: Chunk, endpoint: str, name: str, key: bytes | None, tracker: _Progress | None
    ) -> int:
        try:
            with open(chunk.source_path, "rb") as src:
                src.seek(chunk.offset)
                reader = _BoundedReader(src, chunk.length, f"Chunk {chunk.index}")
                with self._transport.connect(endpoint, name) as conn:
                    sent = self._send(reader, conn, key, tracker)
                    conn.close_write()
        except TransferError:
            raise
        except OSError as e:
            raise TransferIOError(f"Chunk {chunk.index} of {chunk.source_path}: {e}") from e
        return sent

    def _send(
        self,
        reader: BinaryIO | _BoundedReader | _ProgressReader,
        conn: Connection,
        key: bytes | None,
        tracker: _Progress | None = None,
    ) -> int:
        """Copy reader to conn through the limiter (and cipher, if keyed)."""
        writer = ThrottledWriter(conn, self._limiter)
        if tracker is not None:
            reader = _ProgressReader(reader, tracker)
        if key is not None:
            return encrypt_stream(reader, writer, key, self._config.buffer_size)
        return _copy(reader, writer, self._config.buffer_size)

    def _receive(self, conn: Connection, out: BinaryIO, key: bytes | None) -> int:
        """Copy conn to out through the limiter (and cipher, if keyed)."""
        writer = ThrottledWriter(out, self._limiter)
        if key is not None:
            return decrypt_stream(conn, writer, key, self._config.buffer_size)
        return _copy(conn, writer, self._config.buffer_size)

    def _digest(self, path: Path) -> str:
        return compute_digest(path, self._config.digest_algorithm)

    def _finish_upload(self, result: TransferResult, path: Path, source_digest: str) -> None:
        """Re-digest the source and settle success.

        The bytes sent match source_digest only if the file did not change
        while it was being streamed.
        """
        result.digest = source_digest
        try:
            after = self._digest(path)
        except TransferIOError as e:
            result.error = e
            result.digest_match = False
        else:
            result.digest_match = after == source_digest
            if not result.digest_match:
                result.error = DigestMismatchError(str(path), source_digest, after)
        result.success = result.digest_match and not result.chunk_errors

        if result.error is not None:
            logger.warning(f"Verification of {path} failed: {result.error}")


def _copy(reader: BinaryIO | Connection | _BoundedReader | _ProgressReader, writer: Writer, buffer_size: int) -> int:
    total = 0
    for block in iter(lambda: reader.read(buffer_size), b""):
        writer.write(block)
        total += len(block)
    return total

