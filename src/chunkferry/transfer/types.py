"""Request and result types for transfers.

This module provides:
- TransferRequest: Immutable description of one transfer
- TransferResult: Outcome of one transfer, with per-chunk errors
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class TransferRequest:
    """A transfer of a local file to a remote endpoint.

    Attributes:
        source_path: Local file to send.
        endpoint: Remote "host:port".
        destination_path: Remote name for single-stream uploads (informational).
        chunk_count: Number of parallel chunks (1 = single stream).
        encryption_key: Optional 32-byte key.
        rate_limit: Optional bytes/second ceiling applied before the transfer.
    """

    source_path: Path
    endpoint: str
    destination_path: str | None = None
    chunk_count: int = 1
    encryption_key: bytes | None = field(default=None, repr=False)
    rate_limit: int | None = None

    def __post_init__(self) -> None:
        if self.chunk_count < 1:
            raise ValueError(f"chunk_count must be at least 1, got {self.chunk_count}")
        if self.rate_limit is not None and self.rate_limit < 0:
            raise ValueError(f"rate_limit must be non-negative, got {self.rate_limit}")


@dataclass
class TransferResult:
    """Result of a transfer.

    A transfer is successful only if every chunk completed and the digest
    matched. chunk_errors maps chunk index to the exception that chunk
    raised, so callers can retry just those indices.
    """

    path: str
    success: bool = False
    bytes_transferred: int = 0
    digest_match: bool = False
    chunk_errors: dict[int, Exception] = field(default_factory=dict)
    digest: str | None = None
    error: Exception | None = None
    remote_names: dict[int, str] = field(default_factory=dict)

    @property
    def failed_chunks(self) -> list[int]:
        """Indices of chunks that failed, ascending."""
        return sorted(self.chunk_errors)

    def summary(self) -> str:
        """One-line human-readable outcome."""
        if self.success:
            return f"{self.path}: {self.bytes_transferred} bytes transferred"
        if self.chunk_errors:
            failed = ", ".join(
                f"{i} ({type(self.chunk_errors[i]).__name__}: {self.chunk_errors[i]})"
                for i in self.failed_chunks
            )
            return f"{self.path}: failed chunks {failed}"
        if self.error is not None:
            return f"{self.path}: {self.error}"
        return f"{self.path}: failed"
