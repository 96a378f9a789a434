"""Exception types for chunkferry.

This module provides:
- TransferError: Base class for every engine error
- TransferIOError, TransferConnectionError: Local and network failures
- InvalidKeyError, TruncatedStreamError: Cipher codec failures
- OrderViolationError: Merge given non-contiguous chunk indices
- ConflictError: Destination exists and the policy cannot proceed
- DigestMismatchError: Post-transfer verification failed
- DependencyNotFoundError: Unknown file dependency
"""

from __future__ import annotations


class TransferError(Exception):
    """Base exception for transfer engine errors."""


class TransferIOError(OSError, TransferError):
    """Local read/write/open failure."""


class TransferConnectionError(ConnectionError, TransferError):
    """Failed to dial or write to a remote endpoint."""


class InvalidKeyError(ValueError, TransferError):
    """Encryption key has the wrong length or encoding."""


class TruncatedStreamError(TransferError):
    """Encrypted stream is shorter than one initialization vector."""


class OrderViolationError(TransferError):
    """Chunk indices are not contiguous starting at 0."""


class ConflictError(TransferError):
    """Destination already exists and the policy cannot safely proceed."""


class DigestMismatchError(TransferError):
    """Destination digest does not match the source digest.

    Attributes:
        path: File that was checked.
        expected: Digest that was expected.
        actual: Digest that was computed.
    """

    def __init__(self, path: str, expected: str, actual: str) -> None:
        self.path = path
        self.expected = expected
        self.actual = actual
        super().__init__(f"Digest mismatch for {path}: expected {expected}, got {actual}")


class UnsupportedAlgorithmError(ValueError, TransferError):
    """Digest algorithm is not one of the allowed names."""


class UnknownProtocolError(LookupError, TransferError):
    """No handler registered for a protocol tag."""


class ConfigError(ValueError, TransferError):
    """Configuration file holds an invalid value."""


class DependencyNotFoundError(LookupError, TransferError):
    """Removing a file dependency that was never added."""
