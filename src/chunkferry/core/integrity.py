"""Content digests for integrity checks.

Digests are computed by streaming the file through a fixed-size buffer so
memory use does not grow with file size.
"""

from __future__ import annotations

import hashlib
import hmac
from pathlib import Path
from typing import BinaryIO

from chunkferry.errors import TransferIOError, UnsupportedAlgorithmError

# Allowed digest algorithms (128, 160 and 256 bit)
DIGEST_ALGORITHMS = ("md5", "sha1", "sha256")
DEFAULT_ALGORITHM = "sha256"
DIGEST_BUFFER_SIZE = 64 * 1024


def new_hasher(algorithm: str = DEFAULT_ALGORITHM) -> hashlib._Hash:
    """Create a hash object for an allowed algorithm name.

    Args:
        algorithm: One of DIGEST_ALGORITHMS (case-insensitive).

    Returns:
        A fresh hashlib object.

    Raises:
        UnsupportedAlgorithmError: If the name is not allowed.
    """
    name = algorithm.lower()
    if name not in DIGEST_ALGORITHMS:
        raise UnsupportedAlgorithmError(
            f"Unsupported digest algorithm: {algorithm} "
            f"(expected one of {', '.join(DIGEST_ALGORITHMS)})"
        )
    return hashlib.new(name)


def digest_stream(reader: BinaryIO, algorithm: str = DEFAULT_ALGORITHM) -> str:
    """Digest everything a binary reader yields.

    Args:
        reader: Object with a read(size) method.
        algorithm: Digest algorithm name.

    Returns:
        Hexadecimal digest string.
    """
    hasher = new_hasher(algorithm)
    for block in iter(lambda: reader.read(DIGEST_BUFFER_SIZE), b""):
        hasher.update(block)
    return hasher.hexdigest()


def compute_digest(path: Path | str, algorithm: str = DEFAULT_ALGORITHM) -> str:
    """Compute the digest of a file.

    Args:
        path: Path to the file to hash.
        algorithm: Digest algorithm name.

    Returns:
        Hexadecimal digest string.

    Raises:
        TransferIOError: If the file cannot be read.
        UnsupportedAlgorithmError: If the algorithm is not allowed.
    """
    new_hasher(algorithm)
    try:
        with open(path, "rb") as f:
            return digest_stream(f, algorithm)
    except OSError as e:
        raise TransferIOError(f"Cannot read {path}: {e}") from e


def verify_digest(
    path: Path | str, expected: str, algorithm: str = DEFAULT_ALGORITHM
) -> bool:
    """Check a file against an expected digest.

    Args:
        path: Path to the file.
        expected: Expected hexadecimal digest.
        algorithm: Digest algorithm name.

    Returns:
        True if the digests match, False otherwise.

    Raises:
        TransferIOError: If the file cannot be read.
    """
    actual = compute_digest(path, algorithm)
    return hmac.compare_digest(actual.encode(), expected.strip().lower().encode())
