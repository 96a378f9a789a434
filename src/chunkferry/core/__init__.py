"""Core module - Digests, stream crypto, chunking and rate limiting."""

from chunkferry.core.chunking import (
    DEFAULT_MIN_CHUNK_SIZE,
    Chunk,
    merge,
    part_name,
    plan_chunk_count,
    read_chunk,
    split,
    split_by_count,
    write_parts,
)
from chunkferry.core.clock import Clock, SystemClock
from chunkferry.core.crypto import (
    IV_SIZE,
    KEY_SIZE,
    decrypt_file,
    decrypt_stream,
    encrypt_file,
    encrypt_stream,
    generate_key,
    load_key,
)
from chunkferry.core.integrity import (
    DIGEST_ALGORITHMS,
    compute_digest,
    verify_digest,
)
from chunkferry.core.ratelimit import RateLimiter, ThrottledWriter
from chunkferry.core.tempfiles import TempFiles, secure_delete

__all__ = [
    # Chunking
    "DEFAULT_MIN_CHUNK_SIZE",
    "Chunk",
    "merge",
    "part_name",
    "plan_chunk_count",
    "read_chunk",
    "split",
    "split_by_count",
    "write_parts",
    # Clock
    "Clock",
    "SystemClock",
    # Crypto
    "IV_SIZE",
    "KEY_SIZE",
    "decrypt_file",
    "decrypt_stream",
    "encrypt_file",
    "encrypt_stream",
    "generate_key",
    "load_key",
    # Integrity
    "DIGEST_ALGORITHMS",
    "compute_digest",
    "verify_digest",
    # Rate limiting
    "RateLimiter",
    "ThrottledWriter",
    # Temp files
    "TempFiles",
    "secure_delete",
]
