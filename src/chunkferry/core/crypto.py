"""Stream encryption for chunkferry.

This module provides:
- IV-prefixed AES-256-CTR stream encryption and decryption
- Key generation and hex key loading

Wire format of an encrypted stream:
    iv (16 bytes) || ciphertext (same length as plaintext)
"""

from __future__ import annotations

import binascii
import os
from pathlib import Path
from typing import BinaryIO, Protocol

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from chunkferry.errors import InvalidKeyError, TransferIOError, TruncatedStreamError

# AES constants
KEY_SIZE = 32  # 256 bits
IV_SIZE = 16  # AES block size
STREAM_BUFFER_SIZE = 64 * 1024


class Writer(Protocol):
    """Anything with a write(bytes) method."""

    def write(self, data: bytes) -> int | None: ...


def generate_key() -> bytes:
    """Generate a random 256-bit encryption key."""
    return os.urandom(KEY_SIZE)


def load_key(hex_key: str) -> bytes:
    """Decode a hex-encoded key.

    Args:
        hex_key: 64 hexadecimal characters.

    Returns:
        32 key bytes.

    Raises:
        InvalidKeyError: If the string is not valid hex or has the wrong length.
    """
    try:
        key = binascii.unhexlify(hex_key.strip())
    except (binascii.Error, ValueError) as e:
        raise InvalidKeyError(f"Key is not valid hex: {e}") from e
    check_key(key)
    return key


def check_key(key: bytes) -> None:
    """Raise InvalidKeyError unless key is exactly KEY_SIZE bytes."""
    if not isinstance(key, bytes | bytearray) or len(key) != KEY_SIZE:
        length = len(key) if isinstance(key, bytes | bytearray) else type(key).__name__
        raise InvalidKeyError(f"Key must be exactly {KEY_SIZE} bytes, got {length}")


def _cipher(key: bytes, iv: bytes) -> Cipher:
    return Cipher(algorithms.AES(bytes(key)), modes.CTR(iv))


def _read_exact(reader: BinaryIO, size: int) -> bytes:
    """Read up to size bytes, looping over short reads until EOF."""
    buf = b""
    while len(buf) < size:
        block = reader.read(size - len(buf))
        if not block:
            break
        buf += block
    return buf


def encrypt_stream(
    reader: BinaryIO,
    writer: Writer,
    key: bytes,
    buffer_size: int = STREAM_BUFFER_SIZE,
) -> int:
    """Encrypt a byte stream with a fresh random IV.

    The IV is written first, then ciphertext is written as each block of
    plaintext is read.

    Args:
        reader: Plaintext source with read(size).
        writer: Destination with write(data).
        key: 32-byte encryption key.
        buffer_size: Plaintext bytes read per step.

    Returns:
        Number of plaintext bytes encrypted.

    Raises:
        InvalidKeyError: If the key is not 32 bytes.
    """
    check_key(key)
    iv = os.urandom(IV_SIZE)
    encryptor = _cipher(key, iv).encryptor()

    writer.write(iv)
    total = 0
    for block in iter(lambda: reader.read(buffer_size), b""):
        writer.write(encryptor.update(block))
        total += len(block)

    tail = encryptor.finalize()
    if tail:
        writer.write(tail)
    return total


def decrypt_stream(
    reader: BinaryIO,
    writer: Writer,
    key: bytes,
    buffer_size: int = STREAM_BUFFER_SIZE,
) -> int:
    """Decrypt a stream produced by encrypt_stream.

    Args:
        reader: Encrypted source with read(size).
        writer: Plaintext destination with write(data).
        key: 32-byte encryption key.
        buffer_size: Ciphertext bytes read per step.

    Returns:
        Number of plaintext bytes written.

    Raises:
        InvalidKeyError: If the key is not 32 bytes.
        TruncatedStreamError: If fewer than IV_SIZE bytes are available.
    """
    check_key(key)
    iv = _read_exact(reader, IV_SIZE)
    if len(iv) < IV_SIZE:
        raise TruncatedStreamError(
            f"Encrypted stream too short: {len(iv)} bytes, need at least {IV_SIZE}"
        )
    decryptor = _cipher(key, iv).decryptor()

    total = 0
    for block in iter(lambda: reader.read(buffer_size), b""):
        plain = decryptor.update(block)
        writer.write(plain)
        total += len(plain)

    tail = decryptor.finalize()
    if tail:
        writer.write(tail)
        total += len(tail)
    return total


def encrypt_file(src: Path | str, dst: Path | str, key: bytes) -> int:
    """Encrypt a file into dst. Returns plaintext size."""
    check_key(key)
    try:
        with open(src, "rb") as fin, open(dst, "wb") as fout:
            return encrypt_stream(fin, fout, key)
    except OSError as e:
        raise TransferIOError(f"Cannot encrypt {src} to {dst}: {e}") from e


def decrypt_file(src: Path | str, dst: Path | str, key: bytes) -> int:
    """Decrypt a file produced by encrypt_file. Returns plaintext size."""
    check_key(key)
    try:
        with open(src, "rb") as fin, open(dst, "wb") as fout:
            return decrypt_stream(fin, fout, key)
    except OSError as e:
        raise TransferIOError(f"Cannot decrypt {src} to {dst}: {e}") from e
