"""Shared pytest fixtures."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from chunkferry.core.config import EngineConfig
from chunkferry.core.ratelimit import RateLimiter
from chunkferry.transfer.coordinator import TransferCoordinator
from tests.fakes import FakeClock, MakeFile, MemoryTransport


@pytest.fixture
def key() -> bytes:
    """A valid 32-byte key."""
    return os.urandom(32)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def transport() -> MemoryTransport:
    return MemoryTransport()


@pytest.fixture
def coordinator(transport: MemoryTransport) -> TransferCoordinator:
    """Coordinator over the in-memory transport with no rate limit."""
    return TransferCoordinator(transport=transport, limiter=RateLimiter(0), config=EngineConfig())


@pytest.fixture
def make_file(tmp_path: Path) -> MakeFile:
    """Factory writing bytes to a file under tmp_path."""

    def _make(name: str, data: bytes) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return path

    return _make
