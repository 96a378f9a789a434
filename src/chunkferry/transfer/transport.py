"""Byte-stream transport to remote endpoints.

This module provides:
- Connection / Transport: Protocols the coordinator depends on
- TCPConnection / TCPTransport: Plain TCP implementation
- parse_endpoint: Split "host:port" strings

Streams carry raw bytes only. The remote name passed to connect() is not
put on the wire; how the remote side names and reassembles parts is the
transport's contract.
"""

from __future__ import annotations

import logging
import socket
from types import TracebackType
from typing import Protocol

from chunkferry.errors import TransferConnectionError

logger = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT = 30.0
RECV_BUFFER_SIZE = 64 * 1024


class Connection(Protocol):
    """A reliable, ordered, full-duplex byte stream."""

    def write(self, data: bytes) -> int: ...

    def read(self, size: int = RECV_BUFFER_SIZE) -> bytes: ...

    def close_write(self) -> None: ...

    def close(self) -> None: ...

    def __enter__(self) -> Connection: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None: ...


class Transport(Protocol):
    """Factory for connections to an endpoint."""

    def connect(self, endpoint: str, remote_name: str) -> Connection:
        """Open a connection for one stream.

        Raises:
            TransferConnectionError: If the endpoint cannot be dialed.
        """
        ...


def parse_endpoint(endpoint: str) -> tuple[str, int]:
    """Split "host:port" into its parts.

    IPv6 hosts may be bracketed: "[::1]:9000".

    Raises:
        ValueError: If the port is missing or not a number.
    """
    host, sep, port = endpoint.rpartition(":")
    if not sep or not host or not port.isdigit():
        raise ValueError(f"Endpoint must be host:port, got {endpoint!r}")
    return host.strip("[]"), int(port)


class TCPConnection:
    """Connection over a connected TCP socket."""

    def __init__(self, sock: socket.socket, endpoint: str) -> None:
        self._sock = sock
        self._endpoint = endpoint

    def write(self, data: bytes) -> int:
        try:
            self._sock.sendall(data)
        except OSError as e:
            raise TransferConnectionError(f"Write to {self._endpoint} failed: {e}") from e
        return len(data)

    def read(self, size: int = RECV_BUFFER_SIZE) -> bytes:
        try:
            return self._sock.recv(size)
        except OSError as e:
            raise TransferConnectionError(f"Read from {self._endpoint} failed: {e}") from e

    def close_write(self) -> None:
        """Signal end-of-stream to the remote side."""
        try:
            self._sock.shutdown(socket.SHUT_WR)
        except OSError as e:
            raise TransferConnectionError(f"Shutdown of {self._endpoint} failed: {e}") from e

    def close(self) -> None:
        self._sock.close()

    def __enter__(self) -> TCPConnection:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


class TCPTransport:
    """Dial plain TCP connections."""

    def __init__(self, timeout: float = DEFAULT_CONNECT_TIMEOUT) -> None:
        self._timeout = timeout

    def connect(self, endpoint: str, remote_name: str) -> TCPConnection:
        host, port = parse_endpoint(endpoint)
        try:
            sock = socket.create_connection((host, port), timeout=self._timeout)
        except OSError as e:
            raise TransferConnectionError(f"Cannot connect to {endpoint}: {e}") from e
        logger.debug(f"Connected to {endpoint} for {remote_name}")
        return TCPConnection(sock, endpoint)
