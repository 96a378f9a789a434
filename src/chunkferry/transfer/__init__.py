"""Transfer module - Coordination, transport, conflicts and versions."""

from chunkferry.transfer.conflict import ConflictPolicy, resolve
from chunkferry.transfer.coordinator import TransferCoordinator
from chunkferry.transfer.log import TransferEvent, TransferLog, setup_logging
from chunkferry.transfer.transport import (
    Connection,
    TCPConnection,
    TCPTransport,
    Transport,
    parse_endpoint,
)
from chunkferry.transfer.types import TransferRequest, TransferResult
from chunkferry.transfer.versions import Versioner, revert, save_version

__all__ = [
    # Coordination
    "TransferCoordinator",
    "TransferRequest",
    "TransferResult",
    # Transport
    "Connection",
    "TCPConnection",
    "TCPTransport",
    "Transport",
    "parse_endpoint",
    # Conflicts and versions
    "ConflictPolicy",
    "Versioner",
    "resolve",
    "revert",
    "save_version",
    # Logging
    "TransferEvent",
    "TransferLog",
    "setup_logging",
]
