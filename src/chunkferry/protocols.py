"""Custom protocol handler registry.

This module provides:
- ProtocolRequest / ProtocolResponse: Messages exchanged with a handler
- ProtocolHandler: Capability a handler object implements
- HandlerRegistry: Mapping from protocol tag to handler

Registries are plain objects; each engine owns its own, so independent
engines in one process do not see each other's handlers.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Protocol

from chunkferry.errors import UnknownProtocolError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProtocolRequest:
    """A request addressed to a protocol handler."""

    protocol: str
    data: bytes = b""
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ProtocolResponse:
    """A handler's reply."""

    status: str
    data: bytes = b""


class ProtocolHandler(Protocol):
    """Anything that can answer a ProtocolRequest."""

    def handle(self, request: ProtocolRequest) -> ProtocolResponse: ...


class HandlerRegistry:
    """Thread-safe table of protocol tag -> handler."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._handlers: dict[str, ProtocolHandler] = {}

    def register(self, protocol: str, handler: ProtocolHandler) -> None:
        """Register (or replace) the handler for a protocol tag.

        Raises:
            ValueError: If the tag is empty.
            TypeError: If handler has no handle() method.
        """
        if not protocol:
            raise ValueError("Protocol name cannot be empty")
        if not callable(getattr(handler, "handle", None)):
            raise TypeError(f"Handler for {protocol!r} must define handle(request)")

        with self._lock:
            replaced = protocol in self._handlers
            self._handlers[protocol] = handler
        logger.debug(f"{'Replaced' if replaced else 'Registered'} handler for {protocol}")

    def lookup(self, protocol: str) -> ProtocolHandler:
        """Get the handler for a protocol tag.

        Raises:
            UnknownProtocolError: If no handler is registered.
        """
        with self._lock:
            handler = self._handlers.get(protocol)
        if handler is None:
            raise UnknownProtocolError(f"No handler for protocol: {protocol}")
        return handler

    def dispatch(self, request: ProtocolRequest) -> ProtocolResponse:
        """Route a request to the handler registered for its protocol."""
        return self.lookup(request.protocol).handle(request)

    def __contains__(self, protocol: object) -> bool:
        with self._lock:
            return protocol in self._handlers

    @property
    def protocols(self) -> list[str]:
        with self._lock:
            return sorted(self._handlers)
