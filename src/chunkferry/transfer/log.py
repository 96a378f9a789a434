"""Transfer log records, event subscribers and logging setup.

One record is emitted per completed or failed transfer attempt on the
"chunkferry.transfers" logger, with action, identifier and status fields
attached as record attributes. The same attempt is delivered as a
TransferEvent to every subscribed handler.
"""

from __future__ import annotations

import logging
import sys
import threading
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

TRANSFER_LOGGER = "chunkferry.transfers"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass(frozen=True)
class TransferEvent:
    """One transfer attempt as seen by subscribers."""

    action: str
    identifier: str
    status: str

    @property
    def succeeded(self) -> bool:
        return self.status == "success"


EventHandler = Callable[[TransferEvent], None]


class TransferLog:
    """Emits one structured record per transfer attempt and notifies subscribers."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger(TRANSFER_LOGGER)
        self._handlers: list[EventHandler] = []
        self._lock = threading.Lock()

    def subscribe(self, handler: EventHandler) -> None:
        """Register a handler called with a TransferEvent for every record."""
        with self._lock:
            self._handlers.append(handler)

    def unsubscribe(self, handler: EventHandler) -> bool:
        """Remove a handler. Returns False if it was not subscribed."""
        with self._lock:
            try:
                self._handlers.remove(handler)
            except ValueError:
                return False
        return True

    def record(self, action: str, identifier: str, status: str) -> None:
        """Log a transfer attempt and deliver it to subscribers.

        A handler that raises is logged and skipped; the remaining
        handlers still receive the event.

        Args:
            action: What was attempted ("upload", "download", "chunk-upload", ...).
            identifier: File or remote part name.
            status: "success" or a failure description.
        """
        level = logging.INFO if status == "success" else logging.WARNING
        self._logger.log(
            level,
            f"{action}: {identifier} - {status}",
            extra={"action": action, "identifier": identifier, "status": status},
        )

        with self._lock:
            handlers = list(self._handlers)
        event = TransferEvent(action=action, identifier=identifier, status=status)
        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.exception(f"Transfer event handler failed for {action}: {identifier}")


def setup_logging(level: int = logging.INFO, log_file: Path | None = None) -> None:
    """Configure the chunkferry logger to write to stderr and optionally a file.

    Args:
        level: Log level for the chunkferry namespace.
        log_file: Optional path to append log records to.
    """
    formatter = logging.Formatter(LOG_FORMAT)

    root_logger = logging.getLogger("chunkferry")
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    root_logger.addHandler(stream_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
