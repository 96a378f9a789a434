"""Tests for transfer log records, logging setup and result types."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest

from chunkferry.errors import TransferConnectionError
from chunkferry.transfer.log import TRANSFER_LOGGER, TransferEvent, TransferLog, setup_logging
from chunkferry.transfer.types import TransferResult


@pytest.fixture
def reset_logging() -> Iterator[None]:
    """Remove handlers setup_logging attaches."""
    yield
    root = logging.getLogger("chunkferry")
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
    root.setLevel(logging.NOTSET)


class TestTransferLog:
    """Tests for TransferLog."""

    def test_success_is_info(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.INFO, logger=TRANSFER_LOGGER)
        TransferLog().record("upload", "a.txt", "success")

        record = caplog.records[-1]
        assert record.levelno == logging.INFO
        assert record.getMessage() == "upload: a.txt - success"
        assert (record.action, record.identifier, record.status) == ("upload", "a.txt", "success")

    def test_failure_is_warning(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.INFO, logger=TRANSFER_LOGGER)
        TransferLog().record("chunk-upload", "a.txt.part1", "failed: refused")
        assert caplog.records[-1].levelno == logging.WARNING

    def test_custom_logger(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.INFO, logger="custom")
        TransferLog(logging.getLogger("custom")).record("download", "b", "success")
        assert caplog.records[-1].name == "custom"


class TestTransferEvents:
    """Tests for TransferLog subscribers."""

    def test_subscriber_receives_event(self) -> None:
        events: list[TransferEvent] = []
        log = TransferLog()
        log.subscribe(events.append)

        log.record("upload", "a.txt", "success")
        log.record("download", "b.txt", "failed: refused")

        assert events == [
            TransferEvent(action="upload", identifier="a.txt", status="success"),
            TransferEvent(action="download", identifier="b.txt", status="failed: refused"),
        ]
        assert events[0].succeeded
        assert not events[1].succeeded

    def test_failing_handler_does_not_stop_others(self, caplog: pytest.LogCaptureFixture) -> None:
        """A raising handler is logged and later handlers still run."""
        events: list[TransferEvent] = []

        def broken(event: TransferEvent) -> None:
            raise RuntimeError("handler bug")

        log = TransferLog()
        log.subscribe(broken)
        log.subscribe(events.append)

        log.record("upload", "a.txt", "success")

        assert len(events) == 1
        assert "handler bug" in caplog.text
        assert any(r.levelno == logging.ERROR for r in caplog.records)

    def test_unsubscribe(self) -> None:
        events: list[TransferEvent] = []
        log = TransferLog()
        log.subscribe(events.append)

        assert log.unsubscribe(events.append) is True
        assert log.unsubscribe(events.append) is False
        log.record("upload", "a.txt", "success")
        assert events == []

    def test_logs_are_independent(self) -> None:
        events: list[TransferEvent] = []
        first = TransferLog()
        first.subscribe(events.append)
        TransferLog().record("upload", "a.txt", "success")
        assert events == []


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_writes_log_file(self, tmp_path: Path, reset_logging: None) -> None:
        log_file = tmp_path / "logs" / "transfers.log"
        setup_logging(logging.INFO, log_file)
        TransferLog().record("upload", "a.txt", "success")
        for handler in logging.getLogger("chunkferry").handlers:
            handler.flush()
        content = log_file.read_text()
        assert "chunkferry.transfers - INFO - upload: a.txt - success" in content

    def test_repeated_setup_does_not_duplicate(self, reset_logging: None) -> None:
        setup_logging()
        setup_logging()
        assert len(logging.getLogger("chunkferry").handlers) == 1


class TestTransferResult:
    """Tests for TransferResult helpers."""

    def test_failed_chunks_sorted(self) -> None:
        result = TransferResult(
            path="f",
            chunk_errors={2: TransferConnectionError("x"), 0: TransferConnectionError("y")},
        )
        assert result.failed_chunks == [0, 2]

    def test_summary_success(self) -> None:
        result = TransferResult(path="f", success=True, bytes_transferred=10)
        assert result.summary() == "f: 10 bytes transferred"

    def test_summary_error(self) -> None:
        result = TransferResult(path="f", error=ValueError("boom"))
        assert result.summary() == "f: boom"
