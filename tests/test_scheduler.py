"""Tests for delayed transfer scheduling."""

from __future__ import annotations

import threading
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from chunkferry.errors import TransferConnectionError
from chunkferry.scheduler import ScheduleOutcome, TransferScheduler
from chunkferry.transfer.coordinator import TransferCoordinator
from chunkferry.transfer.types import TransferRequest, TransferResult
from tests.fakes import FakeClock, MemoryTransport


def _request(tmp_path: Path, name: str = "f.bin") -> TransferRequest:
    path = tmp_path / name
    path.write_bytes(b"scheduled data")
    return TransferRequest(source_path=path, endpoint="remote:9000")


class TestTransferScheduler:
    """Tests for TransferScheduler with a fake clock."""

    def test_runs_after_delay(
        self, tmp_path: Path, clock: FakeClock, coordinator: TransferCoordinator, transport: MemoryTransport
    ) -> None:
        """Nothing runs before the delay elapses."""
        scheduler = TransferScheduler(coordinator, clock=clock)
        scheduler.schedule(_request(tmp_path), delay=60)

        assert scheduler.run_pending() == []
        assert transport.received == {}

        clock.advance(60)
        outcomes = scheduler.run_pending()

        assert len(outcomes) == 1
        assert outcomes[0].success
        assert transport.received["remote:9000/f.bin"] == b"scheduled data"
        assert scheduler.pending == 0

    def test_runs_in_due_order(self, tmp_path: Path, clock: FakeClock) -> None:
        coordinator = MagicMock(spec=TransferCoordinator)
        coordinator.run.side_effect = lambda r: TransferResult(path=str(r.source_path), success=True)
        scheduler = TransferScheduler(coordinator, clock=clock)

        late = scheduler.schedule(_request(tmp_path, "late"), delay=20)
        early = scheduler.schedule(_request(tmp_path, "early"), delay=10)
        clock.advance(30)

        assert [o.task_id for o in scheduler.run_pending()] == [early, late]

    def test_cancel(self, tmp_path: Path, clock: FakeClock) -> None:
        coordinator = MagicMock(spec=TransferCoordinator)
        scheduler = TransferScheduler(coordinator, clock=clock)
        task_id = scheduler.schedule(_request(tmp_path), delay=5)

        assert scheduler.cancel(task_id) is True
        assert scheduler.cancel(task_id) is False
        clock.advance(10)
        assert scheduler.run_pending() == []
        coordinator.run.assert_not_called()
        assert scheduler.next_due() is None

    def test_next_due(self, tmp_path: Path, clock: FakeClock) -> None:
        scheduler = TransferScheduler(MagicMock(spec=TransferCoordinator), clock=clock)
        assert scheduler.next_due() is None
        scheduler.schedule(_request(tmp_path), delay=15)
        assert scheduler.next_due() == clock.monotonic() + 15

    def test_failure_is_captured(self, tmp_path: Path, clock: FakeClock) -> None:
        """A raising transfer becomes an outcome with error set."""
        coordinator = MagicMock(spec=TransferCoordinator)
        coordinator.run.side_effect = TransferConnectionError("refused")
        seen: list[ScheduleOutcome] = []
        scheduler = TransferScheduler(coordinator, clock=clock, on_outcome=seen.append)

        scheduler.schedule(_request(tmp_path))
        outcomes = scheduler.run_pending()

        assert len(outcomes) == 1
        assert isinstance(outcomes[0].error, TransferConnectionError)
        assert outcomes[0].result is None
        assert not outcomes[0].success
        assert seen == outcomes

    def test_negative_delay(self, tmp_path: Path, clock: FakeClock) -> None:
        scheduler = TransferScheduler(MagicMock(spec=TransferCoordinator), clock=clock)
        with pytest.raises(ValueError):
            scheduler.schedule(_request(tmp_path), delay=-1)

    def test_background_thread(self, tmp_path: Path) -> None:
        """start() runs due tasks without run_pending being called."""
        done = threading.Event()
        coordinator = MagicMock(spec=TransferCoordinator)
        coordinator.run.side_effect = lambda r: TransferResult(path=str(r.source_path), success=True)
        scheduler = TransferScheduler(coordinator, on_outcome=lambda outcome: done.set())

        scheduler.start()
        try:
            scheduler.schedule(_request(tmp_path), delay=0)
            assert done.wait(timeout=5)
        finally:
            scheduler.stop()
        coordinator.run.assert_called_once()

    def test_raising_callback_does_not_drop_later_tasks(
        self, tmp_path: Path, clock: FakeClock, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Every due task runs and is returned even if on_outcome raises."""
        coordinator = MagicMock(spec=TransferCoordinator)
        coordinator.run.side_effect = lambda r: TransferResult(path=str(r.source_path), success=True)
        seen: list[str] = []

        def on_outcome(outcome: ScheduleOutcome) -> None:
            seen.append(outcome.task_id)
            raise RuntimeError("callback bug")

        scheduler = TransferScheduler(coordinator, clock=clock, on_outcome=on_outcome)
        first = scheduler.schedule(_request(tmp_path, "a"), delay=1)
        second = scheduler.schedule(_request(tmp_path, "b"), delay=2)
        clock.advance(5)

        outcomes = scheduler.run_pending()

        assert [o.task_id for o in outcomes] == [first, second]
        assert all(o.success for o in outcomes)
        assert seen == [first, second]
        assert coordinator.run.call_count == 2
        assert scheduler.pending == 0
        assert "callback bug" in caplog.text
