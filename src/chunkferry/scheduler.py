"""Delayed transfer scheduling.

This module provides:
- ScheduledTransfer: A queued request with its due time
- ScheduleOutcome: What happened when a scheduled transfer ran
- TransferScheduler: Task queue ordered by due time on a Clock

Time comes from a Clock so tests can advance a fake clock and call
run_pending() instead of sleeping. The optional background thread does
the same thing in a loop. The queue is a plain heap rather than an
APScheduler job store because APScheduler reads wall time itself and
cannot be driven by an injected Clock.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from chunkferry.core.clock import Clock, SystemClock

if TYPE_CHECKING:
    from chunkferry.transfer.coordinator import TransferCoordinator
    from chunkferry.transfer.types import TransferRequest, TransferResult

logger = logging.getLogger(__name__)

# Upper bound on one idle wait of the background loop (seconds)
MAX_IDLE_WAIT = 1.0


@dataclass(order=True)
class ScheduledTransfer:
    """A transfer request waiting for its due time."""

    due: float
    seq: int
    task_id: str = field(compare=False)
    request: TransferRequest = field(compare=False)
    cancelled: bool = field(default=False, compare=False)


@dataclass
class ScheduleOutcome:
    """Result of running one scheduled transfer.

    Exactly one of result and error is set.
    """

    task_id: str
    request: TransferRequest
    result: TransferResult | None = None
    error: Exception | None = None

    @property
    def success(self) -> bool:
        return self.result is not None and self.result.success


class TransferScheduler:
    """Runs TransferRequests once their delay has elapsed.

    Usage:
        scheduler = TransferScheduler(coordinator)
        task_id = scheduler.schedule(request, delay=60)
        ...
        outcomes = scheduler.run_pending()   # or scheduler.start()
    """

    def __init__(
        self,
        coordinator: TransferCoordinator,
        clock: Clock | None = None,
        on_outcome: Callable[[ScheduleOutcome], None] | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            coordinator: Coordinator that executes due requests.
            clock: Time source (defaults to the system clock).
            on_outcome: Optional callback invoked after each task runs.
        """
        self._coordinator = coordinator
        self._clock = clock or SystemClock()
        self._on_outcome = on_outcome

        self._lock = threading.Lock()
        self._heap: list[ScheduledTransfer] = []
        self._tasks: dict[str, ScheduledTransfer] = {}
        self._seq = itertools.count()

        self._wakeup = threading.Event()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def pending(self) -> int:
        """Number of tasks waiting to run."""
        with self._lock:
            return len(self._tasks)

    def next_due(self) -> float | None:
        """Clock time of the earliest pending task, or None."""
        with self._lock:
            self._drop_cancelled()
            return self._heap[0].due if self._heap else None

    def schedule(self, request: TransferRequest, delay: float = 0.0) -> str:
        """Queue a request to run after delay seconds.

        Returns:
            Task id usable with cancel().
        """
        if delay < 0:
            raise ValueError(f"delay must be >= 0, got {delay}")

        with self._lock:
            seq = next(self._seq)
            task = ScheduledTransfer(
                due=self._clock.monotonic() + delay,
                seq=seq,
                task_id=f"transfer-{seq}",
                request=request,
            )
            heapq.heappush(self._heap, task)
            self._tasks[task.task_id] = task

        logger.info(f"Scheduled {request.source_path} -> {request.endpoint} in {delay:.1f}s ({task.task_id})")
        self._wakeup.set()
        return task.task_id

    def cancel(self, task_id: str) -> bool:
        """Cancel a pending task.

        Returns:
            True if the task was pending, False otherwise.
        """
        with self._lock:
            task = self._tasks.pop(task_id, None)
            if task is None:
                return False
            task.cancelled = True
        logger.info(f"Cancelled scheduled transfer {task_id}")
        return True

    def run_pending(self) -> list[ScheduleOutcome]:
        """Run every task whose due time has passed, on the calling thread.

        Failures are logged and returned in the outcome, never raised.
        """
        outcomes = []
        for task in self._pop_due():
            outcome = ScheduleOutcome(task_id=task.task_id, request=task.request)
            try:
                outcome.result = self._coordinator.run(task.request)
            except Exception as e:
                logger.exception(f"Scheduled transfer {task.task_id} failed")
                outcome.error = e
            else:
                status = "succeeded" if outcome.result.success else "failed"
                logger.info(f"Scheduled transfer {task.task_id} {status}")

            if self._on_outcome:
                try:
                    self._on_outcome(outcome)
                except Exception:
                    logger.exception(f"Outcome callback failed for scheduled transfer {task.task_id}")
            outcomes.append(outcome)
        return outcomes

    def _pop_due(self) -> list[ScheduledTransfer]:
        now = self._clock.monotonic()
        due = []
        with self._lock:
            self._drop_cancelled()
            while self._heap and self._heap[0].due <= now:
                task = heapq.heappop(self._heap)
                if task.cancelled:
                    continue
                self._tasks.pop(task.task_id, None)
                due.append(task)
        return due

    def _drop_cancelled(self) -> None:
        while self._heap and self._heap[0].cancelled:
            heapq.heappop(self._heap)

    def start(self) -> None:
        """Run due tasks on a background thread until stop()."""
        if self._thread is not None and self._thread.is_alive():
            logger.warning("Scheduler already running")
            return

        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="TransferScheduler", daemon=True)
        self._thread.start()
        logger.info("Transfer scheduler started")

    def stop(self, timeout: float = 10.0) -> None:
        """Stop the background thread. Pending tasks stay queued."""
        if self._thread is None:
            return
        self._stop.set()
        self._wakeup.set()
        self._thread.join(timeout=timeout)
        self._thread = None
        logger.info("Transfer scheduler stopped")

    def _loop(self) -> None:
        while not self._stop.is_set():
            self.run_pending()

            next_due = self.next_due()
            wait = MAX_IDLE_WAIT
            if next_due is not None:
                wait = min(MAX_IDLE_WAIT, max(0.0, next_due - self._clock.monotonic()))

            self._wakeup.wait(timeout=wait)
            self._wakeup.clear()
