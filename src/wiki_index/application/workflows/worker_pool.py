import os
import queue
import threading
import time
from enum import Enum
from typing import Callable

from src.config.logger_config import logger
from src.wiki_index.domain.errors import PoolShutdownError

Task = Callable[[], None]

DEFAULT_QUEUE_CAPACITY = 100
DEFAULT_DRAIN_TIMEOUT_SECONDS = 5 * 60.0
DEFAULT_CANCEL_TIMEOUT_SECONDS = 60.0
_POLL_INTERVAL_SECONDS = 0.05


class PoolState(str, Enum):
    RUNNING = "running"
    DRAINING = "draining"
    FORCE_CANCEL = "force_cancel"
    TERMINATED = "terminated"
    FAILED = "failed"


class BoundedWorkerPool:
    """Fixed-size thread pool fed by a bounded queue.

    When the queue is full, `submit` runs the task on the calling thread
    instead of rejecting it, which throttles the producer to the speed of the
    workers. `shutdown` walks RUNNING -> DRAINING -> FORCE_CANCEL and ends in
    TERMINATED or FAILED; no step waits longer than its timeout.
    """

    def __init__(
        self,
        workers: int | None = None,
        queue_capacity: int = DEFAULT_QUEUE_CAPACITY,
        drain_timeout: float = DEFAULT_DRAIN_TIMEOUT_SECONDS,
        cancel_timeout: float = DEFAULT_CANCEL_TIMEOUT_SECONDS,
    ) -> None:
        self.workers = workers or os.cpu_count() or 1
        if queue_capacity <= 0:
            raise ValueError("queue_capacity must be positive")
        self.queue_capacity = queue_capacity
        self.drain_timeout = drain_timeout
        self.cancel_timeout = cancel_timeout
        self._queue: queue.Queue[Task] = queue.Queue(maxsize=queue_capacity)
        self._state = PoolState.RUNNING
        self._state_lock = threading.Lock()
        self._cancelled = threading.Event()
        self._inline_total = 0
        self._cancelled_total = 0
        self._threads = [
            threading.Thread(target=self._worker_loop, name=f"page-worker-{i}", daemon=True)
            for i in range(self.workers)
        ]
        for thread in self._threads:
            thread.start()

    @property
    def state(self) -> PoolState:
        return self._state

    @property
    def inline_total(self) -> int:
        """Tasks executed on the submitting thread because the queue was full."""
        return self._inline_total

    @property
    def cancelled_total(self) -> int:
        return self._cancelled_total

    def submit(self, task: Task) -> None:
        if self._state is not PoolState.RUNNING:
            raise PoolShutdownError(f"Worker pool is {self._state.value}, not accepting tasks")
        try:
            self._queue.put_nowait(task)
        except queue.Full:
            self._inline_total += 1
            self._run(task)

    def shutdown(self) -> PoolState:
        logger.info("Shutting down worker pool and preparing to close process...")
        with self._state_lock:
            if self._state is not PoolState.RUNNING:
                return self._state
            self._state = PoolState.DRAINING

        if self._join_all(self.drain_timeout):
            return self._finish(PoolState.TERMINATED)

        logger.warning(
            "Worker pool did not drain within {}s, cancelling pending tasks: pending={}",
            self.drain_timeout,
            self._queue.qsize(),
        )
        self._state = PoolState.FORCE_CANCEL
        self._cancelled.set()
        self._discard_pending()

        if self._join_all(self.cancel_timeout):
            return self._finish(PoolState.TERMINATED)

        logger.critical(
            "Worker pool did not terminate: alive_workers={}, cancelled_tasks={}",
            sum(1 for t in self._threads if t.is_alive()),
            self._cancelled_total,
        )
        return self._finish(PoolState.FAILED)

    def _finish(self, state: PoolState) -> PoolState:
        self._state = state
        logger.info(
            "Worker pool stopped: state={}, inline_tasks={}, cancelled_tasks={}",
            state.value,
            self._inline_total,
            self._cancelled_total,
        )
        return state

    def _join_all(self, timeout: float) -> bool:
        deadline = time.monotonic() + timeout
        for thread in self._threads:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            thread.join(remaining)
        return not any(t.is_alive() for t in self._threads)

    def _discard_pending(self) -> None:
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                return
            self._cancelled_total += 1
            self._queue.task_done()

    def _worker_loop(self) -> None:
        while not self._cancelled.is_set():
            try:
                task = self._queue.get(timeout=_POLL_INTERVAL_SECONDS)
            except queue.Empty:
                if self._state is not PoolState.RUNNING:
                    return
                continue
            try:
                self._run(task)
            finally:
                self._queue.task_done()

    @staticmethod
    def _run(task: Task) -> None:
        try:
            task()
        except Exception as exc:
            logger.exception("Page task failed with error type {}: {}", type(exc).__name__, exc)
