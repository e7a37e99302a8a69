"""Single worker execution queue.

The analysis tool is heavy and does not tolerate parallel instances well,
so every analysis run in the process goes through one worker thread, in
submission order.
"""

from __future__ import annotations

import queue
import threading
from typing import Callable, Optional

from deadscan.core.errors import QueueClosedError, QueueFullError
from deadscan.core.logging import get_logger

LOGGER = get_logger(__name__)

Job = Callable[[], None]

_STOP = object()


class ExecutionQueue:
    """FIFO job queue drained by a single daemon thread.

    Example:
        with ExecutionQueue(max_pending=10) as jobs:
            jobs.submit(lambda: print("analysing"))
    """

    def __init__(self, max_pending: int = 100, name: str = "deadscan-analysis"):
        """Initialize ExecutionQueue.

        Args:
            max_pending: Maximum number of waiting jobs; 0 or less means
                no limit.
            name: Worker thread name.
        """
        self._max_pending = max(max_pending, 0)
        # The stop sentinel must always fit, so the queue itself is unbounded
        # and admission is checked in submit().
        self._queue: "queue.Queue[object]" = queue.Queue()
        self._name = name
        self._lock = threading.Lock()
        self._running = False
        self._waiting = 0
        self._worker: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def pending(self) -> int:
        """Jobs submitted but not yet started."""
        with self._lock:
            return self._waiting

    @property
    def max_pending(self) -> int:
        return self._max_pending

    def start(self) -> None:
        with self._lock:
            if self._running:
                return
            self._running = True
            self._worker = threading.Thread(target=self._run, name=self._name, daemon=True)
            self._worker.start()
        LOGGER.debug(f"Execution queue {self._name} started")

    def stop(self, wait: bool = True) -> None:
        """Stop accepting jobs. Jobs already queued still run.

        Args:
            wait: Block until the worker has drained the queue and exited.
        """
        with self._lock:
            if not self._running:
                return
            self._running = False
            worker = self._worker
            self._queue.put(_STOP)
        if wait and worker is not None and worker is not threading.current_thread():
            worker.join()
        LOGGER.debug(f"Execution queue {self._name} stopped")

    def submit(self, job: Job) -> None:
        """Enqueue a job without waiting for it.

        Raises:
            QueueClosedError: If the queue is not running.
            QueueFullError: If ``max_pending`` jobs are already waiting.
        """
        with self._lock:
            if not self._running:
                raise QueueClosedError("Analysis queue is not running")
            if self._max_pending and self._waiting >= self._max_pending:
                raise QueueFullError(
                    f"Analysis queue is full ({self._waiting} job(s) waiting)"
                )
            self._waiting += 1
            self._queue.put(job)

    def join(self) -> None:
        """Block until every submitted job has finished."""
        self._queue.join()

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                with self._lock:
                    self._waiting -= 1
                try:
                    item()  # type: ignore[operator]
                except Exception:
                    LOGGER.exception("Analysis job raised an unhandled exception")
            finally:
                self._queue.task_done()

    def __enter__(self) -> "ExecutionQueue":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop(wait=True)
