# -*- coding: utf-8 -*-
"""
Analysis Task Queue

Evidence submission returns as soon as the record exists; the analysis
runs later. Submission enqueues a task message keyed by the record id and a
pool of daemon worker threads consumes the queue, calling the handler
(normally ``VerificationEngine.run_analysis``) once per message.

Semantics:
    - Single attempt per message. Handler exceptions are logged and
      counted, never retried.
    - A record id already waiting in the queue is not enqueued twice. Once
      a worker picks the message up the id may be enqueued again.
    - Enqueue never blocks. When a bounded queue is full the id is
      refused and the record stays ``pending_analysis`` until requeued.
    - ``drain`` processes everything synchronously on the calling thread,
      which is how tests run the pipeline deterministically.

Example:
    >>> q = AnalysisTaskQueue(worker_count=2)
    >>> q.enqueue("VER-abc")
    True
    >>> q.drain(lambda record_id: None)
    1

Author: AgriMRV Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import Callable, List, Optional, Set

from agrimrv.metrics import record_processing_error, update_queue_depth

logger = logging.getLogger(__name__)

TaskHandler = Callable[[str], object]

_STOP = object()
_POLL_SECONDS = 0.5


class AnalysisTaskQueue:
    """FIFO of record ids awaiting analysis plus the workers draining it.

    Attributes:
        worker_count: Number of worker threads started by ``start``.
        processed_count: Messages handled (successfully or not).
        failed_count: Messages whose handler raised.
        rejected_count: Enqueue attempts refused because the queue was full.
    """

    def __init__(self, worker_count: int = 4, maxsize: int = 0) -> None:
        self.worker_count = max(1, worker_count)
        self._queue: "queue.Queue[object]" = queue.Queue(maxsize=maxsize)
        self._queued: Set[str] = set()
        self._lock = threading.Lock()
        self._workers: List[threading.Thread] = []
        self._handler: Optional[TaskHandler] = None
        self._running = False
        self.processed_count = 0
        self.failed_count = 0
        self.rejected_count = 0

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------

    def enqueue(self, record_id: str) -> bool:
        """Queue an analysis task without blocking.

        Returns:
            False if the id is already queued or the queue is full.
        """
        with self._lock:
            if record_id in self._queued:
                logger.debug("Analysis task for %s already queued", record_id)
                return False
            self._queued.add(record_id)
        try:
            self._queue.put_nowait(record_id)
        except queue.Full:
            with self._lock:
                self._queued.discard(record_id)
                self.rejected_count += 1
            record_processing_error("task_queue", "QueueFull")
            logger.warning(
                "Analysis queue full (maxsize=%d); %s left for requeue",
                self._queue.maxsize, record_id,
            )
            return False
        update_queue_depth(self.pending_count)
        logger.debug("Queued analysis task for %s", record_id)
        return True

    @property
    def pending_count(self) -> int:
        """Number of messages waiting to be picked up."""
        with self._lock:
            return len(self._queued)

    @property
    def is_running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Consumer side
    # ------------------------------------------------------------------

    def _take(self, item: object) -> Optional[str]:
        if item is _STOP:
            return None
        record_id = str(item)
        with self._lock:
            self._queued.discard(record_id)
        update_queue_depth(self.pending_count)
        return record_id

    def _handle(self, handler: TaskHandler, record_id: str) -> None:
        failed = False
        try:
            handler(record_id)
        except Exception as exc:
            failed = True
            record_processing_error("task_queue", type(exc).__name__)
            logger.error(
                "Analysis task for %s failed: %s", record_id, exc, exc_info=True,
            )
        finally:
            with self._lock:
                self.processed_count += 1
                if failed:
                    self.failed_count += 1

    def _worker_loop(self) -> None:
        while True:
            try:
                item = self._queue.get(timeout=_POLL_SECONDS)
            except queue.Empty:
                if not self._running:
                    return
                continue
            try:
                record_id = self._take(item)
                if record_id is None:
                    return
                self._handle(self._handler, record_id)
            finally:
                self._queue.task_done()

    def start(self, handler: TaskHandler) -> None:
        """Start the worker pool with ``handler`` as the task consumer."""
        if self._running:
            logger.debug("AnalysisTaskQueue already running; skipping start")
            return
        self._handler = handler
        self._running = True
        self._workers = [
            threading.Thread(
                target=self._worker_loop,
                name=f"agrimrv-analysis-{i}",
                daemon=True,
            )
            for i in range(self.worker_count)
        ]
        for worker in self._workers:
            worker.start()
        logger.info("AnalysisTaskQueue started with %d workers", self.worker_count)

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the workers after the messages already queued are handled."""
        if not self._running:
            return
        for _ in self._workers:
            self._queue.put(_STOP)
        for worker in self._workers:
            worker.join(timeout=timeout)
        self._running = False
        self._workers = []
        logger.info(
            "AnalysisTaskQueue stopped: processed=%d failed=%d",
            self.processed_count, self.failed_count,
        )

    def join(self) -> None:
        """Block until every queued message has been handled."""
        self._queue.join()

    def drain(self, handler: TaskHandler) -> int:
        """Handle every queued message on the calling thread.

        Returns:
            Number of messages handled.
        """
        handled = 0
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return handled
            try:
                record_id = self._take(item)
                if record_id is None:
                    continue
                self._handle(handler, record_id)
                handled += 1
            finally:
                self._queue.task_done()


__all__ = [
    "AnalysisTaskQueue",
    "TaskHandler",
]
