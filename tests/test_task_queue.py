"""Tests for the analysis task queue."""

import threading

from agrimrv.task_queue import AnalysisTaskQueue


class TestEnqueue:
    """Producer side."""

    def test_enqueue_and_pending(self):
        q = AnalysisTaskQueue()

        assert q.enqueue("VER-1") is True
        assert q.enqueue("VER-2") is True
        assert q.pending_count == 2

    def test_duplicate_while_queued_is_ignored(self):
        q = AnalysisTaskQueue()

        assert q.enqueue("VER-1") is True
        assert q.enqueue("VER-1") is False
        assert q.pending_count == 1

    def test_can_requeue_after_pickup(self):
        q = AnalysisTaskQueue()
        q.enqueue("VER-1")
        q.drain(lambda record_id: None)

        assert q.enqueue("VER-1") is True

    def test_full_queue_refuses_without_blocking(self):
        q = AnalysisTaskQueue(maxsize=1)

        assert q.enqueue("VER-1") is True
        assert q.enqueue("VER-2") is False
        assert q.pending_count == 1
        assert q.rejected_count == 1

        q.drain(lambda record_id: None)
        assert q.enqueue("VER-2") is True


class TestDrain:
    """Synchronous consumption."""

    def test_drain_handles_in_fifo_order(self):
        q = AnalysisTaskQueue()
        seen = []
        for record_id in ("VER-1", "VER-2", "VER-3"):
            q.enqueue(record_id)

        assert q.drain(seen.append) == 3
        assert seen == ["VER-1", "VER-2", "VER-3"]
        assert q.pending_count == 0

    def test_handler_failure_is_counted_not_retried(self):
        q = AnalysisTaskQueue()
        calls = []

        def handler(record_id):
            calls.append(record_id)
            raise RuntimeError("store offline")

        q.enqueue("VER-1")
        q.enqueue("VER-2")

        assert q.drain(handler) == 2
        assert calls == ["VER-1", "VER-2"]
        assert q.failed_count == 2
        assert q.processed_count == 2
        assert q.drain(handler) == 0


class TestWorkers:
    """Background worker threads."""

    def test_workers_process_every_message(self):
        q = AnalysisTaskQueue(worker_count=3)
        seen = set()
        lock = threading.Lock()

        def handler(record_id):
            with lock:
                seen.add(record_id)

        q.start(handler)
        try:
            for i in range(20):
                q.enqueue(f"VER-{i}")
            q.join()
        finally:
            q.stop()

        assert seen == {f"VER-{i}" for i in range(20)}
        assert q.processed_count == 20
        assert q.is_running is False

    def test_start_twice_is_noop(self):
        q = AnalysisTaskQueue(worker_count=1)
        q.start(lambda record_id: None)
        try:
            q.start(lambda record_id: None)
            assert q.is_running is True
        finally:
            q.stop()
