"""Tests for processor modules."""

import threading
import time

import pytest

from snap_pipeline.core.exceptions import Stage
from snap_pipeline.core.models import ItemFailure, ItemSuccess
from snap_pipeline.processors import (
    SerialBatchProcessor,
    ThreadPoolBatchProcessor,
    multithread_process_batch,
    serial_process_batch,
)
from snap_pipeline.processors.common import count_batch_results


def _task(n: int):
    if n % 3 == 2:
        return ItemFailure(source=str(n), stage=Stage.FETCH, reason="image not found", index=n)
    return ItemSuccess(source=str(n), location=f"loc/{n}", name=f"{n}.jpg", index=n)


def _on_error(n: int, exc: Exception):
    return ItemFailure(source=str(n), stage=Stage.UNKNOWN, reason=str(exc), index=n)


def _exploding_task(n: int):
    if n == 1:
        raise RuntimeError("boom")
    return _task(n)


class TestSerialProcessor:
    """Tests for the serial processor."""

    def test_results_in_input_order(self):
        results = serial_process_batch(list(range(6)), _task, _on_error)
        assert [r.index for r in results] == list(range(6))
        assert count_batch_results(results) == (4, 2)

    def test_escaped_exception_becomes_failure(self):
        results = serial_process_batch([0, 1, 3], _exploding_task, _on_error)
        assert len(results) == 3
        assert results[1].success is False
        assert results[1].stage is Stage.UNKNOWN
        assert results[1].reason == "boom"
        assert results[0].success and results[2].success

    def test_empty_batch(self):
        assert serial_process_batch([], _task, _on_error) == []

    def test_class_delegates(self):
        results = SerialBatchProcessor().process_batch([0, 1], _task, _on_error)
        assert [r.index for r in results] == [0, 1]


class TestMultithreadProcessor:
    """Tests for the thread pool processor."""

    def test_every_item_has_exactly_one_result(self):
        results = multithread_process_batch(list(range(20)), _task, _on_error, max_workers=4)
        assert sorted(r.index for r in results) == list(range(20))
        assert count_batch_results(results) == (14, 6)

    def test_escaped_exception_does_not_cancel_siblings(self):
        results = multithread_process_batch([0, 1, 3, 4], _exploding_task, _on_error)
        by_index = {r.index: r for r in results}
        assert len(by_index) == 4
        assert by_index[1].stage is Stage.UNKNOWN
        assert by_index[1].reason == "boom"
        assert all(by_index[n].success for n in (0, 3, 4))

    def test_empty_batch(self):
        assert multithread_process_batch([], _task, _on_error) == []

    def test_concurrency_is_bounded(self):
        lock = threading.Lock()
        state = {"running": 0, "peak": 0}

        def slow_task(n):
            with lock:
                state["running"] += 1
                state["peak"] = max(state["peak"], state["running"])
            time.sleep(0.02)
            with lock:
                state["running"] -= 1
            return _task(0)

        multithread_process_batch(list(range(12)), slow_task, _on_error, max_workers=3)
        assert 1 <= state["peak"] <= 3

    def test_runs_on_worker_threads(self):
        names = set()

        def record_thread(n):
            names.add(threading.current_thread().name)
            return _task(0)

        multithread_process_batch([0, 1, 2], record_thread, _on_error, max_workers=2)
        assert all(name.startswith("snap-worker") for name in names)

    def test_class_uses_max_workers(self):
        processor = ThreadPoolBatchProcessor(max_workers=2)
        results = processor.process_batch(list(range(5)), _task, _on_error)
        assert processor.max_workers == 2
        assert len(results) == 5

    def test_class_rejects_non_positive_workers(self):
        with pytest.raises(ValueError):
            ThreadPoolBatchProcessor(max_workers=0)
