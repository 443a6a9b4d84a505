"""Multithreaded processor implementation - uses a bounded thread pool."""

import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, List, Sequence, TypeVar

from ..core.models import ItemResult
from ..core.protocols import BatchProcessor
from .common import DEFAULT_MAX_WORKERS, log_batch_progress, log_final_statistics

T = TypeVar("T")


def process_batch(
    items: Sequence[T],
    task: Callable[[T], ItemResult],
    on_error: Callable[[T, Exception], ItemResult],
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> List[ItemResult]:
    """
    Process a batch using a thread pool of at most ``max_workers`` threads.

    Every item is submitted up front; results are collected as they complete,
    so the returned list is in completion order. One failing item never
    cancels the others.

    Args:
        items: Items to process
        task: Per-item worker
        on_error: Converts an exception escaping ``task`` into a result
        max_workers: Upper bound on concurrently running tasks

    Returns:
        List of results in completion order
    """
    if not items:
        return []

    started_at = time.time()
    results: List[ItemResult] = []
    workers = min(max_workers, len(items))

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="snap-worker") as executor:
        # Submit all tasks
        future_to_item = {executor.submit(task, item): item for item in items}

        # Collect results as they complete
        for future in as_completed(future_to_item):
            try:
                results.append(future.result())
            except Exception as e:
                results.append(on_error(future_to_item[future], e))
            log_batch_progress(len(results), len(items), started_at, "multithread")

    log_final_statistics("multithread", time.time() - started_at, results)
    return results


class ThreadPoolBatchProcessor(BatchProcessor):
    """Thread pool batch processor bounded by ``max_workers``."""

    def __init__(self, max_workers: int = DEFAULT_MAX_WORKERS):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.max_workers = max_workers

    def process_batch(self, items, task, on_error):
        return process_batch(items, task, on_error, max_workers=self.max_workers)
