"""Serial processor implementation - processes items one by one."""

import time
from typing import Callable, List, Sequence, TypeVar

from ..core.models import ItemResult
from ..core.protocols import BatchProcessor
from .common import log_batch_progress, log_final_statistics, run_task

T = TypeVar("T")


def process_batch(
    items: Sequence[T],
    task: Callable[[T], ItemResult],
    on_error: Callable[[T, Exception], ItemResult],
) -> List[ItemResult]:
    """
    Processes a batch serially, one by one, in the current thread.

    Results come back in input order, which makes this the deterministic
    variant used by tests and debugging sessions.

    Args:
        items: Items to process.
        task: Per-item worker; expected to return a result rather than raise.
        on_error: Converts an exception escaping ``task`` into a result.

    Returns:
        A list of results, one for each item.
    """
    started_at = time.time()
    results = []

    for item in items:
        results.append(run_task(task, on_error, item))
        log_batch_progress(len(results), len(items), started_at, "serial")

    log_final_statistics("serial", time.time() - started_at, results)
    return results


class SerialBatchProcessor(BatchProcessor):
    """Serial batch processor implementation."""

    def process_batch(self, items, task, on_error):
        return process_batch(items, task, on_error)
