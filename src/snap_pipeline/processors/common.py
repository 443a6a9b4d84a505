"""Common functions shared across all processor implementations."""

import time
from typing import Callable, List, Sequence, Tuple, TypeVar

from ..core.logging_config import get_logger
from ..core.models import ItemResult

T = TypeVar("T")

DEFAULT_MAX_WORKERS = 8


def run_task(
    task: Callable[[T], ItemResult],
    on_error: Callable[[T, Exception], ItemResult],
    item: T,
) -> ItemResult:
    """
    Run one task, converting an escaped exception into a result.

    Workers are expected to return failures rather than raise; this is the
    fallback that keeps one bad item from aborting its siblings.
    """
    try:
        return task(item)
    except Exception as e:
        get_logger("processor").error(f"Worker raised unexpectedly: {e}", exc_info=True)
        return on_error(item, e)


def count_batch_results(results: List[ItemResult]) -> Tuple[int, int]:
    """
    Count successful and failed results in a batch.

    Args:
        results: List of item results

    Returns:
        Tuple of (succeeded, failed)
    """
    succeeded = sum(1 for result in results if result.success)
    return succeeded, len(results) - succeeded


def log_batch_progress(
    completed: int,
    total_items: int,
    started_at: float,
    processor_name: str,
):
    """Log progress of a running batch."""
    logger = get_logger("processor")
    elapsed = time.time() - started_at
    progress = (completed / total_items) * 100 if total_items else 100.0
    rate = completed / elapsed if elapsed > 0 else 0

    logger.debug(
        f"[{processor_name}] Progress: {completed}/{total_items} ({progress:.1f}%) - "
        f"Rate: {rate:.1f} items/sec"
    )


def log_final_statistics(
    processor_name: str, total_time: float, results: Sequence[ItemResult]
):
    """Log final processing statistics."""
    logger = get_logger("processor")
    succeeded, failed = count_batch_results(list(results))
    overall_rate = len(results) / total_time if total_time > 0 else 0

    logger.info(
        f"[{processor_name}] Finished {len(results)} item(s) in {total_time:.2f}s "
        f"({overall_rate:.1f} items/sec) - Success: {succeeded}, Errors: {failed}"
    )
