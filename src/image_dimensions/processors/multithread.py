"""Multithreaded processor implementation - uses thread pool for parallelism."""

import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Callable, Dict, List, Optional

from ..core.logging_config import get_logger
from ..core.models import ObjectRecord, ProcessingOutcome

# How often the collector wakes up to check for cancellation
POLL_INTERVAL = 0.1


def _collect(future: Future, record: ObjectRecord) -> ProcessingOutcome:
    try:
        return future.result()
    except Exception as e:
        logger = get_logger("processor")
        logger.error(f"[{record.identifier}] Unexpected failure: {e}", exc_info=True)
        return ProcessingOutcome.failed(record.identifier, f"unexpected error: {e}")


def process_batch(
    batch: List[ObjectRecord],
    extract_fn: Callable[[ObjectRecord], ProcessingOutcome],
    cancel_event: Optional[threading.Event] = None,
    max_workers: int = 8,
) -> List[ProcessingOutcome]:
    """
    Process a batch of objects using a thread pool.

    Store reads and cache writes are I/O bound, so threads overlap them
    well. Every submitted object yields an outcome unless cancellation
    removes it from the queue before it starts.

    Args:
        batch: Objects to process
        extract_fn: Per-object extraction callable
        cancel_event: When set, queued objects are cancelled and only
            in-flight ones are awaited
        max_workers: Upper bound on worker threads

    Returns:
        Outcomes in completion order
    """
    logger = get_logger("processor")
    results: List[ProcessingOutcome] = []
    if not batch:
        return results
    if cancel_event is not None and cancel_event.is_set():
        logger.warning(f"Cancellation requested; {len(batch)} objects not started")
        return results

    workers = max(1, min(max_workers, len(batch)))

    with ThreadPoolExecutor(max_workers=workers) as executor:
        future_to_record: Dict[Future, ObjectRecord] = {
            executor.submit(extract_fn, record): record for record in batch
        }
        pending = set(future_to_record)

        while pending:
            if cancel_event is not None and cancel_event.is_set():
                cancelled = {future for future in pending if future.cancel()}
                logger.warning(
                    f"Cancellation requested; {len(cancelled)} queued objects dropped"
                )
                pending -= cancelled
                wait(pending)

            done, pending = wait(
                pending, timeout=POLL_INTERVAL, return_when=FIRST_COMPLETED
            )
            for future in done:
                results.append(_collect(future, future_to_record[future]))

    return results
