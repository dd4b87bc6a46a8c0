"""Serial processor implementation - processes objects one by one."""

import threading
from typing import Callable, List, Optional

from ..core.logging_config import get_logger
from ..core.models import ObjectRecord, ProcessingOutcome


def process_batch(
    batch: List[ObjectRecord],
    extract_fn: Callable[[ObjectRecord], ProcessingOutcome],
    cancel_event: Optional[threading.Event] = None,
) -> List[ProcessingOutcome]:
    """
    Processes a batch of objects serially, one by one, in the current thread.

    An unexpected exception from ``extract_fn`` is recorded as a failed
    outcome for that object and the loop moves on.

    Args:
        batch: Objects to process.
        extract_fn: Per-object extraction callable.
        cancel_event: When set, no further objects are started.

    Returns:
        One outcome per object processed before cancellation.
    """
    logger = get_logger("processor")
    results: List[ProcessingOutcome] = []

    for record in batch:
        if cancel_event is not None and cancel_event.is_set():
            logger.warning(
                f"Cancellation requested; {len(batch) - len(results)} objects not started"
            )
            break
        try:
            results.append(extract_fn(record))
        except Exception as e:
            logger.error(f"[{record.identifier}] Unexpected failure: {e}", exc_info=True)
            results.append(ProcessingOutcome.failed(record.identifier, f"unexpected error: {e}"))

    return results
