"""Service implementations for the image dimensions pipeline."""

import functools
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, List, Optional

from pydantic import ValidationError

from ..processors import multithread_process_batch, serial_process_batch
from .diff import diff_unprocessed
from .error_handling import BatchOperationContextManager
from .exceptions import (
    CacheError,
    ConfigurationError,
    DimensionsPipelineError,
    PreconditionError,
    StoreError,
)
from .models import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_READ_CAP,
    WIDE_ASPECT_RATIO,
    ImageDimensions,
    ObjectRecord,
    OutcomeStatus,
    PipelineRunSummary,
    ProcessingOutcome,
)
from .observability import LogContext, MetricsCollector, PerformanceMetrics, StructuredLogger
from .parsers import parse_dimensions
from .protocols import (
    ByteStreamProtocol,
    KeyValueCacheProtocol,
    LoggerProtocol,
    ObjectStoreProtocol,
)
from .reader import read_bounded_prefix
from .sniffer import ImageFormat, classify

PROCESSOR_NAMES = ("serial", "multithread")


class DimensionsCacheWriter:
    """Serializes dimensions and stores them under the object identifier."""

    def __init__(self, cache: KeyValueCacheProtocol, logger: LoggerProtocol):
        self._cache = cache
        self._logger = logger

    def write(self, identifier: str, dimensions: ImageDimensions) -> None:
        """
        Put ``{"width": w, "height": h}`` under ``identifier``.

        Raises:
            CacheError: If the cache rejects the write.
        """
        value = dimensions.to_cache_value()
        try:
            self._cache.put(identifier, value)
        except CacheError:
            raise
        except Exception as exc:
            raise CacheError(f"cache put failed for {identifier}: {exc}") from exc


class DimensionExtractionService:
    """Runs one object through open, bounded read, sniff, parse and cache write."""

    def __init__(
        self,
        object_store: ObjectStoreProtocol,
        cache_writer: DimensionsCacheWriter,
        logger: LoggerProtocol,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        object_timeout: float = 30.0,
        metrics_collector: Optional[MetricsCollector] = None,
    ):
        self._object_store = object_store
        self._cache_writer = cache_writer
        self._logger = logger
        self._chunk_size = chunk_size
        self._object_timeout = object_timeout
        self._metrics_collector = metrics_collector

    def extract(
        self, record: ObjectRecord, read_cap: int = DEFAULT_READ_CAP
    ) -> ProcessingOutcome:
        """
        Extract and cache the dimensions of a single object.

        Pipeline errors are converted into a Failed outcome and never
        raised; an unsupported format is a Skipped outcome. Any other
        exception is logged and re-raised. Every attempt is recorded as a
        metric. A cache write happens only after a complete, valid parse.
        """
        start_time = time.time()
        deadline = time.monotonic() + self._object_timeout
        log_context = LogContext(
            correlation_id=f"dims_{record.identifier}_{int(start_time * 1000)}",
            operation="extract_dimensions",
            component="dimension_extraction_service",
        ).with_metadata(identifier=record.identifier)

        outcome: Optional[ProcessingOutcome] = None
        try:
            stream = self._open_stream(record.identifier, read_cap)

            self._logger.debug(
                f"Reading up to {read_cap} bytes",
                log_context.with_operation("read_prefix"),
            )
            buffer = read_bounded_prefix(stream, read_cap, self._chunk_size, deadline)

            # Listings rarely carry a content type; the fetch response does
            content_type = record.content_type or getattr(stream, "content_type", None)
            image_format = classify(buffer, content_type, record.extension)
            if image_format is ImageFormat.UNSUPPORTED:
                self._logger.info(
                    "Unsupported format, skipping",
                    log_context,
                    content_type=content_type or "unknown",
                    extension=record.extension or "unknown",
                )
                outcome = ProcessingOutcome.skipped(
                    record.identifier,
                    "unsupported format",
                    processing_time=time.time() - start_time,
                )
            else:
                dimensions = parse_dimensions(image_format, buffer)
                if dimensions.aspect_ratio > WIDE_ASPECT_RATIO:
                    self._logger.info(
                        "Wide image detected",
                        log_context,
                        width=dimensions.width,
                        height=dimensions.height,
                        ratio=f"{dimensions.aspect_ratio:.2f}",
                    )

                self._cache_writer.write(record.identifier, dimensions)
                outcome = ProcessingOutcome.succeeded(
                    record.identifier,
                    dimensions,
                    processing_time=time.time() - start_time,
                )
                self._logger.info(
                    f"Stored dimensions {dimensions.width}x{dimensions.height}",
                    log_context,
                    format=image_format.value,
                    bytes_read=len(buffer),
                )

        except DimensionsPipelineError as e:
            outcome = ProcessingOutcome.failed(
                record.identifier,
                f"{type(e).__name__}: {e}",
                processing_time=time.time() - start_time,
            )
            self._logger.error(
                "Dimension extraction failed",
                log_context.with_metadata(error=outcome.reason),
            )
        except Exception as e:
            self._logger.error(
                "Unexpected error during dimension extraction",
                log_context.with_metadata(error=f"{type(e).__name__}: {e}"),
            )
            raise
        finally:
            self._record_metric(record, outcome, start_time)

        return outcome

    def _open_stream(self, identifier: str, read_cap: int) -> ByteStreamProtocol:
        try:
            stream = self._object_store.open_stream(identifier, max_bytes=read_cap)
        except StoreError:
            raise
        except Exception as exc:
            raise StoreError(f"could not open {identifier}: {exc}") from exc
        if stream is None:
            raise StoreError(f"object {identifier} not found")
        return stream

    def _record_metric(
        self,
        record: ObjectRecord,
        outcome: Optional[ProcessingOutcome],
        start_time: float,
    ) -> None:
        if self._metrics_collector is None:
            return
        # No outcome means an unexpected exception escaped the attempt
        status = outcome.status if outcome is not None else OutcomeStatus.FAILED
        reason = outcome.reason if outcome is not None else "unexpected error"
        self._metrics_collector.record_metric(
            PerformanceMetrics(
                operation="extract_dimensions",
                start_time=start_time,
                end_time=time.time(),
                success=status is not OutcomeStatus.FAILED,
                error_message=reason or None,
                metadata={"identifier": record.identifier, "status": status.value},
            )
        )


class ExtractionOrchestrator:
    """Drives diff, per-object extraction and summary for one prefix."""

    def __init__(
        self,
        object_store: Optional[ObjectStoreProtocol],
        cache: Optional[KeyValueCacheProtocol],
        extraction_service: DimensionExtractionService,
        logger: LoggerProtocol,
        processor: str = "multithread",
        max_workers: int = 8,
        default_read_cap: int = DEFAULT_READ_CAP,
        metrics_collector: Optional[MetricsCollector] = None,
    ):
        if processor not in PROCESSOR_NAMES:
            raise ConfigurationError(
                f"Unknown processor '{processor}', expected one of {PROCESSOR_NAMES}"
            )
        self._object_store = object_store
        self._cache = cache
        self._extraction_service = extraction_service
        self._logger = logger
        self._processor = processor
        self._max_workers = max_workers
        self._default_read_cap = default_read_cap
        self._metrics_collector = metrics_collector

    def run(
        self,
        path_prefix: str,
        read_cap: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> PipelineRunSummary:
        """
        Extract dimensions for every uncached object under ``path_prefix``.

        Args:
            path_prefix: Shared prefix for store identifiers and cache keys.
            read_cap: Maximum bytes read per object (defaults to the
                orchestrator's configured cap).
            cancel_event: When set, no further objects are started and the
                summary covers only completed objects.

        Returns:
            Aggregate counts for the run.

        Raises:
            ConfigurationError: If the effective read cap is not positive.
            PreconditionError: If the object store or cache is missing.
            StoreError: If the store listing fails.
            CacheError: If the cache listing fails.
        """
        if self._object_store is None or self._cache is None:
            raise PreconditionError("Required object store or cache bindings not available")

        start_time = time.time()
        cap = self._default_read_cap if read_cap is None else read_cap
        if cap <= 0:
            raise ConfigurationError(f"read_cap must be positive, got {cap}")
        run_context = LogContext(
            operation="run_extraction", component="extraction_orchestrator"
        ).with_metadata(prefix=path_prefix, read_cap=cap)

        cached_keys = self._list_cached_keys(path_prefix)
        self._logger.info(f"Found {len(cached_keys)} images already cached", run_context)

        store_objects = self._list_store_objects(path_prefix)
        self._logger.info(f"Found {len(store_objects)} objects in store", run_context)

        selected = diff_unprocessed(store_objects, cached_keys)
        self._logger.info(f"Found {len(selected)} new images to process", run_context)

        extract_fn = functools.partial(self._extraction_service.extract, read_cap=cap)
        with BatchOperationContextManager(
            operation_name=f"Dimension extraction under '{path_prefix}'"
        ) as batch_manager:
            outcomes = self._process(selected, extract_fn, cancel_event)
            for outcome in outcomes:
                if outcome.status is OutcomeStatus.FAILED:
                    batch_manager.add_error(outcome.reason, outcome.identifier)

        summary = self._summarize(
            path_prefix, store_objects, cached_keys, selected, outcomes, start_time
        )
        if cancel_event is not None and cancel_event.is_set():
            summary.cancelled = summary.attempted < summary.selected

        self._logger.info(
            f"Processed {summary.processed} out of {summary.selected} new images",
            run_context,
            skipped=summary.skipped,
            failed=summary.failed,
            cancelled=summary.cancelled,
            elapsed_s=f"{summary.elapsed_seconds:.2f}",
        )
        if self._metrics_collector is not None:
            metrics = self._metrics_collector.get_summary("extract_dimensions")
            if metrics:
                self._logger.debug("Extraction metrics", run_context, **metrics)

        return summary

    def _process(self, selected, extract_fn, cancel_event) -> List[ProcessingOutcome]:
        if self._processor == "serial":
            return serial_process_batch(selected, extract_fn, cancel_event=cancel_event)
        return multithread_process_batch(
            selected, extract_fn, cancel_event=cancel_event, max_workers=self._max_workers
        )

    def _list_cached_keys(self, prefix: str) -> List[str]:
        try:
            return list(self._cache.list_keys(prefix))
        except CacheError:
            raise
        except Exception as exc:
            raise CacheError(f"cache listing failed for '{prefix}': {exc}") from exc

    def _list_store_objects(self, prefix: str) -> List[ObjectRecord]:
        try:
            return list(self._object_store.list_objects(prefix))
        except StoreError:
            raise
        except Exception as exc:
            raise StoreError(f"store listing failed for '{prefix}': {exc}") from exc

    @staticmethod
    def _summarize(
        prefix: str,
        store_objects: List[ObjectRecord],
        cached_keys: List[str],
        selected: List[ObjectRecord],
        outcomes: List[ProcessingOutcome],
        start_time: float,
    ) -> PipelineRunSummary:
        counts = {status: 0 for status in OutcomeStatus}
        for outcome in outcomes:
            counts[outcome.status] += 1

        return PipelineRunSummary(
            prefix=prefix,
            total=len(store_objects),
            existing=len(set(cached_keys)),
            selected=len(selected),
            attempted=len(outcomes),
            processed=counts[OutcomeStatus.SUCCESS],
            skipped=counts[OutcomeStatus.SKIPPED],
            failed=counts[OutcomeStatus.FAILED],
            elapsed_seconds=time.time() - start_time,
        )


class DimensionsMapService:
    """Read-through of cached dimensions for the presentation layer."""

    def __init__(
        self,
        cache: Optional[KeyValueCacheProtocol],
        logger: LoggerProtocol,
        max_workers: int = 8,
    ):
        self._cache = cache
        self._logger = logger
        self._max_workers = max_workers

    def count_cached(self, prefix: str) -> int:
        """Number of cache entries under ``prefix``."""
        return len(self._list_keys(prefix))

    def get_dimensions_map(self, prefix: str) -> Dict[str, ImageDimensions]:
        """
        Map every cached identifier under ``prefix`` to its dimensions.

        Entries that cannot be read or do not hold valid dimensions are
        logged and left out of the map.
        """
        keys = self._list_keys(prefix)
        dimensions_map: Dict[str, ImageDimensions] = {}
        if not keys:
            return dimensions_map

        max_workers = min(self._max_workers, len(keys))
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            future_to_key = {executor.submit(self._read_entry, key): key for key in keys}
            for future in as_completed(future_to_key):
                dimensions = future.result()
                if dimensions is not None:
                    dimensions_map[future_to_key[future]] = dimensions

        return dict(sorted(dimensions_map.items()))

    def _list_keys(self, prefix: str) -> List[str]:
        if self._cache is None:
            raise PreconditionError("Cache binding not available")
        try:
            return list(self._cache.list_keys(prefix))
        except CacheError:
            raise
        except Exception as exc:
            raise CacheError(f"cache listing failed for '{prefix}': {exc}") from exc

    def _read_entry(self, key: str) -> Optional[ImageDimensions]:
        try:
            value = self._cache.get(key)
        except Exception as exc:
            self._logger.error(f"Error fetching cache value for key {key}: {exc}")
            return None

        if not value:
            self._logger.warning(f"Value for key {key} was null or empty")
            return None

        try:
            return ImageDimensions.from_cache_value(value)
        except ValidationError as exc:
            self._logger.error(f"Invalid dimensions stored under key {key}: {exc}")
            return None


def run_extraction(
    object_store: Optional[ObjectStoreProtocol],
    cache: Optional[KeyValueCacheProtocol],
    path_prefix: str,
    read_cap: int = DEFAULT_READ_CAP,
    *,
    processor: str = "multithread",
    max_workers: int = 8,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    object_timeout: float = 30.0,
    cancel_event: Optional[threading.Event] = None,
    logger: Optional[LoggerProtocol] = None,
) -> PipelineRunSummary:
    """Build an orchestrator around ``object_store`` and ``cache`` and run it once."""
    if logger is None:
        logger = StructuredLogger("image-dimensions")

    extraction_service = DimensionExtractionService(
        object_store,
        DimensionsCacheWriter(cache, logger),
        logger,
        chunk_size=chunk_size,
        object_timeout=object_timeout,
    )
    orchestrator = ExtractionOrchestrator(
        object_store,
        cache,
        extraction_service,
        logger,
        processor=processor,
        max_workers=max_workers,
        default_read_cap=read_cap,
    )
    return orchestrator.run(path_prefix, read_cap=read_cap, cancel_event=cancel_event)
