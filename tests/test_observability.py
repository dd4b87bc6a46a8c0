"""Tests for structured logging and metrics collection."""

import threading
from unittest.mock import patch

from image_dimensions.core.factories import LoggerFactory
from image_dimensions.core.observability import (
    LogContext,
    MetricsCollector,
    PerformanceMetrics,
    StructuredLogger,
)


class TestLogContext:
    """Tests for LogContext."""

    def test_with_operation_keeps_correlation_id(self):
        context = LogContext(operation="run", component="orchestrator")

        derived = context.with_operation("read_prefix")

        assert derived.correlation_id == context.correlation_id
        assert derived.operation == "read_prefix"
        assert derived.component == "orchestrator"

    def test_with_metadata_does_not_mutate_original(self):
        context = LogContext().with_metadata(identifier="p/a.jpg")

        derived = context.with_metadata(error="boom")

        assert context.metadata == {"identifier": "p/a.jpg"}
        assert derived.metadata == {"identifier": "p/a.jpg", "error": "boom"}


class TestStructuredLogger:
    """Tests for StructuredLogger message formatting."""

    def test_context_and_metadata_are_rendered(self):
        logger = StructuredLogger("test-structured")
        context = LogContext(correlation_id="abc", operation="extract").with_metadata(
            identifier="p/a.jpg"
        )

        with patch.object(logger.logger, "info") as mock_info:
            logger.info("Stored", context, width=10)

        mock_info.assert_called_once_with(
            "[extract] [abc] Stored (identifier=p/a.jpg, width=10)"
        )

    def test_kwargs_without_context(self):
        logger = StructuredLogger("test-structured-kwargs")

        with patch.object(logger.logger, "warning") as mock_warning:
            logger.warning("Missing", has_cache=False)

        mock_warning.assert_called_once_with("Missing (has_cache=False)")

    def test_factory_debug_level(self):
        logger = LoggerFactory.create_logger("test-factory-debug", debug=True)

        assert logger.logger.level == 10


class TestMetricsCollector:
    """Tests for MetricsCollector."""

    def test_summary(self):
        collector = MetricsCollector()
        collector.record_metric(PerformanceMetrics("extract", 0.0, 1.0, True))
        collector.record_metric(PerformanceMetrics("extract", 0.0, 3.0, False, "boom"))
        collector.record_metric(PerformanceMetrics("other", 0.0, 9.0, True))

        summary = collector.get_summary("extract")

        assert summary["total_operations"] == 2
        assert summary["failed_operations"] == 1
        assert summary["success_rate"] == 0.5
        assert summary["avg_duration"] == 2.0
        assert summary["max_duration"] == 3.0

    def test_empty_summary(self):
        assert MetricsCollector().get_summary() == {}

    def test_thread_safe_recording(self):
        collector = MetricsCollector()

        def record():
            for _ in range(100):
                collector.record_metric(PerformanceMetrics("extract", 0.0, 0.1, True))

        threads = [threading.Thread(target=record) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(collector.get_metrics("extract")) == 400
        collector.clear_metrics()
        assert collector.get_metrics() == []
