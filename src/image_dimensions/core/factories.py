"""Factory classes for creating configured service instances."""

from typing import TYPE_CHECKING, Any, Optional

import boto3
from botocore.config import Config

from .models import PipelineConfig
from .observability import MetricsCollector, StructuredLogger
from .protocols import (
    KeyValueCacheProtocol,
    LoggerProtocol,
    ObjectStoreProtocol,
    S3ClientProtocol,
)
from .services import (
    DimensionExtractionService,
    DimensionsCacheWriter,
    DimensionsMapService,
    ExtractionOrchestrator,
)
from .stores import S3KeyValueCache, S3ObjectStore

if TYPE_CHECKING:
    from mypy_boto3_s3.client import S3Client


class LoggerFactory:
    """Factory for creating logger instances."""

    @staticmethod
    def create_logger(name: str, debug: bool = False) -> StructuredLogger:
        """Create a configured structured logger."""
        return StructuredLogger(name, level="DEBUG" if debug else None)


class S3ClientFactory:
    """Factory for creating S3 client instances."""

    @staticmethod
    def create_s3_client(timeout: Optional[float] = None, **kwargs: Any) -> "S3Client":
        """
        Create S3 client with optional configuration.

        ``timeout`` bounds both connection setup and socket reads so a
        hanging connection cannot stall a worker indefinitely.
        """
        if timeout is not None and "config" not in kwargs:
            kwargs["config"] = Config(
                connect_timeout=timeout,
                read_timeout=timeout,
                retries={"max_attempts": 3, "mode": "standard"},
            )
        session = boto3.Session()
        return session.client("s3", **kwargs)  # type: ignore


class StoreFactory:
    """Factory for the S3-backed store and cache adapters."""

    @staticmethod
    def create_object_store(
        config: PipelineConfig, s3_client: Optional[S3ClientProtocol] = None
    ) -> Optional[ObjectStoreProtocol]:
        """Object store for ``config.bucket``, or None when no bucket is configured."""
        if not config.bucket:
            return None
        if s3_client is None:
            s3_client = S3ClientFactory.create_s3_client(timeout=config.object_timeout)
        return S3ObjectStore(s3_client, config.bucket, range_cap=config.read_cap)

    @staticmethod
    def create_cache(
        config: PipelineConfig, s3_client: Optional[S3ClientProtocol] = None
    ) -> Optional[KeyValueCacheProtocol]:
        """Cache for ``config.cache_bucket``, or None when no bucket is configured."""
        if not config.cache_bucket:
            return None
        if s3_client is None:
            s3_client = S3ClientFactory.create_s3_client(timeout=config.object_timeout)
        return S3KeyValueCache(s3_client, config.cache_bucket, config.cache_namespace)


class ProcessingPipelineFactory:
    """Factory for creating the complete extraction pipeline."""

    @staticmethod
    def create_orchestrator(
        config: PipelineConfig,
        object_store: Optional[ObjectStoreProtocol],
        cache: Optional[KeyValueCacheProtocol],
        logger: Optional[LoggerProtocol] = None,
        metrics_collector: Optional[MetricsCollector] = None,
    ) -> ExtractionOrchestrator:
        """Create a fully configured orchestrator around explicit store and cache."""
        if logger is None:
            logger = LoggerFactory.create_logger("image-dimensions", debug=config.debug)
        if metrics_collector is None:
            metrics_collector = MetricsCollector()

        cache_writer = DimensionsCacheWriter(cache, logger)
        extraction_service = DimensionExtractionService(
            object_store,
            cache_writer,
            logger,
            chunk_size=config.chunk_size,
            object_timeout=config.object_timeout,
            metrics_collector=metrics_collector,
        )
        return ExtractionOrchestrator(
            object_store=object_store,
            cache=cache,
            extraction_service=extraction_service,
            logger=logger,
            processor=config.processor,
            max_workers=config.max_workers,
            default_read_cap=config.read_cap,
            metrics_collector=metrics_collector,
        )

    @staticmethod
    def create_dimensions_map_service(
        config: PipelineConfig,
        cache: Optional[KeyValueCacheProtocol],
        logger: Optional[LoggerProtocol] = None,
    ) -> DimensionsMapService:
        """Create the read-through service for cached dimensions."""
        if logger is None:
            logger = LoggerFactory.create_logger("image-dimensions", debug=config.debug)
        return DimensionsMapService(cache, logger, max_workers=config.max_workers)
