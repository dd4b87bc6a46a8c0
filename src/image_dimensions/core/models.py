"""Shared data models for the image dimensions pipeline."""

import os
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .exceptions import ConfigurationError

DEFAULT_READ_CAP = 300 * 1024
DEFAULT_CHUNK_SIZE = 64 * 1024

SCHEDULED_PREFIX = "photos/mainImages/"
SCHEDULED_READ_CAP = 32 * 1024
ON_DEMAND_PREFIX = "portfolio/"
ON_DEMAND_READ_CAP = DEFAULT_READ_CAP

WIDE_ASPECT_RATIO = 1.8


class ObjectRecord(BaseModel):
    """An object listed from the object store."""

    model_config = ConfigDict(frozen=True)

    identifier: str
    size: int = 0
    content_type: Optional[str] = None
    uploaded_at: Optional[datetime] = None

    @property
    def extension(self) -> Optional[str]:
        """Lower-cased file extension of the identifier, without the dot."""
        name = self.identifier.rsplit("/", 1)[-1]
        if "." not in name:
            return None
        suffix = name.rsplit(".", 1)[-1].lower()
        return suffix or None


class ImageDimensions(BaseModel):
    """Pixel dimensions recovered from an image header."""

    width: int = Field(gt=0)
    height: int = Field(gt=0)

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height

    def to_cache_value(self) -> str:
        """Serialize as the JSON document stored in the cache."""
        return self.model_dump_json()

    @classmethod
    def from_cache_value(cls, value: str) -> "ImageDimensions":
        return cls.model_validate_json(value)


class OutcomeStatus(str, Enum):
    """Result category for a single object."""

    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


class ProcessingOutcome(BaseModel):
    """Result of processing a single object."""

    identifier: str
    status: OutcomeStatus
    dimensions: Optional[ImageDimensions] = None
    reason: str = ""
    processing_time: float = 0.0

    @property
    def success(self) -> bool:
        return self.status is OutcomeStatus.SUCCESS

    @classmethod
    def succeeded(
        cls, identifier: str, dimensions: ImageDimensions, processing_time: float = 0.0
    ) -> "ProcessingOutcome":
        return cls(
            identifier=identifier,
            status=OutcomeStatus.SUCCESS,
            dimensions=dimensions,
            processing_time=processing_time,
        )

    @classmethod
    def skipped(
        cls, identifier: str, reason: str, processing_time: float = 0.0
    ) -> "ProcessingOutcome":
        return cls(
            identifier=identifier,
            status=OutcomeStatus.SKIPPED,
            reason=reason,
            processing_time=processing_time,
        )

    @classmethod
    def failed(
        cls, identifier: str, reason: str, processing_time: float = 0.0
    ) -> "ProcessingOutcome":
        return cls(
            identifier=identifier,
            status=OutcomeStatus.FAILED,
            reason=reason,
            processing_time=processing_time,
        )


class PipelineRunSummary(BaseModel):
    """Aggregate counts for one extraction run."""

    prefix: str = ""
    total: int = 0
    existing: int = 0
    selected: int = 0
    attempted: int = 0
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    cancelled: bool = False
    elapsed_seconds: float = 0.0

    def to_payload(self) -> Dict[str, Any]:
        """JSON payload returned by the trigger endpoints."""
        return {
            "status": "cancelled" if self.cancelled else "success",
            "processed": self.processed,
            "total": self.total,
            "existing": self.existing,
        }


class PipelineConfig(BaseModel):
    """Configuration for an extraction run."""

    bucket: str = ""
    cache_bucket: str = ""
    cache_namespace: str = ""
    prefix: str = ON_DEMAND_PREFIX
    read_cap: int = Field(default=DEFAULT_READ_CAP, gt=0)
    chunk_size: int = Field(default=DEFAULT_CHUNK_SIZE, gt=0)
    processor: Literal["serial", "multithread"] = "multithread"
    max_workers: int = Field(default=8, gt=0)
    object_timeout: float = Field(default=30.0, gt=0)
    api_token: Optional[str] = None
    debug: bool = False

    @classmethod
    def from_env(
        cls, defaults: Optional[Dict[str, Any]] = None, **overrides: Any
    ) -> "PipelineConfig":
        """
        Build a configuration from ``DIMS_*`` environment variables.

        Precedence is ``defaults`` < environment < keyword overrides.
        Overrides whose value is ``None`` are ignored so unset CLI flags
        fall through.

        Raises:
            ConfigurationError: If any value fails validation.
        """
        env_map = {
            "bucket": "DIMS_BUCKET",
            "cache_bucket": "DIMS_CACHE_BUCKET",
            "cache_namespace": "DIMS_CACHE_NAMESPACE",
            "prefix": "DIMS_PREFIX",
            "read_cap": "DIMS_READ_CAP",
            "chunk_size": "DIMS_CHUNK_SIZE",
            "processor": "DIMS_PROCESSOR",
            "max_workers": "DIMS_MAX_WORKERS",
            "object_timeout": "DIMS_OBJECT_TIMEOUT",
            "api_token": "DIMS_API_TOKEN",
            "debug": "DIMS_DEBUG",
        }
        values: Dict[str, Any] = dict(defaults or {})
        for field_name, env_var in env_map.items():
            raw = os.getenv(env_var)
            if raw is not None and raw != "":
                values[field_name] = raw
        values.update({k: v for k, v in overrides.items() if v is not None})

        try:
            return cls(**values)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid pipeline configuration: {exc}") from exc

    @classmethod
    def scheduled_profile(cls, **overrides: Any) -> "PipelineConfig":
        """Configuration used by timer-driven runs."""
        defaults = {"prefix": SCHEDULED_PREFIX, "read_cap": SCHEDULED_READ_CAP}
        return cls.from_env(defaults, **overrides)

    @classmethod
    def on_demand_profile(cls, **overrides: Any) -> "PipelineConfig":
        """Configuration used by runs requested over HTTP or the CLI."""
        defaults = {"prefix": ON_DEMAND_PREFIX, "read_cap": ON_DEMAND_READ_CAP}
        return cls.from_env(defaults, **overrides)
