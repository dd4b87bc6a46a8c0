"""Core utilities and shared components for the image dimensions pipeline."""

from .logging_config import get_logger, setup_logger
from .exceptions import (
    CacheError,
    ConfigurationError,
    DimensionsPipelineError,
    HeaderParseError,
    PreconditionError,
    ReadTimeoutError,
    StoreError,
)
from .models import (
    ImageDimensions,
    ObjectRecord,
    OutcomeStatus,
    PipelineConfig,
    PipelineRunSummary,
    ProcessingOutcome,
)
from .parsers import parse_dimensions, parse_jpeg_dimensions, parse_png_dimensions
from .reader import read_bounded_prefix
from .sniffer import ImageFormat, classify
from .diff import diff_unprocessed, is_directory_marker

__all__ = [
    "ImageDimensions",
    "ObjectRecord",
    "OutcomeStatus",
    "PipelineConfig",
    "PipelineRunSummary",
    "ProcessingOutcome",
    "ImageFormat",
    "classify",
    "diff_unprocessed",
    "is_directory_marker",
    "parse_dimensions",
    "parse_jpeg_dimensions",
    "parse_png_dimensions",
    "read_bounded_prefix",
    "setup_logger",
    "get_logger",
    "DimensionsPipelineError",
    "ConfigurationError",
    "PreconditionError",
    "StoreError",
    "ReadTimeoutError",
    "CacheError",
    "HeaderParseError",
]
