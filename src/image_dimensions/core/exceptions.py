"""Custom exceptions for the image dimensions pipeline."""


class DimensionsPipelineError(Exception):
    """Base exception for all image dimensions pipeline errors."""


class ConfigurationError(DimensionsPipelineError):
    """Error raised for invalid configuration options."""


class PreconditionError(DimensionsPipelineError):
    """Error raised when a required object store or cache binding is missing."""


class StoreError(DimensionsPipelineError):
    """Error raised for object store failures (list, open, read)."""


class ReadTimeoutError(StoreError):
    """Error raised when reading an object exceeds its wall-clock budget."""


class CacheError(DimensionsPipelineError):
    """Error raised for key-value cache failures."""


class HeaderParseError(DimensionsPipelineError):
    """Error raised when image header bytes do not yield dimensions."""
