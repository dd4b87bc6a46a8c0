"""Protocol definitions for dependency injection and testability."""

from typing import Any, Dict, List, Optional, Protocol

from .models import ObjectRecord


class ByteStreamProtocol(Protocol):
    """A readable byte stream such as a botocore StreamingBody."""

    def read(self, amt: Optional[int] = None) -> bytes:
        """Read up to ``amt`` bytes; an empty result means end of stream."""
        ...

    def close(self) -> None:
        """Release the underlying connection."""
        ...


class ObjectStoreProtocol(Protocol):
    """Object store capability consumed by the pipeline."""

    def list_objects(self, prefix: str) -> List[ObjectRecord]:
        """List objects whose identifier starts with ``prefix``."""
        ...

    def open_stream(
        self, identifier: str, max_bytes: Optional[int] = None
    ) -> Optional[ByteStreamProtocol]:
        """
        Open a byte stream for ``identifier``; ``None`` when it does not exist.

        ``max_bytes`` lets a store fetch only the leading bytes the caller
        will read. Streams may expose a ``content_type`` attribute with the
        media type the store reported for the object.
        """
        ...


class KeyValueCacheProtocol(Protocol):
    """Key-value cache capability consumed and exposed by the pipeline."""

    def list_keys(self, prefix: str) -> List[str]:
        """List keys starting with ``prefix``."""
        ...

    def get(self, key: str) -> Optional[str]:
        """Get the value stored under ``key``; ``None`` when absent."""
        ...

    def put(self, key: str, value: str) -> None:
        """Store ``value`` under ``key`` (last write wins)."""
        ...


class S3ClientProtocol(Protocol):
    """Protocol for the subset of S3 client operations the adapters use."""

    def get_object(self, Bucket: str, Key: str, **kwargs: Any) -> Dict[str, Any]:
        """Get object from S3."""
        ...

    def put_object(
        self, Bucket: str, Key: str, Body: bytes, ContentType: str
    ) -> Dict[str, Any]:
        """Put object to S3."""
        ...

    def get_paginator(self, operation_name: str) -> Any:
        """Get paginator for S3 operations."""
        ...


class LoggerProtocol(Protocol):
    """Protocol for logging operations."""

    def debug(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log debug message."""
        ...

    def info(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log info message."""
        ...

    def warning(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log warning message."""
        ...

    def error(self, message: str, context: Any = None, **kwargs: Any) -> None:
        """Log error message."""
        ...
