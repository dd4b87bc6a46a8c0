"""Testing utilities and fakes for the image dimensions pipeline."""

from .fakes import (
    FakeKeyValueCache,
    FakeLogger,
    FakeObjectStore,
    FakeS3Client,
    S3Bucket,
    S3Object,
    TrackingStream,
    build_jpeg_header,
    build_png_header,
    create_test_image,
    png_chunk,
    setup_test_environment,
)

__all__ = [
    "FakeKeyValueCache",
    "FakeLogger",
    "FakeObjectStore",
    "FakeS3Client",
    "S3Bucket",
    "S3Object",
    "TrackingStream",
    "build_jpeg_header",
    "build_png_header",
    "create_test_image",
    "png_chunk",
    "setup_test_environment",
]
