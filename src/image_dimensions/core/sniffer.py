"""Image format classification from magic bytes and hints."""

from enum import Enum
from typing import Optional

JPEG_MAGIC = b"\xff\xd8"
PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"

_CONTENT_TYPES = {
    "image/jpeg": "jpeg",
    "image/png": "png",
}
_EXTENSIONS = {
    "jpg": "jpeg",
    "jpeg": "jpeg",
    "png": "png",
}


class ImageFormat(str, Enum):
    """Formats the header parsers understand."""

    JPEG = "jpeg"
    PNG = "png"
    UNSUPPORTED = "unsupported"


def classify(
    buffer: bytes,
    content_type: Optional[str] = None,
    extension: Optional[str] = None,
) -> ImageFormat:
    """
    Classify a buffer as JPEG, PNG or unsupported.

    Magic bytes are authoritative. Hints are consulted only when the
    buffer matches neither signature: first the content type (exact,
    case-insensitive), then the file extension.
    """
    if buffer.startswith(JPEG_MAGIC):
        return ImageFormat.JPEG
    if buffer.startswith(PNG_SIGNATURE):
        return ImageFormat.PNG

    if content_type:
        hinted = _CONTENT_TYPES.get(content_type.strip().lower())
        if hinted:
            return ImageFormat(hinted)

    if extension:
        hinted = _EXTENSIONS.get(extension.strip().lstrip(".").lower())
        if hinted:
            return ImageFormat(hinted)

    return ImageFormat.UNSUPPORTED
