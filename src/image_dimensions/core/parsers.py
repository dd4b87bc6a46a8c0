"""
Header parsers that recover pixel dimensions without decoding images.

Both parsers work on a bounded prefix of the file and never index past
its end: any structure that runs off the buffer yields ``None`` ("not
found") rather than an exception.
"""

import struct
from typing import Optional

from .exceptions import HeaderParseError
from .models import ImageDimensions
from .sniffer import JPEG_MAGIC, PNG_SIGNATURE, ImageFormat

# SOF0-SOF3: baseline, extended sequential, progressive, lossless (Huffman)
JPEG_SOF_MARKERS = frozenset(range(0xC0, 0xC4))
# RST0-RST7, TEM, SOI, EOI carry no length field
JPEG_STANDALONE_MARKERS = frozenset(range(0xD0, 0xD8)) | {0x01, 0xD8, 0xD9}

PNG_IHDR = b"IHDR"
PNG_IHDR_MIN_LENGTH = 13


def _dimensions(width: int, height: int) -> Optional[ImageDimensions]:
    if width <= 0 or height <= 0:
        return None
    return ImageDimensions(width=width, height=height)


def parse_jpeg_dimensions(buffer: bytes) -> Optional[ImageDimensions]:
    """
    Scan JPEG marker segments for the first Start-Of-Frame header.

    Bytes that should be a marker prefix but are not ``0xFF`` are skipped
    one at a time and scanning continues; encoders that pad between
    segments still resolve. The first SOF found wins.

    Returns:
        Dimensions from the first SOF0-SOF3 segment, or ``None`` when the
        buffer is not a JPEG or ends before a complete SOF header.
    """
    size = len(buffer)
    if not buffer.startswith(JPEG_MAGIC):
        return None

    offset = 2
    while offset < size:
        if buffer[offset] != 0xFF:
            offset += 1
            continue

        # Marker prefix plus any fill bytes
        while offset < size and buffer[offset] == 0xFF:
            offset += 1
        if offset >= size:
            return None

        marker = buffer[offset]
        offset += 1

        if marker in JPEG_SOF_MARKERS:
            # length(2) precision(1) height(2) width(2)
            if offset + 7 > size:
                return None
            height, width = struct.unpack_from(">HH", buffer, offset + 3)
            return _dimensions(width, height)

        if marker in JPEG_STANDALONE_MARKERS:
            continue

        if offset + 2 > size:
            return None
        (length,) = struct.unpack_from(">H", buffer, offset)
        if length < 2:
            # Length counts its own two bytes; anything smaller is corrupt
            return None
        offset += length

    return None


def parse_png_dimensions(buffer: bytes) -> Optional[ImageDimensions]:
    """
    Walk PNG chunks until the IHDR chunk is found.

    IHDR is mandated to be the first chunk, so well-formed files resolve on
    the first iteration; other orderings are tolerated by skipping chunks.

    Returns:
        Dimensions from IHDR, or ``None`` when the buffer is not a PNG,
        IHDR is shorter than 13 bytes, IHDR does not fit in the buffer, or
        the chunk walk leaves the buffer.
    """
    size = len(buffer)
    if not buffer.startswith(PNG_SIGNATURE):
        return None

    offset = len(PNG_SIGNATURE)
    while offset + 8 <= size:
        length, chunk_type = struct.unpack_from(">I4s", buffer, offset)

        if chunk_type == PNG_IHDR:
            if length < PNG_IHDR_MIN_LENGTH:
                return None
            # header(8) + payload + crc(4)
            if offset + 8 + length + 4 > size:
                return None
            width, height = struct.unpack_from(">II", buffer, offset + 8)
            return _dimensions(width, height)

        next_offset = offset + 4 + 4 + length + 4
        if next_offset <= offset or next_offset > size:
            return None
        offset = next_offset

    return None


def parse_dimensions(image_format: ImageFormat, buffer: bytes) -> ImageDimensions:
    """
    Dispatch ``buffer`` to the parser for ``image_format``.

    Raises:
        HeaderParseError: If the format is unsupported or no dimensions
            could be recovered from the buffer.
    """
    if image_format is ImageFormat.JPEG:
        dimensions = parse_jpeg_dimensions(buffer)
    elif image_format is ImageFormat.PNG:
        dimensions = parse_png_dimensions(buffer)
    else:
        raise HeaderParseError(f"no parser for format {image_format.value}")

    if dimensions is None:
        raise HeaderParseError(
            f"{image_format.value.upper()} dimensions not found in first {len(buffer)} bytes"
        )
    return dimensions
