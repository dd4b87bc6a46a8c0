"""Bounded prefix reads from object byte streams."""

import time
from typing import Optional

from botocore.exceptions import BotoCoreError

from .exceptions import ReadTimeoutError, StoreError
from .models import DEFAULT_CHUNK_SIZE
from .protocols import ByteStreamProtocol


def read_bounded_prefix(
    stream: ByteStreamProtocol,
    cap: int,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    deadline: Optional[float] = None,
) -> bytes:
    """
    Read at most ``cap`` bytes from the start of ``stream``.

    Chunks are requested until the cap is reached or the stream is
    exhausted, and the stream is closed as soon as enough bytes have been
    collected, even if it holds more data.

    Args:
        stream: Open byte stream, e.g. a botocore StreamingBody.
        cap: Maximum number of bytes to return.
        chunk_size: Maximum size of each read request.
        deadline: Optional ``time.monotonic()`` value after which reading
            is abandoned.

    Returns:
        The first ``min(cap, stream length)`` bytes.

    Raises:
        ValueError: If ``cap`` or ``chunk_size`` is not positive.
        ReadTimeoutError: If ``deadline`` passes before the read completes.
        StoreError: If the stream raises while reading.
    """
    if cap <= 0:
        raise ValueError(f"cap must be positive, got {cap}")
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")

    buffer = bytearray()
    try:
        while len(buffer) < cap:
            if deadline is not None and time.monotonic() > deadline:
                raise ReadTimeoutError(
                    f"read timed out after {len(buffer)} of {cap} bytes"
                )
            try:
                chunk = stream.read(min(chunk_size, cap - len(buffer)))
            except (BotoCoreError, OSError, ValueError) as exc:
                raise StoreError(f"stream read failed: {exc}") from exc
            if not chunk:
                break
            # Streams may hand back more than requested
            buffer += chunk[: cap - len(buffer)]
    finally:
        close = getattr(stream, "close", None)
        if close is not None:
            close()

    return bytes(buffer)
