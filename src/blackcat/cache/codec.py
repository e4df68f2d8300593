"""Byte-level serialisation and compression for cache payloads.

Values are stored as UTF-8 JSON. Payloads above the configured threshold may
additionally be gzip-compressed; the cache records which form it kept so
:func:`decode` can reverse it.
"""

from __future__ import annotations

import gzip
import json
import zlib
from typing import Any

DECODE_ERRORS = (OSError, EOFError, ValueError, zlib.error)
"""Exceptions :func:`decode` may raise on a corrupt payload."""


def serialize(value: Any) -> bytes:
    """Serialise *value* to compact UTF-8 JSON.

    Raises:
        TypeError: If *value* contains something JSON cannot represent.
        ValueError: On circular references.
    """
    return json.dumps(value, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


def deserialize(data: bytes) -> Any:
    return json.loads(data.decode("utf-8"))


def compress(data: bytes) -> bytes:
    return gzip.compress(data, compresslevel=6)


def decompress(data: bytes) -> bytes:
    return gzip.decompress(data)


def encode(value: Any, compress_payload: bool, threshold: int) -> tuple[bytes, bool]:
    """Serialise *value*, compressing when asked and larger than *threshold*.

    Returns:
        ``(payload, compressed)``.
    """
    raw = serialize(value)
    if compress_payload and len(raw) > threshold:
        return compress(raw), True
    return raw, False


def decode(payload: bytes, compressed: bool) -> Any:
    """Inverse of :func:`encode`."""
    if compressed:
        payload = decompress(payload)
    return deserialize(payload)
