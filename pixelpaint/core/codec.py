"""Byte-array <-> text codec used by the storage records."""

from __future__ import annotations

import base64
import binascii
from typing import Union

import numpy as np

BytesLike = Union[bytes, bytearray, memoryview, np.ndarray]


def encode_bytes(data: BytesLike) -> str:
    """Encode raw bytes (or a uint8 array) as standard base64 text."""
    if isinstance(data, np.ndarray):
        data = np.ascontiguousarray(data, dtype=np.uint8).tobytes()
    return base64.b64encode(bytes(data)).decode("ascii")


def decode_bytes(text: str) -> bytes:
    """Decode base64 text back to bytes. Raises ValueError on malformed input."""
    if not isinstance(text, str):
        raise ValueError(f"expected base64 text, got {type(text).__name__}")
    try:
        return base64.b64decode(text.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise ValueError(f"invalid base64 payload: {e}") from e


def decode_u8(text: str) -> np.ndarray:
    """Decode base64 text into a writable uint8 array."""
    return np.frombuffer(decode_bytes(text), dtype=np.uint8).copy()
