from __future__ import annotations

import hashlib

from .constants import BINARY_SNIFF_BYTES, CHECKSUM_HEX_CHARS


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def short_checksum(data: bytes) -> str:
    """Truncated SHA-256 used in manifests and entry records."""
    return sha256_hex(data)[:CHECKSUM_HEX_CHARS]


def is_binary(data: bytes) -> bool:
    """Classify content as binary.

    A NUL byte within the first 8 KiB marks content as binary. Content that
    does not decode as UTF-8 is also binary, since text bodies are stored
    verbatim and must survive a decode/encode round trip.
    """
    if b"\x00" in data[:BINARY_SNIFF_BYTES]:
        return True
    try:
        data.decode("utf-8")
    except UnicodeDecodeError:
        return True
    return False
