from __future__ import annotations

import gzip
import logging
import zlib
from typing import Optional, Union

from .constants import COMPRESSED_BOUNDARY, COMPRESSED_BOUNDARY_LEGACY, COMPRESSED_MARKER
from .envelope import (
    BoundaryPair,
    Envelope,
    decode_payload,
    envelope_from_fields,
    has_marker,
    read_fields,
    render,
    split_payload,
    verify_sha256,
)
from .errors import CorruptPayload, UnrecognizedFormat
from .hashutil import sha256_hex


log = logging.getLogger(__name__)

BOUNDARIES = (BoundaryPair(*COMPRESSED_BOUNDARY), BoundaryPair(*COMPRESSED_BOUNDARY_LEGACY))

_NOTES = (
    "This is a compressed slurp archive.",
    "The payload is a gzip-compressed, base64-encoded slurp archive.",
    "To decompress manually: base64-decode the lines between the",
    "BEGIN/END payload markers, then gunzip.",
)


def is_compressed(data: Union[bytes, str]) -> bool:
    return has_marker(data, COMPRESSED_MARKER)


def gzip_bytes(payload: bytes) -> bytes:
    # mtime=0 keeps output reproducible for identical input
    return gzip.compress(payload, mtime=0)


def gunzip_bytes(raw: bytes) -> bytes:
    try:
        return gzip.decompress(raw)
    except (OSError, EOFError, zlib.error) as exc:
        raise CorruptPayload(f"Failed to decompress payload: {exc}") from exc


def compress_archive(payload: bytes, *, name: Optional[str] = None) -> bytes:
    """Wrap a serialized archive in gzip + base64 with an integrity header."""
    gzipped = gzip_bytes(payload)
    wrapped_size = -(-len(gzipped) // 3) * 4  # base64 length
    ratio = round((1 - wrapped_size / len(payload)) * 100) if payload else 0
    fields = [
        ("name", name),
        ("original", f"{len(payload)} bytes"),
        ("compressed", f"{wrapped_size} bytes"),
        ("ratio", f"{ratio}%"),
        ("sha256", sha256_hex(gzipped)),
    ]
    return render(COMPRESSED_MARKER, _NOTES, fields, BOUNDARIES[0], gzipped)


def read_envelope(data: Union[bytes, str]) -> Envelope:
    header, _body, _pair = split_payload(data, BOUNDARIES)
    return envelope_from_fields(read_fields(header), "compressed")


def decompress_archive(data: Union[bytes, str]) -> bytes:
    """Unwrap a compressed layer and return the inner archive bytes.

    Raises:
        UnrecognizedFormat: if the compressed marker is absent.
        MalformedArchive: if no boundary pair is found.
        IntegrityError: if the gzip bytes do not match the header SHA-256.
        CorruptPayload: if the verified bytes fail to gunzip.
    """
    if not is_compressed(data):
        raise UnrecognizedFormat("Not a compressed slurp archive")
    header, body, pair = split_payload(data, BOUNDARIES)
    envelope = envelope_from_fields(read_fields(header), "compressed")
    if pair is not BOUNDARIES[0]:
        log.debug("Compressed layer uses legacy boundary markers")
    gzipped = decode_payload(body)
    verify_sha256(gzipped, envelope.sha256)
    return gunzip_bytes(gzipped)
