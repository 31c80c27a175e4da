"""Shared framing for the compression and encryption layers.

Both layers emit a commented header followed by a base64 block between a
pair of boundary lines. Each layer knows two boundary pairs: the current
one, which is written, and an older one kept only for reading archives
produced by earlier releases. Pairs are tried in the order given.
"""

from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from .errors import IntegrityError, MalformedArchive
from .hashutil import sha256_hex
from .records import as_text, first_lines, wrap_base64


@dataclass(frozen=True)
class BoundaryPair:
    begin: str
    end: str


@dataclass(frozen=True)
class Envelope:
    original_size: Optional[int]
    wrapped_size: Optional[int]
    sha256: Optional[str]
    iterations: Optional[int] = None
    ratio: Optional[str] = None
    name: Optional[str] = None


_FIELD_RE = re.compile(r"^# ([a-z0-9_-]+):\s*(.+)$")
_INT_RE = re.compile(r"^(\d+)")
_SHA_RE = re.compile(r"^([0-9a-f]{64})$")


def has_marker(data: Union[bytes, str], marker: str) -> bool:
    """True if ``marker`` is the first or second line.

    The second line is checked because older archives start with a shebang.
    """
    return marker in first_lines(data, 2)


def render(
    marker: str,
    notes: Sequence[str],
    fields: Sequence[Tuple[str, object]],
    boundary: BoundaryPair,
    raw: bytes,
) -> bytes:
    lines = [marker, "#"]
    lines.extend(f"# {note}" if note else "#" for note in notes)
    if notes:
        lines.append("#")
    lines.extend(f"# {key}: {value}" for key, value in fields if value is not None)
    lines.append("")
    lines.append(boundary.begin)
    lines.extend(wrap_base64(raw))
    lines.append(boundary.end)
    return ("\n".join(lines) + "\n").encode("utf-8")


def split_payload(data: Union[bytes, str], pairs: Iterable[BoundaryPair]) -> Tuple[List[str], List[str], BoundaryPair]:
    """Split a layer into (header lines, base64 lines, boundary pair used)."""
    lines = as_text(data).split("\n")
    tried = []
    for pair in pairs:
        tried.append(pair.begin)
        try:
            start = lines.index(pair.begin)
        except ValueError:
            continue
        try:
            end = lines.index(pair.end, start + 1)
        except ValueError:
            raise MalformedArchive(f"Payload opened by {pair.begin!r} is never closed", line=start + 1) from None
        return lines[:start], lines[start + 1:end], pair
    raise MalformedArchive(f"No payload boundary found (looked for {', '.join(repr(t) for t in tried)})")


def read_fields(header: Iterable[str]) -> Dict[str, str]:
    fields: Dict[str, str] = {}
    for line in header:
        m = _FIELD_RE.match(line)
        if m:
            fields[m.group(1)] = m.group(2).strip()
    return fields


def envelope_from_fields(fields: Dict[str, str], wrapped_key: str) -> Envelope:
    return Envelope(
        original_size=_int_field(fields, "original"),
        wrapped_size=_int_field(fields, wrapped_key),
        sha256=_sha_field(fields),
        iterations=_int_field(fields, "iterations"),
        ratio=fields.get("ratio"),
        name=fields.get("name"),
    )


def decode_payload(body: Sequence[str]) -> bytes:
    joined = "".join(line.strip() for line in body)
    try:
        return base64.b64decode(joined, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise IntegrityError(f"Payload is not valid base64: {exc}") from exc


def verify_sha256(raw: bytes, expected: Optional[str]) -> None:
    if expected is None:
        return
    actual = sha256_hex(raw)
    if actual != expected:
        raise IntegrityError("Payload checksum mismatch", expected=expected, actual=actual)


def _int_field(fields: Dict[str, str], key: str) -> Optional[int]:
    value = fields.get(key)
    if value is None:
        return None
    m = _INT_RE.match(value)
    if not m:
        raise MalformedArchive(f"Header field {key!r} is not a number: {value!r}")
    return int(m.group(1))


def _sha_field(fields: Dict[str, str]) -> Optional[str]:
    value = fields.get("sha256")
    if value is None:
        return None
    m = _SHA_RE.match(value)
    if not m:
        raise MalformedArchive(f"Header field 'sha256' is not a SHA-256 digest: {value!r}")
    return m.group(1)
