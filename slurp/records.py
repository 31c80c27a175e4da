from __future__ import annotations

import base64
import binascii
import logging
import re
from typing import List, Sequence, Union

from .constants import BASE64_LINE_WIDTH, BINARY_TAG, BLOCK_CLOSE, BLOCK_OPEN, END_PREFIX, FORMAT_MARKER
from .entryutil import Entry, ParsedArchive
from .errors import MalformedArchive
from .header import compare_manifest, parse_header, text_body_size


log = logging.getLogger(__name__)

_START_RE = re.compile(r"^=== (?P<path>.+?)(?P<binary> \[binary\])? ===$")


def start_marker(path: str, binary: bool = False) -> str:
    return f"{BLOCK_OPEN}{path}{BINARY_TAG if binary else ''}{BLOCK_CLOSE}"


def end_marker(path: str) -> str:
    """Closing delimiter for ``path``; always derived from the opening path."""
    return f"{BLOCK_OPEN}{END_PREFIX}{path}{BLOCK_CLOSE}"


def wrap_base64(raw: bytes, width: int = BASE64_LINE_WIDTH) -> List[str]:
    b64 = base64.b64encode(raw).decode("ascii")
    return [b64[i:i + width] for i in range(0, len(b64), width)]


def as_text(data: Union[bytes, str]) -> str:
    if isinstance(data, str):
        return data
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as exc:
        line = data[:exc.start].count(b"\n") + 1
        raise MalformedArchive(f"Archive is not UTF-8 text: {exc.reason}", line=line) from exc


def first_lines(data: Union[bytes, str], count: int = 2) -> List[str]:
    if isinstance(data, bytes):
        head = data[:512].decode("utf-8", errors="replace")
    else:
        head = data[:512]
    return head.split("\n")[:count]


def is_current(data: Union[bytes, str]) -> bool:
    return first_lines(data, 1)[0] == FORMAT_MARKER


def parse_archive(data: Union[bytes, str]) -> ParsedArchive:
    """Parse a current-generation archive into metadata, checksums and entries.

    Raises:
        MalformedArchive: if the marker line is wrong, a block is unterminated,
            stray lines appear between blocks, binary content is not base64,
            or the text is not valid UTF-8.
    """
    lines = as_text(data).split("\n")
    if lines[0] != FORMAT_MARKER:
        raise MalformedArchive("First line is not the slurp format marker", line=1)

    i = 1
    while i < len(lines) and not lines[i].startswith(BLOCK_OPEN):
        i += 1
    metadata, checksums, manifest = parse_header(lines[1:i])
    entries = _parse_blocks(lines, i, checksums, {row.path: row for row in manifest})

    for problem in compare_manifest(manifest, entries):
        log.warning("Manifest disagrees with archive body: %s", problem)

    return ParsedArchive(
        metadata=metadata,
        checksums=checksums,
        entries=entries,
        manifest=manifest,
        generation="current",
    )


def _parse_blocks(lines: Sequence[str], i: int, checksums, rows) -> List[Entry]:
    entries: List[Entry] = []
    n = len(lines)
    while i < n:
        line = lines[i]
        if line == "":
            i += 1
            continue
        m = _START_RE.match(line)
        if not m:
            raise MalformedArchive(f"Unexpected line outside an entry block: {line[:60]!r}", line=i + 1)
        path = m.group("path")
        binary = m.group("binary") is not None
        closing = end_marker(path)
        j = i + 1
        while j < n and lines[j] != closing:
            j += 1
        if j >= n:
            raise MalformedArchive(f"Missing end delimiter {closing!r}", path=path, line=i + 1)
        body = lines[i + 1:j]
        size = None
        if binary:
            content = _decode_base64(body, path, i + 2)
        elif body:
            joined = "\n".join(body).encode("utf-8")
            content = joined + b"\n"
            size = text_body_size(len(joined), rows.get(path))
        else:
            content = b""
        entries.append(
            Entry(
                path=path,
                content=content,
                is_binary=binary,
                size=len(content) if size is None else size,
                checksum=checksums.get(path),
            )
        )
        i = j + 1
    return entries


def _decode_base64(body: Sequence[str], path: str, line: int) -> bytes:
    joined = "".join(part.strip() for part in body)
    try:
        return base64.b64decode(joined, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise MalformedArchive(f"Invalid base64 content: {exc}", path=path, line=line) from exc
