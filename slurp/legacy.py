"""Reader for the original self-extracting shell archives (SLURP v1).

These archives are POSIX ``sh`` scripts: a commented header ending at
``set -e``, then one heredoc per file. Text files are written with
``cat > 'path' << 'MARKER'`` and binary files with
``base64 -d > 'path' << 'MARKER'``. The marker is derived from the path, so
the parser computes it rather than trusting whatever the line claims.

Nothing in this package emits this format any more.
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
from typing import List, Union

from .constants import LEGACY_EOF_PREFIX, LEGACY_HEADER_END, LEGACY_MARKER
from .entryutil import Entry, ParsedArchive
from .errors import MalformedArchive
from .header import compare_manifest, parse_header, text_body_size
from .records import as_text, first_lines


log = logging.getLogger(__name__)

_TEXT_RE = re.compile(r"^cat > '([^']+)' << '([^']+)'$")
_BINARY_RE = re.compile(r"^base64 -d > '([^']+)' << '([^']+)'$")


def eof_marker(path: str) -> str:
    return LEGACY_EOF_PREFIX + re.sub(r"[/.]", "_", path)


def is_legacy(data: Union[bytes, str]) -> bool:
    return LEGACY_MARKER in first_lines(data, 2)


def parse_legacy(data: Union[bytes, str]) -> ParsedArchive:
    lines = as_text(data).split("\n")
    if LEGACY_MARKER not in lines[:2]:
        raise MalformedArchive("Missing legacy slurp marker", line=1)

    try:
        header_end = lines.index(LEGACY_HEADER_END)
    except ValueError:
        raise MalformedArchive(f"Legacy header is not terminated by {LEGACY_HEADER_END!r}") from None
    metadata, checksums, manifest = parse_header(lines[:header_end])
    rows = {row.path: row for row in manifest}

    entries: List[Entry] = []
    i = header_end + 1
    n = len(lines)
    while i < n:
        text_m = _TEXT_RE.match(lines[i])
        bin_m = _BINARY_RE.match(lines[i])
        m = text_m or bin_m
        if not m:
            i += 1
            continue
        path, token = m.group(1), m.group(2)
        marker = eof_marker(path)
        if token != marker:
            raise MalformedArchive(f"Heredoc marker {token!r} does not match {marker!r}", path=path, line=i + 1)
        j = i + 1
        while j < n and lines[j] != marker:
            j += 1
        if j >= n:
            raise MalformedArchive(f"Missing heredoc terminator {marker!r}", path=path, line=i + 1)
        body = lines[i + 1:j]
        size = None
        if bin_m:
            try:
                content = base64.b64decode("".join(body), validate=True)
            except (binascii.Error, ValueError) as exc:
                raise MalformedArchive(f"Invalid base64 content: {exc}", path=path, line=i + 2) from exc
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
                is_binary=bin_m is not None,
                size=len(content) if size is None else size,
                checksum=checksums.get(path),
            )
        )
        i = j + 1

    for problem in compare_manifest(manifest, entries):
        log.warning("Manifest disagrees with archive body: %s", problem)

    return ParsedArchive(
        metadata=metadata,
        checksums=checksums,
        entries=entries,
        manifest=manifest,
        generation="legacy",
    )
