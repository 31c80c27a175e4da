from __future__ import annotations

import datetime as _dt
from dataclasses import replace
from typing import Dict, Iterable, List, Optional

from .constants import BINARY_TAG, COMMENT, FORMAT_MARKER
from .entryutil import ArchiveMetadata, Entry, human_size
from .hashutil import is_binary, short_checksum
from .header import doc_as_comments, format_manifest, format_metadata
from .pathutil import norm_path
from .records import end_marker, start_marker, wrap_base64


def _utc_now_iso() -> str:
    now = _dt.datetime.now(_dt.timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def _prepare(entry: Entry, no_checksum: bool) -> Entry:
    if "\n" in entry.path or "\r" in entry.path:
        raise ValueError(f"Archive paths may not contain newlines: {entry.path!r}")
    path = norm_path(entry.path)
    if not path:
        raise ValueError(f"Empty archive path: {entry.path!r}")
    data = bytes(entry.content)
    binary = entry.is_binary or is_binary(data)
    if not binary and (path.endswith(BINARY_TAG) or end_marker(path) in _text_body(data)):
        # store as base64 when the text form would be ambiguous
        binary = True
    return Entry(
        path=path,
        content=data,
        is_binary=binary,
        size=len(data),
        checksum=None if no_checksum else short_checksum(data),
    )


def _text_body(data: bytes) -> List[str]:
    text = data.decode("utf-8")
    if not text:
        return []
    if text.endswith("\n"):
        text = text[:-1]
    return text.split("\n")


def _entry_block(entry: Entry) -> List[str]:
    if entry.is_binary:
        body = wrap_base64(entry.content)
    else:
        body = _text_body(entry.content)
    return [start_marker(entry.path, entry.is_binary), *body, end_marker(entry.path)]


def serialize(
    entries: Iterable[Entry],
    metadata: Optional[ArchiveMetadata] = None,
    *,
    format_doc: Optional[str] = None,
    no_checksum: bool = False,
    now: Optional[str] = None,
) -> bytes:
    """Serialize entries into the current plain-text archive format.

    Args:
        entries: Entries to store, in output order.
        metadata: Name/description/sentinel to record. File count, total size
            and creation time are always filled in from the entries.
        format_doc: Optional format description embedded as comment lines.
        no_checksum: Skip per-entry SHA-256 checksums.
        now: Fixed creation timestamp; defaults to the current UTC time.

    Returns:
        The archive as UTF-8 bytes.
    """
    prepared = [_prepare(e, no_checksum) for e in entries]
    meta = replace(metadata) if metadata is not None else ArchiveMetadata()
    meta.file_count = str(len(prepared))
    meta.total_size = human_size(sum(e.size for e in prepared))
    meta.created_at = now or _utc_now_iso()

    lines = [FORMAT_MARKER]
    if format_doc:
        lines.append(COMMENT)
        lines.extend(doc_as_comments(format_doc))
    lines.append(COMMENT)
    lines.extend(format_metadata(meta))
    lines.append(COMMENT)
    lines.extend(format_manifest(prepared))
    lines.append("")
    for e in prepared:
        lines.extend(_entry_block(e))
        lines.append("")
    return ("\n".join(lines) + "\n").encode("utf-8")


class ArchiveWriter:
    """Accumulate entries and serialize them as one archive.

    Usage:
        with ArchiveWriter(name="demo") as w:
            w.add_file("src/app.py", "/abs/src/app.py")
            data = w.finalize()
    """

    def __init__(
        self,
        *,
        name: Optional[str] = None,
        description: Optional[str] = None,
        sentinel: Optional[str] = None,
        format_doc: Optional[str] = None,
        no_checksum: bool = False,
    ):
        self.metadata = ArchiveMetadata(name=name, description=description, sentinel=sentinel)
        self.format_doc = format_doc
        self.no_checksum = no_checksum
        self.entries: List[Entry] = []
        self._paths: Dict[str, int] = {}
        self._finalized = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def add_bytes(self, arc_path: str, data: bytes) -> Entry:
        if self._finalized:
            raise RuntimeError("Writer already finalized")
        path = norm_path(arc_path)
        if path in self._paths:
            raise ValueError(f"Duplicate archive path: {path}")
        entry = Entry.from_bytes(path, data, checksum=not self.no_checksum)
        self._paths[path] = len(self.entries)
        self.entries.append(entry)
        return entry

    def add_file(self, arc_path: str, fs_path: str) -> Entry:
        with open(fs_path, "rb") as f:
            data = f.read()
        return self.add_bytes(arc_path, data)

    def finalize(self, *, now: Optional[str] = None) -> bytes:
        self._finalized = True
        return serialize(
            self.entries,
            self.metadata,
            format_doc=self.format_doc,
            no_checksum=self.no_checksum,
            now=now,
        )
