from __future__ import annotations

import re
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .constants import COMMENT, DOC_PREFIX, MANIFEST_HEADING, METADATA_KEYS
from .entryutil import ArchiveMetadata, Entry, ManifestRow, human_size


_META_RE = re.compile(r"^# (%s):\s*(.+)$" % "|".join(METADATA_KEYS))
_MANIFEST_RE = re.compile(
    r"^#\s+(?P<path>\S.*?)\s{2,}(?P<size>\d+(?:\.\d+)? [KMG]?B)"
    r"(?:\s+sha256:(?P<checksum>[0-9a-f]{16}))?(?P<binary>\s+\[binary\])?\s*$"
)


def doc_as_comments(text: str) -> List[str]:
    """Embed a free-form document as header comment lines.

    Document lines use a doubled comment marker so they never collide with
    ``# key: value`` metadata lines.
    """
    return [f"{DOC_PREFIX} {line}" if line else DOC_PREFIX for line in text.rstrip("\n").split("\n")]


def format_metadata(metadata: ArchiveMetadata) -> List[str]:
    return [f"# {key}: {_one_line(value)}" for key, value in metadata.items()]


def format_manifest(entries: Sequence[Entry]) -> List[str]:
    if not entries:
        return []
    width = max(max(len(e.path) for e in entries), 4)
    lines = [MANIFEST_HEADING]
    for e in entries:
        size = human_size(e.size).rjust(10)
        ck = f"  sha256:{e.checksum}" if e.checksum else ""
        tag = "  [binary]" if e.is_binary else ""
        lines.append(f"#   {e.path.ljust(width)}  {size}{ck}{tag}")
    lines.append(COMMENT)
    return lines


def parse_header(lines: Iterable[str]) -> Tuple[ArchiveMetadata, Dict[str, str], List[ManifestRow]]:
    """Read metadata and manifest rows from header comment lines.

    Callers pass only the header region; body lines are never scanned.
    """
    metadata = ArchiveMetadata()
    checksums: Dict[str, str] = {}
    manifest: List[ManifestRow] = []
    in_manifest = False
    for line in lines:
        if line == MANIFEST_HEADING:
            in_manifest = True
            continue
        if in_manifest:
            if line == COMMENT or not line.startswith(COMMENT):
                in_manifest = False
                continue
            row = parse_manifest_line(line)
            if row is not None:
                manifest.append(row)
                if row.checksum:
                    checksums[row.path] = row.checksum
            continue
        m = _META_RE.match(line)
        if m:
            metadata.set_key(m.group(1), m.group(2).strip())
    return metadata, checksums, manifest


def parse_manifest_line(line: str) -> Optional[ManifestRow]:
    m = _MANIFEST_RE.match(line)
    if not m:
        return None
    return ManifestRow(
        path=m.group("path"),
        size_text=m.group("size"),
        checksum=m.group("checksum"),
        is_binary=m.group("binary") is not None,
    )


def text_body_size(body_len: int, row: Optional[ManifestRow]) -> int:
    """Original byte length of a text entry stored as ``body_len`` body bytes.

    The writer drops one trailing newline from text bodies; a manifest row
    whose size counts that byte restores it.
    """
    if row is not None and row.size_text == human_size(body_len + 1) != human_size(body_len):
        return body_len + 1
    return body_len


def _one_line(value: str) -> str:
    return " ".join(str(value).splitlines())


def compare_manifest(manifest: Sequence[ManifestRow], entries: Sequence[Entry]) -> List[str]:
    """Describe disagreements between the manifest block and the entry bodies.

    The manifest is documentation; the body is ground truth. Checksums are
    not compared against content here.
    """
    if not manifest:
        return []
    problems: List[str] = []
    rows = {row.path: row for row in manifest}
    seen = set()
    for e in entries:
        seen.add(e.path)
        row = rows.get(e.path)
        if row is None:
            problems.append(f"{e.path}: present in body but not in manifest")
        elif row.is_binary != e.is_binary:
            problems.append(
                f"{e.path}: manifest says {'binary' if row.is_binary else 'text'}, "
                f"body says {'binary' if e.is_binary else 'text'}"
            )
    for path in rows:
        if path not in seen:
            problems.append(f"{path}: listed in manifest but has no body")
    return problems
