from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .hashutil import is_binary, short_checksum


def human_size(n: int) -> str:
    if n < 1024:
        return f"{n} B"
    if n < 1024 * 1024:
        return f"{n / 1024:.1f} KB"
    return f"{n / (1024 * 1024):.1f} MB"


@dataclass
class Entry:
    path: str
    content: bytes
    is_binary: bool = False
    size: int = 0
    checksum: Optional[str] = None

    @classmethod
    def from_bytes(cls, path: str, data: bytes, *, checksum: bool = True) -> "Entry":
        return cls(
            path=path,
            content=data,
            is_binary=is_binary(data),
            size=len(data),
            checksum=short_checksum(data) if checksum else None,
        )

    @property
    def text(self) -> str:
        if self.is_binary:
            raise ValueError(f"{self.path} is a binary entry")
        return self.content.decode("utf-8")

    def expected_bytes(self) -> bytes:
        """Bytes a materialized copy of this entry must contain.

        Text gets exactly one trailing newline when it lacks one, so an empty
        text entry becomes a single newline.
        """
        if self.is_binary or self.content.endswith(b"\n"):
            return self.content
        return self.content + b"\n"


@dataclass
class ArchiveMetadata:
    name: Optional[str] = None
    description: Optional[str] = None
    file_count: Optional[str] = None
    total_size: Optional[str] = None
    created_at: Optional[str] = None
    sentinel: Optional[str] = None

    # header key -> attribute
    _KEYS = {
        "name": "name",
        "description": "description",
        "files": "file_count",
        "total": "total_size",
        "created": "created_at",
        "sentinel": "sentinel",
    }

    def items(self) -> List[tuple]:
        """(header key, value) pairs for the fields that are set, in header order."""
        out = []
        for key, attr in self._KEYS.items():
            value = getattr(self, attr)
            if value is not None and value != "":
                out.append((key, str(value)))
        return out

    def set_key(self, key: str, value: str) -> None:
        attr = self._KEYS.get(key)
        if attr is not None:
            setattr(self, attr, value)


@dataclass
class ManifestRow:
    path: str
    size_text: str
    checksum: Optional[str] = None
    is_binary: bool = False


@dataclass
class ParsedArchive:
    metadata: ArchiveMetadata
    checksums: Dict[str, str]
    entries: List[Entry]
    manifest: List[ManifestRow] = field(default_factory=list)
    layers: List[str] = field(default_factory=list)
    generation: str = "current"

    def paths(self) -> List[str]:
        return [e.path for e in self.entries]
