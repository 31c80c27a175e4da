"""Write parsed entries to disk.

This is the only module that creates or overwrites entry files. Every path
goes through :func:`slurp.pathutil.resolve_within` immediately before it is
written, so a hostile path stops the run before anything lands outside the
target directory. Files written earlier in the same call are left in place.
"""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .entryutil import Entry
from .errors import PathTraversal, SentinelMissing
from .pathutil import resolve_within


log = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]


@dataclass
class FileCheck:
    path: str
    status: str  # ok | missing | mismatch | unsafe
    detail: str = ""


@dataclass
class VerifyReport:
    checks: List[FileCheck] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(c.status == "ok" for c in self.checks)

    @property
    def failures(self) -> List[FileCheck]:
        return [c for c in self.checks if c.status != "ok"]


def check_sentinel(target_dir: PathLike, sentinel: Optional[str]) -> None:
    if not sentinel:
        return
    if not (Path(target_dir) / sentinel).is_file():
        raise SentinelMissing(sentinel, str(target_dir))


def apply_entries(
    entries: Iterable[Entry],
    target_dir: PathLike,
    *,
    sentinel: Optional[str] = None,
) -> List[Path]:
    """Materialize entries under ``target_dir``.

    Text entries get exactly one trailing newline when missing; binary
    entries are written byte for byte.

    Returns:
        The absolute paths written, in entry order.

    Raises:
        SentinelMissing: if ``sentinel`` is set and absent from ``target_dir``.
        PathTraversal: on the first entry whose path escapes ``target_dir``.
    """
    check_sentinel(target_dir, sentinel)
    os.makedirs(target_dir, exist_ok=True)
    written: List[Path] = []
    for e in entries:
        dst = resolve_within(e.path, target_dir)
        dst.parent.mkdir(parents=True, exist_ok=True)
        with open(dst, "wb") as f:
            f.write(e.expected_bytes())
        log.debug("wrote %s (%d bytes)", dst, e.size)
        written.append(dst)
    return written


def verify_entries(entries: Iterable[Entry], target_dir: PathLike) -> VerifyReport:
    """Compare materialized files with the archive, one result per entry."""
    report = VerifyReport()
    for e in entries:
        try:
            dst = resolve_within(e.path, target_dir)
        except PathTraversal as exc:
            report.checks.append(FileCheck(e.path, "unsafe", exc.reason))
            continue
        if not dst.is_file():
            report.checks.append(FileCheck(e.path, "missing"))
            continue
        with open(dst, "rb") as f:
            ondisk = f.read()
        expected = e.expected_bytes()
        if ondisk != expected:
            report.checks.append(
                FileCheck(e.path, "mismatch", f"expected {len(expected)} bytes, found {len(ondisk)}")
            )
        else:
            report.checks.append(FileCheck(e.path, "ok"))
    return report


def copy_staging(staging_dir: PathLike, destination: PathLike) -> List[Path]:
    """Copy a materialized staging tree into ``destination``.

    Each relative path is re-checked against the destination before copying;
    symlinks inside the staging tree are refused.
    """
    stage = Path(staging_dir).resolve()
    if not stage.is_dir():
        raise NotADirectoryError(f"Staging directory not found: {staging_dir}")
    copied: List[Path] = []
    for root, dirnames, filenames in os.walk(stage):
        dirnames.sort()
        for name in sorted(filenames):
            src = Path(root) / name
            rel = src.relative_to(stage).as_posix()
            if src.is_symlink():
                raise PathTraversal(rel, "symlinks are not copied out of a staging directory")
            dst = resolve_within(rel, destination)
            dst.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(src, dst)
            copied.append(dst)
    return copied
