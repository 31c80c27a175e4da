from __future__ import annotations

import fnmatch
import os
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

from .constants import DEFAULT_EXCLUDES


def _excluded(rel: str, name: str, patterns: Sequence[str]) -> bool:
    return any(fnmatch.fnmatchcase(rel, p) or fnmatch.fnmatchcase(name, p) for p in patterns)


def collect_files(
    targets: Iterable[str],
    base_dir: Optional[str] = None,
    excludes: Sequence[str] = (),
) -> List[Tuple[Path, str]]:
    """Expand files and directories into (absolute path, archive path) pairs.

    Directory targets are walked recursively with paths relative to the
    directory itself (or ``base_dir``); file targets are relative to their
    parent (or ``base_dir``). ``.git`` and ``node_modules`` are always
    skipped. Results are de-duplicated on archive path and sorted.
    """
    patterns = list(DEFAULT_EXCLUDES) + list(excludes)
    found: List[Tuple[Path, str]] = []
    for target in targets:
        p = Path(target)
        if not p.exists():
            raise FileNotFoundError(f"{target} does not exist")
        if p.is_dir():
            base = Path(base_dir or p).resolve()
            for root, dirnames, filenames in os.walk(p.resolve()):
                kept = []
                for d in sorted(dirnames):
                    rel = Path(root, d).relative_to(base).as_posix()
                    if not _excluded(rel, d, patterns):
                        kept.append(d)
                dirnames[:] = kept
                for fn in sorted(filenames):
                    full = Path(root, fn)
                    rel = full.relative_to(base).as_posix()
                    if _excluded(rel, fn, patterns):
                        continue
                    if full.is_file():
                        found.append((full, rel))
        else:
            base = Path(base_dir).resolve() if base_dir else p.resolve().parent
            full = p.resolve()
            found.append((full, Path(os.path.relpath(full, base)).as_posix()))

    seen = set()
    unique: List[Tuple[Path, str]] = []
    for full, rel in found:
        if rel in seen:
            continue
        seen.add(rel)
        unique.append((full, rel))
    unique.sort(key=lambda item: item[1])
    return unique
