from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Union

from .errors import PathTraversal

_DRIVE_RE = re.compile(r"^[A-Za-z]:")


def norm_path(p: str) -> str:
    """Normalize archive paths to a canonical forward-slash form.

    Rules:
    - Convert backslashes to slashes
    - Strip leading/trailing slashes
    - Remove empty and '.' segments
    - Reject '..' segments
    """
    p = p.replace("\\", "/").strip("/")
    parts = [q for q in p.split("/") if q not in ("", ".")]
    for q in parts:
        if q == "..":
            raise PathTraversal(p, "path may not contain '..'")
    return "/".join(parts)


def _is_absolute(candidate: str) -> bool:
    if candidate.startswith(("/", "\\")):
        return True
    return bool(_DRIVE_RE.match(candidate)) or os.path.isabs(candidate)


def resolve_within(candidate: str, base_dir: Union[str, os.PathLike]) -> Path:
    """Resolve an untrusted archive path against ``base_dir``.

    Absolute paths and '..' segments are rejected outright; a '..' inside a
    single segment (``foo..bar.txt``) is an ordinary file name. The joined
    path is then resolved, following any symlinks already on disk, and must
    still sit strictly below the resolved base directory.

    Raises:
        PathTraversal: if the path is empty, absolute, or escapes ``base_dir``.
    """
    if not candidate:
        raise PathTraversal(candidate, "empty path")
    if "\x00" in candidate:
        raise PathTraversal(candidate, "NUL byte in path")
    if _is_absolute(candidate):
        raise PathTraversal(candidate, "absolute paths are not allowed")
    parts = [q for q in candidate.replace("\\", "/").split("/") if q not in ("", ".")]
    if ".." in parts:
        raise PathTraversal(candidate, "'..' segments are not allowed")
    if not parts:
        raise PathTraversal(candidate, "path resolves to the base directory")

    base = Path(base_dir).resolve()
    target = base.joinpath(*parts).resolve()
    if base not in target.parents:
        raise PathTraversal(candidate, f"resolves outside {base}")
    return target
