"""Environment-driven settings.

* ``SLURP_PASSWORD`` - password used when ``--password`` is not given
* ``SLURP_FORMAT_DOC`` - path of the format description embedded on pack
* ``SLURP_KDF_ITERATIONS`` - PBKDF2 rounds for newly encrypted archives
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from .constants import MAX_PBKDF2_ITERATIONS, PBKDF2_ITERATIONS

DEFAULT_FORMAT_DOC = Path(__file__).with_name("FORMAT.md")


def get_password(explicit: Optional[str] = None) -> Optional[str]:
    """Resolve the archive password: explicit value first, then the environment."""
    if explicit:
        return explicit
    return os.environ.get("SLURP_PASSWORD") or None


def get_kdf_iterations() -> int:
    raw = os.environ.get("SLURP_KDF_ITERATIONS")
    if not raw:
        return PBKDF2_ITERATIONS
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"SLURP_KDF_ITERATIONS must be an integer, got {raw!r}") from None
    if not 1 <= value <= MAX_PBKDF2_ITERATIONS:
        raise ValueError(f"SLURP_KDF_ITERATIONS out of range: {value}")
    return value


def get_format_doc_path() -> Path:
    return Path(os.environ.get("SLURP_FORMAT_DOC", str(DEFAULT_FORMAT_DOC)))


def load_format_doc(path: Optional[str] = None) -> Optional[str]:
    """Return the format description to embed, or None if it does not exist."""
    doc_path = Path(path) if path else get_format_doc_path()
    if not doc_path.is_file():
        return None
    return doc_path.read_text(encoding="utf-8")
