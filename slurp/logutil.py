"""Logging setup for the slurp command line.

Library modules only create loggers; the CLI calls :func:`configure_logging`
once. Level precedence: explicit argument, then ``SLURP_LOG_LEVEL``, then
WARNING.
"""

from __future__ import annotations

import logging
import os
from typing import Optional, Union

_LEVEL_MAP = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}


def configure_logging(level: Optional[Union[str, int]] = None, *, force: bool = False) -> None:
    if level is None:
        level = os.environ.get("SLURP_LOG_LEVEL", "WARNING")
    if isinstance(level, str):
        level = _LEVEL_MAP.get(level.upper(), logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(name)s: %(message)s",
        force=force,
    )
