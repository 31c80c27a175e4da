from __future__ import annotations

from typing import Optional


class SlurpError(Exception):
    """Base class for slurp-specific errors."""


# Format detection / structure
class UnrecognizedFormat(SlurpError):
    pass


class MalformedArchive(SlurpError):
    def __init__(self, message: str, *, path: Optional[str] = None, line: Optional[int] = None):
        where = []
        if path is not None:
            where.append(f"entry {path!r}")
        if line is not None:
            where.append(f"line {line}")
        super().__init__(f"{message} ({', '.join(where)})" if where else message)
        self.path = path
        self.line = line


# Integrity
class IntegrityError(SlurpError):
    def __init__(self, message: str, *, expected: Optional[str] = None, actual: Optional[str] = None):
        if expected is not None or actual is not None:
            message = f"{message}: expected {expected}, got {actual}"
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class CorruptPayload(SlurpError):
    pass


# Encryption layer
class NotEncrypted(SlurpError):
    pass


class PasswordRequired(SlurpError):
    pass


class WrongPasswordOrCorrupt(SlurpError):
    pass


class TruncatedPayload(SlurpError):
    pass


# Materialization
class PathTraversal(SlurpError):
    def __init__(self, path: str, reason: str):
        super().__init__(f"Unsafe path {path!r}: {reason}")
        self.path = path
        self.reason = reason


class SentinelMissing(SlurpError):
    def __init__(self, sentinel: str, target_dir: str):
        super().__init__(f"Expected {sentinel} in {target_dir}; refusing to apply archive here")
        self.sentinel = sentinel
        self.target_dir = target_dir
