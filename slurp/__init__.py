"""
slurp: self-documenting, text-based file archives.

An archive is plain UTF-8 text: a format marker, commented metadata, a
manifest of per-file truncated SHA-256 checksums, an embedded description
of the format itself, and one delimited block per file (binary files are
base64). Archives can be wrapped in a gzip layer or in password-based
AES-256-GCM encryption. Archives written by the original shell-script
generation (SLURP v1) remain readable.

Programmatic API:

- slurp.writer.serialize / ArchiveWriter: build an archive
- slurp.compression / slurp.encryption: wrap and unwrap layers
- slurp.reader.read_archive / ArchiveReader: read any generation
- slurp.materialize: apply, verify and copy entries on disk
"""

__version__ = "0.4.0"

__all__ = [
    "constants",
    "errors",
    "writer",
    "reader",
    "compression",
    "encryption",
    "materialize",
]
