from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple, Union

from .compression import decompress_archive, is_compressed
from .encryption import decrypt_archive, is_encrypted
from .entryutil import ArchiveMetadata, Entry, ParsedArchive
from .errors import PasswordRequired, UnrecognizedFormat
from .legacy import is_legacy, parse_legacy
from .records import is_current, parse_archive


log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Layer:
    name: str
    detect: Callable[[bytes], bool]
    unwrap: Callable[[bytes, Optional[str]], bytes]


@dataclass(frozen=True)
class Codec:
    generation: str
    detect: Callable[[bytes], bool]
    decode: Callable[[bytes], ParsedArchive]


def _unwrap_encrypted(data: bytes, password: Optional[str]) -> bytes:
    if not password:
        raise PasswordRequired("Archive is encrypted; provide a password (--password or SLURP_PASSWORD)")
    return decrypt_archive(data, password)


def _unwrap_compressed(data: bytes, _password: Optional[str]) -> bytes:
    return decompress_archive(data)


# Outermost first; each layer is peeled at most once.
LAYERS = (
    Layer("encrypted", is_encrypted, _unwrap_encrypted),
    Layer("compressed", is_compressed, _unwrap_compressed),
)

# First match wins.
CODECS = (
    Codec("current", is_current, parse_archive),
    Codec("legacy", is_legacy, parse_legacy),
)


def outer_layer(data: bytes) -> Optional[str]:
    """Name of the outermost wrapper layer, or None for a plain archive."""
    for layer in LAYERS:
        if layer.detect(data):
            return layer.name
    return None


def peel_layers(data: bytes, *, password: Optional[str] = None) -> Tuple[bytes, List[str]]:
    peeled: List[str] = []
    for layer in LAYERS:
        if layer.detect(data):
            log.debug("Peeling %s layer (%d bytes)", layer.name, len(data))
            data = layer.unwrap(data, password)
            peeled.append(layer.name)
    return data, peeled


def read_archive(data: Union[bytes, str], *, password: Optional[str] = None) -> ParsedArchive:
    """Read an archive of any generation into a uniform ParsedArchive.

    Wrapper layers are peeled in order (encrypted, then compressed), then the
    first codec whose marker matches decodes the plain text.

    Raises:
        PasswordRequired: if the archive is encrypted and no password is given.
        UnrecognizedFormat: if no codec recognizes the unwrapped bytes.
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    inner, peeled = peel_layers(data, password=password)
    for codec in CODECS:
        if codec.detect(inner):
            log.debug("Decoding %s generation archive", codec.generation)
            parsed = codec.decode(inner)
            parsed.layers = peeled
            return parsed
    raise UnrecognizedFormat("Unrecognized archive format: no slurp marker in the first two lines")


class ArchiveReader:
    def __init__(self, path: str, password: Optional[str] = None):
        self.path = path
        self.password = password
        self.archive: Optional[ParsedArchive] = None

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def open(self):
        if self.archive is not None:
            return
        with open(self.path, "rb") as f:
            data = f.read()
        self.archive = read_archive(data, password=self.password)

    def close(self):
        self.archive = None

    def _require_open(self) -> ParsedArchive:
        if self.archive is None:
            raise RuntimeError("Archive not open")
        return self.archive

    def list(self) -> List[Entry]:
        return self._require_open().entries

    @property
    def metadata(self) -> ArchiveMetadata:
        return self._require_open().metadata

    @property
    def layers(self) -> List[str]:
        return self._require_open().layers
