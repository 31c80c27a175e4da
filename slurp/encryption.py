from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple, Union

try:  # pragma: no cover - availability depends on environment
    from Cryptodome.Cipher import AES  # type: ignore
    from Cryptodome.Hash import SHA256  # type: ignore
    from Cryptodome.Protocol.KDF import PBKDF2  # type: ignore
    from Cryptodome.Random import get_random_bytes  # type: ignore
    _HAS_CRYPTO = True
except ImportError:  # pragma: no cover
    AES = SHA256 = PBKDF2 = get_random_bytes = None  # type: ignore
    _HAS_CRYPTO = False

from .compression import gunzip_bytes, gzip_bytes
from .constants import (
    CIPHER_NAME,
    ENCRYPTED_BOUNDARY,
    ENCRYPTED_BOUNDARY_LEGACY,
    ENCRYPTED_MARKER,
    KDF_NAME,
    KEY_SIZE,
    MAX_PBKDF2_ITERATIONS,
    MIN_ENCRYPTED_PAYLOAD,
    NONCE_SIZE,
    PBKDF2_ITERATIONS,
    SALT_SIZE,
    TAG_SIZE,
)
from .envelope import (
    BoundaryPair,
    Envelope,
    decode_payload,
    envelope_from_fields,
    has_marker,
    read_fields,
    render,
    split_payload,
    verify_sha256,
)
from .errors import (
    MalformedArchive,
    NotEncrypted,
    PasswordRequired,
    TruncatedPayload,
    WrongPasswordOrCorrupt,
)
from .hashutil import sha256_hex


log = logging.getLogger(__name__)

BOUNDARIES = (BoundaryPair(*ENCRYPTED_BOUNDARY), BoundaryPair(*ENCRYPTED_BOUNDARY_LEGACY))

_NOTES = (
    "This is an encrypted slurp archive.",
    "The payload is salt(16) || nonce(12) || tag(16) || ciphertext, base64-encoded.",
    "Key: PBKDF2-HMAC-SHA256(password, salt, iterations), 32 bytes.",
    "Cipher: AES-256-GCM over a gzip-compressed slurp archive.",
)

WRONG_PASSWORD_MESSAGE = (
    "Decryption failed: the password is wrong or the archive has been corrupted. "
    "Check the password (or SLURP_PASSWORD) and try again."
)


@dataclass
class EncryptionParams:
    salt: bytes
    iterations: int


def _require_crypto() -> None:
    if not _HAS_CRYPTO:
        raise RuntimeError("PyCryptodomex is required for encryption support")


def derive_key(password: str, salt: bytes, iterations: int) -> bytes:
    _require_crypto()
    return PBKDF2(password.encode("utf-8"), salt, dkLen=KEY_SIZE, count=iterations, hmac_hash_module=SHA256)


class EncryptionContext:
    def __init__(self, key: bytes, params: EncryptionParams):
        self.key = key
        self.params = params

    @classmethod
    def create(cls, password: str, iterations: int = PBKDF2_ITERATIONS) -> "EncryptionContext":
        _require_crypto()
        salt = get_random_bytes(SALT_SIZE)
        params = EncryptionParams(salt=salt, iterations=iterations)
        return cls(derive_key(password, salt, iterations), params)

    @classmethod
    def from_params(cls, password: str, params: EncryptionParams) -> "EncryptionContext":
        if not 1 <= params.iterations <= MAX_PBKDF2_ITERATIONS:
            raise MalformedArchive(f"Unsupported PBKDF2 iteration count in archive: {params.iterations}")
        return cls(derive_key(password, params.salt, params.iterations), params)

    def seal(self, plaintext: bytes) -> bytes:
        """Encrypt with a fresh nonce; returns salt || nonce || tag || ciphertext."""
        nonce = get_random_bytes(NONCE_SIZE)
        cipher = AES.new(self.key, AES.MODE_GCM, nonce=nonce, mac_len=TAG_SIZE)
        ciphertext, tag = cipher.encrypt_and_digest(plaintext)
        return self.params.salt + nonce + tag + ciphertext

    def open(self, nonce: bytes, tag: bytes, ciphertext: bytes) -> bytes:
        cipher = AES.new(self.key, AES.MODE_GCM, nonce=nonce, mac_len=TAG_SIZE)
        try:
            return cipher.decrypt_and_verify(ciphertext, tag)
        except ValueError:
            raise WrongPasswordOrCorrupt(WRONG_PASSWORD_MESSAGE) from None


def split_blob(blob: bytes) -> Tuple[bytes, bytes, bytes, bytes]:
    if len(blob) < MIN_ENCRYPTED_PAYLOAD:
        raise TruncatedPayload(
            f"Encrypted payload is {len(blob)} bytes; at least {MIN_ENCRYPTED_PAYLOAD} are required"
        )
    salt = blob[:SALT_SIZE]
    nonce = blob[SALT_SIZE:SALT_SIZE + NONCE_SIZE]
    tag = blob[SALT_SIZE + NONCE_SIZE:MIN_ENCRYPTED_PAYLOAD]
    return salt, nonce, tag, blob[MIN_ENCRYPTED_PAYLOAD:]


def is_encrypted(data: Union[bytes, str]) -> bool:
    return has_marker(data, ENCRYPTED_MARKER)


def encrypt_archive(
    payload: bytes,
    password: str,
    *,
    name: Optional[str] = None,
    iterations: int = PBKDF2_ITERATIONS,
) -> bytes:
    """Compress, then encrypt a serialized archive under ``password``.

    Every call draws a new salt and nonce, so identical inputs never yield
    identical output.
    """
    if not password:
        raise PasswordRequired("A non-empty password is required to encrypt an archive")
    ctx = EncryptionContext.create(password, iterations)
    blob = ctx.seal(gzip_bytes(payload))
    fields = [
        ("name", name),
        ("original", f"{len(payload)} bytes"),
        ("encrypted", f"{-(-len(blob) // 3) * 4} bytes"),
        ("sha256", sha256_hex(blob)),
        ("iterations", iterations),
        ("cipher", CIPHER_NAME),
        ("kdf", KDF_NAME),
    ]
    return render(ENCRYPTED_MARKER, _NOTES, fields, BOUNDARIES[0], blob)


def read_envelope(data: Union[bytes, str]) -> Envelope:
    if not is_encrypted(data):
        raise NotEncrypted("Not an encrypted slurp archive")
    header, _body, _pair = split_payload(data, BOUNDARIES)
    return envelope_from_fields(read_fields(header), "encrypted")


def decrypt_archive(data: Union[bytes, str], password: Optional[str]) -> bytes:
    """Verify, decrypt and decompress an encrypted layer.

    Raises:
        NotEncrypted: if the encrypted marker is absent.
        PasswordRequired: if no password is given.
        IntegrityError: if the payload does not match the header SHA-256.
        TruncatedPayload: if the payload is shorter than salt + nonce + tag.
        WrongPasswordOrCorrupt: if GCM authentication fails.
        CorruptPayload: if the authenticated plaintext fails to gunzip.
    """
    if not is_encrypted(data):
        raise NotEncrypted("Not an encrypted slurp archive")
    if not password:
        raise PasswordRequired("Archive is encrypted; a password is required")
    header, body, pair = split_payload(data, BOUNDARIES)
    envelope = envelope_from_fields(read_fields(header), "encrypted")
    if pair is not BOUNDARIES[0]:
        log.debug("Encrypted layer uses legacy boundary markers")
    blob = decode_payload(body)
    verify_sha256(blob, envelope.sha256)
    salt, nonce, tag, ciphertext = split_blob(blob)
    iterations = envelope.iterations if envelope.iterations is not None else PBKDF2_ITERATIONS
    ctx = EncryptionContext.from_params(password, EncryptionParams(salt=salt, iterations=iterations))
    return gunzip_bytes(ctx.open(nonce, tag, ciphertext))
