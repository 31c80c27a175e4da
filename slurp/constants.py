# Format markers (first or second line of an archive)
FORMAT_MARKER = "# --- SLURP v4 ---"
LEGACY_MARKER = "# --- SLURP v1 ---"
COMPRESSED_MARKER = "# --- SLURP v2 (compressed) ---"
ENCRYPTED_MARKER = "# --- SLURP v3 (encrypted) ---"

SHEBANG = "#!/bin/sh"

# Current-format block delimiters
BLOCK_OPEN = "=== "
BLOCK_CLOSE = " ==="
END_PREFIX = "END "
BINARY_TAG = " [binary]"

# Header comment conventions
COMMENT = "#"
DOC_PREFIX = "##"
MANIFEST_HEADING = "# MANIFEST:"
METADATA_KEYS = ("name", "description", "files", "total", "created", "sentinel")

# Legacy (shell heredoc) generation
LEGACY_HEADER_END = "set -e"
LEGACY_EOF_PREFIX = "SLURP_END_"

# Layer boundary markers: (begin, end), current style first
COMPRESSED_BOUNDARY = ("--- BEGIN SLURP PAYLOAD ---", "--- END SLURP PAYLOAD ---")
COMPRESSED_BOUNDARY_LEGACY = ("base64 -d << 'SLURP_COMPRESSED' | gunzip | sh", "SLURP_COMPRESSED")
ENCRYPTED_BOUNDARY = ("--- BEGIN SLURP ENCRYPTED PAYLOAD ---", "--- END SLURP ENCRYPTED PAYLOAD ---")
ENCRYPTED_BOUNDARY_LEGACY = (": << 'SLURP_ENCRYPTED'", "SLURP_ENCRYPTED")

BASE64_LINE_WIDTH = 76
BINARY_SNIFF_BYTES = 8192  # 8 KiB
CHECKSUM_HEX_CHARS = 16

# Encryption layer
SALT_SIZE = 16
NONCE_SIZE = 12
TAG_SIZE = 16
KEY_SIZE = 32  # AES-256
MIN_ENCRYPTED_PAYLOAD = SALT_SIZE + NONCE_SIZE + TAG_SIZE
PBKDF2_ITERATIONS = 100_000
MAX_PBKDF2_ITERATIONS = 10_000_000
CIPHER_NAME = "aes-256-gcm"
KDF_NAME = "pbkdf2-sha256"

DEFAULT_ARCHIVE_NAME = "archive"
DEFAULT_EXCLUDES = (".git", ".git/*", "node_modules", "node_modules/*")
ARCHIVE_SUFFIX = ".slurp.sh"
