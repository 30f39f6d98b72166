"""Content fingerprints for deduplication: SHA-256 hex digest of the raw image bytes."""

import hashlib
from pathlib import Path

FINGERPRINT_HEX_LENGTH = 64
_CHUNK_SIZE = 1024 * 1024


def fingerprint(data: bytes | bytearray | memoryview) -> str:
    """Return the SHA-256 hex digest of data. Pure; defined for every input, including b''."""
    return hashlib.sha256(data).hexdigest()


def fingerprint_file(path: Path) -> str:
    """Stream a file through SHA-256 in chunks. Same result as fingerprint(path.read_bytes())."""
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def is_fingerprint(value: str) -> bool:
    """True if value looks like a fingerprint (64 lower-case hex chars)."""
    return len(value) == FINGERPRINT_HEX_LENGTH and all(c in "0123456789abcdef" for c in value)
