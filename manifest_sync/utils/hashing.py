"""
Content hashing helpers used to decide whether a local file is current.
"""

import hashlib
import logging
from pathlib import Path

log = logging.getLogger(__name__)

CHUNK_SIZE = 1048576  # 1 MB


def sha1_file(path: Path) -> str | None:
    """
    Computes the SHA-1 hex digest of a file.

    Returns:
        The lowercase digest, or None if the path is not a regular file.
    """
    if not path.is_file():
        return None
    digest = hashlib.sha1()  # noqa: S324
    with open(path, "rb") as fh:
        while chunk := fh.read(CHUNK_SIZE):
            digest.update(chunk)
    return digest.hexdigest()


def sha1_bytes(payload: bytes) -> str:
    return hashlib.sha1(payload).hexdigest()  # noqa: S324


def hashes_match(local_hash: str | None, expected_hash: str) -> bool:
    """Case-insensitive hex comparison. A missing local hash never matches."""
    if local_hash is None:
        return False
    return local_hash.strip().lower() == expected_hash.strip().lower()
