# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Hashing utilities for pushpkg.

The push package manifest records a SHA-512 digest for every bundled file,
computed over the exact bytes on disk. These helpers are the only place the
digest algorithm is chosen.
"""

import hashlib
from pathlib import Path

HASH_ALGORITHM = "sha512"
HASH_HEX_LENGTH = 128
HASH_BUFFER_SIZE = 65536  # 64 KiB


def compute_sha512(file_path: Path) -> str:
    """
    Compute the SHA-512 hex digest of a file.

    Reads the file in 64 KiB chunks.

    Args:
        file_path: Path to the file to hash.

    Returns:
        Lowercase hex string of the SHA-512 digest (128 characters).

    Raises:
        FileNotFoundError: If the file doesn't exist.
        OSError: If the file can't be read.
    """
    hasher = hashlib.sha512()
    with open(file_path, "rb") as f:
        while True:
            chunk = f.read(HASH_BUFFER_SIZE)
            if not chunk:
                break
            hasher.update(chunk)
    return hasher.hexdigest()


def compute_sha512_bytes(data: bytes) -> str:
    """Compute the SHA-512 hex digest of raw bytes."""
    return hashlib.sha512(data).hexdigest()


def is_sha512_hex(value: str) -> bool:
    """True when `value` looks like a lowercase hex SHA-512 digest."""
    if len(value) != HASH_HEX_LENGTH:
        return False
    return all(c in "0123456789abcdef" for c in value)
