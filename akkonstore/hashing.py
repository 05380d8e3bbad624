"""SHA-256 digests rendered as lowercase hexadecimal strings."""

from __future__ import annotations

import hashlib


def sha256(data: str | bytes | bytearray) -> str:
    """Return the SHA-256 digest of ``data`` as 64 lowercase hex characters.

    Text is encoded as UTF-8 before hashing.
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(bytes(data)).hexdigest()