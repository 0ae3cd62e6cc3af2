"""Content fingerprints used as deduplication keys.

MD5 is stable across runs and platforms and collision-resistant enough to
deduplicate paragraphs. It is not a content-integrity guarantee.
"""

from __future__ import annotations

import hashlib

DIGEST_SIZE = 16


def fingerprint(data: bytes | str) -> bytes:
    """Return the 16-byte MD5 digest of *data* (``str`` is UTF-8 encoded)."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.md5(data, usedforsecurity=False).digest()


def fingerprint_hex(data: bytes | str) -> str:
    return fingerprint(data).hex()
