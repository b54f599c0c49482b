"""Content digests for installed files and source trees."""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Iterable, Tuple

CHUNK_SIZE = 8192


def compute_digest(data: bytes) -> str:
    """Compute the SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def compute_file_hash(file_path: Path) -> str:
    """Compute SHA-256 hash of a file."""
    hasher = hashlib.sha256()
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def compute_content_identifier(digests: Iterable[Tuple[str, str]]) -> str:
    """Fingerprint a source tree from its ``(relative_path, digest)`` pairs.

    Pairs are sorted first, so enumeration order never affects the result.
    Adding, removing, renaming or editing any member changes the identifier.
    """
    hasher = hashlib.sha256()
    for rel_path, digest in sorted(digests):
        hasher.update(rel_path.encode("utf-8"))
        hasher.update(b"\0")
        hasher.update(digest.encode("ascii"))
        hasher.update(b"\n")
    return hasher.hexdigest()


__all__ = ["compute_digest", "compute_file_hash", "compute_content_identifier"]
