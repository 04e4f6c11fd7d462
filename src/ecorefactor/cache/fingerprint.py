"""Content fingerprints and path normalisation for cache keys."""

from __future__ import annotations

import hashlib
import os
from pathlib import Path


def compute_fingerprint(data: bytes) -> str:
    """SHA-256 hex digest of raw file bytes."""
    return hashlib.sha256(data).hexdigest()


def fingerprint_file(path: str | Path) -> str:
    """Read ``path`` as bytes and fingerprint it.

    Raises OSError if the file cannot be read; callers decide whether a
    missing file means "unknown" or a hard failure.
    """
    return compute_fingerprint(Path(path).read_bytes())


def normalize_path(path: str | Path) -> str:
    """Absolute, case-normalised path string used for every cache key."""
    return os.path.normcase(os.path.abspath(os.fspath(path)))
