"""Integrity checks for locally cached assets."""

from __future__ import annotations

import hashlib
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

# Audio files at or above this size are only checked by size, not hashed.
DEFAULT_AUDIO_HASH_CEILING = 100_000_000

_CHUNK_SIZE = 64 * 1024


def md5_file(path: Path) -> str:
    """Compute MD5 hex digest of a file."""
    md5 = hashlib.md5()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            md5.update(chunk)
    return md5.hexdigest()


def is_local_copy_valid(
    path: Path,
    expected_size: int | None,
    expected_md5: str | None,
    *,
    hash_ceiling: int | None = None,
    fail_open: bool = True,
) -> bool:
    """Decide whether a local copy can be kept instead of re-downloaded.

    Checks run cheapest first: existence, then size (when the manifest knows
    it), then MD5 (when known and the file is below ``hash_ceiling``; ``None``
    means always hash). An I/O error on an existing file makes the check
    inconclusive, which resolves to ``fail_open``.
    """
    if not path.is_file():
        return False

    try:
        actual_size = path.stat().st_size
    except OSError as exc:
        logger.warning("Cannot stat %s, treating as %s: %s", path, _verdict(fail_open), exc)
        return fail_open

    if expected_size is not None and actual_size != expected_size:
        logger.debug("Size mismatch for %s: %d != %d", path, actual_size, expected_size)
        return False

    if not expected_md5:
        return True
    if hash_ceiling is not None and actual_size >= hash_ceiling:
        return True

    try:
        actual_md5 = md5_file(path)
    except OSError as exc:
        logger.warning("Cannot hash %s, treating as %s: %s", path, _verdict(fail_open), exc)
        return fail_open

    if actual_md5.lower() != expected_md5.lower():
        logger.debug("MD5 mismatch for %s", path)
        return False
    return True


def _verdict(fail_open: bool) -> str:
    return "valid" if fail_open else "invalid"
