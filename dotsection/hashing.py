"""Content hashing for sections."""

from __future__ import annotations

import hashlib
from collections.abc import Iterable


def normalize_line(line: str) -> str:
    """Return `line` with its ending replaced by a single ``\\n``."""
    if line.endswith("\r\n"):
        return line[:-2] + "\n"
    if line.endswith(("\n", "\r")):
        return line[:-1] + "\n"
    return line + "\n"


def compute_hash(lines: Iterable[str]) -> str:
    """Compute the content hash of a section body.

    Line endings are normalized first, so CRLF and LF copies of the same
    content hash identically, and a final line without an ending hashes the
    same as one with it.

    Args:
        lines: Section content lines, excluding marker comments.

    Returns:
        str: Uppercase hexadecimal SHA-256 digest (64 characters).

    Examples:
        compute_hash(["alias ll='ls -l'\\n"])
    """
    digest = hashlib.sha256()
    for line in lines:
        digest.update(normalize_line(line).encode("utf-8"))
    return digest.hexdigest().upper()


def hashes_match(stored: str | None, computed: str) -> bool:
    """Compare a stored hash with a computed one, ignoring case."""
    if stored is None:
        return False
    return stored.upper() == computed.upper()
