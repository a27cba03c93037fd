"""Package-specific exception types."""

from __future__ import annotations


class DotsectionError(Exception):
    """Base class for dotsection errors."""


class ParseFileError(DotsectionError):
    """Raised when a file cannot be read for parsing.

    Covers whole-file problems only (missing, unreadable, too large, not
    UTF-8). Problems inside a section never raise.
    """


class SourceUnresolvableError(DotsectionError):
    """Raised when a section source cannot be loaded.

    Args:
        source: Source path or URI as written in the marker.
        reason: Human-readable cause.
    """

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Cannot resolve source {source}: {reason}")
