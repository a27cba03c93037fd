"""Resolution of section ``source`` markers into documents."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from pathlib import Path

from .comments import detect_comment_prefix
from .config import DotsectionConfig
from .constants import REMOTE_SCHEMES
from .exceptions import ParseFileError, SourceUnresolvableError
from .filesystem import expand_path
from .models import Document
from .parser import parse_document, parse_file

logger = logging.getLogger(__name__)

Fetcher = Callable[[str], bytes]


def is_remote(source: str) -> bool:
    return source.startswith(REMOTE_SCHEMES)


class SourceResolver:
    """Load and cache the documents named by ``source`` markers.

    Local sources are read from disk, relative paths being anchored at the
    directory of the file that declares them. Remote sources are delegated to
    `fetch`, retried a bounded number of times with exponential backoff.
    Each source is loaded at most once per resolver, including failures.

    Args:
        config: Configuration supplying prefix overrides and retry settings.
        fetch: Callable returning the raw bytes of a remote source; remote
            sources are unresolvable when omitted.
        prefix: Comment prefix forced on every source; detected per source
            when None.
        sleep: Delay function, replaceable in tests.
    """

    def __init__(
        self,
        config: DotsectionConfig | None = None,
        fetch: Fetcher | None = None,
        prefix: str | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config or DotsectionConfig()
        self.fetch = fetch
        self.prefix = prefix
        self.sleep = sleep
        self._cache: dict[str, Document | SourceUnresolvableError] = {}

    def lookup_for(self, declaring_file: Path) -> Callable[[str], Document]:
        """Return a lookup bound to the directory of `declaring_file`."""
        base_dir = declaring_file.parent
        return lambda source: self.resolve(source, base_dir)

    def resolve(self, source: str, base_dir: Path | None = None) -> Document:
        """Load the document a source marker points at.

        Args:
            source: Path or URI from the marker.
            base_dir: Directory relative paths are anchored at.

        Returns:
            Document: Parsed source document.

        Raises:
            SourceUnresolvableError: If the source cannot be loaded.
        """
        key = source if is_remote(source) else str(expand_path(source, base_dir))
        if key not in self._cache:
            try:
                self._cache[key] = self._load(source, key)
            except SourceUnresolvableError as error:
                self._cache[key] = error

        cached = self._cache[key]
        if isinstance(cached, SourceUnresolvableError):
            raise cached
        return cached

    def _load(self, source: str, key: str) -> Document:
        if is_remote(source):
            return self._load_remote(source)

        path = Path(key)
        if not path.is_file():
            raise SourceUnresolvableError(source, f"{path} does not exist")
        try:
            return parse_file(path, prefix=self.prefix, config=self.config)
        except ParseFileError as error:
            raise SourceUnresolvableError(source, str(error)) from error

    def _load_remote(self, source: str) -> Document:
        if self.fetch is None:
            raise SourceUnresolvableError(source, "remote sources are not supported")

        attempts = self.config.fetch_attempts
        delay = self.config.fetch_backoff
        last_error: Exception | None = None
        for attempt in range(1, attempts + 1):
            try:
                payload = self.fetch(source)
                break
            except OSError as error:
                last_error = error
                logger.warning(
                    "Fetching %s failed (attempt %d/%d): %s", source, attempt, attempts, error
                )
                if attempt < attempts:
                    self.sleep(delay)
                    delay *= 2
        else:
            raise SourceUnresolvableError(source, str(last_error))

        try:
            text = payload.decode("utf-8")
        except UnicodeDecodeError as error:
            raise SourceUnresolvableError(source, f"invalid UTF-8: {error}") from error

        prefix = self.prefix
        if prefix is None:
            name = source.rstrip("/").rsplit("/", 1)[-1]
            prefix = detect_comment_prefix(
                name,
                text.split("\n", 1)[0],
                overrides=self.config.prefixes,
                default=self.config.default_prefix,
            )
        return parse_document(text, prefix)
