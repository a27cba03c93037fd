"""Parsing of files into sections and literal text."""

from __future__ import annotations

import logging
from pathlib import Path

from .comments import detect_comment_prefix, parse_marker
from .config import DotsectionConfig
from .constants import FILE_SCOPE_NAME
from .exceptions import ParseFileError
from .filesystem import collect_file_stat, enforce_file_size, get_max_file_size, safe_read
from .models import Document, Literal, Marker, MarkerKind, Section

logger = logging.getLogger(__name__)


def split_lines(text: str) -> list[str]:
    """Split text on ``\\n`` only, keeping line endings.

    Unlike `str.splitlines`, form feeds and other Unicode separators stay
    inside their line, so joining the result always gives back `text`.

    Examples:
        split_lines("a\\r\\nb")  # ["a\\r\\n", "b"]
    """
    if not text:
        return []
    lines = [f"{line}\n" for line in text.split("\n")]
    last = lines.pop()[:-1]
    if last:
        lines.append(last)
    return lines


def line_ending(line: str) -> str:
    if line.endswith("\r\n"):
        return "\r\n"
    if line.endswith("\n"):
        return "\n"
    return ""


class _DocumentBuilder:
    """Accumulate blocks while scanning lines in a single pass."""

    def __init__(self, document: Document):
        self.document = document
        self.literal: Literal | None = None
        self.section: Section | None = None

    def add_literal(self, line: str) -> None:
        if self.literal is None:
            self.literal = Literal()
            self.document.blocks.append(self.literal)
        self.literal.lines.append(line)

    def open_section(self, marker: Marker, line: str, line_number: int) -> None:
        if self.section is not None:
            logger.debug(
                "section %s at line %d interrupted by begin of %s at line %d",
                self.section.name,
                self.section.start_line,
                marker.name,
                line_number,
            )
            self.section = None
        self.literal = None
        self.section = Section(name=marker.name, raw_lines=[line], start_line=line_number)
        self.document.blocks.append(self.section)

    def add_to_section(self, marker: Marker | None, line: str, line_number: int) -> None:
        section = self.section
        section.raw_lines.append(line)

        if marker is None or marker.name != section.name:
            section.content.append(line)
            return

        if marker.kind is MarkerKind.END:
            section.end_line = line_number
            section.newline = line_ending(line)
            self.section = None
        elif marker.kind is MarkerKind.HASH:
            if section.stored_hash is None:
                section.stored_hash = marker.argument
            else:
                section.duplicate_metadata.append(marker.keyword)
        elif marker.kind is MarkerKind.SOURCE:
            if section.source is None:
                section.source = marker.argument
            else:
                section.duplicate_metadata.append(marker.keyword)
        else:
            section.malformed_markers.append(line)
            section.content.append(line)


def _record_file_scope(document: Document, marker: Marker) -> None:
    if marker.kind is MarkerKind.TARGET and document.target is None:
        document.target = marker.argument
    elif marker.kind is MarkerKind.PERMISSIONS and document.permissions is None:
        document.permissions = marker.argument


def parse_document(text: str, prefix: str | None) -> Document:
    """Parse text into an ordered sequence of literal runs and sections.

    Scans the lines once. Only one section is open at a time: a ``begin``
    while a section is open leaves the open one unterminated, which keeps a
    broken section from swallowing the sections that follow it. A dangling
    ``end`` stays literal text. File-scope ``all`` markers are recorded on
    the document and otherwise kept where they are. Nothing here raises for
    malformed markers; they are recorded on the affected section.

    Args:
        text: Full file content.
        prefix: Comment prefix, or None to treat the file as one literal run.

    Returns:
        Document: Blocks that render back to `text` exactly.

    Examples:
        parse_document("#... a begin\\nx=1\\n#... a end\\n", "#")
    """
    lines = split_lines(text)
    document = Document(prefix=prefix)
    for line in lines:
        ending = line_ending(line)
        if ending:
            document.newline = ending
            break

    if not prefix:
        if lines:
            document.blocks.append(Literal(lines=lines))
        return document

    builder = _DocumentBuilder(document)

    for line_number, line in enumerate(lines, start=1):
        marker = parse_marker(line, prefix)

        if marker is not None and marker.name == FILE_SCOPE_NAME:
            _record_file_scope(document, marker)

        if marker is not None and marker.kind is MarkerKind.BEGIN:
            builder.open_section(marker, line, line_number)
            continue

        if builder.section is not None:
            builder.add_to_section(marker, line, line_number)
            continue

        if marker is not None and marker.kind is MarkerKind.END:
            logger.debug("dangling end marker for %s at line %d", marker.name, line_number)
        builder.add_literal(line)

    if builder.section is not None:
        logger.debug(
            "section %s at line %d is not terminated",
            builder.section.name,
            builder.section.start_line,
        )

    return document


def read_text(filepath: Path, config: DotsectionConfig | None = None) -> str:
    """Read a whole file as UTF-8 text within the configured size limit.

    Args:
        filepath: File to read.
        config: Configuration supplying the size limit and symlink policy.

    Returns:
        str: File content with line endings untouched.

    Raises:
        ParseFileError: If the file is missing, too large, a disallowed
            symlink, unreadable, or not valid UTF-8.
    """
    config = config or DotsectionConfig()
    try:
        max_file_size = get_max_file_size(default=config.max_file_size)
        stat_result = collect_file_stat(filepath, allow_symlinks=config.allow_symlinks)
        enforce_file_size(stat_result, max_file_size, filepath)
        with safe_read(filepath) as file:
            return file.read()
    except UnicodeDecodeError as error:
        error_message = f"Invalid UTF-8 sequence in {filepath}: {error}"
        raise ParseFileError(error_message) from error
    except (OSError, ValueError) as error:
        raise ParseFileError(str(error)) from error


def parse_file(
    filepath: Path,
    prefix: str | None = None,
    config: DotsectionConfig | None = None,
) -> Document:
    """Read and parse a file, detecting its comment prefix when not given.

    Args:
        filepath: File to parse.
        prefix: Explicit comment prefix; detected from the file name and
            first line when None.
        config: Configuration with prefix overrides and limits.

    Returns:
        Document: Parsed document.

    Raises:
        ParseFileError: If the file cannot be read.

    Examples:
        document = parse_file(Path("~/.bashrc").expanduser())
    """
    config = config or DotsectionConfig()
    text = read_text(filepath, config)
    if prefix is None:
        first_line = text.split("\n", 1)[0]
        prefix = detect_comment_prefix(
            filepath,
            first_line,
            overrides=config.prefixes,
            default=config.default_prefix,
        )
    return parse_document(text, prefix)
