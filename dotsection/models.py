"""Data models for dotsection."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum, auto
from pathlib import Path


class MarkerKind(Enum):
    """Keywords recognized in marker comments.

    Attributes:
        BEGIN: Opens a section.
        END: Closes a section.
        HASH: Stores the content hash of a section.
        SOURCE: Names the upstream file a section is updated from.
        TARGET: File-scope declaration of the file a document applies to.
        PERMISSIONS: File-scope octal permissions for the applied target.
    """

    BEGIN = "begin"
    END = "end"
    HASH = "hash"
    SOURCE = "source"
    TARGET = "target"
    PERMISSIONS = "permissions"


@dataclass
class Marker:
    """A parsed marker comment.

    Attributes:
        name: Section name, or ``all`` for file-scope markers.
        kind: Recognized keyword, or None when the keyword is unknown or the
            marker is incomplete.
        keyword: Keyword exactly as written.
        argument: Optional argument following the keyword.
    """

    name: str
    kind: MarkerKind | None
    keyword: str
    argument: str | None = None

    @property
    def malformed(self) -> bool:
        return self.kind is None


@dataclass
class Literal:
    """A run of text outside any section, rendered verbatim."""

    lines: list[str] = field(default_factory=list)

    @property
    def text(self) -> str:
        return "".join(self.lines)


@dataclass
class Section:
    """A named, marker-delimited unit of synchronizable content.

    Attributes:
        name: Section name taken from the ``begin`` marker.
        content: Lines between the markers, endings kept, metadata excluded.
        stored_hash: Argument of the first ``hash`` marker, if any.
        source: Argument of the first ``source`` marker, if any.
        raw_lines: Every line of the section exactly as read.
        start_line: One-based line number of the ``begin`` marker.
        end_line: One-based line number of the ``end`` marker, or None when
            the section is unterminated.
        malformed_markers: Lines carrying an unknown keyword for this name.
        duplicate_metadata: Keywords of repeated ``hash``/``source`` markers.
        newline: Line ending of the ``end`` marker, reused when re-rendering.
        dirty: True once the section was changed and must be re-rendered.
    """

    name: str
    content: list[str] = field(default_factory=list)
    stored_hash: str | None = None
    source: str | None = None
    raw_lines: list[str] = field(default_factory=list)
    start_line: int = 0
    end_line: int | None = None
    malformed_markers: list[str] = field(default_factory=list)
    duplicate_metadata: list[str] = field(default_factory=list)
    newline: str = "\n"
    dirty: bool = False

    @property
    def terminated(self) -> bool:
        return self.end_line is not None

    @property
    def well_formed(self) -> bool:
        return self.terminated and not self.malformed_markers and not self.duplicate_metadata

    def replace_content(self, lines: list[str], stored_hash: str) -> None:
        self.content = list(lines)
        self.stored_hash = stored_hash
        self.duplicate_metadata = []
        self.dirty = True


Block = Literal | Section


@dataclass
class Document:
    """Ordered blocks of a file plus its file-scope declarations.

    Attributes:
        blocks: Literal runs and sections in file order.
        prefix: Comment prefix markers were parsed with, or None when
            section processing is disabled for the file.
        target: First ``all target`` argument, if any.
        permissions: First ``all permissions`` argument, if any.
        newline: First line ending found in the file.
    """

    blocks: list[Block] = field(default_factory=list)
    prefix: str | None = None
    target: str | None = None
    permissions: str | None = None
    newline: str = "\n"

    @property
    def sections(self) -> list[Section]:
        return [block for block in self.blocks if isinstance(block, Section)]

    @property
    def managed(self) -> bool:
        return bool(self.sections)

    def find_sections(self, name: str) -> list[Section]:
        return [section for section in self.sections if section.name == name]

    def duplicate_names(self) -> set[str]:
        counts = Counter(section.name for section in self.sections)
        return {name for name, count in counts.items() if count > 1}


@dataclass
class Metafile:
    """A file managed as a whole, with its metadata kept in a metafile.

    Attributes:
        path: The managed file, not the metafile beside it.
        content: Current text of the managed file.
        stored_hash: Hash recorded by the last compile or update, if any.
        source: File the whole content is updated from.
        target: File the content is applied to.
        permissions: Octal permissions for the applied target.
        dirty: True once the metafile must be rewritten.
        content_changed: True once the managed file itself must be rewritten.
    """

    path: Path
    content: str = ""
    stored_hash: str | None = None
    source: str | None = None
    target: str | None = None
    permissions: str | None = None
    dirty: bool = False
    content_changed: bool = False

    def replace_content(self, content: str, stored_hash: str) -> None:
        self.content = content
        self.stored_hash = stored_hash
        self.dirty = True
        self.content_changed = True


class ModifiedReason(Enum):
    """Why a section is classified as modified."""

    MISSING_HASH = "missing hash"
    HASH_MISMATCH = "hash mismatch"
    MALFORMED_MARKERS = "malformed markers"
    DUPLICATE_METADATA = "duplicate metadata"


@dataclass(frozen=True)
class Classification:
    """Result of classifying a section.

    Attributes:
        reason: Why the section is modified, or None when it is unmodified.
    """

    reason: ModifiedReason | None = None

    @property
    def modified(self) -> bool:
        return self.reason is not None

    def __str__(self) -> str:
        return "modified" if self.modified else "ok"


UNMODIFIED = Classification()


class OutcomeStatus(Enum):
    """Per-section result of a sync operation."""

    COMPILED = auto()
    UPDATED = auto()
    SKIPPED_MODIFIED = auto()
    SKIPPED_UNCHANGED = auto()
    ERROR = auto()


class ErrorKind(Enum):
    """Per-section error kinds recorded in reports."""

    MALFORMED_MARKER = "malformed marker"
    UNTERMINATED_SECTION = "unterminated section"
    AMBIGUOUS_NAME = "ambiguous name"
    SOURCE_UNRESOLVABLE = "source unresolvable"
    NAME_NOT_FOUND_IN_SOURCE = "name not found in source"
    SOURCE_SECTION_MALFORMED = "source section malformed"
    MISSING_SOURCE = "missing source"
    UNKNOWN_SECTION = "unknown section"
    SOURCE_MODIFIED = "source modified since its last compile"
    MIXED_MANAGEMENT = "metafile and sections do not mix"
    IO_ERROR = "i/o error"


@dataclass
class SectionOutcome:
    """Outcome of one section in one operation.

    Attributes:
        name: Section name.
        status: What happened to the section.
        error: Error kind when `status` is ``ERROR``.
        reason: Classification reason when the section was skipped as modified.
        detail: Optional free-form explanation.
    """

    name: str
    status: OutcomeStatus
    error: ErrorKind | None = None
    reason: ModifiedReason | None = None
    detail: str | None = None

    @property
    def changed(self) -> bool:
        return self.status in (OutcomeStatus.COMPILED, OutcomeStatus.UPDATED)


@dataclass
class FileReport:
    """Outcomes of an operation on a single file.

    Attributes:
        path: File the operation ran against.
        outcomes: Per-section outcomes in processing order.
        error: Whole-file failure message (I/O), if any.
        changed: Whether new content was produced for the file.
        created: Whether the file was created by the operation.
        output: Rendered text, kept for ``--print`` style callers.
    """

    path: Path
    outcomes: list[SectionOutcome] = field(default_factory=list)
    error: str | None = None
    changed: bool = False
    created: bool = False
    output: str | None = None

    @property
    def has_errors(self) -> bool:
        return self.error is not None or any(
            outcome.status is OutcomeStatus.ERROR for outcome in self.outcomes
        )


@dataclass
class Report:
    """Aggregate of file reports for one invocation."""

    files: list[FileReport] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not any(file_report.has_errors for file_report in self.files)

    def add(self, file_report: FileReport) -> FileReport:
        self.files.append(file_report)
        return file_report

    def counts(self) -> dict[OutcomeStatus, int]:
        counts = {status: 0 for status in OutcomeStatus}
        for file_report in self.files:
            for outcome in file_report.outcomes:
                counts[outcome.status] += 1
        return counts
