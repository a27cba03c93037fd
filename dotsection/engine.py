"""Section synchronization: compile, update, and apply.

Every operation is total over the sections it visits: each section gets a
``SectionOutcome`` and a problem with one section never stops the others.
Sections classified as modified are never overwritten by ``update`` or
``apply``; only ``compile`` stamps a new hash on them.

File-level functions wrap the document operations with reading, rendering,
and an atomic write, and turn I/O failures into ``FileReport.error``.
"""

from __future__ import annotations

import logging
import os
import stat
from collections.abc import Callable, Iterable
from pathlib import Path

from .classifier import classify
from .comments import parse_marker
from .config import DotsectionConfig
from .constants import DEFAULT_MAIN_SECTION, FILE_SCOPE_NAME, SHEBANG_PATTERN
from .exceptions import ParseFileError, SourceUnresolvableError
from .filesystem import (
    collect_file_stat,
    expand_path,
    parse_permissions,
    walk_files,
    write_text_atomic,
)
from .hashing import compute_hash, hashes_match
from .metafile import (
    classify_metafile,
    compile_metafile,
    content_hash,
    has_metafile,
    is_metafile,
    load_metafile,
    new_metafile,
    render_metafile,
    save_metafile,
    sync_metafile,
)
from .models import (
    Document,
    ErrorKind,
    FileReport,
    Literal,
    MarkerKind,
    Metafile,
    OutcomeStatus,
    Report,
    Section,
    SectionOutcome,
)
from .parser import parse_file
from .renderer import render_document
from .resolver import SourceResolver, is_remote

logger = logging.getLogger(__name__)

Lookup = Callable[[str], Document]
Warn = Callable[[str], None]


def _error(name: str, kind: ErrorKind, detail: str | None = None) -> SectionOutcome:
    logger.warning("Section %s: %s%s", name, kind.value, f" ({detail})" if detail else "")
    return SectionOutcome(name=name, status=OutcomeStatus.ERROR, error=kind, detail=detail)


def _unique_names(sections: Iterable[Section]) -> list[str]:
    return list(dict.fromkeys(section.name for section in sections))


# ------------------------------------------------------------------
# Document operations
# ------------------------------------------------------------------


def wrap_unmanaged(document: Document, name: str) -> Section | None:
    """Wrap the content of a document without sections in a new section.

    A leading ``#!`` line stays outside the new section. Nothing happens when
    the document already has sections or processing is disabled, when there
    is no non-blank content to wrap, or when a stray marker for `name` would
    end up inside the new section.

    Args:
        document: Document to modify in place.
        name: Name of the new section.

    Returns:
        Section | None: The new section, or None when nothing was wrapped.
    """
    if document.sections or not document.prefix or not name:
        return None

    lines = [line for block in document.blocks for line in block.lines]
    head: list[str] = []
    if lines and SHEBANG_PATTERN.match(lines[0]):
        head = [lines.pop(0)]
    if not any(line.strip() for line in lines):
        return None
    for line in lines:
        marker = parse_marker(line, document.prefix)
        if marker is not None and marker.name == name:
            logger.warning("Not wrapping: stray marker for %s: %s", name, line.strip())
            return None

    start_line = len(head) + 1
    section = Section(
        name=name,
        content=lines,
        stored_hash=compute_hash(lines),
        start_line=start_line,
        end_line=start_line + len(lines) + 2,
        newline=document.newline,
        dirty=True,
    )
    document.blocks = ([Literal(lines=head)] if head else []) + [section]
    return section


def compile_document(
    document: Document, wrap_name: str | None = DEFAULT_MAIN_SECTION
) -> list[SectionOutcome]:
    """Stamp every section with the hash of its current content.

    Sections whose stored hash already matches are left byte-identical, so
    compiling twice gives the same text. Unterminated sections and sections
    with unknown marker keywords cannot be stamped safely and are reported
    as errors instead.

    Args:
        document: Document to modify in place.
        wrap_name: When set and the document has no sections, its content is
            first wrapped in a section of this name.

    Returns:
        list[SectionOutcome]: One outcome per section, in document order.

    Examples:
        outcomes = compile_document(parse_document(text, "#"))
    """
    outcomes: list[SectionOutcome] = []

    if wrap_name:
        wrapped = wrap_unmanaged(document, wrap_name)
        if wrapped is not None:
            logger.info("Wrapped unmanaged content in section %s", wrapped.name)
            outcomes.append(
                SectionOutcome(
                    name=wrapped.name,
                    status=OutcomeStatus.COMPILED,
                    detail="wrapped unmanaged content",
                )
            )
            return outcomes

    for section in document.sections:
        if not section.terminated:
            outcomes.append(_error(section.name, ErrorKind.UNTERMINATED_SECTION))
            continue
        if section.malformed_markers:
            detail = section.malformed_markers[0].strip()
            outcomes.append(_error(section.name, ErrorKind.MALFORMED_MARKER, detail))
            continue

        classification = classify(section)
        if not classification.modified:
            outcomes.append(
                SectionOutcome(name=section.name, status=OutcomeStatus.SKIPPED_UNCHANGED)
            )
            continue

        section.replace_content(section.content, compute_hash(section.content))
        logger.info("Compiled section %s (%s)", section.name, classification.reason.value)
        outcomes.append(
            SectionOutcome(
                name=section.name,
                status=OutcomeStatus.COMPILED,
                reason=classification.reason,
            )
        )

    return outcomes


def _structural_line(lines: list[str], prefix: str | None, name: str) -> str | None:
    """Return the first line that would parse as a marker once inside section `name`.

    A ``begin`` of any name would interrupt the section and a marker of
    `name` itself would be read as its metadata or end. Sources written with
    another comment prefix can carry such lines as plain content.
    """
    if not prefix:
        return None
    for line in lines:
        marker = parse_marker(line, prefix)
        if marker is not None and (marker.kind is MarkerKind.BEGIN or marker.name == name):
            return line.strip()
    return None


def _sync_section(
    target: Section, source_document: Document, origin: str, prefix: str | None = None
) -> SectionOutcome:
    name = target.name

    if name in source_document.duplicate_names():
        return _error(name, ErrorKind.AMBIGUOUS_NAME, f"duplicate in {origin}")

    matches = source_document.find_sections(name)
    if not matches:
        return _error(name, ErrorKind.NAME_NOT_FOUND_IN_SOURCE, origin)

    source = matches[0]
    if not source.well_formed:
        return _error(name, ErrorKind.SOURCE_SECTION_MALFORMED, origin)

    clash = _structural_line(source.content, prefix, name)
    if clash is not None:
        detail = f"{origin}: marker in content: {clash}"
        return _error(name, ErrorKind.SOURCE_SECTION_MALFORMED, detail)

    classification = classify(target)
    if classification.modified:
        logger.warning("Section %s is modified (%s), skipping", name, classification.reason.value)
        return SectionOutcome(
            name=name,
            status=OutcomeStatus.SKIPPED_MODIFIED,
            reason=classification.reason,
        )

    new_hash = compute_hash(source.content)
    if hashes_match(target.stored_hash, new_hash):
        return SectionOutcome(name=name, status=OutcomeStatus.SKIPPED_UNCHANGED)

    target.replace_content(source.content, new_hash)
    logger.info("Updated section %s from %s", name, origin)
    return SectionOutcome(name=name, status=OutcomeStatus.UPDATED, detail=origin)


def _requested_names(sections: Iterable[str] | None) -> set[str] | None:
    return None if sections is None else set(sections)


def update_document(
    target: Document,
    lookup: Lookup,
    sections: Iterable[str] | None = None,
) -> list[SectionOutcome]:
    """Pull section content from the sources the sections declare.

    For each section carrying a ``source`` marker, the source document is
    looked up and the section with the same name replaces the local content,
    provided the local section is unmodified.

    Args:
        target: Document to update in place.
        lookup: Returns the document for a source string; raises
            `SourceUnresolvableError` when it cannot.
        sections: Restrict the update to these names. Requested sections
            without a ``source`` marker are reported as errors.

    Returns:
        list[SectionOutcome]: One outcome per visited section name.
    """
    wanted = _requested_names(sections)
    ambiguous = target.duplicate_names()
    outcomes: list[SectionOutcome] = []

    for name in _unique_names(target.sections):
        if wanted is not None and name not in wanted:
            continue
        if name in ambiguous:
            outcomes.append(_error(name, ErrorKind.AMBIGUOUS_NAME))
            continue

        section = target.find_sections(name)[0]
        if section.source is None:
            if wanted is not None:
                outcomes.append(_error(name, ErrorKind.MISSING_SOURCE))
            continue

        try:
            source_document = lookup(section.source)
        except SourceUnresolvableError as error:
            outcomes.append(_error(name, ErrorKind.SOURCE_UNRESOLVABLE, error.reason))
            continue

        outcomes.append(_sync_section(section, source_document, section.source, target.prefix))

    outcomes.extend(_unknown_requested(target, wanted))
    return outcomes


def merge_documents(
    target: Document,
    sources: list[tuple[str, Document]],
    sections: Iterable[str] | None = None,
) -> list[SectionOutcome]:
    """Push sections from several documents into `target`, in the given order.

    Each target section is synced from every source that has it, so when two
    sources share a name the later one wins. A requested name is reported
    missing only when no source has it, and unknown requested names are
    reported once.

    Args:
        target: Document to modify in place.
        sources: ``(origin, document)`` pairs; `origin` describes the
            document in outcomes and logs.
        sections: Restrict the merge to these names.

    Returns:
        list[SectionOutcome]: Outcomes in target section order.
    """
    wanted = _requested_names(sections)
    ambiguous = target.duplicate_names()
    outcomes: list[SectionOutcome] = []

    for name in _unique_names(target.sections):
        if wanted is not None and name not in wanted:
            continue
        providers = [(origin, source) for origin, source in sources if source.find_sections(name)]
        if not providers:
            if wanted is not None:
                searched = ", ".join(origin for origin, _ in sources)
                outcomes.append(_error(name, ErrorKind.NAME_NOT_FOUND_IN_SOURCE, searched))
            continue
        if name in ambiguous:
            outcomes.append(_error(name, ErrorKind.AMBIGUOUS_NAME))
            continue
        section = target.find_sections(name)[0]
        for origin, source in providers:
            outcomes.append(_sync_section(section, source, origin, target.prefix))

    outcomes.extend(_unknown_requested(target, wanted))
    return outcomes


def merge_document(
    target: Document,
    source: Document,
    sections: Iterable[str] | None = None,
    origin: str = "source",
) -> list[SectionOutcome]:
    """Push every section present in both documents from `source` into `target`.

    Sections present in only one of the documents are left alone and get no
    outcome, unless they were requested through `sections`.

    Returns:
        list[SectionOutcome]: One outcome per shared section name.
    """
    return merge_documents(target, [(origin, source)], sections)


def apply_document(
    source: Document,
    target: Document,
    sections: Iterable[str] | None = None,
    origin: str = "source",
) -> list[SectionOutcome]:
    """Push sections of `source` into `target`; the mirror image of `update_document`."""
    return merge_document(target, source, sections, origin)


def _unknown_requested(document: Document, wanted: set[str] | None) -> list[SectionOutcome]:
    if wanted is None:
        return []
    present = {section.name for section in document.sections}
    return [_error(name, ErrorKind.UNKNOWN_SECTION) for name in sorted(wanted - present)]


def strip_target_declarations(document: Document) -> None:
    """Drop ``all target`` lines outside sections, in place.

    Used when a source is copied to create its target, so the copy does not
    point at itself.
    """
    for block in document.blocks:
        if not isinstance(block, Literal):
            continue
        kept = []
        for line in block.lines:
            marker = parse_marker(line, document.prefix or "")
            if (
                marker is not None
                and marker.name == FILE_SCOPE_NAME
                and marker.kind is MarkerKind.TARGET
            ):
                continue
            kept.append(line)
        block.lines = kept
    document.blocks = [
        block for block in document.blocks if not isinstance(block, Literal) or block.lines
    ]


# ------------------------------------------------------------------
# File operations
# ------------------------------------------------------------------


def _load(
    path: Path, prefix: str | None, config: DotsectionConfig
) -> tuple[Document, os.stat_result]:
    initial_stat = collect_file_stat(path, allow_symlinks=config.allow_symlinks)
    return parse_file(path, prefix, config), initial_stat


def _load_metafile(path: Path, config: DotsectionConfig) -> tuple[Metafile, os.stat_result]:
    initial_stat = collect_file_stat(path, allow_symlinks=config.allow_symlinks)
    return load_metafile(path, config), initial_stat


def _store(
    report: FileReport,
    text: str,
    initial_stat: os.stat_result | None,
    config: DotsectionConfig,
    warn: Warn | None,
    permissions: int | None,
    write: bool,
) -> None:
    if write:
        write_text_atomic(
            report.path,
            text,
            expected_stat=initial_stat,
            permissions=permissions,
            allow_symlinks=config.allow_symlinks,
            warn=warn,
        )
    elif permissions is not None and initial_stat is not None:
        if stat.S_IMODE(initial_stat.st_mode) != permissions:
            os.chmod(report.path, permissions)


def _finish(
    report: FileReport,
    document: Document,
    initial_stat: os.stat_result | None,
    config: DotsectionConfig,
    dry_run: bool,
    warn: Warn | None,
    permissions: int | None = None,
) -> FileReport:
    report.changed = report.changed or any(outcome.changed for outcome in report.outcomes)
    report.output = render_document(document)
    if dry_run:
        return report

    try:
        _store(report, report.output, initial_stat, config, warn, permissions, report.changed)
    except OSError as error:
        logger.error("Could not write %s: %s", report.path, error)
        report.error = str(error)
    return report


def _finish_metafile(
    report: FileReport,
    meta: Metafile,
    initial_stat: os.stat_result | None,
    config: DotsectionConfig,
    dry_run: bool,
    warn: Warn | None,
    permissions: int | None = None,
) -> FileReport:
    report.changed = report.changed or meta.dirty or meta.content_changed
    if report.output is None:
        report.output = meta.content
    if dry_run:
        return report

    try:
        _store(report, meta.content, initial_stat, config, warn, permissions, meta.content_changed)
        if meta.dirty:
            save_metafile(meta, allow_symlinks=config.allow_symlinks, warn=warn)
    except OSError as error:
        logger.error("Could not write %s: %s", report.path, error)
        report.error = str(error)
    return report


def compile_file(
    path: Path,
    config: DotsectionConfig | None = None,
    prefix: str | None = None,
    wrap: bool = True,
    dry_run: bool = False,
    warn: Warn | None = None,
    metafile: bool = False,
) -> FileReport:
    """Compile one file and write it back when any hash changed.

    A file that already has a metafile, or any file when `metafile` is set,
    is compiled as a whole: its hash goes to the metafile and the file
    itself is left untouched.

    Args:
        path: File to compile.
        config: Configuration; defaults apply when omitted.
        prefix: Explicit comment prefix; detected when None.
        wrap: Wrap an unmanaged file in the configured main section.
        dry_run: Compute the result without writing.
        warn: Callback for non-fatal warnings.
        metafile: Start tracking `path` through a metafile when it has none.

    Returns:
        FileReport: Outcomes, rendered output, and any I/O error.
    """
    config = config or DotsectionConfig()
    report = FileReport(path=path)

    if metafile or has_metafile(path):
        try:
            meta = load_metafile(path, config) if has_metafile(path) else new_metafile(path, config)
        except ParseFileError as error:
            report.error = str(error)
            return report
        report.outcomes = [compile_metafile(meta)]
        report.output = render_metafile(meta)
        return _finish_metafile(report, meta, None, config, dry_run, warn)

    try:
        document, initial_stat = _load(path, prefix, config)
    except (OSError, ParseFileError) as error:
        report.error = str(error)
        return report

    wrap_name = config.main_section if wrap else None
    report.outcomes = compile_document(document, wrap_name=wrap_name)
    return _finish(report, document, initial_stat, config, dry_run, warn)


def _read_inputs(
    inputs: Iterable[Path], config: DotsectionConfig
) -> tuple[list[tuple[str, Document]], list[SectionOutcome]]:
    sources: list[tuple[str, Document]] = []
    failures: list[SectionOutcome] = []
    for input_path in inputs:
        origin = str(input_path)
        if has_metafile(input_path):
            failures.append(
                _error(origin, ErrorKind.MIXED_MANAGEMENT, "input is managed by a metafile")
            )
            continue
        try:
            sources.append((origin, parse_file(input_path, config=config)))
        except ParseFileError as error:
            failures.append(_error(origin, ErrorKind.IO_ERROR, str(error)))
    return sources, failures


def update_file(
    path: Path,
    config: DotsectionConfig | None = None,
    prefix: str | None = None,
    inputs: Iterable[Path] | None = None,
    sections: Iterable[str] | None = None,
    resolver: SourceResolver | None = None,
    dry_run: bool = False,
    warn: Warn | None = None,
) -> FileReport:
    """Update one file from its section sources, or from explicit input files.

    All `inputs` are merged in one pass, so a requested section counts as
    found when any of them has it. A file managed by a metafile is updated
    as a whole from its metafile's source, or from `inputs`.

    Args:
        path: File to update.
        config: Configuration; defaults apply when omitted.
        prefix: Explicit comment prefix for `path`; detected when None.
        inputs: Files whose shared sections are pushed into `path` instead of
            following ``source`` markers.
        sections: Restrict the update to these section names.
        resolver: Source resolver to use (and share between files).
        dry_run: Compute the result without writing.
        warn: Callback for non-fatal warnings.

    Returns:
        FileReport: Outcomes, rendered output, and any I/O error.
    """
    config = config or DotsectionConfig()
    inputs = list(inputs or [])
    sections = None if sections is None else list(sections)

    if has_metafile(path):
        return _update_metafile_file(path, config, inputs, sections, dry_run, warn)

    report = FileReport(path=path)
    try:
        document, initial_stat = _load(path, prefix, config)
    except (OSError, ParseFileError) as error:
        report.error = str(error)
        return report

    if inputs:
        sources, failures = _read_inputs(inputs, config)
        report.outcomes = merge_documents(document, sources, sections) + failures
    else:
        resolver = resolver or SourceResolver(config)
        report.outcomes = update_document(document, resolver.lookup_for(path), sections)

    return _finish(report, document, initial_stat, config, dry_run, warn)


def _update_metafile_file(
    path: Path,
    config: DotsectionConfig,
    inputs: list[Path],
    sections: list[str] | None,
    dry_run: bool,
    warn: Warn | None,
) -> FileReport:
    report = FileReport(path=path)
    if sections:
        report.error = f"{path} is managed by a metafile and has no sections to select"
        return report
    try:
        meta, initial_stat = _load_metafile(path, config)
    except (OSError, ParseFileError) as error:
        report.error = str(error)
        return report

    if inputs:
        candidates = [(str(input_path), input_path) for input_path in inputs]
    elif meta.source is None:
        logger.debug("%s has no source in its metafile", path)
        candidates = []
    elif is_remote(meta.source):
        report.outcomes.append(
            _error(
                FILE_SCOPE_NAME,
                ErrorKind.SOURCE_UNRESOLVABLE,
                f"{meta.source}: remote sources are not supported for metafiles",
            )
        )
        candidates = []
    else:
        candidates = [(meta.source, expand_path(meta.source, path.parent))]

    for origin, source_path in candidates:
        if not has_metafile(source_path):
            report.outcomes.append(
                _error(FILE_SCOPE_NAME, ErrorKind.MIXED_MANAGEMENT, f"{origin} has no metafile")
            )
            continue
        try:
            source = load_metafile(source_path, config)
        except ParseFileError as error:
            report.outcomes.append(
                _error(FILE_SCOPE_NAME, ErrorKind.SOURCE_UNRESOLVABLE, str(error))
            )
            continue
        report.outcomes.append(sync_metafile(meta, source, origin))

    return _finish_metafile(report, meta, initial_stat, config, dry_run, warn)


def apply_file(
    path: Path,
    config: DotsectionConfig | None = None,
    prefix: str | None = None,
    target: str | None = None,
    dry_run: bool = False,
    warn: Warn | None = None,
) -> FileReport:
    """Apply a source file to the target it declares.

    The target comes from the ``all target`` marker of `path` unless
    `target` overrides it; relative targets are anchored at the directory of
    `path`. A missing target is created as a copy of the source without its
    target declaration. Permissions from ``all permissions`` are applied to
    the target. An existing target without sections is refused, and so is
    mixing metafile and section management between the two files.

    Args:
        path: Source file.
        config: Configuration; defaults apply when omitted.
        prefix: Explicit comment prefix used for both files; detected when None.
        target: Target path overriding the declaration.
        dry_run: Compute the result without writing.
        warn: Callback for non-fatal warnings.

    Returns:
        FileReport: Report for the target file. Its `error` is set when the
            source has no target, the target cannot take the source, or a
            file cannot be read or written.
    """
    config = config or DotsectionConfig()
    if has_metafile(path):
        return _apply_metafile_file(path, config, target, dry_run, warn)

    try:
        source = parse_file(path, prefix, config)
    except ParseFileError as error:
        return FileReport(path=path, error=str(error))

    raw_target = target or source.target
    if raw_target is None:
        return FileReport(path=path, error=f"{path} has no target declaration")

    target_path = expand_path(raw_target, path.parent)
    report = FileReport(path=target_path)
    permissions = parse_permissions(source.permissions) if source.permissions else None

    if not target_path.exists():
        if not config.create_targets:
            report.error = f"{target_path} does not exist"
            return report
        strip_target_declarations(source)
        report.created = True
        report.changed = True
        report.outcomes = [
            SectionOutcome(name=name, status=OutcomeStatus.UPDATED, detail=str(path))
            for name in _unique_names(source.sections)
        ]
        logger.info("Creating %s from %s", target_path, path)
        return _finish(report, source, None, config, dry_run, warn, permissions)

    if has_metafile(target_path):
        report.error = f"cannot apply sections to {target_path}: it is managed by a metafile"
        return report

    try:
        document, initial_stat = _load(target_path, prefix, config)
    except (OSError, ParseFileError) as error:
        report.error = str(error)
        return report

    if not document.managed:
        report.error = f"cannot apply to unmanaged file {target_path}"
        return report

    report.outcomes = apply_document(source, document, origin=str(path))
    return _finish(report, document, initial_stat, config, dry_run, warn, permissions)


def _apply_metafile_file(
    path: Path,
    config: DotsectionConfig,
    target: str | None,
    dry_run: bool,
    warn: Warn | None,
) -> FileReport:
    try:
        source = load_metafile(path, config)
    except ParseFileError as error:
        return FileReport(path=path, error=str(error))

    raw_target = target or source.target
    if raw_target is None:
        return FileReport(path=path, error=f"{path} has no target declaration")

    target_path = expand_path(raw_target, path.parent)
    report = FileReport(path=target_path)
    permissions = parse_permissions(source.permissions) if source.permissions else None

    if classify_metafile(source).modified:
        report.error = f"{path} changed since its last compile; compile it before applying"
        return report

    if not target_path.exists():
        if not config.create_targets:
            report.error = f"{target_path} does not exist"
            return report
        created = Metafile(path=target_path, source=str(path), permissions=source.permissions)
        created.replace_content(source.content, content_hash(source.content))
        report.created = True
        report.outcomes = [
            SectionOutcome(name=FILE_SCOPE_NAME, status=OutcomeStatus.UPDATED, detail=str(path))
        ]
        logger.info("Creating %s from %s", target_path, path)
        return _finish_metafile(report, created, None, config, dry_run, warn, permissions)

    if not has_metafile(target_path):
        report.error = f"cannot apply {path} to {target_path}: the target has no metafile"
        return report

    try:
        meta, initial_stat = _load_metafile(target_path, config)
    except (OSError, ParseFileError) as error:
        report.error = str(error)
        return report

    report.outcomes = [sync_metafile(meta, source, str(path))]
    return _finish_metafile(report, meta, initial_stat, config, dry_run, warn, permissions)


def check_file(path: Path, config: DotsectionConfig | None = None) -> FileReport:
    """Classify the sections of one file without changing it.

    Unmodified sections are reported ``SKIPPED_UNCHANGED`` and modified ones
    ``SKIPPED_MODIFIED`` with their reason. A file managed by a metafile is
    reported as the single section ``all``. A file with no outcomes is
    unmanaged.
    """
    config = config or DotsectionConfig()
    report = FileReport(path=path)
    try:
        if has_metafile(path):
            classifications = [(FILE_SCOPE_NAME, classify_metafile(load_metafile(path, config)))]
        else:
            document = parse_file(path, config=config)
            classifications = [(section.name, classify(section)) for section in document.sections]
    except ParseFileError as error:
        report.error = str(error)
        return report

    for name, classification in classifications:
        status = (
            OutcomeStatus.SKIPPED_MODIFIED
            if classification.modified
            else OutcomeStatus.SKIPPED_UNCHANGED
        )
        report.outcomes.append(
            SectionOutcome(name=name, status=status, reason=classification.reason)
        )
    return report


# ------------------------------------------------------------------
# Directory operations
# ------------------------------------------------------------------


def _iter_paths(path: Path, config: DotsectionConfig) -> Iterable[Path]:
    if path.is_dir():
        return (
            file_path for file_path in walk_files(path, config.ignore) if not is_metafile(file_path)
        )
    return [path]


def _declared_target(path: Path, prefix: str | None, config: DotsectionConfig) -> str | None:
    if has_metafile(path):
        return load_metafile(path, config).target
    return parse_file(path, prefix, config).target


def compile_path(
    path: Path,
    config: DotsectionConfig | None = None,
    prefix: str | None = None,
    wrap: bool = True,
    dry_run: bool = False,
    warn: Warn | None = None,
    metafile: bool = False,
) -> Report:
    """Compile a file, or every managed file below a directory.

    Unmanaged files are only wrapped, or given a metafile, when `path` names
    them directly; a directory walk never adopts files that are not managed
    yet.
    """
    config = config or DotsectionConfig()
    report = Report()
    if not path.is_dir():
        report.add(compile_file(path, config, prefix, wrap, dry_run, warn, metafile))
        return report

    for file_path in _iter_paths(path, config):
        file_report = compile_file(file_path, config, prefix, False, dry_run, warn)
        if file_report.error is not None:
            logger.debug("Skipping unreadable %s: %s", file_path, file_report.error)
            continue
        if file_report.outcomes:
            report.add(file_report)
    return report


def apply_path(
    path: Path,
    config: DotsectionConfig | None = None,
    prefix: str | None = None,
    target: str | None = None,
    dry_run: bool = False,
    warn: Warn | None = None,
) -> Report:
    """Apply a file, or every file below a directory that declares a target."""
    config = config or DotsectionConfig()
    report = Report()
    if not path.is_dir():
        report.add(apply_file(path, config, prefix, target, dry_run, warn))
        return report

    for file_path in _iter_paths(path, config):
        try:
            declared = _declared_target(file_path, prefix, config)
        except ParseFileError as error:
            logger.debug("Skipping unreadable %s: %s", file_path, error)
            continue
        if declared is None:
            logger.debug("Skipping %s: no target declaration", file_path)
            continue
        report.add(apply_file(file_path, config, prefix, None, dry_run, warn))
    return report


def check_path(path: Path, config: DotsectionConfig | None = None) -> Report:
    """Classify every readable file below `path` (or `path` itself)."""
    config = config or DotsectionConfig()
    report = Report()
    for file_path in _iter_paths(path, config):
        file_report = check_file(file_path, config)
        if file_report.error is not None and path.is_dir():
            logger.debug("Skipping unreadable %s: %s", file_path, file_report.error)
            continue
        report.add(file_report)
    return report
