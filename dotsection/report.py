"""Human-readable formatting of operation reports.

Styling goes through ``click.style``; ``click.echo`` strips it when the
output is not a terminal.
"""

from __future__ import annotations

import click

from .classifier import classify
from .metafile import classify_metafile, metafile_path
from .models import Document, FileReport, Metafile, OutcomeStatus, Report, SectionOutcome

_STATUS_LABELS = {
    OutcomeStatus.COMPILED: ("compiled", "green"),
    OutcomeStatus.UPDATED: ("updated", "green"),
    OutcomeStatus.SKIPPED_MODIFIED: ("modified, skipped", "yellow"),
    OutcomeStatus.SKIPPED_UNCHANGED: ("unchanged", None),
    OutcomeStatus.ERROR: ("error", "red"),
}


def format_outcome(outcome: SectionOutcome) -> str:
    """Format one section outcome as ``name: status (details)``."""
    label, color = _STATUS_LABELS[outcome.status]
    details = []
    if outcome.error is not None:
        details.append(outcome.error.value)
    if outcome.reason is not None:
        details.append(outcome.reason.value)
    if outcome.detail:
        details.append(outcome.detail)
    suffix = f" ({'; '.join(details)})" if details else ""
    return f"{outcome.name}: {click.style(label, fg=color, bold=color is not None)}{suffix}"


def format_file_report(file_report: FileReport, verbose: bool = False) -> list[str]:
    """Format the outcomes of one file.

    Unchanged sections are only listed when `verbose` is set.
    """
    path = click.style(str(file_report.path), bold=True)
    if file_report.error is not None:
        return [f"{path}: {click.style(file_report.error, fg='red')}"]

    lines = []
    if file_report.created:
        lines.append(f"{path}: {click.style('created', fg='green', bold=True)}")
    for outcome in file_report.outcomes:
        if outcome.status is OutcomeStatus.SKIPPED_UNCHANGED and not verbose:
            continue
        lines.append(f"{path}: {format_outcome(outcome)}")
    if not lines:
        lines.append(f"{path}: {click.style('nothing to do', dim=True)}")
    return lines


def format_summary(report: Report) -> str:
    """Summarize a report in one line of counts."""
    counts = report.counts()
    parts = [
        f"{counts[OutcomeStatus.COMPILED]} compiled",
        f"{counts[OutcomeStatus.UPDATED]} updated",
        f"{counts[OutcomeStatus.SKIPPED_MODIFIED]} skipped (modified)",
        f"{counts[OutcomeStatus.SKIPPED_UNCHANGED]} unchanged",
    ]
    errors = counts[OutcomeStatus.ERROR] + sum(
        1 for file_report in report.files if file_report.error is not None
    )
    error_text = f"{errors} error{'s' if errors != 1 else ''}"
    parts.append(click.style(error_text, fg="red", bold=True) if errors else error_text)
    return ", ".join(parts)


def format_document_info(document: Document) -> list[str]:
    """Describe the comment syntax, sections, and declarations of a document."""
    lines = [f"comment syntax: {document.prefix or 'none'}"]
    for section in document.sections:
        classification = classify(section)
        end_line = section.end_line if section.end_line is not None else "?"
        if classification.modified:
            state = click.style("modified", fg="red", bold=True)
            state += f" ({classification.reason.value})"
        else:
            state = click.style("ok", fg="green", bold=True)
        line = f"{section.start_line}-{end_line}: {section.name} | {state}"
        if section.source is not None:
            line += f" | source {section.source}"
        lines.append(line)
    if document.permissions is not None:
        lines.append(f"target permissions: {click.style(document.permissions, bold=True)}")
    if document.target is not None:
        lines.append(f"target: {click.style(document.target, bold=True)}")
    return lines


def format_metafile_info(meta: Metafile) -> list[str]:
    """Describe a file managed through its metafile."""
    classification = classify_metafile(meta)
    if classification.modified:
        state = click.style("modified", fg="red", bold=True)
        state += f" ({classification.reason.value})"
    else:
        state = click.style("ok", fg="green", bold=True)
    lines = [
        f"metafile: {metafile_path(meta.path)}",
        f"hash: {meta.stored_hash or 'none'} | {state}",
    ]
    if meta.source is not None:
        lines.append(f"source: {click.style(meta.source, bold=True)}")
    if meta.permissions is not None:
        lines.append(f"target permissions: {click.style(meta.permissions, bold=True)}")
    if meta.target is not None:
        lines.append(f"target: {click.style(meta.target, bold=True)}")
    return lines
