"""Serialization of documents back to text."""

from __future__ import annotations

from .comments import format_marker
from .models import Document, Literal, MarkerKind, Section


def render_section(section: Section, prefix: str, newline: str = "\n") -> str:
    """Render a section.

    A section the engine never touched is written back exactly as it was
    read. A changed section is written in canonical marker order: ``begin``,
    ``source``, ``hash``, content, ``end``.

    Args:
        section: Section to render.
        prefix: Comment prefix for generated markers.
        newline: Line ending for generated markers.

    Returns:
        str: Rendered section text.
    """
    if not section.dirty:
        return "".join(section.raw_lines)

    parts = [format_marker(prefix, section.name, MarkerKind.BEGIN, newline=newline)]
    if section.source is not None:
        parts.append(
            format_marker(prefix, section.name, MarkerKind.SOURCE, section.source, newline)
        )
    if section.stored_hash is not None:
        parts.append(
            format_marker(prefix, section.name, MarkerKind.HASH, section.stored_hash, newline)
        )
    parts.extend(section.content)
    if parts[-1] and not parts[-1].endswith("\n"):
        parts[-1] += newline
    end_newline = section.newline if section.terminated else newline
    parts.append(format_marker(prefix, section.name, MarkerKind.END, newline=end_newline))
    return "".join(parts)


def render_document(document: Document) -> str:
    """Concatenate the blocks of a document into file text.

    Examples:
        render_document(parse_document(text, "#")) == text
    """
    parts = []
    for block in document.blocks:
        if isinstance(block, Literal):
            parts.append(block.text)
        else:
            parts.append(render_section(block, document.prefix or "", document.newline))
    return "".join(parts)


def render_sections(document: Document, names: list[str]) -> str:
    """Render only the named sections, in document order."""
    wanted = set(names)
    return "".join(
        render_section(section, document.prefix or "", document.newline)
        for section in document.sections
        if section.name in wanted
    )
