"""Whole-file management through metafiles.

Formats without comments cannot carry markers. For such a file the hash,
source, target and permissions are kept in a JSON file next to it,
``<name>.dotsection.json``, and the whole file behaves as one section
named ``all``: it is modified when its content no longer matches the stored
hash, and modified files are never overwritten.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from .config import DotsectionConfig
from .constants import FILE_SCOPE_NAME, METAFILE_SUFFIX, METAFILE_VERSION, OCTAL_PERMISSIONS_PATTERN
from .exceptions import ParseFileError
from .filesystem import write_text_atomic
from .hashing import compute_hash, hashes_match
from .models import (
    UNMODIFIED,
    Classification,
    ErrorKind,
    Metafile,
    ModifiedReason,
    OutcomeStatus,
    SectionOutcome,
)
from .parser import read_text, split_lines

logger = logging.getLogger(__name__)

_TEXT_KEYS = ("hash", "source", "target")


def metafile_path(path: Path) -> Path:
    """Return the metafile that belongs to `path`."""
    return path.with_name(path.name + METAFILE_SUFFIX)


def is_metafile(path: Path) -> bool:
    return path.name.endswith(METAFILE_SUFFIX)


def has_metafile(path: Path) -> bool:
    return metafile_path(path).is_file()


def content_hash(content: str) -> str:
    """Hash whole-file content the way section content is hashed."""
    return compute_hash(split_lines(content))


def new_metafile(path: Path, config: DotsectionConfig | None = None) -> Metafile:
    """Start tracking `path`; nothing is written until the metafile is saved.

    Raises:
        ParseFileError: If `path` is itself a metafile or cannot be read.
    """
    if is_metafile(path):
        raise ParseFileError(f"{path} is a metafile and cannot have one itself")
    return Metafile(path=path, content=read_text(path, config), dirty=True)


def load_metafile(path: Path, config: DotsectionConfig | None = None) -> Metafile:
    """Read `path` together with its metafile.

    Args:
        path: The managed file, not the metafile.
        config: Configuration supplying size limits and symlink policy.

    Raises:
        ParseFileError: If either file cannot be read or the metafile is not
            a JSON object with string values.

    Examples:
        meta = load_metafile(Path("~/.config/app/settings.json").expanduser())
    """
    sidecar = metafile_path(path)
    try:
        data = json.loads(read_text(sidecar, config))
    except json.JSONDecodeError as error:
        raise ParseFileError(f"Invalid metafile {sidecar}: {error}") from error

    if not isinstance(data, dict):
        raise ParseFileError(f"Invalid metafile {sidecar}: expected a JSON object")
    for key in _TEXT_KEYS:
        if data.get(key) is not None and not isinstance(data[key], str):
            raise ParseFileError(f"Invalid metafile {sidecar}: `{key}` must be a string")

    permissions = data.get("permissions")
    if isinstance(permissions, int) and not isinstance(permissions, bool):
        permissions = str(permissions)
    if permissions is not None and (
        not isinstance(permissions, str) or not OCTAL_PERMISSIONS_PATTERN.match(permissions)
    ):
        raise ParseFileError(f"Invalid metafile {sidecar}: `permissions` must be octal digits")

    return Metafile(
        path=path,
        content=read_text(path, config),
        stored_hash=data.get("hash"),
        source=data.get("source"),
        target=data.get("target"),
        permissions=permissions,
    )


def render_metafile(meta: Metafile) -> str:
    """Serialize the metadata of `meta` as the JSON text of its metafile."""
    data: dict[str, object] = {
        "version": METAFILE_VERSION,
        "parent": meta.path.name,
        "hash": meta.stored_hash,
    }
    for key, value in (
        ("source", meta.source),
        ("target", meta.target),
        ("permissions", meta.permissions),
    ):
        if value is not None:
            data[key] = value
    return json.dumps(data, indent=2) + "\n"


def save_metafile(meta: Metafile, allow_symlinks: bool = False, warn=None) -> None:
    """Write the metafile of `meta` atomically.

    Raises:
        OSError: If the metafile cannot be written.
    """
    sidecar = metafile_path(meta.path)
    expected_stat = os.stat(sidecar) if sidecar.is_file() else None
    write_text_atomic(
        sidecar,
        render_metafile(meta),
        expected_stat=expected_stat,
        allow_symlinks=allow_symlinks,
        warn=warn,
    )
    meta.dirty = False


def classify_metafile(meta: Metafile) -> Classification:
    """Compare the stored hash of a metafile with its file's current content."""
    if meta.stored_hash is None:
        return Classification(ModifiedReason.MISSING_HASH)
    if not hashes_match(meta.stored_hash, content_hash(meta.content)):
        return Classification(ModifiedReason.HASH_MISMATCH)
    return UNMODIFIED


def compile_metafile(meta: Metafile) -> SectionOutcome:
    """Record the hash of the current content; the managed file is untouched."""
    classification = classify_metafile(meta)
    if not classification.modified:
        return SectionOutcome(name=FILE_SCOPE_NAME, status=OutcomeStatus.SKIPPED_UNCHANGED)

    meta.stored_hash = content_hash(meta.content)
    meta.dirty = True
    logger.info("Compiled metafile of %s (%s)", meta.path, classification.reason.value)
    return SectionOutcome(
        name=FILE_SCOPE_NAME, status=OutcomeStatus.COMPILED, reason=classification.reason
    )


def sync_metafile(target: Metafile, source: Metafile, origin: str) -> SectionOutcome:
    """Replace the whole content of `target` with that of `source`.

    A modified target is skipped. A source edited since its own last compile
    is refused, since its metafile no longer describes what would be copied.
    """
    classification = classify_metafile(target)
    if classification.modified:
        logger.warning("%s is modified (%s), skipping", target.path, classification.reason.value)
        return SectionOutcome(
            name=FILE_SCOPE_NAME,
            status=OutcomeStatus.SKIPPED_MODIFIED,
            reason=classification.reason,
        )

    if classify_metafile(source).modified:
        logger.warning("Source %s is modified, not applying it", origin)
        return SectionOutcome(
            name=FILE_SCOPE_NAME,
            status=OutcomeStatus.ERROR,
            error=ErrorKind.SOURCE_MODIFIED,
            detail=origin,
        )

    new_hash = content_hash(source.content)
    if hashes_match(target.stored_hash, new_hash):
        return SectionOutcome(name=FILE_SCOPE_NAME, status=OutcomeStatus.SKIPPED_UNCHANGED)

    target.replace_content(source.content, new_hash)
    logger.info("Updated %s from %s", target.path, origin)
    return SectionOutcome(name=FILE_SCOPE_NAME, status=OutcomeStatus.UPDATED, detail=origin)
