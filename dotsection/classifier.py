"""Classification of sections as modified or unmodified."""

from __future__ import annotations

from .hashing import compute_hash, hashes_match
from .models import UNMODIFIED, Classification, ModifiedReason, Section


def classify(section: Section) -> Classification:
    """Classify a section from its current state.

    A section is unmodified only when its markers are well-formed, it carries
    a stored hash, and that hash equals the hash of its current content. The
    result is recomputed on every call and the section is never mutated.

    Args:
        section: Section to classify.

    Returns:
        Classification: `UNMODIFIED`, or a modified classification carrying
            the first applicable `ModifiedReason`.
    """
    if not section.terminated or section.malformed_markers:
        return Classification(ModifiedReason.MALFORMED_MARKERS)
    if section.duplicate_metadata:
        return Classification(ModifiedReason.DUPLICATE_METADATA)
    if section.stored_hash is None:
        return Classification(ModifiedReason.MISSING_HASH)
    if not hashes_match(section.stored_hash, compute_hash(section.content)):
        return Classification(ModifiedReason.HASH_MISMATCH)
    return UNMODIFIED


def is_modified(section: Section) -> bool:
    return classify(section).modified
