"""
dotsection: manage marker-delimited sections in dotfiles.

This package can be used both as a CLI tool and as a library.

CLI Usage:
    dotsection compile ~/.bashrc
    dotsection update ~/.bashrc

Library Usage:
    from pathlib import Path
    from dotsection import compile_document, parse_document, render_document

    content = Path("~/.bashrc").expanduser().read_text()
    document = parse_document(content, "#")
    outcomes = compile_document(document)
    text = render_document(document)
"""

import logging

from .classifier import classify, is_modified
from .comments import detect_comment_prefix, format_marker, parse_marker
from .config import ConfigError, DotsectionConfig
from .engine import (
    apply_document,
    apply_file,
    compile_document,
    compile_file,
    merge_document,
    merge_documents,
    update_document,
    update_file,
)
from .exceptions import DotsectionError, ParseFileError, SourceUnresolvableError
from .hashing import compute_hash
from .metafile import compile_metafile, load_metafile, new_metafile, sync_metafile
from .models import (
    Classification,
    Document,
    ErrorKind,
    FileReport,
    Literal,
    Marker,
    MarkerKind,
    Metafile,
    ModifiedReason,
    OutcomeStatus,
    Report,
    Section,
    SectionOutcome,
)
from .parser import parse_document, parse_file
from .renderer import render_document
from .resolver import SourceResolver

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    # Core functionality
    "parse_document",
    "parse_file",
    "render_document",
    "compute_hash",
    "classify",
    "is_modified",
    "compile_document",
    "update_document",
    "apply_document",
    "merge_document",
    "merge_documents",
    "compile_file",
    "update_file",
    "apply_file",
    "SourceResolver",
    # Metafiles
    "load_metafile",
    "new_metafile",
    "compile_metafile",
    "sync_metafile",
    # Comment syntax
    "detect_comment_prefix",
    "format_marker",
    "parse_marker",
    # Data models
    "Classification",
    "Document",
    "ErrorKind",
    "FileReport",
    "Literal",
    "Marker",
    "MarkerKind",
    "Metafile",
    "ModifiedReason",
    "OutcomeStatus",
    "Report",
    "Section",
    "SectionOutcome",
    "DotsectionConfig",
    # Exceptions
    "ConfigError",
    "DotsectionError",
    "ParseFileError",
    "SourceUnresolvableError",
    # Version
    "__version__",
]
