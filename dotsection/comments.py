"""Marker comment grammar and comment syntax detection."""

from __future__ import annotations

import re
from functools import lru_cache
from pathlib import PurePath

from .constants import (
    DEFAULT_PREFIX,
    FILE_SCOPE_NAME,
    MARKER_LEADER,
    OCTAL_PERMISSIONS_PATTERN,
)
from .models import Marker, MarkerKind

KEYWORDS = {
    "begin": MarkerKind.BEGIN,
    "start": MarkerKind.BEGIN,
    "end": MarkerKind.END,
    "stop": MarkerKind.END,
    "hash": MarkerKind.HASH,
    "source": MarkerKind.SOURCE,
    "target": MarkerKind.TARGET,
    "permissions": MarkerKind.PERMISSIONS,
}

_ARGUMENT_REQUIRED = {
    MarkerKind.HASH,
    MarkerKind.SOURCE,
    MarkerKind.TARGET,
    MarkerKind.PERMISSIONS,
}
_FILE_SCOPE_KINDS = {MarkerKind.TARGET, MarkerKind.PERMISSIONS}

FILENAME_PREFIXES = {
    "bashrc": "#",
    "zshrc": "#",
    "profile": "#",
    "dunstrc": "#",
    "jgmenurc": "#",
    "xsettingsd": "#",
    "gitconfig": "#",
    "tmux.conf": "#",
    "vimrc": '"',
    "gvimrc": '"',
    "Xresources": "!",
    "Xdefaults": "!",
    "Makefile": "#",
}

EXTENSION_PREFIXES = {
    "py": "#",
    "sh": "#",
    "bash": "#",
    "zsh": "#",
    "fish": "#",
    "rc": "#",
    "conf": "#",
    "cfg": "#",
    "desktop": "#",
    "toml": "#",
    "yaml": "#",
    "yml": "#",
    "c": "//",
    "h": "//",
    "cpp": "//",
    "hpp": "//",
    "js": "//",
    "ts": "//",
    "rasi": "//",
    "go": "//",
    "rs": "//",
    "ini": ";",
    "reg": ";",
    "vim": '"',
    "lua": "--",
    "sql": "--",
    "xresources": "!",
}

INTERPRETER_PREFIXES = {
    "python": "#",
    "python3": "#",
    "sh": "#",
    "bash": "#",
    "zsh": "#",
    "fish": "#",
    "node": "//",
}

_SHEBANG_INTERPRETER = re.compile(r"^#!\S*/(?:env\s+)?(\S+)")


def keyword_for(kind: MarkerKind) -> str:
    return kind.value


def format_marker(
    prefix: str,
    name: str,
    kind: MarkerKind,
    argument: str | None = None,
    newline: str = "\n",
) -> str:
    """Render a marker comment line.

    Args:
        prefix: Comment prefix of the file (``#``, ``//``, ...).
        name: Section name, or ``all`` for file-scope markers.
        kind: Marker keyword.
        argument: Optional argument such as a hash or a path.
        newline: Line ending appended to the marker.

    Returns:
        str: The marker line, including `newline`.

    Examples:
        format_marker("#", "aliases", MarkerKind.BEGIN)  # "#... aliases begin\\n"
    """
    line = f"{prefix}{MARKER_LEADER} {name} {keyword_for(kind)}"
    if argument is not None:
        line += f" {argument}"
    return line + newline


@lru_cache(maxsize=64)
def _marker_pattern(prefix: str) -> re.Pattern[str]:
    return re.compile(rf"^ *{re.escape(prefix)} *{re.escape(MARKER_LEADER)} *(.*)$")


def parse_marker(line: str, prefix: str) -> Marker | None:
    """Parse a marker comment line.

    Lines that do not start with ``<prefix>...`` followed by a name and a
    keyword are not markers and yield None. Unknown keywords, missing
    required arguments and file-scope keywords used on a section name yield
    a `Marker` whose `kind` is None so callers can flag them.

    Args:
        line: Line to inspect, with or without its line ending.
        prefix: Comment prefix of the file.

    Returns:
        Marker | None: The parsed marker, or None when the line is ordinary text.

    Examples:
        parse_marker("#... aliases hash 0A1B", "#")
        parse_marker("echo hi", "#")  # None
    """
    if not prefix:
        return None

    body = line.rstrip("\r\n")
    if prefix not in body:
        return None

    match = _marker_pattern(prefix).match(body)
    if match is None:
        return None

    tokens = match.group(1).split()
    if len(tokens) < 2:
        return None

    name, keyword = tokens[0], tokens[1]
    argument = " ".join(tokens[2:]) or None
    kind = KEYWORDS.get(keyword)

    if kind is not None and not _is_valid(name, kind, argument):
        kind = None

    return Marker(name=name, kind=kind, keyword=keyword, argument=argument)


def _is_valid(name: str, kind: MarkerKind, argument: str | None) -> bool:
    if kind in _ARGUMENT_REQUIRED and argument is None:
        return False
    if (name == FILE_SCOPE_NAME) != (kind in _FILE_SCOPE_KINDS):
        return False
    if kind is MarkerKind.PERMISSIONS:
        return OCTAL_PERMISSIONS_PATTERN.match(argument) is not None
    return True


def detect_comment_prefix(
    filename: str | PurePath,
    first_line: str = "",
    overrides: dict[str, str] | None = None,
    default: str | None = DEFAULT_PREFIX,
) -> str | None:
    """Pick the comment prefix used for markers in a file.

    Lookup order: `overrides` by file name then extension, the built-in file
    name table, the built-in extension table, the interpreter named by a
    ``#!`` first line, and finally `default`.

    Args:
        filename: Name or path of the file.
        first_line: First line of the file, used for interpreter detection.
        overrides: Extra ``{name_or_extension: prefix}`` entries checked first.
        default: Fallback prefix; an empty value disables section processing.

    Returns:
        str | None: The prefix, or None when the file type is unknown and no
            default applies.

    Examples:
        detect_comment_prefix("~/.config/rofi/config.rasi")  # "//"
        detect_comment_prefix("run", "#!/usr/bin/env python3")  # "#"
    """
    path = PurePath(filename)
    name = path.name.lstrip(".")
    extension = path.suffix[1:] if path.suffix else ""

    for table in (overrides or {}, FILENAME_PREFIXES, EXTENSION_PREFIXES):
        if name in table:
            return table[name]
        if extension and extension in table:
            return table[extension]

    match = _SHEBANG_INTERPRETER.match(first_line)
    if match is not None:
        interpreter = match.group(1)
        if interpreter in INTERPRETER_PREFIXES:
            return INTERPRETER_PREFIXES[interpreter]

    return default or None
