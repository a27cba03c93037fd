"""Constants used across the dotsection package."""

from __future__ import annotations

import re

# Marker grammar
MARKER_LEADER = "..."
FILE_SCOPE_NAME = "all"
DEFAULT_PREFIX = "#"
DEFAULT_MAIN_SECTION = "main"
SHEBANG_PATTERN = re.compile(r"^#!")
OCTAL_PERMISSIONS_PATTERN = re.compile(r"^[0-7]{3,4}$")

# Limits
DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024

# Source resolution
DEFAULT_FETCH_ATTEMPTS = 3
DEFAULT_FETCH_BACKOFF = 0.5
REMOTE_SCHEMES = ("http://", "https://", "git+", "ssh://")

# Directory walks
DEFAULT_IGNORE = (".git",)

# Metafiles: per-file JSON sidecars for files that cannot carry markers
METAFILE_SUFFIX = ".dotsection.json"
METAFILE_VERSION = 1

# Exit codes
EXIT_OK = 0
EXIT_PARTIAL_FAILURE = 1
