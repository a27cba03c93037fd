"""Filesystem helpers for dotsection."""

from __future__ import annotations

import os
import stat
import tempfile
from collections.abc import Callable, Iterable, Iterator
from pathlib import Path
from typing import TextIO

from .constants import DEFAULT_IGNORE, DEFAULT_MAX_FILE_SIZE

MAX_FILE_SIZE_ENV_VAR = "DOTSECTION_MAX_FILE_SIZE"


def get_max_file_size(default: int = DEFAULT_MAX_FILE_SIZE) -> int:
    """Return the size limit for dotfiles, honouring ``DOTSECTION_MAX_FILE_SIZE``.

    The environment variable wins over `default`, which normally comes from
    the ``max_file_size`` config key.

    Raises:
        ValueError: If the variable is set to anything but a positive integer.
    """
    raw_limit = os.environ.get(MAX_FILE_SIZE_ENV_VAR)
    if raw_limit is None:
        return default

    try:
        limit = int(raw_limit)
    except ValueError as error:
        raise ValueError(
            f"{MAX_FILE_SIZE_ENV_VAR}={raw_limit!r} is not a number of bytes"
        ) from error

    if limit <= 0:
        raise ValueError(f"{MAX_FILE_SIZE_ENV_VAR} must be above zero, got {limit}.")

    return limit


def expand_path(raw_path: str | Path, base_dir: Path | None = None) -> Path:
    """Expand ``~`` and anchor relative paths at `base_dir`.

    Args:
        raw_path: Path as written by the user or in a marker.
        base_dir: Directory relative paths are resolved against; the current
            directory when None.

    Returns:
        Path: Absolute path. Symlinks are not resolved.

    Examples:
        expand_path("~/.bashrc")
        expand_path("upstream/zshrc", Path("/home/me/dotfiles"))
    """
    path = Path(raw_path).expanduser()
    if not path.is_absolute():
        path = (base_dir or Path.cwd()) / path
    return Path(os.path.normpath(path))


def collect_file_stat(filepath: Path, allow_symlinks: bool = False) -> os.stat_result:
    """Stat a dotfile, insisting on a regular file.

    Args:
        filepath: Path to the file.
        allow_symlinks: Follow a symlinked `filepath` instead of rejecting it.

    Raises:
        OSError: If the path is inaccessible, a disallowed symlink, or not a
            regular file.
    """
    try:
        file_stat = os.stat(filepath, follow_symlinks=allow_symlinks)
    except OSError as error:
        raise OSError(f"Error accessing {filepath}: {error}") from error

    if stat.S_ISLNK(file_stat.st_mode):
        raise OSError(f"Symlinks are not supported: {filepath}.")
    if not stat.S_ISREG(file_stat.st_mode):
        raise OSError(f"{filepath} is not a regular file.")

    return file_stat


def enforce_file_size(file_stat: os.stat_result, max_size: int, filepath: Path):
    """Raise OSError when `filepath` is larger than `max_size` bytes."""
    if file_stat.st_size > max_size:
        raise OSError(f"{filepath} is larger than the maximum allowed size of {max_size} bytes.")


def _fingerprint(file_stat: os.stat_result) -> tuple:
    return (
        getattr(file_stat, "st_ino", None),
        getattr(file_stat, "st_dev", None),
        file_stat.st_size,
        file_stat.st_mtime_ns,
    )


def ensure_file_unchanged(
    expected_stat: os.stat_result, current_stat: os.stat_result, filepath: Path
):
    """Refuse to continue when the file on disk is no longer the one that was read.

    Inode, device, size and modification time are compared; any difference
    raises OSError.
    """
    if _fingerprint(expected_stat) != _fingerprint(current_stat):
        raise OSError(f"{filepath} changed during processing; refusing to overwrite.")


def safe_read(filepath: Path) -> TextIO:
    """Open a dotfile as UTF-8 text without newline translation.

    ``\\r\\n`` endings therefore reach the parser untouched.

    Raises:
        OSError: If the path is missing, unreadable, or a directory.

    Examples:
        with safe_read(Path("~/.vimrc").expanduser()) as handle:
            text = handle.read()
    """
    try:
        return open(filepath, "r", encoding="UTF-8", newline="")
    except (FileNotFoundError, PermissionError, IsADirectoryError, NotADirectoryError) as error:
        raise OSError(f"Error accessing {filepath}: {error}") from error


def parse_permissions(value: str) -> int:
    """Convert an octal permission string such as ``644`` to a mode."""
    return int(value, 8) & 0o7777


def _default_new_file_mode() -> int:
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def write_text_atomic(
    filepath: Path,
    text: str,
    expected_stat: os.stat_result | None = None,
    permissions: int | None = None,
    allow_symlinks: bool = False,
    warn: Callable[[str], None] | None = None,
):
    """Replace (or create) a file with new text atomically.

    The text goes to a temporary file in the same directory, is flushed and
    synced, and then renamed over `filepath`, so readers only ever see the old
    or the new content. For an existing file the permissions, ownership and
    access time are preserved, and the write is refused when the file changed
    since `expected_stat` was taken.

    Args:
        filepath: File to write.
        text: Complete new content.
        expected_stat: Stat captured before the file was read; None when the
            file is being created.
        permissions: Mode to set instead of the preserved or default one.
        allow_symlinks: Write through a symlinked `filepath` to its target.
        warn: Optional callback for non-fatal warnings (e.g., ownership preservation).

    Raises:
        OSError: If the file changed during processing or cannot be
            written atomically.

    Examples:
        write_text_atomic(Path("~/.bashrc").expanduser(), text, expected_stat)
    """
    if allow_symlinks and filepath.is_symlink():
        filepath = filepath.resolve()

    uid = gid = None
    atime_ns = None
    if expected_stat is not None:
        current_stat = collect_file_stat(filepath, allow_symlinks=allow_symlinks)
        ensure_file_unchanged(expected_stat, current_stat, filepath)
        mode = stat.S_IMODE(expected_stat.st_mode)
        uid = getattr(expected_stat, "st_uid", None)
        gid = getattr(expected_stat, "st_gid", None)
        atime_ns = expected_stat.st_atime_ns
    else:
        filepath.parent.mkdir(parents=True, exist_ok=True)
        mode = _default_new_file_mode()

    if permissions is not None:
        mode = permissions

    staged: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="w",
            encoding="UTF-8",
            newline="",
            delete=False,
            dir=filepath.parent,
            prefix=f".{filepath.name}.",
        ) as handle:
            staged = Path(handle.name)
            handle.write(text)
            handle.flush()
            os.fsync(handle.fileno())
            os.chmod(staged, mode)
            if uid is not None and gid is not None and hasattr(os, "chown"):
                _copy_owner(staged, uid, gid, filepath, warn)

        os.replace(staged, filepath)

        # mtime stays fresh; only atime goes back
        if atime_ns is not None:
            os.utime(filepath, ns=(atime_ns, filepath.stat().st_mtime_ns))
    finally:
        if staged is not None and staged.exists():
            staged.unlink(missing_ok=True)


def _copy_owner(staged: Path, uid: int, gid: int, filepath: Path, warn):
    try:
        os.chown(staged, uid, gid)
    except PermissionError:
        if warn is not None:
            warn(f"Warning: could not keep the ownership of {filepath.name} (needs privileges)")


def walk_files(root: Path, ignore: Iterable[str] = DEFAULT_IGNORE) -> Iterator[Path]:
    """Yield regular files below `root` in a stable order.

    Directories and files whose name is in `ignore` are skipped, as are
    symlinks.

    Examples:
        for path in walk_files(Path("~/dotfiles").expanduser()):
            print(path)
    """
    ignored = set(ignore)
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(name for name in dirnames if name not in ignored)
        for filename in sorted(filenames):
            if filename in ignored:
                continue
            path = Path(dirpath) / filename
            if path.is_symlink() or not path.is_file():
                continue
            yield path
