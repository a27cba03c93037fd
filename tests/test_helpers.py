from __future__ import annotations

import os
import socket
import stat
from pathlib import Path

import pytest

from dotsection.filesystem import (
    collect_file_stat,
    enforce_file_size,
    ensure_file_unchanged,
    expand_path,
    get_max_file_size,
    parse_permissions,
    safe_read,
    walk_files,
    write_text_atomic,
)


def test_get_max_file_size_uses_default(monkeypatch):
    monkeypatch.delenv("DOTSECTION_MAX_FILE_SIZE", raising=False)
    assert get_max_file_size(default=123) == 123


def test_get_max_file_size_reads_environment(monkeypatch):
    monkeypatch.setenv("DOTSECTION_MAX_FILE_SIZE", "2048")
    assert get_max_file_size() == 2048


def test_get_max_file_size_rejects_non_integer(monkeypatch):
    monkeypatch.setenv("DOTSECTION_MAX_FILE_SIZE", "invalid")
    with pytest.raises(ValueError):
        get_max_file_size()


def test_get_max_file_size_rejects_non_positive(monkeypatch):
    monkeypatch.setenv("DOTSECTION_MAX_FILE_SIZE", "0")
    with pytest.raises(ValueError):
        get_max_file_size()


def test_expand_path_anchors_relative_paths(tmp_path: Path):
    assert expand_path("up/../bashrc", tmp_path) == tmp_path / "bashrc"
    assert expand_path(tmp_path / "x", Path("/elsewhere")) == tmp_path / "x"


def test_expand_path_expands_home(monkeypatch, tmp_path: Path):
    monkeypatch.setenv("HOME", str(tmp_path))
    assert expand_path("~/.bashrc", Path("/ignored")) == tmp_path / ".bashrc"


def test_collect_file_stat_handles_missing_file(tmp_path: Path):
    with pytest.raises(OSError):
        collect_file_stat(tmp_path / "missing.sh")


def test_collect_file_stat_rejects_symlink(tmp_path: Path):
    target = tmp_path / "actual.sh"
    target.write_text("echo\n", encoding="utf-8")
    link = tmp_path / "alias.sh"
    os.symlink(target, link)

    with pytest.raises(OSError, match="Symlinks are not supported"):
        collect_file_stat(link)
    assert stat.S_ISREG(collect_file_stat(link, allow_symlinks=True).st_mode)


def test_collect_file_stat_rejects_directory(tmp_path: Path):
    directory = tmp_path / "folder"
    directory.mkdir()
    with pytest.raises(OSError):
        collect_file_stat(directory)


@pytest.mark.skipif(not hasattr(os, "mkfifo"), reason="mkfifo not available")
def test_collect_file_stat_rejects_fifo(tmp_path: Path):
    """FIFOs are rejected before anything tries to read them."""
    fifo = tmp_path / "pipe.sh"
    try:
        os.mkfifo(fifo)
    except OSError:  # pragma: no cover
        pytest.skip("Unable to create FIFO")

    with pytest.raises(OSError) as exc_info:
        collect_file_stat(fifo)
    assert "is not a regular file" in str(exc_info.value)


@pytest.mark.skipif(not hasattr(socket, "AF_UNIX"), reason="Unix sockets not available")
def test_collect_file_stat_rejects_socket(tmp_path: Path):
    socket_path = tmp_path / "socket.sh"
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    try:
        sock.bind(str(socket_path))
    except OSError:  # pragma: no cover
        pytest.skip("Unable to create socket")
    finally:
        sock.close()

    with pytest.raises(OSError) as exc_info:
        collect_file_stat(socket_path)
    assert "is not a regular file" in str(exc_info.value)


def test_enforce_file_size(tmp_path: Path):
    path = tmp_path / "big.sh"
    path.write_text("x" * 11, encoding="utf-8")
    stat_result = path.stat()

    enforce_file_size(stat_result, 11, path)
    with pytest.raises(OSError, match="maximum allowed size of 10 bytes"):
        enforce_file_size(stat_result, 10, path)


def test_ensure_file_unchanged_detects_size_change(tmp_path: Path):
    path = tmp_path / "file.sh"
    path.write_text("one\n", encoding="utf-8")
    before = path.stat()
    path.write_text("one\ntwo\n", encoding="utf-8")

    with pytest.raises(OSError, match="changed during processing"):
        ensure_file_unchanged(before, path.stat(), path)


def test_safe_read_raises_for_directory(tmp_path: Path):
    directory = tmp_path / "folder"
    directory.mkdir()

    with pytest.raises(OSError):
        safe_read(directory)


def test_safe_read_keeps_crlf(tmp_path: Path):
    path = tmp_path / "win.ini"
    path.write_bytes(b"a\r\nb\r\n")

    with safe_read(path) as handle:
        assert handle.read() == "a\r\nb\r\n"


@pytest.mark.parametrize(
    ("value", "expected"),
    [("644", 0o644), ("0600", 0o600), ("4755", 0o4755)],
)
def test_parse_permissions(value: str, expected: int):
    assert parse_permissions(value) == expected


def test_write_text_atomic_replaces_and_preserves_metadata(tmp_path: Path):
    path = tmp_path / "bashrc"
    path.write_text("old\n", encoding="utf-8")
    path.chmod(0o600)
    os.utime(path, ns=(1_000_000_000, 2_000_000_000))
    before = path.stat()

    write_text_atomic(path, "new\r\n", expected_stat=before)

    after = path.stat()
    assert path.read_bytes() == b"new\r\n"
    assert stat.S_IMODE(after.st_mode) == 0o600
    assert after.st_atime_ns == before.st_atime_ns
    assert list(tmp_path.iterdir()) == [path]


def test_write_text_atomic_creates_parents_with_permissions(tmp_path: Path):
    path = tmp_path / "nested" / "dir" / "config"

    write_text_atomic(path, "x\n", permissions=0o640)

    assert path.read_text(encoding="utf-8") == "x\n"
    assert stat.S_IMODE(path.stat().st_mode) == 0o640


def test_write_text_atomic_refuses_changed_file(tmp_path: Path):
    path = tmp_path / "bashrc"
    path.write_text("old\n", encoding="utf-8")
    before = path.stat()
    path.write_text("changed by someone else\n", encoding="utf-8")

    with pytest.raises(OSError, match="changed during processing"):
        write_text_atomic(path, "new\n", expected_stat=before)

    assert path.read_text(encoding="utf-8") == "changed by someone else\n"
    assert list(tmp_path.iterdir()) == [path]


def test_write_text_atomic_warns_when_ownership_cannot_be_kept(tmp_path: Path, monkeypatch):
    path = tmp_path / "bashrc"
    path.write_text("old\n", encoding="utf-8")
    warnings: list[str] = []

    def _deny_chown(*args, **kwargs):
        raise PermissionError("not allowed")

    monkeypatch.setattr(os, "chown", _deny_chown, raising=False)

    write_text_atomic(path, "new\n", expected_stat=path.stat(), warn=warnings.append)

    assert path.read_text(encoding="utf-8") == "new\n"
    assert warnings and "ownership" in warnings[0]


def test_walk_files_is_sorted_and_skips_ignored(tmp_path: Path):
    (tmp_path / "b.sh").write_text("", encoding="utf-8")
    (tmp_path / "a.sh").write_text("", encoding="utf-8")
    (tmp_path / "sub").mkdir()
    (tmp_path / "sub" / "c.sh").write_text("", encoding="utf-8")
    (tmp_path / ".git").mkdir()
    (tmp_path / ".git" / "config").write_text("", encoding="utf-8")
    os.symlink(tmp_path / "a.sh", tmp_path / "link.sh")

    found = list(walk_files(tmp_path))

    assert found == [tmp_path / "a.sh", tmp_path / "b.sh", tmp_path / "sub" / "c.sh"]
    assert list(walk_files(tmp_path, ignore=["sub", ".git"]))[-1] == tmp_path / "b.sh"
