from __future__ import annotations

from pathlib import Path

import pytest

from dotsection.config import DotsectionConfig
from dotsection.exceptions import SourceUnresolvableError
from dotsection.resolver import SourceResolver, is_remote

REMOTE_TEXT = "-- upstream\n--... a begin\nvim.o.number = true\n--... a end\n"


@pytest.mark.parametrize(
    ("source", "expected"),
    [
        ("https://example.com/init.lua", True),
        ("http://example.com/init.lua", True),
        ("git+https://example.com/repo.git", True),
        ("ssh://host/file", True),
        ("~/dotfiles/init.lua", False),
        ("relative/init.lua", False),
    ],
)
def test_is_remote(source: str, expected: bool):
    assert is_remote(source) is expected


def test_resolve_local_source_relative_to_base_dir(tmp_path: Path):
    (tmp_path / "upstream.sh").write_text("#... a begin\nx\n#... a end\n", encoding="utf-8")
    resolver = SourceResolver()

    document = resolver.resolve("upstream.sh", tmp_path)

    assert [section.name for section in document.sections] == ["a"]


def test_lookup_for_binds_declaring_directory(tmp_path: Path):
    (tmp_path / "upstream.sh").write_text("#... a begin\nx\n#... a end\n", encoding="utf-8")
    lookup = SourceResolver().lookup_for(tmp_path / "bashrc")

    assert lookup("upstream.sh").sections[0].content == ["x\n"]


def test_resolve_caches_documents(tmp_path: Path):
    path = tmp_path / "upstream.sh"
    path.write_text("#... a begin\nx\n#... a end\n", encoding="utf-8")
    resolver = SourceResolver()

    first = resolver.resolve(str(path))
    path.write_text("changed\n", encoding="utf-8")

    assert resolver.resolve(str(path)) is first


def test_resolve_missing_source_is_cached_failure(tmp_path: Path):
    resolver = SourceResolver()

    with pytest.raises(SourceUnresolvableError, match="does not exist"):
        resolver.resolve("missing.sh", tmp_path)

    (tmp_path / "missing.sh").write_text("#... a begin\n#... a end\n", encoding="utf-8")

    with pytest.raises(SourceUnresolvableError):
        resolver.resolve("missing.sh", tmp_path)


def test_resolve_unreadable_source(tmp_path: Path):
    (tmp_path / "binary.sh").write_bytes(b"\xff\xfe")

    with pytest.raises(SourceUnresolvableError, match="Invalid UTF-8"):
        SourceResolver().resolve("binary.sh", tmp_path)


def test_remote_source_without_fetcher():
    with pytest.raises(SourceUnresolvableError, match="remote sources are not supported"):
        SourceResolver().resolve("https://example.com/init.lua")


def test_remote_source_detects_prefix_from_uri():
    fetched = []

    def fetch(source: str) -> bytes:
        fetched.append(source)
        return REMOTE_TEXT.encode("utf-8")

    resolver = SourceResolver(fetch=fetch)

    document = resolver.resolve("https://example.com/dots/init.lua")
    resolver.resolve("https://example.com/dots/init.lua")

    assert document.prefix == "--"
    assert document.sections[0].content == ["vim.o.number = true\n"]
    assert fetched == ["https://example.com/dots/init.lua"]


def test_remote_source_retries_with_backoff():
    delays: list[float] = []
    attempts = iter([OSError("reset"), OSError("timeout")])

    def fetch(source: str) -> bytes:
        error = next(attempts, None)
        if error is not None:
            raise error
        return REMOTE_TEXT.encode("utf-8")

    config = DotsectionConfig(fetch_attempts=3, fetch_backoff=0.5)
    resolver = SourceResolver(config, fetch=fetch, sleep=delays.append)

    document = resolver.resolve("https://example.com/init.lua")

    assert delays == [0.5, 1.0]
    assert document.sections[0].name == "a"


def test_remote_source_gives_up_after_attempts():
    delays: list[float] = []
    calls = []

    def fetch(source: str) -> bytes:
        calls.append(source)
        raise OSError("unreachable")

    config = DotsectionConfig(fetch_attempts=2, fetch_backoff=1.0)
    resolver = SourceResolver(config, fetch=fetch, sleep=delays.append)

    with pytest.raises(SourceUnresolvableError, match="unreachable"):
        resolver.resolve("https://example.com/init.lua")
    with pytest.raises(SourceUnresolvableError):
        resolver.resolve("https://example.com/init.lua")

    assert len(calls) == 2
    assert delays == [1.0]


def test_remote_source_invalid_utf8():
    resolver = SourceResolver(fetch=lambda source: b"\xff")

    with pytest.raises(SourceUnresolvableError, match="invalid UTF-8"):
        resolver.resolve("https://example.com/init.lua")


def test_forced_prefix_applies_to_sources(tmp_path: Path):
    (tmp_path / "upstream.txt").write_text("//... a begin\nx\n//... a end\n", encoding="utf-8")

    document = SourceResolver(prefix="//").resolve("upstream.txt", tmp_path)

    assert document.prefix == "//"
    assert document.sections[0].name == "a"
