from __future__ import annotations

import json
import os
import stat
from pathlib import Path

import pytest

from dotsection.engine import (
    apply_file,
    apply_path,
    check_file,
    check_path,
    compile_file,
    compile_path,
    update_file,
)
from dotsection.exceptions import ParseFileError
from dotsection.metafile import (
    classify_metafile,
    content_hash,
    is_metafile,
    load_metafile,
    metafile_path,
    new_metafile,
)
from dotsection.models import ErrorKind, ModifiedReason, OutcomeStatus

SETTINGS = '{\n  "theme": "dark"\n}\n'


def _managed(path: Path, content: str, stored_hash: str | None = None, **fields) -> Path:
    """Write `path` and a metafile whose hash matches `content` unless given."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    data = {"hash": stored_hash or content_hash(content), **fields}
    metafile_path(path).write_text(json.dumps(data), encoding="utf-8")
    return path


def _sidecar(path: Path) -> dict:
    return json.loads(metafile_path(path).read_text(encoding="utf-8"))


def test_metafile_path_sits_beside_the_file(tmp_path: Path):
    path = tmp_path / "settings.json"

    assert metafile_path(path) == tmp_path / "settings.json.dotsection.json"
    assert is_metafile(metafile_path(path))
    assert not is_metafile(path)


def test_compile_file_starts_a_metafile(tmp_path: Path):
    path = tmp_path / "settings.json"
    path.write_text(SETTINGS, encoding="utf-8")

    report = compile_file(path, metafile=True)

    assert [(o.name, o.status, o.reason) for o in report.outcomes] == [
        ("all", OutcomeStatus.COMPILED, ModifiedReason.MISSING_HASH)
    ]
    assert report.changed
    assert path.read_text(encoding="utf-8") == SETTINGS
    assert _sidecar(path) == {
        "version": 1,
        "parent": "settings.json",
        "hash": content_hash(SETTINGS),
    }


def test_compile_file_with_metafile_is_idempotent(tmp_path: Path):
    path = _managed(tmp_path / "settings.json", SETTINGS)
    before = metafile_path(path).read_text(encoding="utf-8")

    report = compile_file(path)

    assert [o.status for o in report.outcomes] == [OutcomeStatus.SKIPPED_UNCHANGED]
    assert not report.changed
    assert metafile_path(path).read_text(encoding="utf-8") == before


def test_compile_file_restamps_edited_file(tmp_path: Path):
    path = _managed(tmp_path / "settings.json", SETTINGS, source="upstream.json")
    path.write_text('{"theme": "light"}\n', encoding="utf-8")

    report = compile_file(path)

    assert report.outcomes[0].reason is ModifiedReason.HASH_MISMATCH
    assert _sidecar(path)["hash"] == content_hash('{"theme": "light"}\n')
    assert _sidecar(path)["source"] == "upstream.json"


def test_compile_file_dry_run_prints_metafile(tmp_path: Path):
    path = tmp_path / "settings.json"
    path.write_text(SETTINGS, encoding="utf-8")

    report = compile_file(path, metafile=True, dry_run=True)

    assert json.loads(report.output)["hash"] == content_hash(SETTINGS)
    assert not metafile_path(path).exists()


def test_new_metafile_refuses_a_metafile(tmp_path: Path):
    path = _managed(tmp_path / "settings.json", SETTINGS)

    with pytest.raises(ParseFileError, match="is a metafile"):
        new_metafile(metafile_path(path))


def test_classify_metafile_detects_edits(tmp_path: Path):
    path = _managed(tmp_path / "settings.json", SETTINGS)
    assert not classify_metafile(load_metafile(path)).modified

    path.write_text(SETTINGS + "\n", encoding="utf-8")

    assert classify_metafile(load_metafile(path)).reason is ModifiedReason.HASH_MISMATCH


def test_content_hash_ignores_line_endings():
    assert content_hash("a\r\nb\r\n") == content_hash("a\nb\n")


def test_load_metafile_accepts_numeric_permissions(tmp_path: Path):
    path = _managed(tmp_path / "settings.json", SETTINGS, permissions=644)

    assert load_metafile(path).permissions == "644"


@pytest.mark.parametrize(
    "text",
    [
        "{not json",
        "[1, 2]",
        '{"hash": 12}',
        '{"hash": "AB", "permissions": "rw-"}',
    ],
)
def test_load_metafile_rejects_invalid_metafiles(tmp_path: Path, text: str):
    path = tmp_path / "settings.json"
    path.write_text(SETTINGS, encoding="utf-8")
    metafile_path(path).write_text(text, encoding="utf-8")

    with pytest.raises(ParseFileError, match="Invalid metafile"):
        load_metafile(path)


def test_update_file_follows_metafile_source(tmp_path: Path):
    _managed(tmp_path / "upstream.json", '{"theme": "light"}\n')
    target = _managed(tmp_path / "settings.json", SETTINGS, source="upstream.json")

    report = update_file(target)

    assert [(o.name, o.status) for o in report.outcomes] == [("all", OutcomeStatus.UPDATED)]
    assert target.read_text(encoding="utf-8") == '{"theme": "light"}\n'
    assert _sidecar(target)["hash"] == content_hash('{"theme": "light"}\n')
    assert _sidecar(target)["source"] == "upstream.json"


def test_update_file_skips_edited_metafile_target(tmp_path: Path):
    _managed(tmp_path / "upstream.json", '{"theme": "light"}\n')
    target = _managed(tmp_path / "settings.json", SETTINGS, source="upstream.json")
    target.write_text('{"theme": "mine"}\n', encoding="utf-8")

    report = update_file(target)

    assert report.outcomes[0].status is OutcomeStatus.SKIPPED_MODIFIED
    assert not report.has_errors
    assert target.read_text(encoding="utf-8") == '{"theme": "mine"}\n'


def test_update_file_refuses_edited_metafile_source(tmp_path: Path):
    upstream = _managed(tmp_path / "upstream.json", '{"theme": "light"}\n')
    upstream.write_text('{"theme": "draft"}\n', encoding="utf-8")
    target = _managed(tmp_path / "settings.json", SETTINGS, source="upstream.json")

    report = update_file(target)

    assert [(o.status, o.error) for o in report.outcomes] == [
        (OutcomeStatus.ERROR, ErrorKind.SOURCE_MODIFIED)
    ]
    assert target.read_text(encoding="utf-8") == SETTINGS


def test_update_file_metafile_source_without_metafile(tmp_path: Path):
    (tmp_path / "upstream.json").write_text("{}\n", encoding="utf-8")
    target = _managed(tmp_path / "settings.json", SETTINGS, source="upstream.json")

    report = update_file(target)

    assert [o.error for o in report.outcomes] == [ErrorKind.MIXED_MANAGEMENT]


def test_update_file_metafile_refuses_section_selection(tmp_path: Path):
    target = _managed(tmp_path / "settings.json", SETTINGS, source="upstream.json")

    report = update_file(target, sections=["all"])

    assert report.error == f"{target} is managed by a metafile and has no sections to select"


def test_update_file_metafile_refuses_remote_source(tmp_path: Path):
    target = _managed(
        tmp_path / "settings.json", SETTINGS, source="https://example.org/settings.json"
    )

    report = update_file(target)

    assert [o.error for o in report.outcomes] == [ErrorKind.SOURCE_UNRESOLVABLE]


def test_update_file_sections_refuse_metafile_input(tmp_path: Path):
    upstream = _managed(tmp_path / "upstream.sh", "#... a begin\nx\n#... a end\n")
    target = tmp_path / "target.sh"
    target.write_text("#... a begin\ny\n#... a end\n", encoding="utf-8")

    report = update_file(target, inputs=[upstream])

    assert [(o.name, o.error) for o in report.outcomes] == [
        (str(upstream), ErrorKind.MIXED_MANAGEMENT)
    ]
    assert target.read_text(encoding="utf-8") == "#... a begin\ny\n#... a end\n"


def test_apply_file_creates_metafile_target(tmp_path: Path):
    source = _managed(
        tmp_path / "dots" / "settings.json",
        SETTINGS,
        target="../home/settings.json",
        permissions="600",
    )
    target = tmp_path / "home" / "settings.json"

    report = apply_file(source)

    assert report.created
    assert [(o.name, o.status) for o in report.outcomes] == [("all", OutcomeStatus.UPDATED)]
    assert target.read_text(encoding="utf-8") == SETTINGS
    assert stat.S_IMODE(os.stat(target).st_mode) == 0o600
    assert _sidecar(target) == {
        "version": 1,
        "parent": "settings.json",
        "hash": content_hash(SETTINGS),
        "source": str(source),
        "permissions": "600",
    }


def test_apply_file_updates_metafile_target(tmp_path: Path):
    source = _managed(tmp_path / "src.json", '{"theme": "light"}\n', target="dst.json")
    target = _managed(tmp_path / "dst.json", SETTINGS)

    report = apply_file(source)

    assert report.outcomes[0].status is OutcomeStatus.UPDATED
    assert target.read_text(encoding="utf-8") == '{"theme": "light"}\n'


def test_apply_file_refuses_edited_metafile_source(tmp_path: Path):
    source = _managed(tmp_path / "src.json", SETTINGS, target="dst.json")
    source.write_text("{}\n", encoding="utf-8")

    report = apply_file(source)

    assert report.error == f"{source} changed since its last compile; compile it before applying"
    assert not (tmp_path / "dst.json").exists()


def test_apply_file_refuses_target_without_metafile(tmp_path: Path):
    source = _managed(tmp_path / "src.json", SETTINGS, target="dst.json")
    target = tmp_path / "dst.json"
    target.write_text("{}\n", encoding="utf-8")

    report = apply_file(source)

    assert report.error == f"cannot apply {source} to {target}: the target has no metafile"
    assert target.read_text(encoding="utf-8") == "{}\n"


def test_apply_file_refuses_sections_into_metafile_target(tmp_path: Path):
    source = tmp_path / "src.sh"
    source.write_text("#... all target dst.sh\n#... a begin\nx\n#... a end\n", encoding="utf-8")
    target = _managed(tmp_path / "dst.sh", "echo hi\n")

    report = apply_file(source)

    assert report.error == f"cannot apply sections to {target}: it is managed by a metafile"
    assert target.read_text(encoding="utf-8") == "echo hi\n"


def test_check_file_reports_metafile_as_one_section(tmp_path: Path):
    path = _managed(tmp_path / "settings.json", SETTINGS)
    path.write_text("{}\n", encoding="utf-8")

    report = check_file(path)

    assert [(o.name, o.status, o.reason) for o in report.outcomes] == [
        ("all", OutcomeStatus.SKIPPED_MODIFIED, ModifiedReason.HASH_MISMATCH)
    ]


def test_directory_walks_skip_metafiles(tmp_path: Path):
    _managed(tmp_path / "settings.json", SETTINGS, target="out/settings.json")
    (tmp_path / "notes.txt").write_text("plain\n", encoding="utf-8")

    checked = check_path(tmp_path)
    compiled = compile_path(tmp_path)
    applied = apply_path(tmp_path)

    assert sorted(f.path.name for f in checked.files) == ["notes.txt", "settings.json"]
    assert [f.path.name for f in compiled.files] == ["settings.json"]
    assert [f.path for f in applied.files] == [tmp_path / "out" / "settings.json"]
    assert (tmp_path / "out" / "settings.json").read_text(encoding="utf-8") == SETTINGS
