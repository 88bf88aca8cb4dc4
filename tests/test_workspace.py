import os
import stat

import pytest

from ratchet.core.errors import ParseError, WorkspaceError
from ratchet.core.exporter import DocumentExporter
from ratchet.core.workspace import atomic_write, expand_paths, load_files, output_path, validate_out


def test_expand_paths_walks_directories(tmp_path):
    workflows = tmp_path / ".github" / "workflows"
    workflows.mkdir(parents=True)
    (workflows / "b.yml").write_text("a: 1\n")
    (workflows / "a.yaml").write_text("a: 1\n")
    (workflows / "notes.txt").write_text("not yaml\n")
    (workflows / "link.yml").symlink_to(workflows / "b.yml")

    paths = expand_paths([str(tmp_path), str(workflows / "b.yml")])
    assert paths == [
        (workflows / "a.yaml").as_posix(),
        (workflows / "b.yml").as_posix(),
    ]


def test_expand_paths_missing(tmp_path):
    with pytest.raises(WorkspaceError, match="no such file or directory"):
        expand_paths([str(tmp_path / "missing.yml")])


def test_load_files(tmp_path):
    """
    FIDELITY TEST: A loaded file renders back with its blank line and
    without the byte order mark.
    """
    path = tmp_path / "ci.yml"
    path.write_text("\ufeffa: 1\n\nb: 2\n", encoding="utf-8")
    docs = load_files([str(path)])
    doc = docs[str(path)]
    assert doc.root.content[0].get("b").value == "2"
    assert DocumentExporter().export(doc) == "a: 1\n\nb: 2\n"


def test_load_files_invalid_yaml(tmp_path):
    path = tmp_path / "bad.yml"
    path.write_text("a: [\n")
    with pytest.raises(ParseError):
        load_files([str(path)])


@pytest.mark.parametrize("path, out, expected", [
    ("ci.yml", "", "ci.yml"),
    ("ci.yml", "pinned.yml", "pinned.yml"),
    (".github/ci.yml", "out/", "out/.github/ci.yml"),
])
def test_output_path(path, out, expected):
    assert output_path(path, out) == expected


def test_validate_out():
    validate_out("", ["a.yml", "b.yml"])
    validate_out("out/", ["a.yml", "b.yml"])
    validate_out("single.yml", ["a.yml"])
    with pytest.raises(WorkspaceError, match="must be a directory"):
        validate_out("single.yml", ["a.yml", "b.yml"])


def test_atomic_write_keeps_mode_and_leaves_no_temp(tmp_path):
    """
    ATOMICITY TEST: The file is replaced in one step with its mode intact.
    """
    dst = tmp_path / "ci.yml"
    dst.write_text("old\n")
    os.chmod(dst, 0o640)

    atomic_write(str(dst), str(dst), "new\n")

    assert dst.read_text() == "new\n"
    assert stat.S_IMODE(dst.stat().st_mode) == 0o640
    assert [p.name for p in tmp_path.iterdir()] == ["ci.yml"]


def test_atomic_write_creates_parents_and_copies_source_mode(tmp_path):
    src = tmp_path / "ci.yml"
    src.write_text("a: 1\n")
    os.chmod(src, 0o600)
    dst = tmp_path / "out" / "nested" / "ci.yml"

    atomic_write(str(src), str(dst), "a: 2\n")

    assert dst.read_text() == "a: 2\n"
    assert stat.S_IMODE(dst.stat().st_mode) == 0o600
