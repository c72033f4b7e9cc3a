"""
inputgate — unit tests for directory-path and filename rules

File: tests/unit/rules/test_path_rules.py

Purpose
- Validate root containment (lexical and through symlinks) and file name hygiene.

What this test file should cover
- Traversal outside the root is an intrusion even for non-existent paths.
- Symlink escapes are intrusions; missing directories and files are failures.
- A directory check that outlives its deadline fails closed as an ordinary failure.
- Reserved characters, device names and extension whitelists for file names.

Functional requirements
- Uses only ``tmp_path``; never touches paths outside the test sandbox.
"""

from __future__ import annotations

import os
import threading
from pathlib import Path

import pytest

import inputgate.rules.paths as path_rules
from inputgate.rules import DirectoryPathRule, FilenameRule, RuleIntrusion, RuleViolation
from inputgate.utils.fs import PathEscapeError, is_relative_to, lexical_path, resolve_within


def test_traversal_outside_root_is_intrusion_without_touching_disk() -> None:
    rule = DirectoryPathRule(root="/my")

    with pytest.raises(RuleIntrusion, match="escapes the allowed root"):
        rule.apply("/my/../etc/passwd")
    with pytest.raises(RuleIntrusion, match="escapes the allowed root"):
        rule.apply("../../etc")


def test_nul_byte_in_path_is_intrusion(tmp_path: Path) -> None:
    with pytest.raises(RuleIntrusion, match="NUL"):
        DirectoryPathRule(root=tmp_path).apply("uploads\x00.png")


def test_existing_directory_inside_root_is_returned_resolved(tmp_path: Path) -> None:
    uploads = tmp_path / "uploads"
    uploads.mkdir()
    rule = DirectoryPathRule(root=tmp_path)

    assert rule.apply("uploads") == uploads.resolve()
    assert rule.apply(str(uploads)) == uploads.resolve()
    assert rule.apply("uploads/../uploads") == uploads.resolve()


def test_symlink_escaping_root_is_intrusion(tmp_path: Path) -> None:
    root = tmp_path / "root"
    outside = tmp_path / "outside"
    root.mkdir()
    outside.mkdir()
    os.symlink(outside, root / "link", target_is_directory=True)

    with pytest.raises(RuleIntrusion, match="through a link"):
        DirectoryPathRule(root=root).apply("link")


def test_missing_directory_is_failure(tmp_path: Path) -> None:
    with pytest.raises(RuleViolation, match="does not exist") as excinfo:
        DirectoryPathRule(root=tmp_path).apply("missing")
    assert not isinstance(excinfo.value, RuleIntrusion)


def test_file_is_not_a_directory(tmp_path: Path) -> None:
    (tmp_path / "notes.txt").write_text("x", encoding="utf-8")

    with pytest.raises(RuleViolation, match="not a directory"):
        DirectoryPathRule(root=tmp_path).apply("notes.txt")


def test_must_exist_false_returns_lexical_candidate(tmp_path: Path) -> None:
    rule = DirectoryPathRule(root=tmp_path, must_exist=False)

    assert rule.apply("later/dir") == Path(os.path.normpath(tmp_path / "later" / "dir"))


def test_slow_directory_check_fails_closed(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    release = threading.Event()

    def stalled(candidate: Path, root: Path) -> Path:
        release.wait(timeout=5)
        return candidate

    monkeypatch.setattr(path_rules, "_existing_directory_within", stalled)
    rule = DirectoryPathRule(root=tmp_path, timeout_seconds=0.05)

    try:
        with pytest.raises(RuleViolation, match="could not be checked in time") as excinfo:
            rule.apply("uploads")
    finally:
        release.set()
    assert not isinstance(excinfo.value, RuleIntrusion)


def test_directory_rule_constructor_checks() -> None:
    with pytest.raises(ValueError, match="root"):
        DirectoryPathRule(root="")
    with pytest.raises(ValueError, match="timeout_seconds"):
        DirectoryPathRule(root="/srv", timeout_seconds=0)


def test_fs_helpers(tmp_path: Path) -> None:
    candidate, root = lexical_path("a/../b", tmp_path)

    assert candidate == Path(os.path.normpath(tmp_path / "b"))
    assert is_relative_to(candidate, root)
    assert not is_relative_to(Path("/etc"), root)

    with pytest.raises(FileNotFoundError):
        resolve_within(tmp_path / "missing", tmp_path)

    inside = tmp_path / "inside"
    inside.mkdir()
    assert resolve_within(inside, tmp_path) == inside.resolve()
    with pytest.raises(PathEscapeError):
        resolve_within(tmp_path, inside)


@pytest.mark.parametrize("name", ["report.pdf", "photo.final.PNG", "README", "a-b_c (1).txt"])
def test_filename_rule_accepts_plain_names(name: str) -> None:
    assert FilenameRule().apply(name) == name


@pytest.mark.parametrize(
    ("name", "message"),
    [
        ("../secret", "path separators"),
        ("a/b.txt", "path separators"),
        ("a\\b.txt", "path separators"),
        ("..", "directory reference"),
        ("con.txt", "device name"),
        ("LPT1", "device name"),
        ("trailing.", "end with a dot"),
        (" leading.txt", "whitespace"),
        ("what?.txt", "reserved characters"),
        ("tab\t.txt", "control"),
    ],
)
def test_filename_rule_rejects_unsafe_names(name: str, message: str) -> None:
    with pytest.raises(RuleViolation, match=message):
        FilenameRule().apply(name)


def test_filename_rule_extension_whitelist() -> None:
    rule = FilenameRule(allowed_extensions=frozenset({"pdf", ".PNG"}))

    assert rule.allowed_extensions == frozenset({".pdf", ".png"})
    assert rule.apply("scan.PDF") == "scan.PDF"
    with pytest.raises(RuleViolation, match="extensions .pdf, .png"):
        rule.apply("setup.exe")
    with pytest.raises(RuleViolation):
        rule.apply("noextension")


def test_filename_rule_length_limit() -> None:
    rule = FilenameRule(max_length=8)

    assert rule.apply("abc.txt") == "abc.txt"
    with pytest.raises(RuleViolation, match="at most 8"):
        rule.apply("abcdef.txt")
    assert rule.limited_to(4).max_length == 4


def test_filename_rule_rejects_blank_extension() -> None:
    with pytest.raises(ValueError, match="extensions"):
        FilenameRule(allowed_extensions=frozenset({" "}))
