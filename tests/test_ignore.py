from pathlib import Path

import pytest
from wcmatch import glob

from cocoder.errors import ConfigurationError
from cocoder.workspace import find_ignore_patterns, ignore_file_patterns
from cocoder.workspace.ignore import is_ignored


def test_entries_are_anchored_to_their_directory(tmp_path: Path) -> None:
    (tmp_path / ".gitignore").write_text("# deps\nnode_modules/\n\n!keep.txt\n/dist\n", encoding="utf-8")
    base = glob.escape(tmp_path.as_posix())

    patterns = ignore_file_patterns(tmp_path, tmp_path)

    assert patterns == [
        f"{base}/**/node_modules",
        f"{base}/**/node_modules/**",
        f"{base}/**/dist",
        f"{base}/**/dist/**",
    ]


def test_patterns_are_merged_from_current_dir_up_to_root(tmp_path: Path) -> None:
    child = tmp_path / "pkg" / "sub"
    child.mkdir(parents=True)
    (tmp_path / ".gitignore").write_text("root-entry\n", encoding="utf-8")
    (child / ".gitignore").write_text("child-entry\n", encoding="utf-8")

    patterns = ignore_file_patterns(tmp_path, child)

    assert patterns[0] == f"{glob.escape(child.as_posix())}/**/child-entry"
    assert f"{glob.escape(tmp_path.as_posix())}/**/root-entry" in patterns


def test_current_dir_must_be_under_root(tmp_path: Path) -> None:
    root = tmp_path / "root"
    root.mkdir()
    other = tmp_path / "other"
    other.mkdir()

    with pytest.raises(ConfigurationError):
        ignore_file_patterns(root, other)
    with pytest.raises(ConfigurationError):
        ignore_file_patterns(root, root / "missing")


def test_nested_ignore_files_are_discovered(tmp_path: Path) -> None:
    (tmp_path / ".gitignore").write_text("vendor\n", encoding="utf-8")
    (tmp_path / "app").mkdir()
    (tmp_path / "app" / ".gitignore").write_text("cache\n", encoding="utf-8")
    (tmp_path / "vendor").mkdir()
    (tmp_path / "vendor" / ".gitignore").write_text("should-not-load\n", encoding="utf-8")

    patterns = find_ignore_patterns(tmp_path)

    assert is_ignored(tmp_path / "vendor" / "lib.js", patterns)
    assert is_ignored(tmp_path / "app" / "cache" / "data.bin", patterns)
    assert not is_ignored(tmp_path / "cache" / "data.bin", patterns)
    assert not any("should-not-load" in pattern for pattern in patterns)


def test_is_ignored_without_patterns(tmp_path: Path) -> None:
    assert is_ignored(tmp_path / "file.txt", []) is False
