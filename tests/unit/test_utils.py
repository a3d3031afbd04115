from __future__ import annotations

from pathlib import Path

import pytest

import grepdex.utils as utils
from grepdex.config import DEFAULT_EXCLUDE_GLOBS, DEFAULT_EXCLUDED_EXTENSIONS


def test_resolve_directory_validates(tmp_path):
    with pytest.raises(FileNotFoundError):
        utils.resolve_directory(tmp_path / "missing")

    file_path = tmp_path / "file.txt"
    file_path.write_text("x", encoding="utf-8")
    with pytest.raises(NotADirectoryError):
        utils.resolve_directory(file_path)

    assert utils.resolve_directory(tmp_path) == tmp_path.resolve()


def test_normalize_exclude_patterns():
    assert utils.normalize_exclude_patterns(None) == ()
    assert utils.normalize_exclude_patterns(["tests/**", " tests/** "]) == ("tests/**",)
    assert utils.normalize_exclude_patterns([".js"]) == ("**/*.js",)
    assert utils.normalize_exclude_patterns([".js,.md"]) == ("**/*.js", "**/*.md")
    assert utils.normalize_exclude_patterns(["**/*.log"]) == ("**/*.log",)


def test_is_excluded_path_handles_directories():
    spec = utils.build_exclude_spec(DEFAULT_EXCLUDE_GLOBS)

    assert utils.is_excluded_path(spec, "node_modules", is_dir=True)
    assert utils.is_excluded_path(spec, "pkg/node_modules/lib.js")
    assert utils.is_excluded_path(spec, ".git/config")
    assert not utils.is_excluded_path(spec, "src/main.py")
    assert not utils.is_excluded_path(None, "node_modules/x.js")
    assert utils.build_exclude_spec([]) is None


def test_relative_posix(tmp_path):
    assert utils.relative_posix(tmp_path / "a" / "b.txt", tmp_path) == "a/b.txt"
    assert utils.relative_posix(tmp_path, tmp_path) == ""
    outside = Path("/elsewhere/file.txt")
    assert utils.relative_posix(outside, tmp_path) == "/elsewhere/file.txt"


def test_has_excluded_extension_is_case_insensitive():
    assert utils.has_excluded_extension(Path("photo.PNG"), DEFAULT_EXCLUDED_EXTENSIONS)
    assert utils.has_excluded_extension(Path("archive.tar.gz"), DEFAULT_EXCLUDED_EXTENSIONS)
    assert not utils.has_excluded_extension(Path("notes.txt"), DEFAULT_EXCLUDED_EXTENSIONS)
    assert not utils.has_excluded_extension(Path("Makefile"), DEFAULT_EXCLUDED_EXTENSIONS)


def test_collect_files_prunes_excluded_directories(tmp_path):
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "main.py").write_text("print()", encoding="utf-8")
    (tmp_path / "node_modules" / "pkg").mkdir(parents=True)
    (tmp_path / "node_modules" / "pkg" / "index.js").write_text("x", encoding="utf-8")
    (tmp_path / "README.md").write_text("hi", encoding="utf-8")
    (tmp_path / "debug.log").write_text("log", encoding="utf-8")

    files = utils.collect_files(tmp_path, DEFAULT_EXCLUDE_GLOBS + ("**/*.log",))

    assert files == sorted([tmp_path / "README.md", tmp_path / "src" / "main.py"])


def test_collect_files_respects_max_files(tmp_path):
    for idx in range(5):
        (tmp_path / f"file{idx}.txt").write_text("x", encoding="utf-8")

    files = utils.collect_files(tmp_path, max_files=3)

    assert len(files) == 3

