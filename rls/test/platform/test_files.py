"""Tests for rls.platform.files module."""

from __future__ import annotations

from pathlib import Path

from rls.platform.files import atomic_write_text, is_executable_file, list_dir_names


class TestAtomicWriteText:
    def test_writes_and_replaces(self, tmp_path: Path) -> None:
        path = tmp_path / "VERSION"
        atomic_write_text(path, "1.0.0\n")
        atomic_write_text(path, "1.0.1\n")
        assert path.read_text(encoding="utf-8") == "1.0.1\n"
        assert [p.name for p in tmp_path.iterdir()] == ["VERSION"]

    def test_creates_parent(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / "VERSION"
        atomic_write_text(path, "2.0.0\n")
        assert path.read_text(encoding="utf-8") == "2.0.0\n"


class TestIsExecutableFile:
    def test_executable(self, tmp_path: Path) -> None:
        script = tmp_path / "hook.sh"
        script.write_text("#!/bin/sh\n", encoding="utf-8")
        script.chmod(0o755)
        assert is_executable_file(script) is True

    def test_not_executable(self, tmp_path: Path) -> None:
        plain = tmp_path / "README"
        plain.write_text("x", encoding="utf-8")
        plain.chmod(0o644)
        assert is_executable_file(plain) is False

    def test_directory(self, tmp_path: Path) -> None:
        assert is_executable_file(tmp_path) is False


class TestListDirNames:
    def test_lists_entries(self, tmp_path: Path) -> None:
        (tmp_path / "a.jar").write_text("", encoding="utf-8")
        (tmp_path / "b.txt").write_text("", encoding="utf-8")
        assert sorted(list_dir_names(tmp_path)) == ["a.jar", "b.txt"]

    def test_missing_directory(self, tmp_path: Path) -> None:
        assert list_dir_names(tmp_path / "missing") == []
