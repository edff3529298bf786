"""Tests for rls.platform.process module."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from rls.core.result import Err, Ok
from rls.platform.process import ProcessError, run, run_silent


class TestProcessError:
    def test_str_short_command(self) -> None:
        error = ProcessError(command=("git", "status"), returncode=1, stdout="", stderr="x")
        assert str(error) == "git status failed (exit 1)"

    def test_str_long_command_truncated(self) -> None:
        error = ProcessError(
            command=("gh", "release", "create", "v1.0.0", "--title", "t"),
            returncode=1,
            stdout="",
            stderr="",
        )
        assert str(error) == "gh release create ... failed (exit 1)"

    def test_timed_out(self) -> None:
        error = ProcessError(("gh",), -1, "", "Command timed out after 1s")
        assert error.timed_out is True
        assert ProcessError(("gh",), 1, "", "timed out").timed_out is False

    def test_frozen(self) -> None:
        error = ProcessError(("cmd",), 1, "", "")
        with pytest.raises(AttributeError):
            error.returncode = 2  # type: ignore[misc]


class TestRun:
    def test_success_returns_stdout(self, tmp_path: Path) -> None:
        result = run([sys.executable, "-c", "print('hello')"], cwd=tmp_path)
        assert isinstance(result, Ok)
        assert "hello" in result.value

    def test_failure_returns_error(self, tmp_path: Path) -> None:
        result = run(
            [sys.executable, "-c", "import sys; sys.stderr.write('bad'); sys.exit(42)"],
            cwd=tmp_path,
        )
        assert isinstance(result, Err)
        assert result.error.returncode == 42
        assert "bad" in result.error.stderr

    def test_command_not_found(self, tmp_path: Path) -> None:
        result = run(["nonexistent_command_12345"], cwd=tmp_path)
        assert isinstance(result, Err)
        assert result.error.returncode == -1

    def test_timeout(self, tmp_path: Path) -> None:
        cmd = [sys.executable, "-c", "import time; time.sleep(5)"]
        result = run(cmd, cwd=tmp_path, timeout=0.2)
        assert isinstance(result, Err)
        assert result.error.timed_out is True

    def test_cwd(self, tmp_path: Path) -> None:
        result = run([sys.executable, "-c", "import os; print(os.getcwd())"], cwd=tmp_path)
        assert isinstance(result, Ok)
        assert Path(result.value.strip()).resolve() == tmp_path.resolve()


class TestRunSilent:
    def test_success(self, tmp_path: Path) -> None:
        assert run_silent([sys.executable, "-c", "pass"], cwd=tmp_path) == Ok(None)

    def test_failure(self, tmp_path: Path) -> None:
        result = run_silent([sys.executable, "-c", "raise SystemExit(3)"], cwd=tmp_path)
        assert isinstance(result, Err)
        assert result.error.returncode == 3
