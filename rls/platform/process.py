"""Subprocess execution with Result-based error handling.

git, gh, the build tools and plugins all run through here. A failed, missing
or timed-out program comes back as a ProcessError value; nothing in this
module raises.

Usage:
    match run(["git", "rev-parse", "HEAD"], cwd=repo_root):
        case Ok(stdout):
            sha = stdout.strip()
        case Err(error):
            console.error(str(error))
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path

from rls.core.result import Err, Ok, Result

__all__ = ["ProcessError", "run", "run_silent"]

_NO_EXIT_STATUS = -1


@dataclass(frozen=True, slots=True)
class ProcessError:
    """A program that exited non-zero, could not start, or ran out of time.

    Attributes:
        command: Argument vector as executed
        returncode: Exit status; -1 when there is none
        stdout: Captured output, empty for streamed runs
        stderr: Captured error output, or the reason the program never finished
    """

    command: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def timed_out(self) -> bool:
        return self.returncode == _NO_EXIT_STATUS and "timed out" in self.stderr

    def __str__(self) -> str:
        shown = " ".join(self.command[:3])
        if len(self.command) > 3:
            shown += " ..."
        return f"{shown} failed (exit {self.returncode})"


def _timed_out(cmd: list[str], timeout: float | None, stdout: object = None) -> ProcessError:
    return ProcessError(
        command=tuple(cmd),
        returncode=_NO_EXIT_STATUS,
        stdout=stdout if isinstance(stdout, str) else "",
        stderr=f"Command timed out after {timeout}s",
    )


def _not_started(cmd: list[str], e: OSError) -> ProcessError:
    return ProcessError(command=tuple(cmd), returncode=_NO_EXIT_STATUS, stdout="", stderr=str(e))


def run(
    cmd: list[str],
    cwd: Path,
    env: dict[str, str] | None = None,
    *,
    timeout: float | None = None,
) -> Result[str, ProcessError]:
    """Run `cmd` in `cwd`, capturing output. Ok carries stdout.

    `env` replaces the environment when given. `timeout` is in seconds.
    """
    try:
        proc = subprocess.run(
            cmd,
            cwd=str(cwd),
            env=env,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        return Err(_timed_out(cmd, timeout, e.stdout))
    except OSError as e:
        return Err(_not_started(cmd, e))

    if proc.returncode == 0:
        return Ok(proc.stdout)
    return Err(ProcessError(tuple(cmd), proc.returncode, proc.stdout, proc.stderr))


def run_silent(
    cmd: list[str],
    cwd: Path,
    env: dict[str, str] | None = None,
    *,
    timeout: float | None = None,
) -> Result[None, ProcessError]:
    """Run `cmd` with output streaming to the terminal (builds, plugins)."""
    try:
        proc = subprocess.run(cmd, cwd=str(cwd), env=env, timeout=timeout, check=False)
    except subprocess.TimeoutExpired:
        return Err(_timed_out(cmd, timeout))
    except OSError as e:
        return Err(_not_started(cmd, e))

    if proc.returncode == 0:
        return Ok(None)
    return Err(ProcessError(tuple(cmd), proc.returncode, "", ""))
