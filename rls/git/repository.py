"""Git repository gateway.

Repository wraps the handful of git operations a release needs: status
checks, commit/tag/push, and the compensating operations used by rollback.
Read operations always run; mutating operations are echoed to the console
and, in dry-run mode, only reported.

Usage:
    repo = Repository(Path("."), console=console, dry_run=False)

    match repo.status():
        case Ok(status):
            print(f"Branch: {status.branch}")
        case Err(e):
            print(f"Error: {e.message}")
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from rls.core.result import Err, Ok, Result
from rls.output.console import ConsoleProtocol, Style
from rls.platform.process import ProcessError
from rls.platform.process import run as run_process

_GIT_TIMEOUT_SECONDS = 30.0
_GIT_NETWORK_TIMEOUT_SECONDS = 3 * 60.0
_NETWORK_COMMANDS = frozenset({"fetch", "pull", "push", "remote"})

__all__ = [
    "GitError",
    "GitStatus",
    "Repository",
    "StatusEntry",
    "VcsGateway",
    "rollback_release",
]


@dataclass(frozen=True, slots=True)
class GitError:
    """Error from a git operation.

    Attributes:
        command: The git command that failed
        message: Error message
        returncode: Process return code
    """

    command: str
    message: str
    returncode: int = 1


@dataclass(frozen=True, slots=True)
class StatusEntry:
    """A single entry in git status (XY code and path)."""

    xy: str
    path: str

    @property
    def is_untracked(self) -> bool:
        return self.xy == "??"


@dataclass(frozen=True, slots=True)
class GitStatus:
    """Branch and working tree state."""

    branch: str
    entries: tuple[StatusEntry, ...] = field(default_factory=tuple)

    @property
    def has_uncommitted_changes(self) -> bool:
        """True if anything (tracked or not) would be swept into the release commit."""
        return len(self.entries) > 0


class VcsGateway(Protocol):
    """Version control operations used by the release orchestrator."""

    def status(self) -> Result[GitStatus, GitError]: ...

    def head_sha(self) -> Result[str, GitError]: ...

    def detect_main_branch(self, configured: str) -> str: ...

    def fetch_all(self) -> Result[None, GitError]: ...

    def latest_tag(self) -> str | None: ...

    def log_subjects(self, since_tag: str | None) -> Result[list[str], GitError]: ...

    def commit_all(self, message: str) -> Result[None, GitError]: ...

    def push(self) -> Result[None, GitError]: ...

    def tag(self, name: str, message: str) -> Result[None, GitError]: ...

    def push_tag(self, name: str) -> Result[None, GitError]: ...

    def delete_tag_local_and_remote(self, name: str) -> Result[None, GitError]: ...

    def hard_reset(self, sha: str) -> Result[None, GitError]: ...

    def force_push(self) -> Result[None, GitError]: ...


class Repository:
    """Git working tree with a single remote.

    Attributes:
        path: Path to the repository root
        remote: Name of the remote releases are pushed to
    """

    def __init__(
        self,
        path: Path,
        *,
        console: ConsoleProtocol,
        dry_run: bool,
        remote: str = "origin",
    ) -> None:
        self.path = path
        self.remote = remote
        self._console = console
        self._dry_run = dry_run
        self._main_branch: str | None = None

    # -- reads ---------------------------------------------------------------

    def status(self) -> Result[GitStatus, GitError]:
        """Parse `git status --porcelain=v1 -b`."""
        result = self._run(["status", "--porcelain=v1", "-b"])
        match result:
            case Err(e):
                return Err(_git_error("status", e))
            case Ok(stdout):
                return Ok(self._parse_status(stdout))

    def head_sha(self) -> Result[str, GitError]:
        result = self._run(["rev-parse", "HEAD"])
        match result:
            case Err(e):
                return Err(_git_error("rev-parse HEAD", e))
            case Ok(stdout):
                return Ok(stdout.strip())

    def detect_main_branch(self, configured: str) -> str:
        """Resolve the release branch once per run.

        Order: configured value, the remote's advertised HEAD branch, a local
        `main`, a local `master`, then `main` with a warning.
        """
        if self._main_branch is not None:
            return self._main_branch

        branch = configured or self._remote_head_branch()
        if not branch:
            for candidate in ("main", "master"):
                ref = f"refs/heads/{candidate}"
                if isinstance(self._run(["show-ref", "--verify", "--quiet", ref]), Ok):
                    branch = candidate
                    break
        if not branch:
            self._console.warning(
                "could not auto-detect main branch; using fallback 'main' "
                "(set [git] main_branch in .release.toml to override)"
            )
            branch = "main"

        self._main_branch = branch
        return branch

    def _remote_head_branch(self) -> str | None:
        result = self._run(["remote", "show", self.remote])
        if isinstance(result, Err):
            return None
        m = re.search(r"HEAD branch:\s*(\S+)", result.value)
        if m is None or m.group(1) == "(unknown)":
            return None
        return m.group(1)

    def latest_tag(self) -> str | None:
        """Most recent tag reachable from HEAD, None when there are no tags yet."""
        result = self._run(["describe", "--tags", "--abbrev=0"])
        match result:
            case Ok(stdout):
                return stdout.strip() or None
            case Err(_):
                return None

    def log_subjects(self, since_tag: str | None) -> Result[list[str], GitError]:
        """Commit subject lines reachable from HEAD, newest first."""
        args = ["log", "--pretty=format:%s"]
        if since_tag is not None:
            args.insert(1, f"{since_tag}..HEAD")
        result = self._run(args)
        match result:
            case Err(e):
                # An unborn branch has no commits to list.
                if "does not have any commits" in e.stderr:
                    return Ok([])
                return Err(_git_error("log", e))
            case Ok(stdout):
                return Ok([ln for ln in stdout.splitlines() if ln.strip()])

    # -- mutations -----------------------------------------------------------

    def fetch_all(self) -> Result[None, GitError]:
        return self._mutate(["fetch", "--all"])

    def commit_all(self, message: str) -> Result[None, GitError]:
        added = self._mutate(["add", "-A"])
        if isinstance(added, Err):
            return added
        committed = self._mutate(["commit", "-m", message])
        if isinstance(committed, Err) and not committed.error.message:
            return Err(
                GitError(
                    command=committed.error.command,
                    message="Configure git user.name/user.email, then retry.",
                    returncode=committed.error.returncode,
                )
            )
        return committed

    def push(self) -> Result[None, GitError]:
        return self._mutate(["push"])

    def tag(self, name: str, message: str) -> Result[None, GitError]:
        return self._mutate(["tag", "-a", name, "-m", message])

    def push_tag(self, name: str) -> Result[None, GitError]:
        return self._mutate(["push", self.remote, name])

    def delete_tag_local_and_remote(self, name: str) -> Result[None, GitError]:
        local = self._mutate(["tag", "-d", name])
        remote = self._mutate(["push", "--delete", self.remote, name])
        # Attempt both sides; report the first failure.
        if isinstance(local, Err):
            return local
        return remote

    def hard_reset(self, sha: str) -> Result[None, GitError]:
        return self._mutate(["reset", "--hard", sha])

    def force_push(self) -> Result[None, GitError]:
        return self._mutate(["push", "--force-with-lease"])

    # -- internals -----------------------------------------------------------

    def _mutate(self, args: list[str]) -> Result[None, GitError]:
        line = "git " + " ".join(args)
        if self._dry_run:
            self._console.dry_run(line)
            return Ok(None)

        self._console.print(line, Style.DIM)
        result = self._run(args)
        if isinstance(result, Err):
            return Err(_git_error(" ".join(args[:2]), result.error))
        return Ok(None)

    def _run(self, args: list[str]) -> Result[str, ProcessError]:
        command = args[0] if args else ""
        timeout = (
            _GIT_NETWORK_TIMEOUT_SECONDS if command in _NETWORK_COMMANDS else _GIT_TIMEOUT_SECONDS
        )
        return run_process(["git", "-C", str(self.path), *args], cwd=self.path, timeout=timeout)

    def _parse_status(self, output: str) -> GitStatus:
        lines = [ln for ln in output.splitlines() if ln.strip()]
        if not lines:
            return GitStatus(branch="")

        # First line: ## branch...upstream [ahead N, behind M]
        s = lines[0].strip()
        if s.startswith("##"):
            s = s[2:].lstrip()
        s = s.split(" [", 1)[0].strip()
        branch = s.split("...", 1)[0].strip()
        if branch.startswith("No commits yet on "):
            branch = branch.removeprefix("No commits yet on ").strip()

        entries = tuple(
            StatusEntry(xy=ln[:2], path=ln[3:]) for ln in lines[1:] if len(ln) >= 4
        )
        return GitStatus(branch=branch, entries=entries)


def _git_error(command: str, error: ProcessError) -> GitError:
    return GitError(
        command=command,
        message=error.stderr.strip() or error.stdout.strip(),
        returncode=error.returncode,
    )


def rollback_release(vcs: VcsGateway, *, tag: str, to_sha: str) -> list[GitError]:
    """Undo a release commit and tag.

    Deletes the tag locally and on the remote, resets to the commit captured
    before the release started, then force-pushes. Tag deletion failures do
    not stop the reset; a failed reset skips the force-push. Failures are
    returned. Irreversible once the force-push succeeds.
    """
    errors: list[GitError] = []
    deleted = vcs.delete_tag_local_and_remote(tag)
    if isinstance(deleted, Err):
        errors.append(deleted.error)

    reset = vcs.hard_reset(to_sha)
    if isinstance(reset, Err):
        # Never force-push a history we failed to rewind.
        errors.append(reset.error)
        return errors

    pushed = vcs.force_push()
    if isinstance(pushed, Err):
        errors.append(pushed.error)
    return errors
