from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from rls.services.release.semver import Version

ReleaseBump = Literal["major", "minor", "patch"]
HookName = Literal["pre-release", "pre-commit", "post-build", "post-release", "on-error"]
BuildFailureKind = Literal["build_failed", "artifact_not_found"]


@dataclass(frozen=True, slots=True)
class ReleasePlan:
    """Everything decided before the first mutation of a run."""

    current_version: Version
    next_version: Version
    project_name: str
    commit_message: str
    release_notes: str
    dry_run: bool

    @property
    def tag(self) -> str:
        return self.next_version.tag

    @property
    def title(self) -> str:
        return f"Release {self.tag}"


@dataclass(frozen=True, slots=True)
class BuildResult:
    success: bool
    artifact_path: Path | None = None
    diagnostic: str | None = None
    failure_kind: BuildFailureKind | None = None


@dataclass(frozen=True, slots=True)
class ReleaseAsset:
    """The one artifact a run attaches to its release."""

    release_tag: str
    artifact_path: Path

    @property
    def name(self) -> str:
        return self.artifact_path.name


@dataclass(frozen=True, slots=True)
class HookInvocation:
    hook: HookName
    # Sorted lexicographically by path.
    executables: tuple[Path, ...]


@dataclass(frozen=True, slots=True)
class RetryState:
    attempt: int
    max_attempts: int
    backoff_seconds: float

    @property
    def is_last(self) -> bool:
        return self.attempt >= self.max_attempts

    def next(self) -> RetryState:
        return RetryState(self.attempt + 1, self.max_attempts, self.backoff_seconds)
