from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Literal, Protocol

from rls.services.release.model import ReleaseBump
from rls.services.release.semver import Version

BumpChoice = Literal["patch", "minor", "major", "custom"]


class Prompter(Protocol):
    """Decisions the release run needs from its operator.

    Every gate blocks until answered. Declining a gate ends the run cleanly.
    """

    def confirm(self, question: str) -> bool: ...

    def confirm_rollback(self, question: str) -> bool: ...

    def choose_bump(
        self, current: Version, candidates: Mapping[ReleaseBump, Version]
    ) -> BumpChoice: ...

    def custom_version(self) -> str: ...

    def release_notes(self, default: str) -> str: ...

    def commit_message(self, default: str) -> str: ...


@dataclass(frozen=True, slots=True)
class PromptAnswers:
    """Answers supplied up front (command line flags).

    None means "not supplied": interactive prompters ask, AutoPrompter
    falls back to the default.
    """

    bump: ReleaseBump | None = None
    custom_version: str | None = None
    notes: str | None = None
    message: str | None = None
    rollback: bool | None = None


@dataclass(frozen=True, slots=True)
class AutoPrompter:
    """Non-interactive policy: approve every gate, use supplied or default answers.

    Rollback is destructive and stays opt-in: it is approved only when the
    answers say so explicitly.
    """

    answers: PromptAnswers = PromptAnswers()

    def confirm(self, question: str) -> bool:
        return True

    def confirm_rollback(self, question: str) -> bool:
        return self.answers.rollback is True

    def choose_bump(
        self, current: Version, candidates: Mapping[ReleaseBump, Version]
    ) -> BumpChoice:
        if self.answers.custom_version is not None:
            return "custom"
        return self.answers.bump or "patch"

    def custom_version(self) -> str:
        return self.answers.custom_version or ""

    def release_notes(self, default: str) -> str:
        return self.answers.notes if self.answers.notes else default

    def commit_message(self, default: str) -> str:
        return self.answers.message if self.answers.message else default
