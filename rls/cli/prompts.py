from __future__ import annotations

from collections.abc import Mapping

import typer

from rls.output.console import ConsoleProtocol, Style
from rls.services.release.model import ReleaseBump
from rls.services.release.prompts import BumpChoice, PromptAnswers
from rls.services.release.semver import Version

_MENU: tuple[BumpChoice, ...] = ("patch", "minor", "major", "custom")


class TyperPrompter:
    """Terminal prompter. Answers given on the command line are not asked again."""

    def __init__(self, *, console: ConsoleProtocol, answers: PromptAnswers) -> None:
        self._console = console
        self._answers = answers

    def confirm(self, question: str) -> bool:
        return typer.confirm(question, default=False)

    def confirm_rollback(self, question: str) -> bool:
        if self._answers.rollback is not None:
            return self._answers.rollback
        return typer.confirm(question, default=False)

    def choose_bump(
        self, current: Version, candidates: Mapping[ReleaseBump, Version]
    ) -> BumpChoice:
        if self._answers.custom_version is not None:
            return "custom"
        if self._answers.bump is not None:
            return self._answers.bump

        self._console.print("Version options:")
        for i, choice in enumerate(_MENU, start=1):
            candidate = candidates.get(choice) if choice != "custom" else None
            detail = f" ({candidate})" if candidate is not None else ""
            self._console.print(f"{i}) {choice}{detail}", Style.DIM)

        while True:
            raw = typer.prompt(f"Choose an option [1-{len(_MENU)}]", default="1")
            try:
                idx = int(raw)
            except ValueError:
                self._console.error("invalid number")
                continue
            if idx < 1 or idx > len(_MENU):
                self._console.error("out of range")
                continue
            return _MENU[idx - 1]

    def custom_version(self) -> str:
        if self._answers.custom_version is not None:
            return self._answers.custom_version
        return typer.prompt("Enter new version (X.Y.Z)")

    def release_notes(self, default: str) -> str:
        if self._answers.notes is not None:
            return self._answers.notes
        typed = typer.prompt(
            "Enter release notes (empty keeps the changelog)",
            default="",
            show_default=False,
        )
        return typed.strip() or default

    def commit_message(self, default: str) -> str:
        if self._answers.message is not None:
            return self._answers.message
        return typer.prompt("Enter commit message", default=default).strip() or default
