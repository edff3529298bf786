from __future__ import annotations

from pathlib import Path
from typing import NoReturn

import typer

from rls import __version__
from rls.cli.context import build_context, build_orchestrator
from rls.cli.prompts import TyperPrompter
from rls.core.errors import ErrorCode
from rls.core.result import Err
from rls.services.release.errors import ReleaseErrorKind
from rls.services.release.model import ReleaseBump
from rls.services.release.orchestrator import RunOptions
from rls.services.release.prompts import AutoPrompter, Prompter, PromptAnswers

app = typer.Typer(
    add_completion=False,
    rich_markup_mode="rich",
)


def release_error_code(kind: ReleaseErrorKind) -> ErrorCode:
    if kind in {"tool_missing", "gh_auth_required", "build_tool_unknown"}:
        return ErrorCode.ENV_ERROR
    if kind in {"build_failed", "artifact_not_found", "version_mismatch"}:
        return ErrorCode.BUILD_ERROR
    if kind in {"publish_failed", "release_missing"}:
        return ErrorCode.NETWORK_ERROR
    if kind in {"vcs_failed", "io_failed"}:
        return ErrorCode.IO_ERROR
    return ErrorCode.USER_ERROR


def exit_release(err: str, *, code: ErrorCode) -> NoReturn:
    typer.echo(f"error: {err}", err=True)
    raise typer.Exit(code=int(code))


@app.command()
def release(
    dry_run: bool = typer.Option(False, "--dry-run", help="Run every step, change nothing"),
    upload_only: bool = typer.Option(
        False, "--upload-only", help="Rebuild and attach the artifact to the existing release"
    ),
    skip_version_sync: bool = typer.Option(
        False, "--skip-version-sync", help="Skip the post-publish version record check"
    ),
    sync_published: bool = typer.Option(
        False,
        "--sync-published",
        help="Adopt the latest published version when the version record disagrees",
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Non-interactive: approve every gate"),
    bump: ReleaseBump | None = typer.Option(None, "--bump", help="major/minor/patch"),
    set_version: str | None = typer.Option(None, "--set-version", help="Custom version X.Y.Z"),
    notes: str | None = typer.Option(None, "--notes", help="Release notes (default: changelog)"),
    message: str | None = typer.Option(None, "--message", help="Commit message"),
    rollback: bool | None = typer.Option(
        None,
        "--rollback/--no-rollback",
        help="Pre-answer the rollback question after a publish failure",
    ),
    config: Path | None = typer.Option(None, "--config", help="Path to .release.toml"),
    repo: Path | None = typer.Option(None, "--repo", help="Repository root (default: cwd)"),
    version: bool = typer.Option(False, "--version", help="Show version and exit."),
) -> None:
    """Cut a release: bump the version, build, commit, tag and publish."""
    if version:
        typer.echo(__version__)
        raise typer.Exit(code=0)

    if bump is not None and set_version is not None:
        exit_release("--bump and --set-version are mutually exclusive", code=ErrorCode.USER_ERROR)

    ctx = build_context(repo=repo, config_path=config)
    answers = PromptAnswers(
        bump=bump,
        custom_version=set_version,
        notes=notes,
        message=message,
        rollback=rollback,
    )
    prompter: Prompter = (
        AutoPrompter(answers=answers)
        if yes
        else TyperPrompter(console=ctx.console, answers=answers)
    )
    options = RunOptions(
        dry_run=dry_run,
        skip_version_sync=skip_version_sync,
        sync_published=sync_published,
    )

    orchestrator = build_orchestrator(ctx, options=options, prompter=prompter)
    result = orchestrator.upload_only() if upload_only else orchestrator.run()
    if isinstance(result, Err):
        exit_release(result.error.pretty(), code=release_error_code(result.error.kind))

    for warning in result.value.warnings:
        ctx.console.warning(warning)


def main() -> None:
    app()
