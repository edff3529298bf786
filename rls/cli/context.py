from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import typer

from rls.core.config import CONFIG_FILE_NAME, ReleaseConfig, load_config
from rls.core.errors import ErrorCode
from rls.core.result import Err, Result
from rls.git.repository import Repository
from rls.output.console import ConsoleProtocol, RichConsole
from rls.services.release.build import BuildAdapter, resolve_build_adapter
from rls.services.release.errors import ReleaseError
from rls.services.release.gh import GhReleaseHost
from rls.services.release.host_client import ReleaseHostClient
from rls.services.release.orchestrator import ReleaseOrchestrator, RunOptions
from rls.services.release.plugins import PluginRunner
from rls.services.release.preflight import check_requirements
from rls.services.release.prompts import Prompter


@dataclass(frozen=True, slots=True)
class CLIContext:
    repo_root: Path
    config: ReleaseConfig
    console: ConsoleProtocol


def build_context(*, repo: Path | None, config_path: Path | None) -> CLIContext:
    try:
        root = (repo or Path.cwd()).expanduser().resolve()
    except OSError as e:
        typer.echo(f"error: invalid --repo: {e}", err=True)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    if not (root / ".git").exists():
        typer.echo(f"error: not a git repository: {root}", err=True)
        raise typer.Exit(code=int(ErrorCode.ENV_ERROR))

    path = config_path if config_path is not None else root / CONFIG_FILE_NAME
    if config_path is not None and not config_path.is_file():
        typer.echo(f"error: config file not found: {config_path}", err=True)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    config_result = load_config(path)
    if isinstance(config_result, Err):
        typer.echo(f"error: {config_result.error.message}", err=True)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    return CLIContext(repo_root=root, config=config_result.value, console=RichConsole())


def build_orchestrator(
    ctx: CLIContext, *, options: RunOptions, prompter: Prompter
) -> ReleaseOrchestrator:
    config, console, root = ctx.config, ctx.console, ctx.repo_root

    def resolve_build() -> Result[BuildAdapter, ReleaseError]:
        return resolve_build_adapter(
            config=config, root=root, console=console, dry_run=options.dry_run
        )

    def check_tools(build: BuildAdapter | None) -> Result[None, ReleaseError]:
        return check_requirements(repo_root=root, build=build)

    host = GhReleaseHost(repo_root=root, timeout=float(config.publish.timeout))
    return ReleaseOrchestrator(
        repo_root=root,
        config=config,
        options=options,
        console=console,
        prompter=prompter,
        vcs=Repository(root, console=console, dry_run=options.dry_run, remote=config.git.remote),
        host=ReleaseHostClient(
            host=host, policy=config.publish, console=console, dry_run=options.dry_run
        ),
        plugins=PluginRunner(
            repo_root=root,
            plugins_dir=config.plugins_dir,
            console=console,
            dry_run=options.dry_run,
        ),
        resolve_build=resolve_build,
        check_tools=check_tools,
    )
