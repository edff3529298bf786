"""Release orchestration.

A full release walks these states in order. The handler registered for a
state performs the work that leads out of it:

    init -> pre-release-hooks -> version-resolved -> built -> committed
         -> tagged -> published -> post-release-hooks -> done

Every gate sits before the first mutation; declining one moves to
`cancelled`. The build runs before any git mutation, so a build that cannot
produce an artifact never reaches history. A publish failure moves to
`error-rollback`, where rollback happens only on explicit approval.

The upload-only path skips versioning, commit and tag: it rebuilds the
current version and attaches the artifact to its existing release.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Literal

from rls.core.config import ReleaseConfig
from rls.core.result import Err, Ok, Result
from rls.git.repository import GitError, VcsGateway, rollback_release
from rls.output.console import ConsoleProtocol, Style
from rls.services.release.build import BuildAdapter
from rls.services.release.changelog import generate_changelog
from rls.services.release.errors import ReleaseError
from rls.services.release.fsm import FINISH, StepFailure, StepOutcome, advance, run_state_machine
from rls.services.release.host_client import ReleaseHostClient
from rls.services.release.model import BuildResult, ReleaseAsset, ReleaseBump, ReleasePlan
from rls.services.release.plugins import PluginRunner
from rls.services.release.prompts import Prompter
from rls.services.release.semver import Version, parse_version
from rls.services.release.version_store import (
    check_published,
    read_version_record,
    reconcile,
    sync_to_published,
    write_version_record,
)

ReleaseState = Literal[
    "init",
    "pre-release-hooks",
    "version-resolved",
    "built",
    "committed",
    "tagged",
    "published",
    "post-release-hooks",
    "done",
    "cancelled",
    "error-rollback",
]

RunStatus = Literal["released", "uploaded", "cancelled"]

BuildResolver = Callable[[], Result[BuildAdapter, ReleaseError]]
ToolCheck = Callable[[BuildAdapter | None], Result[None, ReleaseError]]

_BUMPS: tuple[ReleaseBump, ...] = ("patch", "minor", "major")


@dataclass(frozen=True, slots=True)
class RunOptions:
    """Per-run switches from the command line.

    Attributes:
        dry_run: Run every step but only report mutations
        skip_version_sync: Skip the post-publish version record check
        sync_published: Adopt the latest published version when the record disagrees
    """

    dry_run: bool = False
    skip_version_sync: bool = False
    sync_published: bool = False


@dataclass(frozen=True, slots=True)
class ReleaseSession:
    state: ReleaseState
    build: BuildAdapter | None = None
    plan: ReleasePlan | None = None
    start_sha: str | None = None
    artifact: Path | None = None
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class RunOutcome:
    status: RunStatus
    version: Version | None = None
    artifact: Path | None = None
    warnings: tuple[str, ...] = ()


class ReleaseOrchestrator:
    """Drives one release run against a single repository.

    All collaborators are injected; nothing here reads ambient state. One
    instance serves one run.
    """

    def __init__(
        self,
        *,
        repo_root: Path,
        config: ReleaseConfig,
        options: RunOptions,
        console: ConsoleProtocol,
        prompter: Prompter,
        vcs: VcsGateway,
        host: ReleaseHostClient,
        plugins: PluginRunner,
        resolve_build: BuildResolver,
        check_tools: ToolCheck,
    ) -> None:
        self._root = repo_root
        self._config = config
        self._options = options
        self._console = console
        self._prompter = prompter
        self._vcs = vcs
        self._host = host
        self._plugins = plugins
        self._resolve_build = resolve_build
        self._check_tools = check_tools
        self._on_error_armed = False
        self.history: list[ReleaseState] = []

    @property
    def version_file(self) -> Path:
        return self._root / self._config.version.file

    # -- full release --------------------------------------------------------

    def run(self) -> Result[RunOutcome, ReleaseError]:
        self._console.header("Release")
        if self._options.dry_run:
            self._console.warning("dry-run: no changes will be made")

        result = run_state_machine(
            initial_state=ReleaseSession(state="init"),
            get_step=lambda s: s.state,
            handlers={
                "init": self._init,
                "pre-release-hooks": self._resolve,
                "version-resolved": self._build,
                "built": self._commit,
                "committed": self._tag,
                "tagged": self._publish,
                "published": self._finish_release,
                "post-release-hooks": lambda s: Ok(advance(replace(s, state="done"))),
                "done": self._stop,
                "cancelled": self._stop,
            },
            on_enter=self._enter,
        )
        if isinstance(result, Err):
            return Err(self._fail(result.error))

        session = result.value
        if session.state == "cancelled":
            self._console.info("release cancelled")
            return Ok(RunOutcome(status="cancelled"))

        version = session.plan.next_version if session.plan is not None else None
        self._console.success(f"release {version} successful")
        return Ok(
            RunOutcome(
                status="released",
                version=version,
                artifact=session.artifact,
                warnings=session.warnings,
            )
        )

    def _enter(self, session: ReleaseSession) -> None:
        self.history.append(session.state)
        self._console.print(f"state: {session.state}", Style.DIM)

    def _stop(self, _: ReleaseSession) -> Result[StepOutcome[ReleaseSession], ReleaseError]:
        return Ok(FINISH)

    def _cancel(self, s: ReleaseSession) -> Result[StepOutcome[ReleaseSession], ReleaseError]:
        return Ok(advance(replace(s, state="cancelled")))

    def _init(self, s: ReleaseSession) -> Result[StepOutcome[ReleaseSession], ReleaseError]:
        detected = self._resolve_build()
        tools = self._check_tools(detected.value if isinstance(detected, Ok) else None)
        if isinstance(tools, Err):
            return tools

        self._on_error_armed = True
        hooks = self._plugins.run("pre-release")
        if isinstance(hooks, Err):
            return hooks
        return Ok(advance(replace(s, state="pre-release-hooks")))

    def _resolve(self, s: ReleaseSession) -> Result[StepOutcome[ReleaseSession], ReleaseError]:
        build = self._resolve_build()
        if isinstance(build, Err):
            return build
        adapter = build.value

        project = adapter.read_project_identifier()
        if isinstance(project, Err):
            return project
        self._console.info(f"project: {project.value} ({adapter.name})")

        gates = self._check_working_tree()
        if isinstance(gates, Err):
            return gates
        if not gates.value:
            return self._cancel(s)

        current = self._current_version(adapter, require_existing=False)
        if isinstance(current, Err):
            return current
        self._console.info(f"current version: {current.value}")

        next_version = self._next_version(current.value)
        if isinstance(next_version, Err):
            return next_version
        self._console.info(f"new version: {next_version.value}")

        changelog = generate_changelog(vcs=self._vcs, console=self._console)
        if isinstance(changelog, Err):
            return changelog
        if changelog.value:
            self._console.print("changelog:", Style.DIM)
            for line in changelog.value.splitlines():
                self._console.print(f"  {line}", Style.DIM)

        default_message = f"Release {next_version.value.tag}"
        plan = ReleasePlan(
            current_version=current.value,
            next_version=next_version.value,
            project_name=project.value,
            commit_message=self._prompter.commit_message(default_message) or default_message,
            release_notes=self._prompter.release_notes(changelog.value) or changelog.value,
            dry_run=self._options.dry_run,
        )

        self._print_plan(plan)
        if not self._prompter.confirm("Proceed?"):
            return self._cancel(s)

        # Rollback target; an unborn branch has none.
        head = self._vcs.head_sha()
        start_sha = head.value if isinstance(head, Ok) else None
        if start_sha is None:
            self._console.warning("no commit yet: rollback will not be available")

        return Ok(
            advance(
                replace(s, state="version-resolved", build=adapter, plan=plan, start_sha=start_sha)
            )
        )

    def _build(self, s: ReleaseSession) -> Result[StepOutcome[ReleaseSession], ReleaseError]:
        if s.plan is None or s.build is None:
            return Err(_missing_plan(s))
        plan, adapter = s.plan, s.build

        written = write_version_record(
            self.version_file,
            plan.next_version,
            console=self._console,
            dry_run=self._options.dry_run,
        )
        if isinstance(written, Err):
            return written

        updated = adapter.set_manifest_version(plan.next_version)
        if isinstance(updated, Err):
            return updated

        if not self._options.dry_run:
            verified = _verify_manifest(adapter, plan.next_version)
            if isinstance(verified, Err):
                return verified

        built = _build_artifact(adapter, plan.next_version, plan.project_name, self._config)
        if isinstance(built, Err):
            return built
        self._console.success(f"built {built.value}")

        hooks = self._plugins.run("post-build")
        if isinstance(hooks, Err):
            return hooks
        return Ok(advance(replace(s, state="built", artifact=built.value)))

    def _commit(self, s: ReleaseSession) -> Result[StepOutcome[ReleaseSession], ReleaseError]:
        if s.plan is None:
            return Err(_missing_plan(s))

        hooks = self._plugins.run("pre-commit")
        if isinstance(hooks, Err):
            return hooks

        committed = self._vcs.commit_all(s.plan.commit_message)
        if isinstance(committed, Err):
            return Err(_vcs_error("commit failed", committed.error))
        pushed = self._vcs.push()
        if isinstance(pushed, Err):
            return Err(_vcs_error("push failed", pushed.error))
        return Ok(advance(replace(s, state="committed")))

    def _tag(self, s: ReleaseSession) -> Result[StepOutcome[ReleaseSession], ReleaseError]:
        if s.plan is None:
            return Err(_missing_plan(s))

        tagged = self._vcs.tag(s.plan.tag, s.plan.commit_message)
        if isinstance(tagged, Err):
            return Err(_vcs_error(f"failed to create tag {s.plan.tag}", tagged.error))
        pushed = self._vcs.push_tag(s.plan.tag)
        if isinstance(pushed, Err):
            return Err(_vcs_error(f"failed to push tag {s.plan.tag}", pushed.error))
        return Ok(advance(replace(s, state="tagged")))

    def _publish(self, s: ReleaseSession) -> Result[StepOutcome[ReleaseSession], ReleaseError]:
        if s.plan is None:
            return Err(_missing_plan(s))

        created = self._host.create_release(
            tag=s.plan.tag,
            title=s.plan.title,
            notes=s.plan.release_notes,
            artifact=s.artifact,
        )
        if isinstance(created, Err):
            return created

        warnings = s.warnings
        if created.value.warning is not None:
            warnings = (*warnings, created.value.warning)
        return Ok(advance(replace(s, state="published", warnings=warnings)))

    def _finish_release(
        self, s: ReleaseSession
    ) -> Result[StepOutcome[ReleaseSession], ReleaseError]:
        if s.plan is None:
            return Err(_missing_plan(s))

        if self._options.skip_version_sync:
            self._console.info("skipping version record sync")
        elif not self._options.dry_run:
            synced = self._resync_record(s.plan.next_version)
            if isinstance(synced, Err):
                return synced

        hooks = self._plugins.run("post-release")
        if isinstance(hooks, Err):
            return hooks
        return Ok(advance(replace(s, state="post-release-hooks")))

    # -- failure handling ----------------------------------------------------

    def _fail(self, failure: StepFailure[ReleaseSession]) -> ReleaseError:
        error = failure.error
        if failure.step == "tagged":
            self._offer_rollback(failure.session)
            return error

        if self._on_error_armed:
            self._plugins.run("on-error")
        if failure.step in ("built", "committed"):
            self._console.warning(
                "git history may be partially updated; inspect the working tree before retrying"
            )
        return error

    def _offer_rollback(self, session: ReleaseSession) -> None:
        """Run the on-error hooks once, then roll back if the operator approves."""
        self._enter(replace(session, state="error-rollback"))
        self._plugins.run("on-error")
        plan = session.plan
        if plan is None:
            return

        if session.start_sha is None:
            self._console.warning(f"no pre-release commit recorded; roll back {plan.tag} manually")
            return

        question = (
            f"Roll back {plan.tag}? This deletes the tag, resets to "
            f"{session.start_sha[:12]} and force-pushes."
        )
        if not self._prompter.confirm_rollback(question):
            self._console.warning(
                f"commit and tag {plan.tag} left in place; "
                "retry the attachment with --upload-only or roll back manually"
            )
            return

        errors = rollback_release(self._vcs, tag=plan.tag, to_sha=session.start_sha)
        for e in errors:
            self._console.error(f"rollback: git {e.command}: {e.message}")
        if not errors:
            self._console.warning(f"rolled back {plan.tag}")

    # -- upload-only ---------------------------------------------------------

    def upload_only(self) -> Result[RunOutcome, ReleaseError]:
        self._console.header("Upload-only release")
        if self._options.dry_run:
            self._console.warning("dry-run: no changes will be made")

        build = self._resolve_build()
        if isinstance(build, Err):
            return build
        adapter = build.value

        tools = self._check_tools(adapter)
        if isinstance(tools, Err):
            return tools

        project = adapter.read_project_identifier()
        if isinstance(project, Err):
            return project
        self._console.info(f"project: {project.value} ({adapter.name})")

        current = self._current_version(adapter, require_existing=True)
        if isinstance(current, Err):
            return current
        version = current.value
        self._console.info(f"using current version: {version}")

        # Fails with release_missing when there is nothing to attach to.
        listed = self._host.list_asset_names(version.tag)
        if isinstance(listed, Err):
            return listed

        artifact = _build_artifact(adapter, version, project.value, self._config)
        if isinstance(artifact, Err):
            return artifact

        hooks = self._plugins.run("post-build")
        if isinstance(hooks, Err):
            return hooks

        uploaded = self._host.upload_asset(
            ReleaseAsset(version.tag, artifact.value), replace_existing=True
        )
        if isinstance(uploaded, Err):
            return uploaded

        self._console.success(f"artifact for {version.tag} uploaded")
        return Ok(RunOutcome(status="uploaded", version=version, artifact=artifact.value))

    # -- shared steps --------------------------------------------------------

    def _check_working_tree(self) -> Result[bool, ReleaseError]:
        """Branch and cleanliness gates, then fetch. Ok(False) means the operator declined."""
        main = self._vcs.detect_main_branch(self._config.git.main_branch)
        status = self._vcs.status()
        if isinstance(status, Err):
            return Err(_vcs_error("failed to read git status", status.error))

        branch = status.value.branch
        if branch != main:
            self._console.warning(f"you are on branch '{branch}', not the main branch '{main}'")
            if not self._prompter.confirm("Continue anyway?"):
                return Ok(False)

        if status.value.has_uncommitted_changes:
            self._console.warning("uncommitted changes will be included in the release:")
            for entry in status.value.entries:
                self._console.print(f"  {entry.xy} {entry.path}", Style.DIM)
            if not self._prompter.confirm("Continue anyway?"):
                return Ok(False)

        fetched = self._vcs.fetch_all()
        if isinstance(fetched, Err):
            return Err(_vcs_error("git fetch failed", fetched.error))
        return Ok(True)

    def _current_version(
        self, adapter: BuildAdapter, *, require_existing: bool
    ) -> Result[Version, ReleaseError]:
        fallback = parse_version(self._config.version.default_starting)
        if isinstance(fallback, Err):
            return Err(
                ReleaseError(
                    kind="config_invalid",
                    message="invalid [version] default_starting",
                    hint=fallback.error.message,
                )
            )

        recorded = read_version_record(self.version_file)
        if isinstance(recorded, Err):
            return recorded

        reconciled = reconcile(recorded.value, adapter.read_manifest_version(), fallback.value)
        if isinstance(reconciled, Err):
            return reconciled

        if reconciled.value.needs_record:
            if require_existing:
                return Err(
                    ReleaseError(
                        kind="invalid_version",
                        message="could not determine current version",
                        hint=f"Neither {self._config.version.file} nor the manifest holds one.",
                    )
                )
            self._console.warning(f"no version found; using default {fallback.value}")
            return Ok(fallback.value)

        version = reconciled.value.version
        published = self._host.latest_published_version()
        if isinstance(published, Err):
            self._console.warning(f"could not check published releases: {published.error.pretty()}")
            return Ok(version)

        mismatch = check_published(version, published.value)
        if mismatch is None:
            return Ok(version)

        if not self._options.sync_published:
            self._console.warning(
                f"version record says {mismatch.recorded} but the latest published release "
                f"is {mismatch.published} (pass --sync-published to adopt it)"
            )
            return Ok(version)

        return sync_to_published(
            self.version_file,
            mismatch,
            console=self._console,
            dry_run=self._options.dry_run,
        )

    def _next_version(self, current: Version) -> Result[Version, ReleaseError]:
        candidates = {b: current.bump(b) for b in _BUMPS}
        choice = self._prompter.choose_bump(current, candidates)
        if choice != "custom":
            return Ok(candidates[choice])

        raw = self._prompter.custom_version().strip()
        parsed = parse_version(raw)
        if isinstance(parsed, Err):
            return parsed
        if parsed.value <= current:
            self._console.warning(f"{parsed.value} is not greater than {current}")
        return parsed

    def _resync_record(self, version: Version) -> Result[None, ReleaseError]:
        recorded = read_version_record(self.version_file)
        if isinstance(recorded, Err):
            return recorded
        if recorded.value == str(version):
            return Ok(None)

        self._console.warning(
            f"version record drifted to {recorded.value or 'nothing'}; rewriting {version}"
        )
        return write_version_record(
            self.version_file,
            version,
            console=self._console,
            dry_run=self._options.dry_run,
        )

    def _print_plan(self, plan: ReleasePlan) -> None:
        self._console.header("Release plan")
        self._console.print(f"1. update version {plan.current_version} -> {plan.next_version}")
        self._console.print(f"2. build {plan.project_name}")
        self._console.print(f"3. commit changes with message: {plan.commit_message!r}")
        self._console.print(f"4. create and push tag: {plan.tag}")
        self._console.print(f"5. create release {plan.title!r}")
        if plan.dry_run:
            self._console.print("(dry-run: nothing above will be executed)", Style.DIM)


def _verify_manifest(adapter: BuildAdapter, expected: Version) -> Result[None, ReleaseError]:
    raw = adapter.read_manifest_version()
    actual = parse_version(raw) if raw is not None else None
    if actual is None or isinstance(actual, Err) or actual.value != expected:
        return Err(
            ReleaseError(
                kind="version_mismatch",
                message=f"manifest reports {raw or 'no version'} after update, expected {expected}",
                hint="Refusing to build an artifact with the wrong embedded version.",
            )
        )
    return Ok(None)


def _build_artifact(
    adapter: BuildAdapter, version: Version, project: str, config: ReleaseConfig
) -> Result[Path, ReleaseError]:
    result: BuildResult = adapter.build(version, project, config.build.skip_tests)
    if result.success and result.artifact_path is not None:
        return Ok(result.artifact_path)
    return Err(
        ReleaseError(
            kind=result.failure_kind or "build_failed",
            message=f"{adapter.name} build failed",
            hint=result.diagnostic,
        )
    )


def _vcs_error(message: str, error: GitError) -> ReleaseError:
    return ReleaseError(kind="vcs_failed", message=message, hint=error.message or None)


def _missing_plan(s: ReleaseSession) -> ReleaseError:
    return ReleaseError(kind="invalid_state", message=f"no release plan in state {s.state}")
