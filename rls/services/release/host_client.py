"""Release host client: creation with retry, fallback and idempotent uploads.

Creation policy:
1. With an artifact, create the release with the attachment, up to
   `retry_count` attempts with a fixed delay. A later attempt that finds the
   release "already exists" means an earlier attempt got through partially;
   the artifact is then attached with a separate upload.
2. When every attempt fails, create the release without the attachment and
   try one separate upload. A missing attachment is a warning, not a failure.
3. Failing to create even the bare release is fatal.

Uploads delete a same-named asset first (when asked to) so repeated uploads
converge on a single asset, then verify by listing the release's assets.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from time import sleep
from typing import Protocol

from rls.core.config import PublishConfig
from rls.core.result import Err, Ok, Result
from rls.output.console import ConsoleProtocol
from rls.services.release.errors import ReleaseError
from rls.services.release.gh import HostError
from rls.services.release.model import ReleaseAsset, RetryState
from rls.services.release.semver import Version, parse_tag


class ReleaseHost(Protocol):
    """Single-attempt release host operations."""

    def asset_names(self, tag: str) -> Result[frozenset[str] | None, HostError]: ...

    def latest_tag(self) -> Result[str | None, HostError]: ...

    def create(
        self, *, tag: str, title: str, notes: str, artifact: Path | None
    ) -> Result[None, HostError]: ...

    def upload(self, *, tag: str, artifact: Path) -> Result[None, HostError]: ...

    def delete_asset(self, *, tag: str, name: str) -> Result[None, HostError]: ...


@dataclass(frozen=True, slots=True)
class PublishOutcome:
    """What a create_release call achieved.

    Attributes:
        created: This call created the release object
        attached: The artifact is on the release
        attempts: Creation attempts made with the attachment
        warning: Manual-recovery guidance when the artifact could not be attached
    """

    created: bool
    attached: bool
    attempts: int = 0
    warning: str | None = None


def human_size(path: Path) -> str:
    try:
        size = float(path.stat().st_size)
    except OSError:
        return "unknown size"
    if size < 1024:
        return f"{size:.0f} B"
    for unit in ("KiB", "MiB"):
        size /= 1024
        if size < 1024:
            return f"{size:.1f} {unit}"
    return f"{size / 1024:.1f} GiB"


class ReleaseHostClient:
    def __init__(
        self,
        *,
        host: ReleaseHost,
        policy: PublishConfig,
        console: ConsoleProtocol,
        dry_run: bool,
    ) -> None:
        self._host = host
        self._policy = policy
        self._console = console
        self._dry_run = dry_run

    # -- reads ---------------------------------------------------------------

    def release_exists(self, tag: str) -> Result[bool, ReleaseError]:
        names = self._host.asset_names(tag)
        if isinstance(names, Err):
            return Err(_publish_error(f"failed to query release {tag}", names.error))
        return Ok(names.value is not None)

    def list_asset_names(self, tag: str) -> Result[set[str], ReleaseError]:
        names = self._host.asset_names(tag)
        if isinstance(names, Err):
            return Err(_publish_error(f"failed to list assets of {tag}", names.error))
        if names.value is None:
            return Err(
                ReleaseError(
                    kind="release_missing",
                    message=f"release {tag} does not exist",
                    hint="Create the release first by running a full release.",
                )
            )
        return Ok(set(names.value))

    def latest_published_version(self) -> Result[Version | None, ReleaseError]:
        tag = self._host.latest_tag()
        if isinstance(tag, Err):
            return Err(_publish_error("failed to query latest release", tag.error))
        if tag.value is None:
            return Ok(None)
        return Ok(parse_tag(tag.value))

    # -- creation ------------------------------------------------------------

    def create_release(
        self,
        *,
        tag: str,
        title: str,
        notes: str,
        artifact: Path | None,
    ) -> Result[PublishOutcome, ReleaseError]:
        exists = self.release_exists(tag)
        if isinstance(exists, Err):
            self._console.warning(f"{exists.error.pretty()}; attempting creation anyway")
        elif exists.value:
            self._console.info(f"release {tag} already exists; skipping creation")
            return Ok(self._ensure_attached(tag, artifact, skip_if_present=True))

        if artifact is not None:
            attached = self._create_with_attachment(
                tag=tag, title=title, notes=notes, artifact=artifact
            )
            if attached is not None:
                return Ok(attached)
            self._console.warning(
                "all attachment attempts failed; creating release without attachment"
            )

        return self._create_bare(tag=tag, title=title, notes=notes, artifact=artifact)

    def _create_with_attachment(
        self, *, tag: str, title: str, notes: str, artifact: Path
    ) -> PublishOutcome | None:
        state = RetryState(
            attempt=1,
            max_attempts=self._policy.retry_count,
            backoff_seconds=self._policy.create_retry_delay,
        )
        while True:
            self._console.info(
                f"release creation attempt {state.attempt} of {state.max_attempts} "
                f"with attachment: {artifact} ({human_size(artifact)})"
            )
            if self._dry_run:
                self._console.dry_run(f"gh release create {tag} --title {title!r} {artifact}")
                return PublishOutcome(created=True, attached=True, attempts=state.attempt)

            result = self._host.create(tag=tag, title=title, notes=notes, artifact=artifact)
            if isinstance(result, Ok):
                self._console.success(f"release {tag} created with attachment")
                return PublishOutcome(created=True, attached=True, attempts=state.attempt)

            if result.error.already_exists:
                # An earlier attempt created the release before failing.
                self._console.warning(f"release {tag} already exists after a partial attempt")
                outcome = self._ensure_attached(tag, artifact)
                return PublishOutcome(
                    created=True,
                    attached=outcome.attached,
                    attempts=state.attempt,
                    warning=outcome.warning,
                )

            self._console.warning(f"attempt {state.attempt} failed: {result.error.message}")
            if state.is_last:
                return None
            self._console.info(f"waiting {state.backoff_seconds:g}s before retry")
            sleep(state.backoff_seconds)
            state = state.next()

    def _create_bare(
        self, *, tag: str, title: str, notes: str, artifact: Path | None
    ) -> Result[PublishOutcome, ReleaseError]:
        attempts = self._policy.retry_count if artifact is not None else 0
        if self._dry_run:
            self._console.dry_run(f"gh release create {tag} --title {title!r}")
            return Ok(PublishOutcome(created=True, attached=False, attempts=attempts))

        result = self._host.create(tag=tag, title=title, notes=notes, artifact=None)
        if isinstance(result, Err) and not result.error.already_exists:
            return Err(_publish_error(f"failed to create release {tag}", result.error))
        self._console.success(f"release {tag} created")

        if artifact is None:
            return Ok(PublishOutcome(created=True, attached=False, attempts=attempts))

        outcome = self._ensure_attached(tag, artifact)
        return Ok(
            PublishOutcome(
                created=True,
                attached=outcome.attached,
                attempts=attempts,
                warning=outcome.warning,
            )
        )

    def _ensure_attached(
        self, tag: str, artifact: Path | None, *, skip_if_present: bool = False
    ) -> PublishOutcome:
        if artifact is None:
            return PublishOutcome(created=False, attached=False)

        if skip_if_present:
            names = self._host.asset_names(tag)
            if isinstance(names, Ok) and names.value is not None and artifact.name in names.value:
                self._console.info(f"{artifact.name} already attached to {tag}")
                return PublishOutcome(created=False, attached=True)

        uploaded = self.upload_asset(ReleaseAsset(tag, artifact), replace_existing=True)
        if isinstance(uploaded, Ok):
            return PublishOutcome(created=False, attached=True)

        warning = (
            f"could not attach artifact {artifact} to {tag}; "
            f"upload it manually: gh release upload {tag} '{artifact}'"
        )
        self._console.warning(warning)
        return PublishOutcome(created=False, attached=False, warning=warning)

    # -- upload --------------------------------------------------------------

    def upload_asset(
        self,
        asset: ReleaseAsset,
        *,
        replace_existing: bool,
    ) -> Result[None, ReleaseError]:
        tag, artifact, name = asset.release_tag, asset.artifact_path, asset.name
        if not self._dry_run and not artifact.is_file():
            return Err(
                ReleaseError(
                    kind="artifact_not_found",
                    message=f"artifact not found at: {artifact}",
                )
            )

        if replace_existing:
            replaced = self._delete_same_name(tag, name)
            if isinstance(replaced, Err):
                return replaced

        if self._dry_run:
            self._console.dry_run(f"gh release upload {tag} {artifact}")
            return Ok(None)

        state = RetryState(
            attempt=1,
            max_attempts=self._policy.upload_attempts,
            backoff_seconds=self._policy.upload_retry_delay,
        )
        while True:
            self._console.info(f"uploading {name} to {tag} (attempt {state.attempt})")
            result = self._host.upload(tag=tag, artifact=artifact)
            if isinstance(result, Ok):
                break
            if result.error.already_exists:
                if state.attempt > 1:
                    # The previous attempt landed even though it reported failure.
                    break
                return Err(_publish_error(f"{name} is already attached to {tag}", result.error))

            self._console.warning(f"upload attempt {state.attempt} failed: {result.error.message}")
            if state.is_last:
                return Err(_publish_error(f"failed to upload {name} to {tag}", result.error))
            sleep(state.backoff_seconds)
            state = state.next()

        # The upload's own status is authoritative; the listing is a sanity check.
        names = self._host.asset_names(tag)
        if isinstance(names, Err) or names.value is None or name not in names.value:
            self._console.warning(f"could not verify {name} on release {tag}")
        else:
            self._console.success(f"artifact {name} uploaded to {tag}")
        return Ok(None)

    def _delete_same_name(self, tag: str, name: str) -> Result[None, ReleaseError]:
        names = self._host.asset_names(tag)
        if isinstance(names, Err):
            return Err(_publish_error(f"failed to list assets of {tag}", names.error))
        if names.value is None or name not in names.value:
            return Ok(None)

        self._console.warning(f"asset {name!r} already exists on {tag}; deleting it first")
        if self._dry_run:
            self._console.dry_run(f"gh release delete-asset {tag} {name} --yes")
            return Ok(None)

        deleted = self._host.delete_asset(tag=tag, name=name)
        if isinstance(deleted, Err):
            return Err(_publish_error(f"failed to delete existing asset {name}", deleted.error))
        return Ok(None)


def _publish_error(message: str, error: HostError) -> ReleaseError:
    return ReleaseError(kind="publish_failed", message=message, hint=error.message or None)
