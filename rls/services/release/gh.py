"""GitHub release host backed by the `gh` CLI.

Each method is a single attempt. Retry and fallback policy live in
host_client.ReleaseHostClient; only idempotent reads retry here, and only on
transient failures.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from time import sleep

from rls.core.result import Err, Ok, Result
from rls.core.structured import as_obj_list, as_str_dict, get_str
from rls.platform.process import ProcessError
from rls.platform.process import run as run_process
from rls.services.release.errors import ReleaseError
from rls.services.release.timeouts import GH_READ_TIMEOUT_SECONDS

GH_READ_RETRY_ATTEMPTS = 3
GH_READ_RETRY_DELAY_SECONDS = 1.0


@dataclass(frozen=True, slots=True)
class HostError:
    """A failed call against the release host.

    Attributes:
        message: Error output of the call
        transient: Network-level failure worth retrying
        already_exists: The release or asset is already there
        not_found: The release does not exist
    """

    message: str
    transient: bool = False
    already_exists: bool = False
    not_found: bool = False


_TRANSIENT_MARKERS = (
    "timed out",
    "timeout",
    "connection reset",
    "connection refused",
    "temporarily unavailable",
    "service unavailable",
    "bad gateway",
    "gateway timeout",
    "tls handshake timeout",
    "network is unreachable",
    "unexpected eof",
    "http 429",
    "http 500",
    "http 502",
    "http 503",
    "http 504",
)


def _classify(error: ProcessError) -> HostError:
    text = f"{error.stderr}\n{error.stdout}".lower()
    return HostError(
        message=error.stderr.strip() or error.stdout.strip() or str(error),
        transient=error.timed_out or any(m in text for m in _TRANSIENT_MARKERS),
        already_exists="already exists" in text,
        not_found="release not found" in text or "http 404" in text,
    )


def ensure_gh_auth(*, repo_root: Path) -> Result[None, ReleaseError]:
    result = run_process(["gh", "auth", "status"], cwd=repo_root, timeout=GH_READ_TIMEOUT_SECONDS)
    if isinstance(result, Err):
        return Err(
            ReleaseError(
                kind="gh_auth_required",
                message="gh auth required",
                hint="Run: gh auth login",
            )
        )
    return Ok(None)


class GhReleaseHost:
    """Release host operations over `gh release ...`."""

    def __init__(self, *, repo_root: Path, timeout: float) -> None:
        self.repo_root = repo_root
        self.timeout = timeout

    def _call(self, cmd: list[str]) -> Result[str, HostError]:
        result = run_process(cmd, cwd=self.repo_root, timeout=self.timeout)
        if isinstance(result, Err):
            return Err(_classify(result.error))
        return Ok(result.value)

    def _read(self, cmd: list[str]) -> Result[str, HostError]:
        attempts = max(1, GH_READ_RETRY_ATTEMPTS)
        last = HostError(message="gh read failed")
        for attempt in range(attempts):
            result = run_process(cmd, cwd=self.repo_root, timeout=self.timeout)
            if isinstance(result, Ok):
                return result

            last = _classify(result.error)
            if attempt < attempts - 1 and last.transient:
                sleep(GH_READ_RETRY_DELAY_SECONDS * (attempt + 1))
                continue
            break
        return Err(last)

    def asset_names(self, tag: str) -> Result[frozenset[str] | None, HostError]:
        """Names of the assets on a release, None when the release does not exist."""
        result = self._read(["gh", "release", "view", tag, "--json", "tagName,assets"])
        if isinstance(result, Err):
            if result.error.not_found:
                return Ok(None)
            return result

        try:
            obj: object = json.loads(result.value)
        except json.JSONDecodeError as e:
            return Err(HostError(message=f"invalid JSON from gh release view: {e}"))

        data = as_str_dict(obj)
        if data is None:
            return Err(HostError(message="unexpected payload from gh release view"))

        names: set[str] = set()
        for item in as_obj_list(data.get("assets")) or []:
            d = as_str_dict(item)
            name = get_str(d, "name") if d is not None else None
            if name is not None:
                names.add(name)
        return Ok(frozenset(names))

    def latest_tag(self) -> Result[str | None, HostError]:
        """Tag of the latest published release, None when nothing is published."""
        result = self._read(["gh", "release", "view", "--json", "tagName"])
        if isinstance(result, Err):
            if result.error.not_found:
                return Ok(None)
            return result

        try:
            obj: object = json.loads(result.value)
        except json.JSONDecodeError as e:
            return Err(HostError(message=f"invalid JSON from gh release view: {e}"))

        data = as_str_dict(obj)
        return Ok(get_str(data, "tagName") if data is not None else None)

    def create(
        self,
        *,
        tag: str,
        title: str,
        notes: str,
        artifact: Path | None,
    ) -> Result[None, HostError]:
        cmd = ["gh", "release", "create", tag, "--verify-tag", "--title", title, "--notes", notes]
        if artifact is not None:
            cmd.append(str(artifact))
        result = self._call(cmd)
        if isinstance(result, Err):
            return result
        return Ok(None)

    def upload(self, *, tag: str, artifact: Path) -> Result[None, HostError]:
        result = self._call(["gh", "release", "upload", tag, str(artifact)])
        if isinstance(result, Err):
            return result
        return Ok(None)

    def delete_asset(self, *, tag: str, name: str) -> Result[None, HostError]:
        result = self._call(["gh", "release", "delete-asset", tag, name, "--yes"])
        if isinstance(result, Err):
            return result
        return Ok(None)
