"""Version record and current-version reconciliation.

Two stores can hold the current version: the version record file (VERSION by
default) and the build manifest. The record wins; the manifest is only
consulted when there is no record.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from rls.core.result import Err, Ok, Result
from rls.output.console import ConsoleProtocol
from rls.platform.files import atomic_write_text
from rls.services.release.errors import ReleaseError
from rls.services.release.semver import Version, parse_version

VersionSource = Literal["file", "manifest", "default"]


@dataclass(frozen=True, slots=True)
class ReconciledVersion:
    version: Version
    source: VersionSource

    @property
    def needs_record(self) -> bool:
        """True when no store held a version and a record must be created."""
        return self.source == "default"


@dataclass(frozen=True, slots=True)
class PublishedMismatch:
    recorded: Version
    published: Version


def read_version_record(path: Path) -> Result[str | None, ReleaseError]:
    if not path.is_file():
        return Ok(None)
    try:
        text = path.read_text(encoding="utf-8").strip()
    except OSError as e:
        return Err(
            ReleaseError(
                kind="io_failed",
                message=f"failed to read version record: {e}",
                hint=str(path),
            )
        )
    return Ok(text or None)


def write_version_record(
    path: Path,
    version: Version,
    *,
    console: ConsoleProtocol,
    dry_run: bool,
) -> Result[None, ReleaseError]:
    if dry_run:
        console.dry_run(f"write {version} > {path.name}")
        return Ok(None)
    try:
        atomic_write_text(path, f"{version}\n")
    except OSError as e:
        return Err(
            ReleaseError(
                kind="io_failed",
                message=f"failed to write version record: {e}",
                hint=str(path),
            )
        )
    return Ok(None)


def reconcile(
    file_version: str | None,
    manifest_version: str | None,
    fallback: Version,
) -> Result[ReconciledVersion, ReleaseError]:
    """Pick the current version.

    An explicit version-file value wins over the manifest. With neither, the
    fallback is used and the caller must create the record. A value that is
    present but malformed is an error, never silently replaced.
    """
    for raw, source in ((file_version, "file"), (manifest_version, "manifest")):
        if raw is None or not raw.strip():
            continue
        parsed = parse_version(raw.strip())
        if isinstance(parsed, Err):
            return Err(
                ReleaseError(
                    kind="invalid_version",
                    message=f"{source} holds an invalid version: {raw.strip()!r}",
                    hint=parsed.error.hint,
                )
            )
        return Ok(ReconciledVersion(version=parsed.value, source=source))

    return Ok(ReconciledVersion(version=fallback, source="default"))


def check_published(recorded: Version, published: Version | None) -> PublishedMismatch | None:
    """Report disagreement between the record and the latest published release."""
    if published is None or published == recorded:
        return None
    return PublishedMismatch(recorded=recorded, published=published)


def sync_to_published(
    path: Path,
    mismatch: PublishedMismatch,
    *,
    console: ConsoleProtocol,
    dry_run: bool,
) -> Result[Version, ReleaseError]:
    """Overwrite the record with the published version (explicit opt-in only)."""
    console.warning(
        f"version record {mismatch.recorded} replaced by latest published {mismatch.published}"
    )
    written = write_version_record(path, mismatch.published, console=console, dry_run=dry_run)
    if isinstance(written, Err):
        return written
    return Ok(mismatch.published)
