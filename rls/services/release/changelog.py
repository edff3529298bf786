from __future__ import annotations

from rls.core.result import Err, Ok, Result
from rls.git.repository import VcsGateway
from rls.output.console import ConsoleProtocol
from rls.services.release.errors import ReleaseError


def generate_changelog(*, vcs: VcsGateway, console: ConsoleProtocol) -> Result[str, ReleaseError]:
    """Commit subjects since the most recent reachable tag, one per line.

    With no tag yet, every commit reachable from HEAD is listed. Read-only.
    """
    latest = vcs.latest_tag()
    if latest is None:
        console.warning("no previous tag found; changelog includes all commits")
    else:
        console.info(f"changelog since tag {latest}")

    subjects = vcs.log_subjects(latest)
    if isinstance(subjects, Err):
        return Err(
            ReleaseError(
                kind="vcs_failed",
                message="failed to read commit log",
                hint=subjects.error.message or None,
            )
        )
    return Ok("\n".join(subjects.value))
