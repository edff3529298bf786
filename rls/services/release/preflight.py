from __future__ import annotations

import shutil
from pathlib import Path

from rls.core.result import Err, Result
from rls.services.release.build import BuildAdapter
from rls.services.release.errors import ReleaseError
from rls.services.release.gh import ensure_gh_auth


def missing_tools(*, build: BuildAdapter | None) -> list[str]:
    """Every required tool that cannot be found, not just the first."""
    missing: list[str] = []
    if shutil.which("git") is None:
        missing.append("git")
    if shutil.which("gh") is None:
        missing.append("gh (GitHub CLI)")
    if build is not None:
        missing.extend(build.missing_tools())
    return missing


def check_requirements(
    *,
    repo_root: Path,
    build: BuildAdapter | None,
) -> Result[None, ReleaseError]:
    missing = missing_tools(build=build)
    if missing:
        return Err(
            ReleaseError(
                kind="tool_missing",
                message=f"missing required tools: {', '.join(missing)}",
                hint="Install them and make sure they are on PATH.",
            )
        )

    return ensure_gh_auth(repo_root=repo_root)
