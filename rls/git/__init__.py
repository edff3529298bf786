"""Git operations used by the release flow.

Usage:
    from rls.git import Repository

    repo = Repository(Path("."), console=console, dry_run=True)
    repo.tag("v1.2.3", "Release v1.2.3")  # reported, not executed
"""

from rls.git.repository import (
    GitError,
    GitStatus,
    Repository,
    StatusEntry,
    VcsGateway,
    rollback_release,
)

__all__ = [
    "GitError",
    "GitStatus",
    "Repository",
    "StatusEntry",
    "VcsGateway",
    "rollback_release",
]
