from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

ReleaseErrorKind = Literal[
    "tool_missing",
    "gh_auth_required",
    "config_invalid",
    "invalid_version",
    "build_tool_unknown",
    "build_failed",
    "artifact_not_found",
    "version_mismatch",
    "vcs_failed",
    "io_failed",
    "publish_failed",
    "release_missing",
    "plugin_failed",
    "invalid_state",
]


@dataclass(frozen=True, slots=True)
class ReleaseError:
    """Canonical release error payload.

    Produced by every release component and rendered once by the CLI.
    """

    kind: ReleaseErrorKind
    message: str
    hint: str | None = None

    def pretty(self) -> str:
        if self.hint:
            return f"{self.message} (hint: {self.hint})"
        return self.message
