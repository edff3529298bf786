from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from rls.core.result import Err, Ok, Result
from rls.services.release.errors import ReleaseError

if TYPE_CHECKING:
    from rls.services.release.model import ReleaseBump

_VERSION_RE = re.compile(r"([0-9]+)\.([0-9]+)\.([0-9]+)")


@dataclass(frozen=True, slots=True, order=True)
class Version:
    major: int
    minor: int
    patch: int

    @property
    def tag(self) -> str:
        return f"v{self}"

    def bump(self, kind: ReleaseBump) -> Version:
        match kind:
            case "major":
                return Version(self.major + 1, 0, 0)
            case "minor":
                return Version(self.major, self.minor + 1, 0)
            case "patch":
                return Version(self.major, self.minor, self.patch + 1)
            case _:
                raise AssertionError(f"unexpected bump kind: {kind}")

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


def parse_version(text: str) -> Result[Version, ReleaseError]:
    """Parse a strict MAJOR.MINOR.PATCH string (no `v` prefix, no suffixes)."""
    m = _VERSION_RE.fullmatch(text)
    if m is None:
        return Err(
            ReleaseError(
                kind="invalid_version",
                message=f"invalid version format: {text!r}",
                hint="Use semantic versioning, e.g. 1.0.0",
            )
        )
    return Ok(Version(int(m.group(1)), int(m.group(2)), int(m.group(3))))


def parse_tag(tag: str) -> Version | None:
    """Version of a `vX.Y.Z` release tag, None for anything else."""
    if not tag.startswith("v"):
        return None
    parsed = parse_version(tag[1:])
    if isinstance(parsed, Err):
        return None
    return parsed.value
