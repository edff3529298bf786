"""Build backends.

A backend owns its manifest (pom.xml, build.gradle[.kts]) and knows how to
package the project. The orchestrator only sees the BuildAdapter protocol;
backends are looked up by name in BUILD_ADAPTERS.
"""

from __future__ import annotations

import re
import shutil
import xml.etree.ElementTree as ET
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Protocol

from rls.core.config import ReleaseConfig
from rls.core.result import Err, Ok, Result
from rls.output.console import ConsoleProtocol, Style
from rls.platform.files import list_dir_names
from rls.platform.process import run as run_process
from rls.platform.process import run_silent
from rls.services.release.errors import ReleaseError
from rls.services.release.model import BuildResult
from rls.services.release.semver import Version
from rls.services.release.timeouts import BUILD_TIMEOUT_SECONDS


class BuildAdapter(Protocol):
    name: str

    def missing_tools(self) -> list[str]:
        """Human-readable names of the tools this backend needs but cannot find."""
        ...

    def read_project_identifier(self) -> Result[str, ReleaseError]: ...

    def read_manifest_version(self) -> str | None: ...

    def set_manifest_version(self, version: Version) -> Result[None, ReleaseError]: ...

    def build(self, version: Version, artifact_id: str, skip_tests: bool) -> BuildResult: ...


def resolve_artifact(
    *,
    output_dir: Path,
    artifact_id: str,
    version: Version,
    ext: str,
) -> Result[Path, str]:
    """Locate the packaged artifact.

    The conventional `{artifactId}-{version}.{ext}` wins; otherwise the first
    `*.{ext}` file in directory listing order. The error carries a listing of
    the output directory.
    """
    expected = output_dir / f"{artifact_id}-{version}.{ext}"
    if expected.is_file():
        return Ok(expected)

    names = list_dir_names(output_dir)
    for name in names:
        candidate = output_dir / name
        if name.endswith(f".{ext}") and candidate.is_file():
            return Ok(candidate)

    listing = "\n".join(f"  {n}" for n in names) if names else "  (empty or missing)"
    return Err(f"artifact not found: expected {expected}\ncontents of {output_dir}:\n{listing}")


class _Backend(ABC):
    """Shared behaviour of the command-line build backends."""

    name = ""
    manifest_names: tuple[str, ...] = ()
    output_subdir = ""
    artifact_ext = "jar"
    wrapper = ""
    executable = ""

    def __init__(self, *, root: Path, console: ConsoleProtocol, dry_run: bool) -> None:
        self.root = root
        self._console = console
        self._dry_run = dry_run

    @classmethod
    def detect(cls, root: Path) -> bool:
        return any((root / n).is_file() for n in cls.manifest_names)

    @property
    def manifest(self) -> Path:
        for n in self.manifest_names:
            if (self.root / n).is_file():
                return self.root / n
        return self.root / self.manifest_names[0]

    @property
    def output_dir(self) -> Path:
        return self.root / self.output_subdir

    def command(self) -> list[str]:
        if (self.root / self.wrapper).is_file():
            return [f"./{self.wrapper}"]
        return [self.executable]

    def missing_tools(self) -> list[str]:
        if shutil.which(self.executable) or (self.root / self.wrapper).is_file():
            return []
        return [f"{self.executable} or wrapper (./{self.wrapper})"]

    @abstractmethod
    def package_args(self, skip_tests: bool) -> list[str]: ...

    def build(self, version: Version, artifact_id: str, skip_tests: bool) -> BuildResult:
        cmd = [*self.command(), *self.package_args(skip_tests)]
        expected = self.output_dir / f"{artifact_id}-{version}.{self.artifact_ext}"
        if self._dry_run:
            self._console.dry_run(" ".join(cmd))
            return BuildResult(success=True, artifact_path=expected)

        self._console.print(" ".join(cmd), Style.DIM)
        result = run_silent(cmd, cwd=self.root, env=None, timeout=BUILD_TIMEOUT_SECONDS)
        if isinstance(result, Err):
            e = result.error
            return BuildResult(
                success=False,
                diagnostic=f"{' '.join(cmd)} failed (exit {e.returncode}) in {self.root}"
                + (f"\n{e.stderr.strip()}" if e.stderr.strip() else ""),
                failure_kind="build_failed",
            )

        artifact = resolve_artifact(
            output_dir=self.output_dir,
            artifact_id=artifact_id,
            version=version,
            ext=self.artifact_ext,
        )
        if isinstance(artifact, Err):
            return BuildResult(
                success=False,
                diagnostic=artifact.error,
                failure_kind="artifact_not_found",
            )
        return BuildResult(success=True, artifact_path=artifact.value)


_POM_NS = "{http://maven.apache.org/POM/4.0.0}"


class MavenAdapter(_Backend):
    name = "maven"
    manifest_names = ("pom.xml",)
    output_subdir = "target"
    wrapper = "mvnw"
    executable = "mvn"

    def package_args(self, skip_tests: bool) -> list[str]:
        args = ["clean", "package"]
        if skip_tests:
            args.append("-DskipTests")
        return args

    def _project_field(self, field: str) -> str | None:
        try:
            root = ET.parse(self.manifest).getroot()
        except (OSError, ET.ParseError):
            return None
        # Only direct children of <project>; <parent><version> must not leak in.
        for tag in (f"{_POM_NS}{field}", field):
            node = root.find(tag)
            if node is not None and node.text and node.text.strip():
                return node.text.strip()
        return None

    def read_project_identifier(self) -> Result[str, ReleaseError]:
        artifact_id = self._project_field("artifactId")
        if artifact_id is None:
            return Err(
                ReleaseError(
                    kind="build_tool_unknown",
                    message="could not read artifactId from pom.xml",
                    hint=str(self.manifest),
                )
            )
        return Ok(artifact_id)

    def read_manifest_version(self) -> str | None:
        return self._project_field("version")

    def set_manifest_version(self, version: Version) -> Result[None, ReleaseError]:
        cmd = [
            *self.command(),
            "versions:set",
            f"-DnewVersion={version}",
            "-DgenerateBackupPoms=false",
        ]
        if self._dry_run:
            self._console.dry_run(" ".join(cmd))
            return Ok(None)

        self._console.print(" ".join(cmd), Style.DIM)
        result = run_process(cmd, cwd=self.root, timeout=BUILD_TIMEOUT_SECONDS)
        if isinstance(result, Err):
            e = result.error
            return Err(
                ReleaseError(
                    kind="build_failed",
                    message=f"failed to set pom.xml version to {version}",
                    hint=e.stderr.strip() or e.stdout.strip()[-500:] or None,
                )
            )
        return Ok(None)


_GRADLE_VERSION_RE = re.compile(r"""^(\s*version\s*=\s*)(['"])([^'"]*)(['"])""", re.MULTILINE)
_GRADLE_NAME_RE = re.compile(r"""rootProject\.name\s*=\s*['"]([^'"]+)['"]""")


class GradleAdapter(_Backend):
    name = "gradle"
    manifest_names = ("build.gradle.kts", "build.gradle")
    output_subdir = "build/libs"
    wrapper = "gradlew"
    executable = "gradle"

    def package_args(self, skip_tests: bool) -> list[str]:
        args = ["build"]
        if skip_tests:
            args.extend(["-x", "test"])
        return args

    def read_project_identifier(self) -> Result[str, ReleaseError]:
        for settings in ("settings.gradle.kts", "settings.gradle"):
            path = self.root / settings
            try:
                text = path.read_text(encoding="utf-8")
            except OSError:
                continue
            m = _GRADLE_NAME_RE.search(text)
            if m is not None:
                return Ok(m.group(1))
        # Gradle itself defaults the root project name to the directory name.
        return Ok(self.root.resolve().name)

    def read_manifest_version(self) -> str | None:
        try:
            text = self.manifest.read_text(encoding="utf-8")
        except OSError:
            return None
        m = _GRADLE_VERSION_RE.search(text)
        if m is None:
            return None
        return m.group(3).strip() or None

    def set_manifest_version(self, version: Version) -> Result[None, ReleaseError]:
        path = self.manifest
        if self._dry_run:
            self._console.dry_run(f"set version = '{version}' in {path.name}")
            return Ok(None)

        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            return Err(ReleaseError(kind="io_failed", message=f"failed to read {path.name}: {e}"))

        updated, count = _GRADLE_VERSION_RE.subn(
            lambda m: f"{m.group(1)}{m.group(2)}{version}{m.group(4)}", text, count=1
        )
        if count == 0:
            return Err(
                ReleaseError(
                    kind="version_mismatch",
                    message=f"no version assignment found in {path.name}",
                    hint="Add a line like: version = '1.0.0'",
                )
            )

        self._console.print(f"set version = '{version}' in {path.name}", Style.DIM)
        try:
            path.write_text(updated, encoding="utf-8")
        except OSError as e:
            return Err(ReleaseError(kind="io_failed", message=f"failed to write {path.name}: {e}"))
        return Ok(None)


BUILD_ADAPTERS: dict[str, type[_Backend]] = {
    MavenAdapter.name: MavenAdapter,
    GradleAdapter.name: GradleAdapter,
}


def register_build_adapter(adapter: type[_Backend]) -> None:
    """Make an additional backend selectable by name and by detection."""
    BUILD_ADAPTERS[adapter.name] = adapter


def detect_build_tool(root: Path) -> str | None:
    for name, adapter in BUILD_ADAPTERS.items():
        if adapter.detect(root):
            return name
    return None


def resolve_build_adapter(
    *,
    config: ReleaseConfig,
    root: Path,
    console: ConsoleProtocol,
    dry_run: bool,
) -> Result[BuildAdapter, ReleaseError]:
    name = config.build.tool or detect_build_tool(root)
    if name is None:
        return Err(
            ReleaseError(
                kind="build_tool_unknown",
                message="could not detect build tool (no pom.xml or build.gradle[.kts])",
                hint="Set [build] tool in .release.toml",
            )
        )

    adapter = BUILD_ADAPTERS.get(name)
    if adapter is None:
        return Err(
            ReleaseError(
                kind="build_tool_unknown",
                message=f"unknown build tool: {name}",
                hint=f"Known: {', '.join(sorted(BUILD_ADAPTERS))}",
            )
        )
    return Ok(adapter(root=root, console=console, dry_run=dry_run))
