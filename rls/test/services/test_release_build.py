from __future__ import annotations

from pathlib import Path

import pytest

from rls.core.config import BuildConfig, ReleaseConfig
from rls.core.result import Err, Ok
from rls.output.console import MockConsole
from rls.platform.files import list_dir_names
from rls.services.release.build import (
    GradleAdapter,
    MavenAdapter,
    detect_build_tool,
    resolve_artifact,
    resolve_build_adapter,
)
from rls.services.release.semver import Version

_POM = """<?xml version="1.0" encoding="UTF-8"?>
<project xmlns="http://maven.apache.org/POM/4.0.0">
  <modelVersion>4.0.0</modelVersion>
  <parent>
    <groupId>org.example</groupId>
    <artifactId>parent</artifactId>
    <version>9.9.9</version>
  </parent>
  <artifactId>demo-app</artifactId>
  <version>1.4.0</version>
</project>
"""

_V = Version(1, 0, 1)


def _write_script(path: Path, body: str) -> None:
    path.write_text(f"#!/bin/sh\n{body}\n", encoding="utf-8")
    path.chmod(0o755)


# =============================================================================
# Artifact resolution
# =============================================================================


def test_resolve_artifact_prefers_expected_name(tmp_path: Path) -> None:
    (tmp_path / "aaa.jar").write_text("", encoding="utf-8")
    (tmp_path / "demo-1.0.1.jar").write_text("", encoding="utf-8")

    result = resolve_artifact(output_dir=tmp_path, artifact_id="demo", version=_V, ext="jar")
    assert result == Ok(tmp_path / "demo-1.0.1.jar")


def test_resolve_artifact_falls_back_to_first_listed_match(tmp_path: Path) -> None:
    (tmp_path / "notes.txt").write_text("", encoding="utf-8")
    (tmp_path / "other-1.0.1.jar").write_text("", encoding="utf-8")
    (tmp_path / "sources.jar").write_text("", encoding="utf-8")
    first_jar = next(n for n in list_dir_names(tmp_path) if n.endswith(".jar"))

    result = resolve_artifact(output_dir=tmp_path, artifact_id="demo", version=_V, ext="jar")
    assert result == Ok(tmp_path / first_jar)


def test_resolve_artifact_error_lists_directory(tmp_path: Path) -> None:
    (tmp_path / "classes").mkdir()
    (tmp_path / "build.log").write_text("", encoding="utf-8")

    result = resolve_artifact(output_dir=tmp_path, artifact_id="demo", version=_V, ext="jar")
    assert isinstance(result, Err)
    assert "demo-1.0.1.jar" in result.error
    assert "build.log" in result.error
    assert "classes" in result.error


# =============================================================================
# Detection and selection
# =============================================================================


def test_detect_build_tool(tmp_path: Path) -> None:
    assert detect_build_tool(tmp_path) is None
    (tmp_path / "build.gradle.kts").write_text("", encoding="utf-8")
    assert detect_build_tool(tmp_path) == "gradle"
    (tmp_path / "pom.xml").write_text(_POM, encoding="utf-8")
    assert detect_build_tool(tmp_path) == "maven"


def test_resolve_build_adapter_unknown(tmp_path: Path) -> None:
    result = resolve_build_adapter(
        config=ReleaseConfig(), root=tmp_path, console=MockConsole(), dry_run=False
    )
    assert isinstance(result, Err)
    assert result.error.kind == "build_tool_unknown"


def test_resolve_build_adapter_configured(tmp_path: Path) -> None:
    config = ReleaseConfig(build=BuildConfig(tool="gradle"))
    result = resolve_build_adapter(
        config=config, root=tmp_path, console=MockConsole(), dry_run=False
    )
    assert isinstance(result, Ok)
    assert result.value.name == "gradle"


# =============================================================================
# Maven
# =============================================================================


def test_maven_reads_project_fields_not_parent(tmp_path: Path) -> None:
    (tmp_path / "pom.xml").write_text(_POM, encoding="utf-8")
    adapter = MavenAdapter(root=tmp_path, console=MockConsole(), dry_run=False)

    assert adapter.read_project_identifier() == Ok("demo-app")
    assert adapter.read_manifest_version() == "1.4.0"


def test_maven_prefers_wrapper(tmp_path: Path) -> None:
    adapter = MavenAdapter(root=tmp_path, console=MockConsole(), dry_run=False)
    assert adapter.command() == ["mvn"]
    _write_script(tmp_path / "mvnw", "exit 0")
    assert adapter.command() == ["./mvnw"]
    assert adapter.missing_tools() == []


def test_maven_dry_run_records_commands(tmp_path: Path) -> None:
    (tmp_path / "pom.xml").write_text(_POM, encoding="utf-8")
    console = MockConsole()
    adapter = MavenAdapter(root=tmp_path, console=console, dry_run=True)

    assert adapter.set_manifest_version(_V) == Ok(None)
    result = adapter.build(_V, "demo-app", skip_tests=True)

    assert result.success is True
    assert result.artifact_path == tmp_path / "target" / "demo-app-1.0.1.jar"
    assert console.would_execute == [
        "mvn versions:set -DnewVersion=1.0.1 -DgenerateBackupPoms=false",
        "mvn clean package -DskipTests",
    ]


# =============================================================================
# Gradle
# =============================================================================


def test_gradle_project_name_and_version(tmp_path: Path) -> None:
    (tmp_path / "settings.gradle").write_text("rootProject.name = 'tool'\n", encoding="utf-8")
    (tmp_path / "build.gradle").write_text(
        "plugins { id 'java' }\nversion = '0.3.0'\n", encoding="utf-8"
    )
    adapter = GradleAdapter(root=tmp_path, console=MockConsole(), dry_run=False)

    assert adapter.read_project_identifier() == Ok("tool")
    assert adapter.read_manifest_version() == "0.3.0"


def test_gradle_project_name_defaults_to_directory(tmp_path: Path) -> None:
    root = tmp_path / "my-lib"
    root.mkdir()
    adapter = GradleAdapter(root=root, console=MockConsole(), dry_run=False)
    assert adapter.read_project_identifier() == Ok("my-lib")


def test_gradle_set_manifest_version(tmp_path: Path) -> None:
    manifest = tmp_path / "build.gradle.kts"
    manifest.write_text('group = "org.example"\nversion = "0.3.0"\n', encoding="utf-8")
    adapter = GradleAdapter(root=tmp_path, console=MockConsole(), dry_run=False)

    assert adapter.set_manifest_version(_V) == Ok(None)
    assert manifest.read_text(encoding="utf-8") == 'group = "org.example"\nversion = "1.0.1"\n'
    assert adapter.read_manifest_version() == "1.0.1"


def test_gradle_set_manifest_version_without_assignment(tmp_path: Path) -> None:
    (tmp_path / "build.gradle").write_text("plugins { id 'java' }\n", encoding="utf-8")
    adapter = GradleAdapter(root=tmp_path, console=MockConsole(), dry_run=False)

    result = adapter.set_manifest_version(_V)
    assert isinstance(result, Err)
    assert result.error.kind == "version_mismatch"


@pytest.fixture
def gradle_project(tmp_path: Path) -> Path:
    (tmp_path / "build.gradle").write_text("version = '1.0.0'\n", encoding="utf-8")
    return tmp_path


def test_gradle_build_with_wrapper(gradle_project: Path) -> None:
    _write_script(
        gradle_project / "gradlew",
        'mkdir -p build/libs && touch "build/libs/tool-1.0.1.jar"',
    )
    adapter = GradleAdapter(root=gradle_project, console=MockConsole(), dry_run=False)

    result = adapter.build(_V, "tool", skip_tests=True)
    assert result.success is True
    assert result.artifact_path == gradle_project / "build" / "libs" / "tool-1.0.1.jar"


def test_gradle_build_failure(gradle_project: Path) -> None:
    _write_script(gradle_project / "gradlew", "exit 1")
    adapter = GradleAdapter(root=gradle_project, console=MockConsole(), dry_run=False)

    result = adapter.build(_V, "tool", skip_tests=False)
    assert result.success is False
    assert result.failure_kind == "build_failed"
    assert result.diagnostic is not None
    assert "./gradlew build failed (exit 1)" in result.diagnostic


def test_gradle_build_without_artifact(gradle_project: Path) -> None:
    _write_script(gradle_project / "gradlew", "mkdir -p build/libs && touch build/libs/log.txt")
    adapter = GradleAdapter(root=gradle_project, console=MockConsole(), dry_run=False)

    result = adapter.build(_V, "tool", skip_tests=True)
    assert result.success is False
    assert result.failure_kind == "artifact_not_found"
    assert result.diagnostic is not None
    assert "log.txt" in result.diagnostic


def test_backend_must_define_packaging(tmp_path: Path) -> None:
    from rls.services.release import build as build_mod

    class Incomplete(build_mod._Backend):  # pyright: ignore[reportPrivateUsage]
        name = "ant"
        manifest_names = ("build.xml",)
        executable = "ant"

    with pytest.raises(TypeError):
        Incomplete(root=tmp_path, console=MockConsole(), dry_run=False)  # type: ignore[abstract]
