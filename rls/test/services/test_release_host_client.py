from __future__ import annotations

from pathlib import Path

import pytest

from rls.core.config import PublishConfig
from rls.core.result import Err, Ok
from rls.output.console import MockConsole
from rls.services.release import host_client as host_client_mod
from rls.services.release.host_client import ReleaseHostClient, human_size
from rls.services.release.model import ReleaseAsset
from rls.test.services._fakes import FakeHost

_POLICY = PublishConfig(retry_count=3, create_retry_delay=10.0, upload_attempts=3)


@pytest.fixture
def sleeps(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    recorded: list[float] = []
    monkeypatch.setattr(host_client_mod, "sleep", recorded.append)
    return recorded


@pytest.fixture
def artifact(tmp_path: Path) -> Path:
    path = tmp_path / "artifact-1.0.1.bin"
    path.write_bytes(b"\x00" * 2048)
    return path


def _client(host: FakeHost, console: MockConsole, *, dry_run: bool = False) -> ReleaseHostClient:
    return ReleaseHostClient(host=host, policy=_POLICY, console=console, dry_run=dry_run)


# =============================================================================
# create_release
# =============================================================================


@pytest.mark.parametrize("failures", [0, 1, 2])
def test_create_uses_exactly_k_plus_one_attempts(
    failures: int, artifact: Path, sleeps: list[float]
) -> None:
    host = FakeHost(create_failures=failures)

    result = _client(host, MockConsole()).create_release(
        tag="v1.0.1", title="Release v1.0.1", notes="notes", artifact=artifact
    )

    assert isinstance(result, Ok)
    assert result.value.attempts == failures + 1
    assert result.value.attached is True
    assert len(host.create_calls) == failures + 1
    assert sleeps == [10.0] * failures
    assert host.releases == {"v1.0.1": ["artifact-1.0.1.bin"]}


def test_fallback_creates_bare_release_and_warns(artifact: Path, sleeps: list[float]) -> None:
    host = FakeHost(create_always_fails_with_artifact=True, upload_failures=99)
    console = MockConsole()

    result = _client(host, console).create_release(
        tag="v1.0.1", title="Release v1.0.1", notes="notes", artifact=artifact
    )

    assert isinstance(result, Ok)
    assert result.value.created is True
    assert result.value.attached is False
    assert result.value.warning is not None
    assert "gh release upload v1.0.1" in result.value.warning
    assert host.releases == {"v1.0.1": []}
    assert host.create_calls == [
        "create v1.0.1 artifact-1.0.1.bin",
        "create v1.0.1 artifact-1.0.1.bin",
        "create v1.0.1 artifact-1.0.1.bin",
        "create v1.0.1",
    ]
    assert console.find("creating release without attachment")


def test_fallback_attaches_with_separate_upload(artifact: Path, sleeps: list[float]) -> None:
    host = FakeHost(create_always_fails_with_artifact=True)

    result = _client(host, MockConsole()).create_release(
        tag="v1.0.1", title="t", notes="n", artifact=artifact
    )

    assert isinstance(result, Ok)
    assert result.value.attached is True
    assert result.value.warning is None
    assert host.releases == {"v1.0.1": ["artifact-1.0.1.bin"]}


def test_bare_creation_failure_is_fatal(artifact: Path, sleeps: list[float]) -> None:
    host = FakeHost(create_always_fails_with_artifact=True, bare_create_fails=True)

    result = _client(host, MockConsole()).create_release(
        tag="v1.0.1", title="t", notes="n", artifact=artifact
    )

    assert isinstance(result, Err)
    assert result.error.kind == "publish_failed"
    assert host.releases == {}


def test_partial_attempt_recovers_via_upload(artifact: Path, sleeps: list[float]) -> None:
    host = FakeHost(create_failures=1, partial_create=True)

    result = _client(host, MockConsole()).create_release(
        tag="v1.0.1", title="t", notes="n", artifact=artifact
    )

    assert isinstance(result, Ok)
    assert result.value.attached is True
    assert len(host.create_calls) == 2
    assert host.releases == {"v1.0.1": ["artifact-1.0.1.bin"]}


def test_existing_release_is_already_satisfied(artifact: Path, sleeps: list[float]) -> None:
    host = FakeHost(releases={"v1.0.1": ["artifact-1.0.1.bin"]})

    result = _client(host, MockConsole()).create_release(
        tag="v1.0.1", title="t", notes="n", artifact=artifact
    )

    assert isinstance(result, Ok)
    assert result.value.created is False
    assert result.value.attached is True
    assert host.create_calls == []
    assert not any(c.startswith("upload") for c in host.calls)


def test_existing_release_without_asset_gets_it(artifact: Path, sleeps: list[float]) -> None:
    host = FakeHost(releases={"v1.0.1": ["checksums.txt"]})

    result = _client(host, MockConsole()).create_release(
        tag="v1.0.1", title="t", notes="n", artifact=artifact
    )

    assert isinstance(result, Ok)
    assert host.create_calls == []
    assert host.releases["v1.0.1"] == ["checksums.txt", "artifact-1.0.1.bin"]


def test_create_without_artifact(sleeps: list[float]) -> None:
    host = FakeHost()

    result = _client(host, MockConsole()).create_release(
        tag="v1.0.1", title="t", notes="n", artifact=None
    )

    assert isinstance(result, Ok)
    assert result.value.attached is False
    assert host.create_calls == ["create v1.0.1"]


def test_create_dry_run(artifact: Path, sleeps: list[float]) -> None:
    host = FakeHost()
    console = MockConsole()

    result = _client(host, console, dry_run=True).create_release(
        tag="v1.0.1", title="Release v1.0.1", notes="n", artifact=artifact
    )

    assert isinstance(result, Ok)
    assert host.create_calls == []
    assert host.releases == {}
    assert console.would_execute == [
        f"gh release create v1.0.1 --title 'Release v1.0.1' {artifact}"
    ]


# =============================================================================
# upload_asset
# =============================================================================


def test_double_upload_leaves_one_asset(artifact: Path, sleeps: list[float]) -> None:
    host = FakeHost(releases={"v1.0.1": ["notes.txt"]})
    client = _client(host, MockConsole())

    uploaded = client.upload_asset(ReleaseAsset("v1.0.1", artifact), replace_existing=True)
    assert uploaded == Ok(None)
    uploaded = client.upload_asset(ReleaseAsset("v1.0.1", artifact), replace_existing=True)
    assert uploaded == Ok(None)

    assert sorted(host.releases["v1.0.1"]) == ["artifact-1.0.1.bin", "notes.txt"]
    assert "delete v1.0.1 artifact-1.0.1.bin" in host.calls


def test_upload_retries_with_fixed_delay(artifact: Path, sleeps: list[float]) -> None:
    host = FakeHost(releases={"v1.0.1": []}, upload_failures=2)
    policy = PublishConfig(upload_attempts=3, upload_retry_delay=5.0)
    client = ReleaseHostClient(host=host, policy=policy, console=MockConsole(), dry_run=False)

    uploaded = client.upload_asset(ReleaseAsset("v1.0.1", artifact), replace_existing=True)
    assert uploaded == Ok(None)
    assert sleeps == [5.0, 5.0]
    assert host.releases["v1.0.1"] == ["artifact-1.0.1.bin"]


def test_upload_gives_up_after_attempts(artifact: Path, sleeps: list[float]) -> None:
    host = FakeHost(releases={"v1.0.1": []}, upload_failures=99)

    result = _client(host, MockConsole()).upload_asset(
        ReleaseAsset("v1.0.1", artifact), replace_existing=True
    )

    assert isinstance(result, Err)
    assert result.error.kind == "publish_failed"
    assert len([c for c in host.calls if c.startswith("upload")]) == 3


def test_upload_without_replace_fails_fast_on_duplicate(
    artifact: Path, sleeps: list[float]
) -> None:
    host = FakeHost(releases={"v1.0.1": ["artifact-1.0.1.bin"]})

    result = _client(host, MockConsole()).upload_asset(
        ReleaseAsset("v1.0.1", artifact), replace_existing=False
    )

    assert isinstance(result, Err)
    assert result.error.kind == "publish_failed"
    assert "already attached" in result.error.message
    assert len([c for c in host.calls if c.startswith("upload")]) == 1
    assert sleeps == []


def test_unverified_upload_is_still_success(artifact: Path, sleeps: list[float]) -> None:
    host = FakeHost(releases={"v1.0.1": []}, hide_uploads=True)
    console = MockConsole()

    result = _client(host, console).upload_asset(
        ReleaseAsset("v1.0.1", artifact), replace_existing=True
    )

    assert result == Ok(None)
    assert console.has_warning()
    assert console.find("could not verify artifact-1.0.1.bin on release v1.0.1")


def test_upload_missing_artifact(tmp_path: Path, sleeps: list[float]) -> None:
    host = FakeHost(releases={"v1.0.1": []})

    result = _client(host, MockConsole()).upload_asset(
        ReleaseAsset("v1.0.1", tmp_path / "missing.bin"), replace_existing=True
    )

    assert isinstance(result, Err)
    assert result.error.kind == "artifact_not_found"


def test_upload_dry_run(artifact: Path, sleeps: list[float]) -> None:
    host = FakeHost(releases={"v1.0.1": ["artifact-1.0.1.bin"]})
    console = MockConsole()

    result = _client(host, console, dry_run=True).upload_asset(
        ReleaseAsset("v1.0.1", artifact), replace_existing=True
    )

    assert result == Ok(None)
    assert host.releases["v1.0.1"] == ["artifact-1.0.1.bin"]
    assert console.would_execute == [
        "gh release delete-asset v1.0.1 artifact-1.0.1.bin --yes",
        f"gh release upload v1.0.1 {artifact}",
    ]


# =============================================================================
# reads
# =============================================================================


def test_list_asset_names_missing_release() -> None:
    result = _client(FakeHost(), MockConsole()).list_asset_names("v1.0.1")
    assert isinstance(result, Err)
    assert result.error.kind == "release_missing"


def test_latest_published_version() -> None:
    host = FakeHost(releases={"v1.1.0": []})
    result = _client(host, MockConsole()).latest_published_version()
    assert isinstance(result, Ok)
    assert str(result.value) == "1.1.0"


def test_human_size(artifact: Path, tmp_path: Path) -> None:
    assert human_size(artifact) == "2.0 KiB"
    assert human_size(tmp_path / "missing") == "unknown size"
