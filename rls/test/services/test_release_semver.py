from __future__ import annotations

import pytest

from rls.core.result import Err, Ok
from rls.services.release.semver import Version, parse_tag, parse_version


def _v(text: str) -> Version:
    result = parse_version(text)
    assert isinstance(result, Ok)
    return result.value


def test_bump_patch_minor_major() -> None:
    assert str(_v("1.2.3").bump("patch")) == "1.2.4"
    assert str(_v("1.2.3").bump("minor")) == "1.3.0"
    assert str(_v("1.2.3").bump("major")) == "2.0.0"


@pytest.mark.parametrize(
    "text",
    ["1.2", "1.2.3.4", "v1.2.3", "1.2.x", "", " 1.2.3", "1.2.3\n", "1.2.3-rc1", "1.2.3+build"],
)
def test_parse_rejects_invalid(text: str) -> None:
    result = parse_version(text)
    assert isinstance(result, Err)
    assert result.error.kind == "invalid_version"


def test_parse_rejects_non_ascii_digits() -> None:
    assert isinstance(parse_version("1.2.٣"), Err)


def test_serialized_form_is_canonical() -> None:
    assert str(_v("01.002.3")) == "1.2.3"
    assert _v("0.0.0") == Version(0, 0, 0)


def test_ordering() -> None:
    assert _v("1.10.0") > _v("1.9.9")
    assert _v("2.0.0") > _v("1.99.99")


def test_tag() -> None:
    assert _v("2.3.0").tag == "v2.3.0"
    assert parse_tag("v2.3.0") == Version(2, 3, 0)
    assert parse_tag("2.3.0") is None
    assert parse_tag("release-1") is None


def test_bump_does_not_mutate() -> None:
    v = _v("1.2.3")
    v.bump("major")
    assert v == Version(1, 2, 3)
