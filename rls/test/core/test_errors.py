"""Tests for rls.core.errors module."""

from __future__ import annotations

from rls.core.errors import ErrorCode


class TestErrorCode:
    def test_values_are_stable(self) -> None:
        assert int(ErrorCode.OK) == 0
        assert int(ErrorCode.USER_ERROR) == 1
        assert int(ErrorCode.ENV_ERROR) == 2
        assert int(ErrorCode.BUILD_ERROR) == 3
        assert int(ErrorCode.NETWORK_ERROR) == 4
        assert int(ErrorCode.IO_ERROR) == 5

    def test_str(self) -> None:
        assert str(ErrorCode.ENV_ERROR) == "env error"

    def test_is_success(self) -> None:
        assert ErrorCode.OK.is_success is True
        assert ErrorCode.BUILD_ERROR.is_success is False
