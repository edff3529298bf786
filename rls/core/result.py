"""Result type for explicit error handling.

Release steps never raise for expected failures (a build that exits non-zero,
a release host that times out, a plugin that fails). They return a Result so
the orchestrator stays the single place that decides between retry, degrade,
rollback and abort.

Usage:
    def parse(text: str) -> Result[Version, ReleaseError]:
        ...

    match parse("1.2.3"):
        case Ok(version):
            print(version)
        case Err(error):
            print(error.message)
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeGuard, TypeVar

T = TypeVar("T")
U = TypeVar("U")
E = TypeVar("E")

__all__ = ["Err", "Ok", "Result", "is_err", "is_ok"]


@dataclass(frozen=True, slots=True)
class Ok[T]:
    """Successful outcome carrying a value."""

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value

    def map(self, f: Callable[[T], U]) -> Ok[U]:
        """Apply f to the contained value."""
        return Ok(f(self.value))

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err[E]:
    """Failed outcome carrying an error payload."""

    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> None:
        """Raises ValueError: an Err has no value."""
        raise ValueError(f"called unwrap on Err: {self.error}")

    def unwrap_or(self, default: T) -> T:
        return default

    def map(self, f: Callable[[T], U]) -> Err[E]:
        return self

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


type Result[T, E] = Ok[T] | Err[E]


def is_ok[T, E](result: Result[T, E]) -> TypeGuard[Ok[T]]:
    """Narrow a Result to Ok for type checkers."""
    return isinstance(result, Ok)


def is_err[T, E](result: Result[T, E]) -> TypeGuard[Err[E]]:
    """Narrow a Result to Err for type checkers."""
    return isinstance(result, Err)
