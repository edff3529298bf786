"""Console output abstraction.

Services report progress, warnings and "would execute" lines through
ConsoleProtocol. RichConsole renders them on stderr so stdout stays free
for machine-readable output; MockConsole records them for tests.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Protocol

__all__ = [
    "ConsoleProtocol",
    "MockConsole",
    "OutputRecord",
    "RichConsole",
    "Style",
]


class Style(Enum):
    """Text styles for console output."""

    DEFAULT = auto()
    SUCCESS = auto()
    ERROR = auto()
    WARNING = auto()
    INFO = auto()
    DIM = auto()
    HEADER = auto()
    DRY_RUN = auto()  # Mutating action suppressed by --dry-run

    def __str__(self) -> str:
        return self.name.lower()


class ConsoleProtocol(Protocol):
    """Protocol for operator-facing output.

    Every service reports through this interface and never prints directly.
    RichConsole is the terminal implementation; MockConsole records lines for
    assertions in tests.
    """

    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        """Print a message with optional styling.

        Args:
            message: The text to print
            style: The style to apply
        """
        ...

    def success(self, message: str) -> None:
        """Report a completed step (shorthand for print with SUCCESS style)."""
        ...

    def error(self, message: str) -> None:
        """Report a failure (shorthand for print with ERROR style)."""
        ...

    def warning(self, message: str) -> None:
        """Report something the operator should look at; the run continues."""
        ...

    def info(self, message: str) -> None:
        """Print an informational line (shorthand for print with INFO style)."""
        ...

    def header(self, message: str) -> None:
        """Print a section header."""
        ...

    def dry_run(self, action: str) -> None:
        """Report a mutating action that was not executed.

        Args:
            action: The command or write that would have run, as the operator
                would type it
        """
        ...

    def newline(self) -> None:
        """Print an empty line."""
        ...


class RichConsole:
    """Console implementation using Rich, writing to stderr."""

    def __init__(self) -> None:
        # Import Rich lazily to avoid import-time dependency
        from rich.console import Console

        self._console = Console(stderr=True, highlight=False)
        self._style_map = {
            Style.DEFAULT: "",
            Style.SUCCESS: "green",
            Style.ERROR: "red bold",
            Style.WARNING: "yellow",
            Style.INFO: "cyan",
            Style.DIM: "dim",
            Style.HEADER: "blue bold",
            Style.DRY_RUN: "magenta",
        }

    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        rich_style = self._style_map.get(style, "")
        # markup=False: commit messages and paths may contain [brackets]
        if rich_style:
            self._console.print(message, style=rich_style, markup=False)
        else:
            self._console.print(message, markup=False)

    def _tagged(self, tag: str, tag_style: str, message: str) -> None:
        from rich.text import Text

        line = Text()
        line.append(tag, style=tag_style)
        line.append(" ")
        line.append(message)
        self._console.print(line)

    def success(self, message: str) -> None:
        self._tagged("OK", "green", message)

    def error(self, message: str) -> None:
        self._tagged("error:", "red bold", message)

    def warning(self, message: str) -> None:
        self._tagged("warning:", "yellow", message)

    def info(self, message: str) -> None:
        self._tagged("info:", "cyan", message)

    def header(self, message: str) -> None:
        self._console.print()
        self._console.print(message, style="blue bold", markup=False)

    def dry_run(self, action: str) -> None:
        self._tagged("[dry-run] would execute:", "magenta", action)

    def newline(self) -> None:
        self._console.print()


@dataclass
class OutputRecord:
    """A single output record for MockConsole."""

    message: str
    style: Style


def _empty_outputs() -> list[OutputRecord]:
    return []


@dataclass
class MockConsole:
    """Console implementation that captures output for testing."""

    outputs: list[OutputRecord] = field(default_factory=_empty_outputs)

    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        self.outputs.append(OutputRecord(message, style))

    def success(self, message: str) -> None:
        self.outputs.append(OutputRecord(f"OK {message}", Style.SUCCESS))

    def error(self, message: str) -> None:
        self.outputs.append(OutputRecord(f"error: {message}", Style.ERROR))

    def warning(self, message: str) -> None:
        self.outputs.append(OutputRecord(f"warning: {message}", Style.WARNING))

    def info(self, message: str) -> None:
        self.outputs.append(OutputRecord(f"info: {message}", Style.INFO))

    def header(self, message: str) -> None:
        self.outputs.append(OutputRecord(message, Style.HEADER))

    def dry_run(self, action: str) -> None:
        self.outputs.append(OutputRecord(action, Style.DRY_RUN))

    def newline(self) -> None:
        self.outputs.append(OutputRecord("", Style.DEFAULT))

    # Test helpers

    @property
    def messages(self) -> list[str]:
        return [o.message for o in self.outputs]

    @property
    def text(self) -> str:
        return "\n".join(self.messages)

    @property
    def would_execute(self) -> list[str]:
        """Actions recorded by dry_run, in order."""
        return [o.message for o in self.outputs if o.style == Style.DRY_RUN]

    def has_error(self) -> bool:
        return any(o.style == Style.ERROR for o in self.outputs)

    def has_warning(self) -> bool:
        return any(o.style == Style.WARNING for o in self.outputs)

    def find(self, substring: str) -> list[OutputRecord]:
        return [o for o in self.outputs if substring in o.message]
