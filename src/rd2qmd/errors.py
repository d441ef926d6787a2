"""Error types with formatted source context."""

from __future__ import annotations

from pathlib import Path

from rd2qmd.tokens import Span


class ParseError(Exception):
    """Raised on the first parse error, with span and source context."""

    def __init__(self, message: str, span: Span, source: str) -> None:
        self.message = message
        self.span = span
        self.source = source
        super().__init__(self.format())

    @property
    def line(self) -> int:
        return self.span.start.line

    @property
    def column(self) -> int:
        return self.span.start.column

    def format(self, filename: str = "input.Rd") -> str:
        """Render the error with the offending line and a caret marker."""
        start, end = self.span.start, self.span.end
        text = self._source_line(start.line)
        if end.line == start.line:
            width = end.column - start.column
        else:
            # Multi-line spans are marked up to the end of the first line
            width = len(text) - start.column + 1

        number = str(start.line)
        margin = " " * len(number)
        return "\n".join(
            (
                f"error: {self.message}",
                f"{margin} --> {filename}:{start.line}:{start.column}",
                f"{margin} |",
                f"{number} | {text}",
                f"{margin} | {' ' * (start.column - 1)}{'^' * max(1, width)}",
            )
        )

    def _source_line(self, line: int) -> str:
        lines = self.source.splitlines()
        if 1 <= line <= len(lines):
            return lines[line - 1]
        return ""


class UnexpectedToken(ParseError):
    """A required token was missing; another token was found in its place."""

    def __init__(self, expected: str, found: str, span: Span, source: str) -> None:
        self.expected = expected
        self.found = found
        super().__init__(f"expected {expected}, found {found}", span, source)


class UnexpectedEof(ParseError):
    """The input ended while a token was still required."""

    def __init__(self, expected: str, span: Span, source: str) -> None:
        self.expected = expected
        super().__init__(f"unexpected end of input, expected {expected}", span, source)


class PackageError(Exception):
    """Raised for package-level failures (missing directory, unreadable files)."""


class DirectoryNotFound(PackageError):
    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"directory not found: {path}")


class ConfigError(Exception):
    """Raised for invalid configuration values."""
