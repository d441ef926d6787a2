"""Token types and data structures for the Rd lexer."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto


class TokenType(Enum):
    # Structural (single-character)
    BACKSLASH = auto()  # \ not followed by an escapable char
    LBRACE = auto()  # {
    RBRACE = auto()  # }
    LBRACKET = auto()  # [
    RBRACKET = auto()  # ]

    # Content
    TEXT = auto()  # text run, or a decoded escape (\{ \} \% \\)

    # Whitespace
    WS = auto()  # horizontal whitespace (spaces/tabs)
    NEWLINE = auto()  # \n, \r\n or a bare \r

    EOF = auto()


@dataclass(frozen=True, slots=True)
class Position:
    """Source position, 1-based line and column, 0-based byte offset."""

    line: int
    column: int
    offset: int


@dataclass(frozen=True, slots=True)
class Span:
    """Source range from start to end position."""

    start: Position
    end: Position


@dataclass(frozen=True, slots=True)
class Token:
    """A single lexer token with resolved value and original source text."""

    type: TokenType
    value: str
    raw: str
    span: Span


# Characters that end a TEXT run
TEXT_STOP = frozenset("\\{}[]%\n\r \t")

# Characters that may follow a backslash as an escape
ESCAPABLE = frozenset("{}%\\")


def is_name_char(ch: str) -> bool:
    """Return True if ch may appear in a macro name."""
    return ch.isascii() and ch.isalnum()
