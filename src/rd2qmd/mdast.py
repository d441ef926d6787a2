"""Markdown AST node types produced by the converter."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Align(Enum):
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


# ---------------------------------------------------------------------------
# Block nodes
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Root:
    children: tuple[MdNode, ...] = ()


@dataclass(frozen=True, slots=True)
class Heading:
    """ATX heading, depth 1..6."""

    depth: int
    children: tuple[MdNode, ...]


@dataclass(frozen=True, slots=True)
class Paragraph:
    children: tuple[MdNode, ...]


@dataclass(frozen=True, slots=True)
class Blockquote:
    children: tuple[MdNode, ...]


@dataclass(frozen=True, slots=True)
class ListItem:
    children: tuple[MdNode, ...]


@dataclass(frozen=True, slots=True)
class List:
    ordered: bool
    children: tuple[ListItem, ...]
    start: int | None = None


@dataclass(frozen=True, slots=True)
class Code:
    """Fenced code block; ``meta == "executable"`` marks runnable R code."""

    value: str
    lang: str | None = None
    meta: str | None = None


@dataclass(frozen=True, slots=True)
class TableCell:
    children: tuple[MdNode, ...]


@dataclass(frozen=True, slots=True)
class TableRow:
    children: tuple[TableCell, ...]


@dataclass(frozen=True, slots=True)
class Table:
    align: tuple[Align | None, ...]
    children: tuple[TableRow, ...]


@dataclass(frozen=True, slots=True)
class DefinitionTerm:
    children: tuple[MdNode, ...]


@dataclass(frozen=True, slots=True)
class DefinitionDescription:
    children: tuple[MdNode, ...]


@dataclass(frozen=True, slots=True)
class DefinitionList:
    """Alternating terms and descriptions (Pandoc definition list)."""

    children: tuple[DefinitionTerm | DefinitionDescription, ...]


@dataclass(frozen=True, slots=True)
class Math:
    """Display math block."""

    value: str


@dataclass(frozen=True, slots=True)
class ThematicBreak:
    pass


# ---------------------------------------------------------------------------
# Inline nodes
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Text:
    value: str


@dataclass(frozen=True, slots=True)
class Emphasis:
    children: tuple[MdNode, ...]


@dataclass(frozen=True, slots=True)
class Strong:
    children: tuple[MdNode, ...]


@dataclass(frozen=True, slots=True)
class InlineCode:
    value: str


@dataclass(frozen=True, slots=True)
class Break:
    pass


@dataclass(frozen=True, slots=True)
class Link:
    url: str
    children: tuple[MdNode, ...]
    title: str | None = None


@dataclass(frozen=True, slots=True)
class Image:
    url: str
    alt: str
    title: str | None = None


@dataclass(frozen=True, slots=True)
class InlineMath:
    value: str


@dataclass(frozen=True, slots=True)
class Html:
    """Raw passthrough, emitted verbatim."""

    value: str


MdNode = (
    Root
    | Heading
    | Paragraph
    | Blockquote
    | List
    | ListItem
    | Code
    | Table
    | TableRow
    | TableCell
    | DefinitionList
    | DefinitionTerm
    | DefinitionDescription
    | Math
    | ThematicBreak
    | Text
    | Emphasis
    | Strong
    | InlineCode
    | Break
    | Link
    | Image
    | InlineMath
    | Html
)

BLOCK_TYPES = (
    Heading,
    Paragraph,
    Blockquote,
    List,
    Code,
    Table,
    DefinitionList,
    Math,
    ThematicBreak,
)
