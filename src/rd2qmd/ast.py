"""AST node types for parsed Rd documents."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum

from rd2qmd.tokens import Span


class SectionTag(Enum):
    NAME = "name"
    TITLE = "title"
    DESCRIPTION = "description"
    ALIAS = "alias"
    USAGE = "usage"
    ARGUMENTS = "arguments"
    VALUE = "value"
    DETAILS = "details"
    NOTE = "note"
    AUTHOR = "author"
    REFERENCES = "references"
    SEEALSO = "seealso"
    EXAMPLES = "examples"
    KEYWORD = "keyword"
    CONCEPT = "concept"
    FORMAT = "format"
    SOURCE = "source"
    ENCODING = "encoding"
    DOCTYPE = "doctype"
    RDVERSION = "rdversion"

    # Parameterized: the title or original name lives on RdSection.name
    SECTION = "section"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, name: str) -> SectionTag:
        """Map a section macro name to its tag, case-insensitively."""
        key = name.lower()
        if key in ("section", "unknown"):
            return cls.UNKNOWN
        try:
            return cls(key)
        except ValueError:
            return cls.UNKNOWN


class SpecialChar(Enum):
    R = "R"
    DOTS = "..."
    LEFT_BRACE = "{"
    RIGHT_BRACE = "}"
    BACKSLASH = "\\"
    PERCENT = "%"
    EN_DASH = "–"
    EM_DASH = "—"
    LSQB = "‘"
    RSQB = "’"
    LDQB = "“"
    RDQB = "”"


# ---------------------------------------------------------------------------
# Text and blocks
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Text:
    """Decoded text content."""

    value: str


@dataclass(frozen=True, slots=True)
class Paragraph:
    children: tuple[RdNode, ...]


@dataclass(frozen=True, slots=True)
class Verbatim:
    value: str


@dataclass(frozen=True, slots=True)
class Preformatted:
    """\\preformatted{...} block, content kept verbatim."""

    value: str


# ---------------------------------------------------------------------------
# Structure
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Section:
    """Nested \\section{title}{content} inside a section body."""

    title: tuple[RdNode, ...]
    content: tuple[RdNode, ...]


@dataclass(frozen=True, slots=True)
class Subsection:
    title: tuple[RdNode, ...]
    content: tuple[RdNode, ...]


@dataclass(frozen=True, slots=True)
class Item:
    """\\item, either \\item{label}{content} or a bare list item."""

    label: tuple[RdNode, ...] | None
    content: tuple[RdNode, ...]


@dataclass(frozen=True, slots=True)
class Itemize:
    items: tuple[Item, ...]


@dataclass(frozen=True, slots=True)
class Enumerate:
    items: tuple[Item, ...]


@dataclass(frozen=True, slots=True)
class DescribeItem:
    term: tuple[RdNode, ...]
    description: tuple[RdNode, ...]


@dataclass(frozen=True, slots=True)
class Describe:
    items: tuple[DescribeItem, ...]


@dataclass(frozen=True, slots=True)
class Tabular:
    """\\tabular{alignment}{rows}; each row is a tuple of cells."""

    alignment: str
    rows: tuple[tuple[tuple[RdNode, ...], ...], ...]


# ---------------------------------------------------------------------------
# Inline formatting
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Code:
    children: tuple[RdNode, ...]


@dataclass(frozen=True, slots=True)
class Verb:
    value: str


@dataclass(frozen=True, slots=True)
class Emph:
    children: tuple[RdNode, ...]


@dataclass(frozen=True, slots=True)
class Strong:
    children: tuple[RdNode, ...]


@dataclass(frozen=True, slots=True)
class Samp:
    children: tuple[RdNode, ...]


@dataclass(frozen=True, slots=True)
class File:
    children: tuple[RdNode, ...]


@dataclass(frozen=True, slots=True)
class Dfn:
    children: tuple[RdNode, ...]


@dataclass(frozen=True, slots=True)
class Kbd:
    children: tuple[RdNode, ...]


@dataclass(frozen=True, slots=True)
class SQuote:
    children: tuple[RdNode, ...]


@dataclass(frozen=True, slots=True)
class DQuote:
    children: tuple[RdNode, ...]


# ---------------------------------------------------------------------------
# Links
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Href:
    url: str
    text: tuple[RdNode, ...]


@dataclass(frozen=True, slots=True)
class Link:
    """\\link with its resolved package/topic/display-text triple."""

    package: str | None
    topic: str
    text: tuple[RdNode, ...] | None = None


@dataclass(frozen=True, slots=True)
class LinkS4Class:
    package: str | None
    classname: str


@dataclass(frozen=True, slots=True)
class Url:
    value: str


@dataclass(frozen=True, slots=True)
class Email:
    value: str


@dataclass(frozen=True, slots=True)
class Doi:
    value: str


@dataclass(frozen=True, slots=True)
class Pkg:
    value: str


# ---------------------------------------------------------------------------
# Math
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Eqn:
    latex: str
    ascii: str | None = None


@dataclass(frozen=True, slots=True)
class Deqn:
    latex: str
    ascii: str | None = None


# ---------------------------------------------------------------------------
# Conditionals and escapes
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class If:
    format: str
    content: tuple[RdNode, ...]


@dataclass(frozen=True, slots=True)
class IfElse:
    format: str
    then: tuple[RdNode, ...]
    otherwise: tuple[RdNode, ...]


@dataclass(frozen=True, slots=True)
class Out:
    """Raw output passed through untouched."""

    value: str


@dataclass(frozen=True, slots=True)
class Sexpr:
    options: str | None
    code: str


# ---------------------------------------------------------------------------
# Usage declarations
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Method:
    generic: str
    cls: str


@dataclass(frozen=True, slots=True)
class S3Method:
    generic: str
    cls: str


@dataclass(frozen=True, slots=True)
class S4Method:
    generic: str
    signature: str


# ---------------------------------------------------------------------------
# Figures and misc
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class AltText:
    """Simple figure form: the whole argument is alternate text."""

    value: str


@dataclass(frozen=True, slots=True)
class ExpertOptions:
    """Expert figure form: the string after ``options:``."""

    value: str


@dataclass(frozen=True, slots=True)
class Figure:
    file: str
    options: AltText | ExpertOptions | None = None


@dataclass(frozen=True, slots=True)
class Var:
    value: str


@dataclass(frozen=True, slots=True)
class Env:
    value: str


@dataclass(frozen=True, slots=True)
class Option:
    value: str


@dataclass(frozen=True, slots=True)
class Command:
    value: str


@dataclass(frozen=True, slots=True)
class Acronym:
    value: str


@dataclass(frozen=True, slots=True)
class Abbr:
    value: str


@dataclass(frozen=True, slots=True)
class Cite:
    value: str


# ---------------------------------------------------------------------------
# Example control
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class DontRun:
    children: tuple[RdNode, ...]


@dataclass(frozen=True, slots=True)
class DontTest:
    children: tuple[RdNode, ...]


@dataclass(frozen=True, slots=True)
class DontShow:
    children: tuple[RdNode, ...]


@dataclass(frozen=True, slots=True)
class DontDiff:
    children: tuple[RdNode, ...]


# ---------------------------------------------------------------------------
# Specials
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Special:
    char: SpecialChar


@dataclass(frozen=True, slots=True)
class LineBreak:
    """\\cr"""


@dataclass(frozen=True, slots=True)
class Tab:
    """\\tab"""


@dataclass(frozen=True, slots=True)
class Macro:
    """Unrecognized macro with its brace-delimited arguments."""

    name: str
    args: tuple[tuple[RdNode, ...], ...]


RdNode = (
    Text
    | Paragraph
    | Verbatim
    | Preformatted
    | Section
    | Subsection
    | Item
    | Itemize
    | Enumerate
    | Describe
    | Tabular
    | Code
    | Verb
    | Emph
    | Strong
    | Samp
    | File
    | Dfn
    | Kbd
    | SQuote
    | DQuote
    | Href
    | Link
    | LinkS4Class
    | Url
    | Email
    | Doi
    | Pkg
    | Eqn
    | Deqn
    | If
    | IfElse
    | Out
    | Sexpr
    | Method
    | S3Method
    | S4Method
    | Figure
    | Var
    | Env
    | Option
    | Command
    | Acronym
    | Abbr
    | Cite
    | DontRun
    | DontTest
    | DontShow
    | DontDiff
    | Special
    | LineBreak
    | Tab
    | Macro
)


# ---------------------------------------------------------------------------
# Document
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RdSection:
    """A top-level section.

    ``name`` holds the title of a custom ``\\section`` or the original
    macro name of an unknown section; it is empty otherwise.
    """

    tag: SectionTag
    content: tuple[RdNode, ...]
    name: str = ""
    span: Span | None = field(default=None, compare=False)


@dataclass(frozen=True, slots=True)
class RdDocument:
    """Root document node."""

    sections: tuple[RdSection, ...] = ()

    def get_section(self, tag: SectionTag) -> RdSection | None:
        """Return the first section with the given tag."""
        for section in self.sections:
            if section.tag == tag:
                return section
        return None

    def get_sections(self, tag: SectionTag) -> list[RdSection]:
        """Return all sections with the given tag, in source order."""
        return [s for s in self.sections if s.tag == tag]


# ---------------------------------------------------------------------------
# Traversal
# ---------------------------------------------------------------------------


def child_groups(node: RdNode) -> Iterator[tuple[RdNode, ...]]:
    """Yield the node sequences nested directly inside *node*."""
    match node:
        case (
            Paragraph(children=c)
            | Code(children=c)
            | Emph(children=c)
            | Strong(children=c)
            | Samp(children=c)
            | File(children=c)
            | Dfn(children=c)
            | Kbd(children=c)
            | SQuote(children=c)
            | DQuote(children=c)
            | DontRun(children=c)
            | DontTest(children=c)
            | DontShow(children=c)
            | DontDiff(children=c)
        ):
            yield c
        case Section(title=t, content=c) | Subsection(title=t, content=c):
            yield t
            yield c
        case Item(label=label, content=c):
            if label is not None:
                yield label
            yield c
        case Itemize(items=items) | Enumerate(items=items):
            yield items
        case Describe(items=items):
            for item in items:
                yield item.term
                yield item.description
        case Tabular(rows=rows):
            for row in rows:
                yield from row
        case Href(text=t):
            yield t
        case Link(text=t) if t is not None:
            yield t
        case If(content=c):
            yield c
        case IfElse(then=t, otherwise=o):
            yield t
            yield o
        case Macro(args=args):
            yield from args


def walk(nodes: tuple[RdNode, ...] | list[RdNode]) -> Iterator[RdNode]:
    """Yield every node of the given sequence and its subtrees, depth first."""
    for node in nodes:
        yield node
        for group in child_groups(node):
            yield from walk(group)
