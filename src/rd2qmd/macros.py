"""Rd macro registry: alias resolution and argument shapes."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto

from rd2qmd import ast

# Alias map: alternate name -> canonical name
ALIASES: dict[str, str] = {
    "bold": "strong",
    "testonly": "dontshow",
    "ldots": "dots",
}


def resolve_name(name: str) -> str:
    """Resolve an alias to its canonical name."""
    return ALIASES.get(name, name)


class ArgShape(Enum):
    SPECIAL = auto()  # no arguments
    CHILDREN = auto()  # one {children}
    STRING = auto()  # one {text}, braces balanced, no macro processing
    LIST = auto()  # itemize / enumerate body
    DESCRIBE = auto()
    TABULAR = auto()
    PREFORMATTED = auto()
    HEADED = auto()  # {title}{content}
    HREF = auto()
    LINK = auto()
    LINK_S4_CLASS = auto()
    SEXPR = auto()
    MATH = auto()  # {latex} + optional {ascii}
    IF = auto()
    IFELSE = auto()
    METHOD = auto()  # two strings
    ITEM = auto()
    FIGURE = auto()


@dataclass(frozen=True, slots=True)
class MacroDef:
    """How a known macro's arguments are read and which node they build."""

    name: str
    shape: ArgShape
    node: type | None = None


def _make_macros() -> dict[str, MacroDef]:
    defs: dict[str, MacroDef] = {}

    def d(name: str, shape: ArgShape, node: type | None = None) -> None:
        defs[name] = MacroDef(name, shape, node)

    # Bare specials
    d("R", ArgShape.SPECIAL)
    d("dots", ArgShape.SPECIAL)
    d("cr", ArgShape.SPECIAL, ast.LineBreak)
    d("tab", ArgShape.SPECIAL, ast.Tab)

    # Inline children
    d("code", ArgShape.CHILDREN, ast.Code)
    d("emph", ArgShape.CHILDREN, ast.Emph)
    d("strong", ArgShape.CHILDREN, ast.Strong)
    d("samp", ArgShape.CHILDREN, ast.Samp)
    d("file", ArgShape.CHILDREN, ast.File)
    d("dfn", ArgShape.CHILDREN, ast.Dfn)
    d("kbd", ArgShape.CHILDREN, ast.Kbd)
    d("sQuote", ArgShape.CHILDREN, ast.SQuote)
    d("dQuote", ArgShape.CHILDREN, ast.DQuote)

    # Example control
    d("dontrun", ArgShape.CHILDREN, ast.DontRun)
    d("donttest", ArgShape.CHILDREN, ast.DontTest)
    d("dontshow", ArgShape.CHILDREN, ast.DontShow)
    d("dontdiff", ArgShape.CHILDREN, ast.DontDiff)

    # Inline strings
    d("verb", ArgShape.STRING, ast.Verb)
    d("url", ArgShape.STRING, ast.Url)
    d("email", ArgShape.STRING, ast.Email)
    d("pkg", ArgShape.STRING, ast.Pkg)
    d("var", ArgShape.STRING, ast.Var)
    d("env", ArgShape.STRING, ast.Env)
    d("option", ArgShape.STRING, ast.Option)
    d("command", ArgShape.STRING, ast.Command)
    d("acronym", ArgShape.STRING, ast.Acronym)
    d("abbr", ArgShape.STRING, ast.Abbr)
    d("cite", ArgShape.STRING, ast.Cite)
    d("doi", ArgShape.STRING, ast.Doi)
    d("out", ArgShape.STRING, ast.Out)

    # Blocks
    d("itemize", ArgShape.LIST, ast.Itemize)
    d("enumerate", ArgShape.LIST, ast.Enumerate)
    d("describe", ArgShape.DESCRIBE, ast.Describe)
    d("tabular", ArgShape.TABULAR, ast.Tabular)
    d("preformatted", ArgShape.PREFORMATTED, ast.Preformatted)
    d("subsection", ArgShape.HEADED, ast.Subsection)
    d("section", ArgShape.HEADED, ast.Section)
    d("item", ArgShape.ITEM, ast.Item)

    # Links
    d("href", ArgShape.HREF, ast.Href)
    d("link", ArgShape.LINK, ast.Link)
    d("linkS4class", ArgShape.LINK_S4_CLASS, ast.LinkS4Class)
    d("Sexpr", ArgShape.SEXPR, ast.Sexpr)

    # Math
    d("eqn", ArgShape.MATH, ast.Eqn)
    d("deqn", ArgShape.MATH, ast.Deqn)

    # Conditionals
    d("if", ArgShape.IF, ast.If)
    d("ifelse", ArgShape.IFELSE, ast.IfElse)

    # Usage declarations
    d("method", ArgShape.METHOD, ast.Method)
    d("S3method", ArgShape.METHOD, ast.S3Method)
    d("S4method", ArgShape.METHOD, ast.S4Method)

    d("figure", ArgShape.FIGURE, ast.Figure)

    return defs


MACROS: dict[str, MacroDef] = _make_macros()


def lookup(name: str) -> MacroDef | None:
    """Return the definition of a macro after alias resolution, if known."""
    return MACROS.get(resolve_name(name))
