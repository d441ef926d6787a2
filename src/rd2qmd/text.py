"""Plain-text extraction from Rd trees, with usage-line reformatting."""

from __future__ import annotations

from collections.abc import Sequence

from rd2qmd.ast import (
    Abbr,
    Acronym,
    Cite,
    Code,
    Command,
    Dfn,
    Doi,
    DontDiff,
    DQuote,
    Email,
    Emph,
    Env,
    Eqn,
    File,
    Href,
    Kbd,
    LineBreak,
    Link,
    LinkS4Class,
    Method,
    Option,
    Pkg,
    RdNode,
    S3Method,
    S4Method,
    Samp,
    Special,
    SpecialChar,
    SQuote,
    Strong,
    Text,
    Url,
    Var,
    Verb,
)

# Binary operators written with spaces around them
PADDED_OPERATORS = frozenset({"+", "-", "*", "/", "==", "!=", "<", ">", "<=", ">=", "&", "|"})

# Operators written without spaces
UNPADDED_OPERATORS = frozenset({"^", "[", "[[", "$", ":", "::", ":::"})


def special_char_text(ch: SpecialChar) -> str:
    """Return the text a special character stands for."""
    return ch.value


def normalize_whitespace(s: str) -> str:
    """Collapse whitespace runs to single spaces.

    A single leading or trailing space survives so that adjacent inline
    nodes stay separated; an all-whitespace string becomes one space.
    """
    if not s:
        return ""
    words = s.split()
    if not words:
        return " "
    result = " ".join(words)
    if s[0].isspace():
        result = " " + result
    if s[-1].isspace():
        result = result + " "
    return result


def extract_text(nodes: Sequence[RdNode]) -> str:
    """Linearize a node sequence to source-like plain text.

    Method declarations become a pkgdown-style comment line followed by
    the call, rewritten in operator form when the generic is an infix
    operator (``\\method{+}{cls}(e1, e2)`` reads ``e1 + e2``).
    """
    parts: list[str] = []
    i = 0
    while i < len(nodes):
        node = nodes[i]
        match node:
            case Text(value=value):
                parts.append(value)
            case (
                Code(children=children)
                | Emph(children=children)
                | Strong(children=children)
                | Samp(children=children)
                | File(children=children)
                | Dfn(children=children)
                | Kbd(children=children)
                | DontDiff(children=children)
            ):
                parts.append(extract_text(children))
            case SQuote(children=children):
                parts.append(f"'{extract_text(children)}'")
            case DQuote(children=children):
                parts.append(f'"{extract_text(children)}"')
            case Link(package=package, topic=topic, text=text):
                if text is not None:
                    parts.append(extract_text(text))
                elif package is not None:
                    parts.append(f"{package}::{topic}")
                else:
                    parts.append(topic)
            case LinkS4Class(classname=classname):
                parts.append(classname)
            case Href(text=text):
                parts.append(extract_text(text))
            case (
                Verb(value=value)
                | Url(value=value)
                | Email(value=value)
                | Doi(value=value)
                | Pkg(value=value)
                | Var(value=value)
                | Env(value=value)
                | Option(value=value)
                | Command(value=value)
                | Acronym(value=value)
                | Abbr(value=value)
                | Cite(value=value)
            ):
                parts.append(value)
            case Eqn(latex=latex, ascii=ascii_text):
                parts.append(ascii_text if ascii_text is not None else latex)
            case Method(generic=generic, cls=cls) | S3Method(generic=generic, cls=cls):
                if cls == "default":
                    parts.append("# Default S3 method\n")
                else:
                    parts.append(f"# S3 method for class '{cls}'\n")
                i += _append_call(generic, nodes, i + 1, parts)
            case S4Method(generic=generic, signature=signature):
                parts.append(f"# S4 method for signature '{signature}'\n")
                i += _append_call(generic, nodes, i + 1, parts)
            case Special(char=ch):
                parts.append(special_char_text(ch))
            case LineBreak():
                parts.append("\n")
        i += 1
    return "".join(parts)


def _append_call(generic: str, nodes: Sequence[RdNode], start: int, parts: list[str]) -> int:
    """Append a method call; return how many following nodes it consumed."""
    formatted = format_infix_method(generic, nodes, start)
    if formatted is None:
        parts.append(generic)
        return 0
    text, consumed = formatted
    parts.append(text)
    return consumed


# ---------------------------------------------------------------------------
# Infix operators
# ---------------------------------------------------------------------------


def is_infix_operator(name: str) -> bool:
    """Return True for operators and user-defined ``%op%`` infixes."""
    if _is_user_infix(name):
        return True
    return name in PADDED_OPERATORS or name in UNPADDED_OPERATORS


def _is_user_infix(name: str) -> bool:
    return len(name) >= 2 and name.startswith("%") and name.endswith("%")


def format_infix_method(
    generic: str, nodes: Sequence[RdNode], start: int
) -> tuple[str, int] | None:
    """Rewrite ``op(x, y)`` that follows a method declaration as ``x op y``.

    The argument list is collected from the text nodes starting at
    ``start``. Returns the rewritten text (with anything after the closing
    parenthesis kept verbatim) and the number of nodes consumed, or None
    when the call cannot be rewritten.
    """
    if not is_infix_operator(generic):
        return None

    collected: list[str] = []
    consumed = 0
    for node in nodes[start:]:
        if isinstance(node, Text):
            collected.append(node.value)
            consumed += 1
            joined = "".join(collected)
            if ")" in joined and (node.value.endswith(")") or "\n" in node.value):
                break
        elif isinstance(node, Special):
            collected.append(special_char_text(node.char))
            consumed += 1
        else:
            # A line break or any other node ends the usage line
            break

    text = "".join(collected).lstrip()
    if not text.startswith("("):
        return None

    end = find_matching_paren(text)
    if end is None:
        return None

    args = split_arguments(text[1:end])
    formatted = format_infix_call(generic, args)
    if formatted is None:
        return None
    return formatted + text[end + 1 :], consumed


def find_matching_paren(s: str) -> int | None:
    """Return the index of the parenthesis closing the one at index 0."""
    if not s.startswith("("):
        return None
    depth = 0
    for i, ch in enumerate(s):
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return i
    return None


def split_arguments(content: str) -> list[str]:
    """Split an argument list at top-level commas."""
    args: list[str] = []
    current: list[str] = []
    depth = 0
    for ch in content:
        if ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth -= 1
        elif ch == "," and depth == 0:
            args.append("".join(current).strip())
            current = []
            continue
        current.append(ch)

    last = "".join(current).strip()
    if last:
        args.append(last)
    return args


def format_infix_call(operator: str, args: list[str]) -> str | None:
    """Render an operator applied to its arguments in natural form."""
    match operator:
        case "[" | "[[":
            if not args:
                return None
            close = "]" * len(operator)
            return f"{args[0]}{operator}{', '.join(args[1:])}{close}"
        case "$" | "::" | ":::":
            if len(args) != 2:
                return None
            return f"{args[0]}{operator}{args[1]}"

    if len(args) != 2:
        return None
    if operator in PADDED_OPERATORS or _is_user_infix(operator):
        return f"{args[0]} {operator} {args[1]}"
    return f"{args[0]}{operator}{args[1]}"
