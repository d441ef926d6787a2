"""roxygen2 conventions: header comments and markdown code blocks."""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

from rd2qmd.ast import If, Out, Preformatted, RdNode, Text

_EDIT_PREFIX = "% Please edit documentation in "
_CLASS_RE = re.compile(r'class="([^"]*)"')


@dataclass(frozen=True, slots=True)
class RoxygenHeader:
    """Metadata from the comment block roxygen2 writes at the top of a file."""

    source_files: tuple[str, ...] = ()


def parse_roxygen_comments(source: str) -> RoxygenHeader:
    """Read the R source files named in a roxygen2 header.

    roxygen2 writes ``% Please edit documentation in R/a.R, R/b.R`` and
    wraps long lists onto further ``%`` lines indented by spaces.
    Hand-written files have no such header and yield an empty result.
    """
    collected: list[str] = []
    in_list = False
    for line in source.splitlines():
        if not line.startswith("%"):
            break
        if line.startswith(_EDIT_PREFIX):
            collected.append(line[len(_EDIT_PREFIX) :])
            in_list = True
        elif in_list and line[1:2].isspace() and line[1:].strip():
            collected.append(line[1:])
        else:
            in_list = False

    files = [part.strip() for part in ",".join(collected).split(",")]
    return RoxygenHeader(tuple(f for f in files if f))


# ---------------------------------------------------------------------------
# Markdown code blocks
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CodeBlockMatch:
    lang: str | None
    code: str
    consumed: int


def match_code_block(nodes: Sequence[RdNode], start: int) -> CodeBlockMatch | None:
    """Match the Rd that roxygen2 emits for a fenced markdown code block.

    The shape is ``\\if{html}{\\out{<div class="sourceCode LANG">}}``, then
    ``\\preformatted{...}``, then ``\\if{html}{\\out{</div>}}``. Blank text
    between the three parts is skipped.
    """
    idx = _skip_blank(nodes, start)
    if idx >= len(nodes):
        return None
    opening = _html_out(nodes[idx])
    if opening is None:
        return None
    found, lang = _div_language(opening)
    if not found:
        return None

    idx = _skip_blank(nodes, idx + 1)
    if idx >= len(nodes) or not isinstance(nodes[idx], Preformatted):
        return None
    code = nodes[idx].value

    idx = _skip_blank(nodes, idx + 1)
    if idx >= len(nodes):
        return None
    closing = _html_out(nodes[idx])
    if closing is None or closing.strip() != "</div>":
        return None

    return CodeBlockMatch(lang, code, idx + 1 - start)


def _skip_blank(nodes: Sequence[RdNode], idx: int) -> int:
    while idx < len(nodes) and isinstance(nodes[idx], Text) and not nodes[idx].value.strip():
        idx += 1
    return idx


def _html_out(node: RdNode) -> str | None:
    if isinstance(node, If) and node.format == "html" and len(node.content) == 1:
        inner = node.content[0]
        if isinstance(inner, Out):
            return inner.value
    return None


def _div_language(html: str) -> tuple[bool, str | None]:
    m = _CLASS_RE.search(html)
    if m is None:
        return False, None
    cls = m.group(1)
    if cls.startswith("sourceCode"):
        rest = cls[len("sourceCode") :].strip()
        return True, rest or None
    if cls == "r":
        return True, "r"
    return False, None
