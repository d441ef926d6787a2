"""Markdown writer: serializes a Markdown tree to Quarto Markdown text."""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

from rd2qmd import mdast as md

_BACKTICK_RUN = re.compile(r"`+")

_ALIGN_MARKERS = {
    md.Align.LEFT: ":---|",
    md.Align.CENTER: ":--:|",
    md.Align.RIGHT: "---:|",
    None: "----|",
}

# Description children that need Pandoc's indented block layout
_DEFINITION_BLOCKS = (md.List, md.Code, md.Table, md.Blockquote, md.DefinitionList, md.Math)


@dataclass(frozen=True, slots=True)
class RdMetadata:
    """Topic metadata carried into the front matter and the topic index."""

    lifecycle: str | None = None
    aliases: tuple[str, ...] = ()
    keywords: tuple[str, ...] = ()
    concepts: tuple[str, ...] = ()
    source_files: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class Frontmatter:
    title: str | None = None
    pagetitle: str | None = None
    format: str | None = None
    metadata: RdMetadata | None = None

    def is_empty(self) -> bool:
        if self.title is not None or self.pagetitle is not None or self.format is not None:
            return False
        meta = self.metadata
        if meta is None:
            return True
        return not (
            meta.lifecycle or meta.aliases or meta.keywords or meta.concepts or meta.source_files
        )


@dataclass(frozen=True, slots=True)
class WriterOptions:
    frontmatter: Frontmatter | None = None
    quarto_code_blocks: bool = True


def escape_yaml_string(s: str) -> str:
    """Escape a value for a double-quoted YAML scalar."""
    return s.replace("\\", "\\\\").replace('"', '\\"')


def fence_length(content: str) -> int:
    """Return a fence length longer than any backtick run in content (min 3)."""
    longest = max((len(m.group()) for m in _BACKTICK_RUN.finditer(content)), default=0)
    return max(3, longest + 1)


def mdast_to_qmd(root: md.Root, options: WriterOptions | None = None) -> str:
    """Serialize a Markdown tree, with front matter when configured."""
    options = options or WriterOptions()
    writer = _Writer(options)
    if options.frontmatter is not None and not options.frontmatter.is_empty():
        writer.write_frontmatter(options.frontmatter)
    writer.write_blocks(root.children)
    writer._ensure_newline()
    return writer.getvalue()


def write_fragment(nodes: Sequence[md.MdNode], options: WriterOptions | None = None) -> str:
    """Serialize a node sequence without front matter."""
    writer = _Writer(options or WriterOptions())
    writer.write_blocks(nodes)
    return writer.getvalue()


class _Writer:
    """Accumulates output; tracks the tail to place newlines and spaces."""

    def __init__(self, options: WriterOptions) -> None:
        self._options = options
        self._parts: list[str] = []
        self._tail = ""

    def getvalue(self) -> str:
        return "".join(self._parts)

    def _write(self, text: str) -> None:
        if text:
            self._parts.append(text)
            self._tail = (self._tail + text)[-2:]

    def _ensure_newline(self) -> None:
        if self._tail and not self._tail.endswith("\n"):
            self._write("\n")

    def _ensure_blank_line(self) -> None:
        self._ensure_newline()
        if self._tail and self._tail != "\n\n":
            self._write("\n")

    # ------------------------------------------------------------------
    # Front matter
    # ------------------------------------------------------------------

    def write_frontmatter(self, fm: Frontmatter) -> None:
        lines = ["---"]
        if fm.title is not None:
            lines.append(f'title: "{escape_yaml_string(fm.title)}"')
        if fm.pagetitle is not None:
            lines.append(f'pagetitle: "{escape_yaml_string(fm.pagetitle)}"')
        if fm.format is not None:
            lines.append(f"format: {fm.format}")

        meta = fm.metadata
        if meta is not None:
            if meta.lifecycle is not None:
                lines.append(f"lifecycle: {meta.lifecycle}")
            for key, values in (
                ("aliases", meta.aliases),
                ("keywords", meta.keywords),
                ("concepts", meta.concepts),
                ("source-files", meta.source_files),
            ):
                if values:
                    lines.append(f"{key}:")
                    lines.extend(f'  - "{escape_yaml_string(v)}"' for v in values)

        lines.append("---")
        self._write("\n".join(lines) + "\n\n")

    # ------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------

    def write_blocks(self, nodes: Sequence[md.MdNode]) -> None:
        for i, node in enumerate(nodes):
            if i > 0:
                self._ensure_blank_line()
            self._write_node(node)

    def _write_node(self, node: md.MdNode) -> None:
        match node:
            case md.Heading(depth=depth, children=children):
                self._ensure_newline()
                self._write("#" * depth + " ")
                self._write_inline(children)
                self._write("\n")
            case md.Paragraph(children=children):
                self._ensure_newline()
                self._write_inline(children)
                self._write("\n")
            case md.ThematicBreak():
                self._ensure_newline()
                self._write("---\n")
            case md.Blockquote(children=children):
                self._ensure_newline()
                for child in children:
                    self._write("> ")
                    self._write_node(child)
            case md.List():
                self._ensure_newline()
                self._write_list(node, 0)
            case md.Code():
                self._ensure_newline()
                self._write_code(node)
            case md.Table():
                self._ensure_newline()
                self._write_table(node)
            case md.DefinitionList():
                self._ensure_newline()
                self._write_definition_list(node)
            case md.Math(value=value):
                self._ensure_newline()
                self._write("$$\n" + value)
                if not value.endswith("\n"):
                    self._write("\n")
                self._write("$$\n")
            case md.Root(children=children):
                self.write_blocks(children)
            case _:
                self._write_inline((node,))

    def _write_code(self, code: md.Code) -> None:
        fence = "`" * fence_length(code.value)
        info = code.lang or ""
        if self._options.quarto_code_blocks and code.lang == "r" and code.meta == "executable":
            info = "{r}"
        self._write(f"{fence}{info}\n{code.value}")
        if not code.value.endswith("\n"):
            self._write("\n")
        self._write(fence + "\n")

    def _write_list(self, lst: md.List, indent: int) -> None:
        number = lst.start if lst.start is not None else 1
        pad = " " * indent
        item_pad = " " * (indent + 2)
        for item in lst.children:
            if lst.ordered:
                self._write(f"{pad}{number}. ")
                number += 1
            else:
                self._write(f"{pad}- ")

            ended = False
            for i, child in enumerate(item.children):
                match child:
                    case md.Paragraph(children=children):
                        if i > 0:
                            self._write("\n" + item_pad)
                        self._write_inline(children)
                        ended = False
                    case md.List():
                        self._write("\n")
                        self._write_list(child, indent + 2)
                        ended = True
                    case _:
                        self._write("\n")
                        self._write(_indent(self._fragment(child), item_pad))
                        ended = True
            if not ended:
                self._write("\n")

    def _write_table(self, table: md.Table) -> None:
        rows = table.children
        if not rows:
            return
        num_cols = max(len(row.children) for row in rows)

        self._write_table_row(rows[0], num_cols)
        align = list(table.align) + [None] * (num_cols - len(table.align))
        self._write("|" + "".join(_ALIGN_MARKERS[a] for a in align[:num_cols]) + "\n")
        for row in rows[1:]:
            self._write_table_row(row, num_cols)

    def _write_table_row(self, row: md.TableRow, num_cols: int) -> None:
        self._write("|")
        for cell in row.children[:num_cols]:
            sub = _Writer(self._options)
            sub._write_inline(cell.children)
            # Cells are single-line and a bare pipe would end the cell
            text = sub.getvalue().replace("\n", " ").replace("|", "\\|")
            self._write(f" {text} |")
        self._write(" |" * (num_cols - len(row.children)))
        self._write("\n")

    def _write_definition_list(self, dl: md.DefinitionList) -> None:
        children = dl.children
        i = 0
        while i < len(children):
            term = children[i]
            i += 1
            if not isinstance(term, md.DefinitionTerm):
                continue
            self._write_inline(term.children)
            self._write("\n")
            while i < len(children) and isinstance(children[i], md.DefinitionDescription):
                self._write_description(children[i])
                i += 1
            self._write("\n")

    def _write_description(self, dd: md.DefinitionDescription) -> None:
        self._write(":   ")
        if not any(isinstance(c, _DEFINITION_BLOCKS) for c in dd.children):
            for child in dd.children:
                if isinstance(child, md.Paragraph):
                    self._write_inline(child.children)
                else:
                    self._write_node(child)
            self._write("\n")
            return

        # Pandoc: blocks after the first are indented by four spaces
        after_first = False
        for child in dd.children:
            match child:
                case md.Paragraph(children=children):
                    if after_first:
                        self._write("    ")
                    self._write_inline(children)
                    self._write("\n\n")
                case md.List():
                    self._write(_indent(self._fragment(child), "    "))
                    self._write("\n")
                case _:
                    block = _indent(self._fragment(child).rstrip("\n") + "\n", "    ")
                    if not after_first:
                        # First line sits on the marker line
                        block = block[4:]
                    self._write(block)
                    self._write("\n")
            after_first = True

    def _fragment(self, node: md.MdNode) -> str:
        sub = _Writer(self._options)
        sub._write_node(node)
        return sub.getvalue()

    # ------------------------------------------------------------------
    # Inline
    # ------------------------------------------------------------------

    def _write_inline(self, nodes: Sequence[md.MdNode]) -> None:
        for node in nodes:
            match node:
                case md.Text(value=value):
                    self._write(value)
                case md.Emphasis(children=children):
                    self._write("*")
                    self._write_inline(children)
                    self._write("*")
                case md.Strong(children=children):
                    self._write("**")
                    self._write_inline(children)
                    self._write("**")
                case md.InlineCode(value=value):
                    # Adjacent code spans would merge into one
                    if self._tail.endswith("`"):
                        self._write(" ")
                    if "`" in value:
                        self._write(f"`` {value} ``")
                    else:
                        self._write(f"`{value}`")
                case md.Break():
                    self._write("  \n")
                case md.Link(url=url, children=children, title=title):
                    self._write("[")
                    self._write_inline(children)
                    self._write(f"]({url}{_title_suffix(title)})")
                case md.Image(url=url, alt=alt, title=title):
                    self._write(f"![{alt}]({url}{_title_suffix(title)})")
                case md.InlineMath(value=value):
                    self._write(f"${value}$")
                case md.Html(value=value):
                    self._write(value)
                case md.Paragraph(children=children):
                    self._write_inline(children)
                case _ if isinstance(node, md.BLOCK_TYPES):
                    self._write_node(node)


def _title_suffix(title: str | None) -> str:
    return f' "{title}"' if title is not None else ""


def _indent(text: str, pad: str) -> str:
    """Indent every non-empty line of text."""
    return "".join(pad + line if line.strip() else line for line in text.splitlines(keepends=True))
