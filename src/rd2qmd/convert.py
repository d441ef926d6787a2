"""Rd tree to Markdown tree conversion."""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum

from tabulate import tabulate

from rd2qmd import mdast as md
from rd2qmd.ast import (
    Abbr,
    Acronym,
    AltText,
    Cite,
    Code,
    Command,
    Deqn,
    Describe,
    DescribeItem,
    Dfn,
    Doi,
    DontDiff,
    DontRun,
    DontShow,
    DontTest,
    DQuote,
    Email,
    Emph,
    Enumerate,
    Env,
    Eqn,
    ExpertOptions,
    Figure,
    File,
    Href,
    If,
    IfElse,
    Item,
    Itemize,
    Kbd,
    LineBreak,
    Link,
    LinkS4Class,
    Method,
    Option,
    Out,
    Paragraph,
    Pkg,
    Preformatted,
    RdDocument,
    RdNode,
    RdSection,
    S3Method,
    S4Method,
    Samp,
    Section,
    SectionTag,
    Special,
    SQuote,
    Strong,
    Subsection,
    Tabular,
    Text,
    Url,
    Var,
    Verb,
    Verbatim,
)
from rd2qmd.roxygen import match_code_block
from rd2qmd.text import extract_text, normalize_whitespace, special_char_text
from rd2qmd.writer import WriterOptions, write_fragment


class ArgumentsFormat(Enum):
    """How the Arguments section is laid out."""

    GRID_TABLE = "grid"  # Pandoc grid table, cells may hold lists
    PIPE_TABLE = "pipe"  # GFM pipe table, inline content only


@dataclass(frozen=True, slots=True)
class ConverterOptions:
    """Passive configuration for a single document conversion.

    ``link_extension`` of None turns every internal link into inline code.
    ``unresolved_link_url`` is a pattern with a ``{topic}`` placeholder used
    for links the alias map cannot resolve. ``external_package_urls`` maps a
    package name to the base URL of its reference pages.
    """

    link_extension: str | None = None
    alias_map: Mapping[str, str] | None = None
    unresolved_link_url: str | None = None
    external_package_urls: Mapping[str, str] | None = None
    exec_dontrun: bool = False
    exec_donttest: bool = True
    quarto_code_blocks: bool = True
    arguments_format: ArgumentsFormat = ArgumentsFormat.GRID_TABLE


# pkgdown order; custom sections and then Examples follow
SECTION_ORDER: tuple[SectionTag, ...] = (
    SectionTag.DESCRIPTION,
    SectionTag.USAGE,
    SectionTag.ARGUMENTS,
    SectionTag.VALUE,
    SectionTag.DETAILS,
    SectionTag.FORMAT,
    SectionTag.SOURCE,
    SectionTag.NOTE,
    SectionTag.REFERENCES,
    SectionTag.AUTHOR,
    SectionTag.SEEALSO,
)

SECTION_HEADINGS: dict[SectionTag, str] = {
    SectionTag.DESCRIPTION: "Description",
    SectionTag.USAGE: "Usage",
    SectionTag.ARGUMENTS: "Arguments",
    SectionTag.VALUE: "Value",
    SectionTag.DETAILS: "Details",
    SectionTag.NOTE: "Note",
    SectionTag.SEEALSO: "See Also",
    SectionTag.EXAMPLES: "Examples",
    SectionTag.REFERENCES: "References",
    SectionTag.AUTHOR: "Author",
    SectionTag.FORMAT: "Format",
    SectionTag.SOURCE: "Source",
}

# Formats whose conditional content is kept
INCLUDED_FORMATS = frozenset({"html", "text"})

_PARAGRAPH_BREAK = re.compile(r"\n[ \t]*\n")
_ALIGN = {"l": md.Align.LEFT, "c": md.Align.CENTER, "r": md.Align.RIGHT}
_ARGUMENT_HEADERS = ("Argument", "Description")


class Converter:
    """Stateful converter; the only state is the nested-section depth."""

    def __init__(self, options: ConverterOptions) -> None:
        self._options = options
        self._section_depth = 1

    # ------------------------------------------------------------------
    # Document level
    # ------------------------------------------------------------------

    def convert_document(self, doc: RdDocument) -> md.Root:
        children: list[md.MdNode] = []

        title = document_title(doc)
        if title is not None:
            children.append(md.Heading(1, (md.Text(title),)))

        for tag in SECTION_ORDER:
            section = doc.get_section(tag)
            if section is not None:
                children.extend(self._convert_section(section))

        for section in doc.get_sections(SectionTag.SECTION):
            children.append(md.Heading(2, (md.Text(section.name),)))
            children.extend(self.convert_content(section.content))

        examples = doc.get_section(SectionTag.EXAMPLES)
        if examples is not None:
            children.extend(self._convert_section(examples))

        return md.Root(tuple(children))

    def _convert_section(self, section: RdSection) -> list[md.MdNode]:
        heading = md.Heading(2, (md.Text(SECTION_HEADINGS[section.tag]),))
        match section.tag:
            case SectionTag.USAGE:
                code = extract_text(section.content).strip()
                return [heading, md.Code(code, "r")]
            case SectionTag.EXAMPLES:
                return [heading, *self._convert_examples(section.content)]
            case SectionTag.ARGUMENTS:
                return [heading, *self._convert_arguments(section.content)]
        return [heading, *self.convert_content(section.content)]

    # ------------------------------------------------------------------
    # Examples
    # ------------------------------------------------------------------

    def _convert_examples(self, content: Sequence[RdNode]) -> list[md.MdNode]:
        result: list[md.MdNode] = []
        pending: list[str] = []
        has_executable = False

        def flush(executable: bool) -> None:
            code = "".join(pending).strip()
            pending.clear()
            if code:
                result.append(_r_block(code, executable))

        for node in content:
            match node:
                case DontRun(children=children) | DontTest(children=children):
                    flush(True)
                    has_executable = False
                    code = extract_text(children).strip()
                    if code:
                        if isinstance(node, DontRun):
                            executable = self._options.exec_dontrun
                        else:
                            executable = self._options.exec_donttest
                        result.append(_r_block(code, executable))
                case DontShow(children=children):
                    code = extract_text(children).strip()
                    # Halves of an @examplesIf wrapper: the guarded code is
                    # in the siblings between them
                    if code.count("{") > code.count("}") or code.startswith("}"):
                        continue
                    if code:
                        flush(True)
                        has_executable = False
                        if self._options.quarto_code_blocks:
                            result.append(_r_block(f"#| include: false\n{code}", True))
                case _:
                    has_executable = True
                    pending.append(extract_text((node,)))

        if has_executable:
            flush(True)
        else:
            flush(False)
        return result

    # ------------------------------------------------------------------
    # Arguments
    # ------------------------------------------------------------------

    def _convert_arguments(self, content: Sequence[RdNode]) -> list[md.MdNode]:
        items = [n for n in content if isinstance(n, Item) and n.label is not None]
        if not items:
            return self.convert_content(content)
        if self._options.arguments_format == ArgumentsFormat.PIPE_TABLE:
            return [self._pipe_arguments(items)]
        return [self._grid_arguments(items)]

    def _pipe_arguments(self, items: list[Item]) -> md.Table:
        header = md.TableRow(tuple(md.TableCell((md.Text(h),)) for h in _ARGUMENT_HEADERS))
        rows = [header]
        for item in items:
            label = extract_text(item.label).strip()
            rows.append(
                md.TableRow(
                    (
                        md.TableCell((md.InlineCode(label),)),
                        md.TableCell(tuple(self._flatten_for_cell(item.content))),
                    )
                )
            )
        return md.Table((md.Align.LEFT, md.Align.LEFT), tuple(rows))

    def _grid_arguments(self, items: list[Item]) -> md.Html:
        fragment_options = WriterOptions(
            frontmatter=None, quarto_code_blocks=self._options.quarto_code_blocks
        )
        rows = []
        for item in items:
            label = extract_text(item.label).strip()
            label_md = write_fragment([md.Paragraph((md.InlineCode(label),))], fragment_options)
            description = write_fragment(self.convert_content(item.content), fragment_options)
            rows.append([label_md.strip(), description.strip()])

        table = tabulate(
            rows,
            headers=list(_ARGUMENT_HEADERS),
            tablefmt="grid",
            disable_numparse=True,
            colalign=("left", "left"),
        )
        return md.Html(table + "\n")

    def _flatten_for_cell(self, content: Sequence[RdNode]) -> list[md.MdNode]:
        """Reduce block content to inline nodes for a pipe table cell."""
        result: list[md.MdNode] = []
        for i, block in enumerate(self.convert_content(content)):
            if i > 0 and result:
                result.append(md.Html(" <br>"))
            match block:
                case md.Paragraph(children=children):
                    result.extend(children)
                case md.List(ordered=ordered, children=list_items):
                    for j, list_item in enumerate(list_items):
                        if j > 0:
                            result.append(md.Html(" <br>"))
                        result.append(md.Text(f"{j + 1}. " if ordered else "- "))
                        for child in list_item.children:
                            if isinstance(child, md.Paragraph):
                                result.extend(child.children)
                                break
        return result

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    def convert_content(self, nodes: Sequence[RdNode]) -> list[md.MdNode]:
        """Convert a node sequence, grouping inline runs into paragraphs."""
        result: list[md.MdNode] = []
        para: list[md.MdNode] = []

        i = 0
        while i < len(nodes):
            block = match_code_block(nodes, i)
            if block is not None:
                _flush_paragraph(para, result)
                result.append(md.Code(block.code, block.lang))
                i += block.consumed
                continue

            node = nodes[i]
            match node:
                case Itemize(items=items):
                    _flush_paragraph(para, result)
                    result.append(self._convert_list(items, ordered=False))
                case Enumerate(items=items):
                    _flush_paragraph(para, result)
                    result.append(self._convert_list(items, ordered=True))
                case Describe(items=items):
                    _flush_paragraph(para, result)
                    result.append(self._convert_describe(items))
                case Tabular(alignment=alignment, rows=rows):
                    _flush_paragraph(para, result)
                    result.append(self._convert_table(alignment, rows))
                case Section(title=title, content=content) | Subsection(title=title, content=content):
                    _flush_paragraph(para, result)
                    self._section_depth += 1
                    depth = min(self._section_depth + 1, 6)
                    result.append(md.Heading(depth, tuple(self.convert_inline_nodes(title))))
                    result.extend(self.convert_content(content))
                    self._section_depth -= 1
                case Preformatted(value=value):
                    _flush_paragraph(para, result)
                    result.append(md.Code(value))
                case Deqn(latex=latex):
                    _flush_paragraph(para, result)
                    result.append(md.Math(latex))
                case Paragraph(children=children):
                    _flush_paragraph(para, result)
                    para.extend(self.convert_inline_nodes(children))
                    _flush_paragraph(para, result)
                case Item(label=label) if label is not None:
                    # Labelled items outside a list (as in \value) read as
                    # a definition list
                    _flush_paragraph(para, result)
                    run = _labelled_run(nodes, i)
                    result.append(
                        self._convert_describe(
                            [DescribeItem(item.label, item.content) for item in run.items]
                        )
                    )
                    i = run.end
                    continue
                case Item(content=content):
                    _flush_paragraph(para, result)
                    result.extend(self.convert_content(content))
                case Text(value=value):
                    for j, part in enumerate(_PARAGRAPH_BREAK.split(value)):
                        if j > 0:
                            _flush_paragraph(para, result)
                        if part.strip():
                            para.append(md.Text(normalize_whitespace(part)))
                        elif part and para:
                            para.append(md.Text(" "))
                case _:
                    para.extend(self.convert_inline_nodes((node,)))
            i += 1

        _flush_paragraph(para, result)
        return result

    def convert_inline_nodes(self, nodes: Sequence[RdNode]) -> list[md.MdNode]:
        result: list[md.MdNode] = []
        for node in nodes:
            inline = self.convert_inline(node)
            if isinstance(inline, md.Paragraph):
                result.extend(inline.children)
            elif inline is not None:
                result.append(inline)
        return result

    def convert_inline(self, node: RdNode) -> md.MdNode | None:
        """Convert one inline node; None for nodes with no inline form."""
        match node:
            case Text(value=value):
                return md.Text(normalize_whitespace(value))
            case Code(children=children):
                if len(children) == 1 and isinstance(children[0], Link):
                    return self.convert_inline(children[0])
                return md.InlineCode(extract_text(children))
            case Verb(value=value) | Verbatim(value=value):
                return md.InlineCode(value)
            case Emph(children=children) | Dfn(children=children):
                return md.Emphasis(tuple(self.convert_inline_nodes(children)))
            case Strong(children=children):
                return md.Strong(tuple(self.convert_inline_nodes(children)))
            case Href(url=url, text=text):
                return md.Link(url, tuple(self.convert_inline_nodes(text)))
            case Link(package=package, topic=topic, text=text):
                display = extract_text(text) if text is not None else None
                return self._link(package, topic, display)
            case LinkS4Class(package=package, classname=classname):
                return self._link(package, f"{classname}-class", None)
            case Url(value=value):
                return md.Link(value, (md.Text(value),))
            case Doi(value=value):
                return md.Link(f"https://doi.org/{value}", (md.Text(f"doi:{value}"),))
            case Email(value=value):
                return md.Link(f"mailto:{value}", (md.Text(value),))
            case Pkg(value=value):
                return md.Strong((md.Text(value),))
            case Var(value=value):
                return md.Emphasis((md.Text(value),))
            case File(children=children) | Samp(children=children) | Kbd(children=children):
                return md.InlineCode(extract_text(children))
            case Option(value=value) | Command(value=value) | Env(value=value):
                return md.InlineCode(value)
            case Acronym(value=value) | Abbr(value=value) | Cite(value=value):
                return md.Text(value)
            case SQuote(children=children):
                return md.Text(f"'{extract_text(children)}'")
            case DQuote(children=children):
                return md.Text(f'"{extract_text(children)}"')
            case Eqn(latex=latex):
                return md.InlineMath(latex)
            case Special(char=ch):
                return md.Text(special_char_text(ch))
            case LineBreak():
                return md.Break()
            case If(format=fmt, content=content):
                if fmt not in INCLUDED_FORMATS:
                    return None
                return _single_or_paragraph(self.convert_inline_nodes(content))
            case IfElse(format=fmt, then=then, otherwise=otherwise):
                branch = then if fmt in INCLUDED_FORMATS else otherwise
                return _single_or_paragraph(self.convert_inline_nodes(branch))
            case Out(value=value):
                return md.Html(value)
            case Figure(file=file, options=options):
                return md.Image(file, _figure_alt(file, options))
            case Method(generic=generic) | S3Method(generic=generic) | S4Method(generic=generic):
                return md.Text(f"{generic}()")
            case DontDiff(children=children):
                return md.InlineCode(extract_text(children))
        # Sexpr, Tab and unknown macros have no output
        return None

    def _link(self, package: str | None, topic: str, display: str | None) -> md.MdNode:
        """Resolve a cross reference to a link, or inline code if unresolvable."""
        opts = self._options
        if package is not None:
            label = display if display is not None else f"{package}::{topic}"
            base = (opts.external_package_urls or {}).get(package)
            if base is None:
                return md.InlineCode(label)
            return md.Link(f"{base.rstrip('/')}/{topic}.html", (md.InlineCode(label),))

        label = display if display is not None else topic
        if opts.link_extension is None:
            return md.InlineCode(label)
        target = (opts.alias_map or {}).get(topic)
        if target is not None:
            return md.Link(f"{target}.{opts.link_extension}", (md.InlineCode(label),))
        if opts.unresolved_link_url is not None:
            url = opts.unresolved_link_url.replace("{topic}", topic)
            return md.Link(url, (md.InlineCode(label),))
        return md.InlineCode(label)

    # ------------------------------------------------------------------
    # Lists and tables
    # ------------------------------------------------------------------

    def _convert_list(self, items: Sequence[Item], *, ordered: bool) -> md.List:
        return md.List(
            ordered, tuple(md.ListItem(tuple(self.convert_content(item.content))) for item in items)
        )

    def _convert_describe(self, items: Sequence[DescribeItem]) -> md.DefinitionList:
        children: list[md.DefinitionTerm | md.DefinitionDescription] = []
        for item in items:
            children.append(md.DefinitionTerm(tuple(self.convert_inline_nodes(item.term))))
            children.append(md.DefinitionDescription(tuple(self.convert_content(item.description))))
        return md.DefinitionList(tuple(children))

    def _convert_table(
        self, alignment: str, rows: Sequence[Sequence[Sequence[RdNode]]]
    ) -> md.Table:
        align = tuple(_ALIGN.get(ch) for ch in alignment.strip())
        table_rows = tuple(
            md.TableRow(tuple(md.TableCell(tuple(self._cell_inline(cell))) for cell in row))
            for row in rows
        )
        return md.Table(align, table_rows)

    def _cell_inline(self, cell: Sequence[RdNode]) -> list[md.MdNode]:
        nodes = self.convert_inline_nodes(cell)
        # Cells are single-line; drop the padding around \tab and \cr
        if nodes and isinstance(nodes[0], md.Text):
            nodes[0] = md.Text(nodes[0].value.lstrip())
        if nodes and isinstance(nodes[-1], md.Text):
            nodes[-1] = md.Text(nodes[-1].value.rstrip())
        return [n for n in nodes if not (isinstance(n, md.Text) and not n.value)]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class _ItemRun:
    items: list[Item]
    end: int


def _labelled_run(nodes: Sequence[RdNode], start: int) -> _ItemRun:
    """Collect consecutive labelled items, skipping blank text between them."""
    items: list[Item] = []
    i = start
    end = start
    while i < len(nodes):
        node = nodes[i]
        if isinstance(node, Item) and node.label is not None:
            items.append(node)
            i += 1
            end = i
        elif isinstance(node, Text) and not node.value.strip():
            i += 1
        else:
            break
    return _ItemRun(items, end)


def _flush_paragraph(para: list[md.MdNode], result: list[md.MdNode]) -> None:
    if not para:
        return
    nodes = list(para)
    para.clear()
    if isinstance(nodes[0], md.Text):
        nodes[0] = md.Text(nodes[0].value.lstrip())
    if isinstance(nodes[-1], md.Text):
        nodes[-1] = md.Text(nodes[-1].value.rstrip())
    nodes = [n for n in nodes if not (isinstance(n, md.Text) and not n.value)]
    if nodes:
        result.append(md.Paragraph(tuple(nodes)))


def _single_or_paragraph(nodes: list[md.MdNode]) -> md.MdNode:
    if len(nodes) == 1:
        return nodes[0]
    return md.Paragraph(tuple(nodes))


def _r_block(code: str, executable: bool) -> md.Code:
    return md.Code(code, "r", "executable" if executable else None)


def _figure_alt(file: str, options: AltText | ExpertOptions | None) -> str:
    match options:
        case AltText(value=value):
            return value
        case ExpertOptions(value=value):
            for quote in ("'", '"'):
                start = value.find(f"alt={quote}")
                if start == -1:
                    continue
                rest = value[start + 5 :]
                end = rest.find(quote)
                if end != -1:
                    return rest[:end]
    return file


def document_title(doc: RdDocument) -> str | None:
    """Return the \\title text on one line, or None without a title."""
    section = doc.get_section(SectionTag.TITLE)
    if section is None:
        return None
    return " ".join(extract_text(section.content).split())


def rd_to_mdast(doc: RdDocument, options: ConverterOptions | None = None) -> md.Root:
    """Convert an Rd document to a Markdown tree."""
    return Converter(options or ConverterOptions()).convert_document(doc)
