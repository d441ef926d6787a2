"""Rd parser: converts a token stream into an Rd document tree."""

from __future__ import annotations

from rd2qmd import ast
from rd2qmd.ast import RdDocument, RdNode, RdSection, SectionTag, Text
from rd2qmd.errors import ParseError, UnexpectedEof, UnexpectedToken
from rd2qmd.lexer import tokenize
from rd2qmd.macros import ArgShape, MacroDef, lookup, resolve_name
from rd2qmd.text import extract_text
from rd2qmd.tokens import Span, Token, TokenType

# Sections whose body is R code; nested braces stay in the text
_R_LIKE_SECTIONS = frozenset({SectionTag.USAGE, SectionTag.EXAMPLES})
_R_LIKE_MACROS = frozenset({"code", "dontrun", "donttest", "dontshow", "dontdiff"})

_SPECIALS: dict[str, ast.SpecialChar] = {
    "R": ast.SpecialChar.R,
    "dots": ast.SpecialChar.DOTS,
}

_TOKEN_NAMES: dict[TokenType, str] = {
    TokenType.BACKSLASH: "'\\'",
    TokenType.LBRACE: "'{'",
    TokenType.RBRACE: "'}'",
    TokenType.LBRACKET: "'['",
    TokenType.RBRACKET: "']'",
    TokenType.WS: "whitespace",
    TokenType.NEWLINE: "newline",
    TokenType.EOF: "end of input",
}


class Parser:
    """Recursive descent parser for Rd token streams.

    Index-based so that list bodies can look ahead for ``\\item`` and
    restore the position when the lookahead fails.
    """

    def __init__(self, tokens: list[Token], source: str, filename: str) -> None:
        self._tokens = tokens
        self._source = source
        self._filename = filename
        self._pos = 0
        self._r_like = 0

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def _peek(self, offset: int = 0) -> Token:
        idx = self._pos + offset
        if idx < len(self._tokens):
            return self._tokens[idx]
        return self._tokens[-1]  # EOF

    def _at(self, *types: TokenType) -> bool:
        return self._peek().type in types

    def _at_eof(self) -> bool:
        return self._peek().type == TokenType.EOF

    def _at_item(self) -> bool:
        """Check for a ``\\item`` macro at the current position."""
        nxt = self._peek(1)
        return self._at(TokenType.BACKSLASH) and nxt.type == TokenType.TEXT and nxt.value == "item"

    def _advance(self) -> Token:
        tok = self._tokens[self._pos]
        if tok.type != TokenType.EOF:
            self._pos += 1
        return tok

    def _expect(self, tt: TokenType) -> Token:
        tok = self._peek()
        if tok.type != tt:
            raise self._error(_TOKEN_NAMES[tt], tok)
        return self._advance()

    def _skip_ws(self) -> None:
        while self._at(TokenType.WS):
            self._advance()

    def _skip_ws_nl(self) -> None:
        while self._at(TokenType.WS, TokenType.NEWLINE):
            self._advance()

    def _skip_ws_to(self, tt: TokenType) -> bool:
        """Skip whitespace only when a ``tt`` token follows it."""
        saved_pos = self._pos
        self._skip_ws()
        if self._at(tt):
            return True
        self._pos = saved_pos
        return False

    def _error(self, expected: str, tok: Token) -> ParseError:
        if tok.type == TokenType.EOF:
            return UnexpectedEof(expected, tok.span, self._source)
        return UnexpectedToken(expected, _describe(tok), tok.span, self._source)

    # ------------------------------------------------------------------
    # Document level
    # ------------------------------------------------------------------

    def parse(self) -> RdDocument:
        sections: list[RdSection] = []

        self._skip_ws_nl()
        while not self._at_eof():
            if self._at(TokenType.BACKSLASH):
                sections.append(self._parse_section())
            else:
                # Stray top-level text is ignored
                self._advance()
            self._skip_ws_nl()

        return RdDocument(tuple(sections))

    def _parse_section(self) -> RdSection:
        start = self._expect(TokenType.BACKSLASH).span.start
        name = self._advance().value if self._at(TokenType.TEXT) else ""

        if name == "section":
            self._skip_ws()
            title = self._parse_braced()
            self._skip_ws_nl()
            content = self._parse_braced()
            end = self._tokens[self._pos - 1].span.end
            return RdSection(
                SectionTag.SECTION, content, _title_text(title), Span(start, end)
            )

        tag = SectionTag.parse(name)
        self._skip_ws()
        if not self._at(TokenType.LBRACE):
            content: tuple[RdNode, ...] = ()
        elif tag in _R_LIKE_SECTIONS:
            self._r_like += 1
            try:
                content = self._parse_braced()
            finally:
                self._r_like -= 1
        else:
            content = self._parse_braced()

        end = self._tokens[self._pos - 1].span.end
        label = name if tag == SectionTag.UNKNOWN else ""
        return RdSection(tag, content, label, Span(start, end))

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    def _parse_braced(self) -> tuple[RdNode, ...]:
        self._expect(TokenType.LBRACE)
        content = self._parse_content()
        self._expect(TokenType.RBRACE)
        return content

    def _parse_content(self, *, stop_at_item: bool = False) -> tuple[RdNode, ...]:
        """Parse nodes up to the closing brace at this level (not consumed).

        With ``stop_at_item`` the content also ends before the next
        ``\\item``, which is how bare list items are delimited.
        """
        nodes: list[RdNode] = []
        buf: list[str] = []

        while not self._at(TokenType.RBRACE, TokenType.EOF):
            if stop_at_item and self._at_item():
                break
            tok = self._peek()
            match tok.type:
                case TokenType.BACKSLASH:
                    _flush(buf, nodes)
                    node = self._parse_macro()
                    if node is not None:
                        nodes.append(node)
                case TokenType.LBRACE:
                    _flush(buf, nodes)
                    self._advance()
                    inner = self._parse_content()
                    self._expect(TokenType.RBRACE)
                    if self._r_like:
                        nodes.append(Text("{"))
                        nodes.extend(inner)
                        nodes.append(Text("}"))
                    else:
                        nodes.extend(inner)
                case _:
                    # Text, whitespace, newlines and stray brackets are literal
                    buf.append(self._advance().value)

        _flush(buf, nodes)
        return tuple(_coalesce_text(nodes))

    def _parse_text(self) -> str:
        """Read raw text up to the closing brace, keeping nested braces."""
        parts: list[str] = []
        depth = 0
        while not self._at_eof():
            tok = self._peek()
            if tok.type == TokenType.RBRACE:
                if depth == 0:
                    break
                depth -= 1
            elif tok.type == TokenType.LBRACE:
                depth += 1
            parts.append(self._advance().value)
        return "".join(parts)

    def _parse_text_arg(self) -> str:
        self._skip_ws()
        self._expect(TokenType.LBRACE)
        text = self._parse_text()
        self._expect(TokenType.RBRACE)
        return text

    def _parse_bracket_arg(self) -> str:
        self._expect(TokenType.LBRACKET)
        parts: list[str] = []
        while not self._at(TokenType.RBRACKET, TokenType.EOF):
            tok = self._advance()
            if tok.type in (TokenType.TEXT, TokenType.WS, TokenType.BACKSLASH):
                parts.append(tok.value)
        self._expect(TokenType.RBRACKET)
        return "".join(parts)

    # ------------------------------------------------------------------
    # Macros
    # ------------------------------------------------------------------

    def _parse_macro(self) -> RdNode | None:
        self._expect(TokenType.BACKSLASH)
        raw_name = self._advance().value if self._at(TokenType.TEXT) else ""
        name = resolve_name(raw_name)
        macro = lookup(name)

        if macro is not None and macro.shape == ArgShape.SPECIAL:
            if name in _SPECIALS:
                return ast.Special(_SPECIALS[name])
            return macro.node()

        opt = self._parse_bracket_arg() if self._skip_ws_to(TokenType.LBRACKET) else None

        if macro is None:
            return self._parse_generic(raw_name)
        return self._dispatch(macro, opt)

    def _dispatch(self, macro: MacroDef, opt: str | None) -> RdNode | None:
        node = macro.node
        match macro.shape:
            case ArgShape.CHILDREN:
                self._skip_ws()
                if macro.name in _R_LIKE_MACROS:
                    self._r_like += 1
                    try:
                        return node(self._parse_braced())
                    finally:
                        self._r_like -= 1
                return node(self._parse_braced())
            case ArgShape.STRING | ArgShape.PREFORMATTED:
                return node(self._parse_text_arg())
            case ArgShape.LIST:
                return node(self._parse_list())
            case ArgShape.DESCRIBE:
                return self._parse_describe()
            case ArgShape.TABULAR:
                return self._parse_tabular()
            case ArgShape.HEADED:
                self._skip_ws()
                title = self._parse_braced()
                self._skip_ws_nl()
                return node(title, self._parse_braced())
            case ArgShape.ITEM:
                return self._parse_item()
            case ArgShape.HREF:
                url = self._parse_text_arg()
                self._skip_ws()
                return ast.Href(url, self._parse_braced())
            case ArgShape.LINK:
                return self._parse_link(opt)
            case ArgShape.LINK_S4_CLASS:
                return ast.LinkS4Class(opt, self._parse_text_arg())
            case ArgShape.SEXPR:
                return ast.Sexpr(opt, self._parse_text_arg())
            case ArgShape.MATH:
                latex = self._parse_text_arg()
                ascii_text = None
                if self._skip_ws_to(TokenType.LBRACE):
                    ascii_text = self._parse_text_arg()
                return node(latex, ascii_text)
            case ArgShape.IF:
                fmt = self._parse_text_arg()
                self._skip_ws()
                return ast.If(fmt, self._parse_braced())
            case ArgShape.IFELSE:
                fmt = self._parse_text_arg()
                self._skip_ws()
                then = self._parse_braced()
                self._skip_ws()
                return ast.IfElse(fmt, then, self._parse_braced())
            case ArgShape.METHOD:
                generic = self._parse_text_arg()
                self._skip_ws()
                return node(generic, self._parse_text_arg())
            case ArgShape.FIGURE:
                return self._parse_figure(opt)
        return None

    def _parse_generic(self, name: str) -> ast.Macro:
        args: list[tuple[RdNode, ...]] = []
        while self._skip_ws_to(TokenType.LBRACE):
            args.append(self._parse_braced())
        return ast.Macro(name, tuple(args))

    def _parse_link(self, opt: str | None) -> ast.Link:
        self._skip_ws()
        content = self._parse_braced()

        if opt is None:
            return ast.Link(None, _first_text(content))
        if opt.startswith("="):
            return ast.Link(None, opt[1:], content)
        if ":" in opt:
            pkg, topic = opt.split(":", 1)
            return ast.Link(pkg, topic, content)
        return ast.Link(opt, _first_text(content))

    def _parse_figure(self, opt: str | None) -> ast.Figure:
        file = self._parse_text_arg()
        raw = self._parse_text_arg() if self._skip_ws_to(TokenType.LBRACE) else opt
        if raw is None:
            return ast.Figure(file)
        return ast.Figure(file, parse_figure_options(raw))

    # ------------------------------------------------------------------
    # Lists and tables
    # ------------------------------------------------------------------

    def _parse_list(self) -> tuple[ast.Item, ...]:
        self._skip_ws()
        self._expect(TokenType.LBRACE)
        items: list[ast.Item] = []
        self._skip_ws_nl()

        while not self._at(TokenType.RBRACE, TokenType.EOF):
            if self._at_item():
                self._advance()
                self._advance()
                items.append(self._parse_item())
                continue
            # Anything before the first \item is dropped
            self._parse_content(stop_at_item=True)

        self._expect(TokenType.RBRACE)
        return tuple(items)

    def _parse_item(self) -> ast.Item:
        self._skip_ws()
        label = self._parse_braced() if self._at(TokenType.LBRACE) else None

        self._skip_ws()
        if label is not None and self._at(TokenType.LBRACE):
            return ast.Item(label, self._parse_braced())

        return ast.Item(label, self._parse_content(stop_at_item=True))

    def _parse_describe(self) -> ast.Describe:
        self._skip_ws()
        self._expect(TokenType.LBRACE)
        items: list[ast.DescribeItem] = []
        self._skip_ws_nl()

        while not self._at(TokenType.RBRACE, TokenType.EOF):
            if self._at_item():
                self._advance()
                self._advance()
                self._skip_ws()
                term = self._parse_braced()
                self._skip_ws_nl()
                description = self._parse_braced()
                items.append(ast.DescribeItem(term, description))
                self._skip_ws_nl()
                continue
            self._parse_content(stop_at_item=True)

        self._expect(TokenType.RBRACE)
        return ast.Describe(tuple(items))

    def _parse_tabular(self) -> ast.Tabular:
        alignment = self._parse_text_arg()
        self._skip_ws_nl()
        self._expect(TokenType.LBRACE)

        rows: list[tuple[tuple[RdNode, ...], ...]] = []
        row: list[tuple[RdNode, ...]] = []
        cell: list[RdNode] = []
        buf: list[str] = []

        while not self._at(TokenType.RBRACE, TokenType.EOF):
            tok = self._peek()
            nxt = self._peek(1)
            if tok.type == TokenType.BACKSLASH and nxt.type == TokenType.TEXT and nxt.value in ("tab", "cr"):
                self._advance()
                self._advance()
                _flush(buf, cell)
                row.append(tuple(_coalesce_text(cell)))
                cell = []
                if nxt.value == "cr":
                    rows.append(tuple(row))
                    row = []
            elif tok.type == TokenType.BACKSLASH:
                _flush(buf, cell)
                node = self._parse_macro()
                if node is not None:
                    cell.append(node)
            elif tok.type == TokenType.LBRACE:
                _flush(buf, cell)
                self._advance()
                cell.extend(self._parse_content())
                self._expect(TokenType.RBRACE)
            else:
                buf.append(self._advance().value)

        _flush(buf, cell)
        # A trailing run of whitespace after the last \cr is not a row
        if cell and not _is_blank(cell):
            row.append(tuple(_coalesce_text(cell)))
        if row:
            rows.append(tuple(row))

        self._expect(TokenType.RBRACE)
        return ast.Tabular(alignment, tuple(rows))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def parse_figure_options(raw: str) -> ast.AltText | ast.ExpertOptions:
    """Classify a figure's option string.

    ``options:`` followed by at least one whitespace character is the
    expert form; anything else is alternate text.
    """
    if raw.startswith("options:"):
        rest = raw[len("options:") :]
        if rest[:1].isspace():
            return ast.ExpertOptions(rest.lstrip())
    return ast.AltText(raw)


def _describe(tok: Token) -> str:
    if tok.type == TokenType.TEXT:
        return f"text {tok.value!r}"
    return _TOKEN_NAMES[tok.type]


def _flush(buf: list[str], nodes: list[RdNode]) -> None:
    if buf:
        nodes.append(Text("".join(buf)))
        buf.clear()


def _is_blank(nodes: list[RdNode]) -> bool:
    return all(isinstance(n, Text) and not n.value.strip() for n in nodes)


def _first_text(nodes: tuple[RdNode, ...]) -> str:
    if nodes and isinstance(nodes[0], Text):
        return nodes[0].value
    return ""


def _title_text(nodes: tuple[RdNode, ...]) -> str:
    return extract_text(nodes).strip()


def _coalesce_text(nodes: list[RdNode]) -> list[RdNode]:
    """Coalesce adjacent Text nodes into single nodes."""
    result: list[RdNode] = []
    for node in nodes:
        if isinstance(node, Text) and result and isinstance(result[-1], Text):
            result[-1] = Text(result[-1].value + node.value)
        else:
            result.append(node)
    return result


def parse(source: str, filename: str = "input.Rd") -> RdDocument:
    """Convenience function: parse source text and return an RdDocument."""
    tokens = tokenize(source, filename)
    return Parser(tokens, source, filename).parse()
