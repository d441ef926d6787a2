"""Rd lexer: converts source text into a flat token stream."""

from __future__ import annotations

from rd2qmd.tokens import ESCAPABLE, TEXT_STOP, Position, Span, Token, TokenType, is_name_char


class Lexer:
    """Tokenize Rd source text into a stream of Token objects.

    The lexer never fails: every character of the input ends up in a token,
    in a comment, or in a decoded escape.
    """

    def __init__(self, source: str, filename: str = "input.Rd") -> None:
        self._source = source
        self._filename = filename
        self._pos = 0
        self._offset = 0  # byte offset of self._pos in the UTF-8 encoding
        self._line = 1
        self._col = 1
        self._tokens: list[Token] = []

    def tokenize(self) -> list[Token]:
        """Tokenize the full source and return the token list."""
        while self._pos < len(self._source):
            self._lex_one()

        self._emit(TokenType.EOF, "", "")
        return self._tokens

    # ------------------------------------------------------------------
    # Position helpers
    # ------------------------------------------------------------------

    def _current_pos(self) -> Position:
        return Position(self._line, self._col, self._offset)

    def _peek(self, offset: int = 0) -> str:
        idx = self._pos + offset
        if idx < len(self._source):
            return self._source[idx]
        return ""

    def _advance(self) -> str:
        ch = self._source[self._pos]
        self._pos += 1
        self._offset += len(ch.encode("utf-8"))
        if ch == "\n" or (ch == "\r" and self._peek() != "\n"):
            self._line += 1
            self._col = 1
        else:
            self._col += 1
        return ch

    def _emit(self, tt: TokenType, value: str, raw: str, start: Position | None = None) -> Token:
        end = self._current_pos()
        if start is None:
            start = end
        tok = Token(tt, value, raw, Span(start, end))
        self._tokens.append(tok)
        return tok

    def _after_backslash(self) -> bool:
        return bool(self._tokens) and self._tokens[-1].type == TokenType.BACKSLASH

    # ------------------------------------------------------------------
    # Token rules
    # ------------------------------------------------------------------

    def _lex_one(self) -> None:
        ch = self._peek()

        if ch == "%":
            self._skip_comment()
            return

        if ch == "\\":
            self._lex_backslash()
            return

        if ch in "{}[]":
            start = self._current_pos()
            self._advance()
            tt = {
                "{": TokenType.LBRACE,
                "}": TokenType.RBRACE,
                "[": TokenType.LBRACKET,
                "]": TokenType.RBRACKET,
            }[ch]
            self._emit(tt, ch, ch, start)
            return

        if ch == "\n":
            start = self._current_pos()
            self._advance()
            self._emit(TokenType.NEWLINE, "\n", "\n", start)
            return

        if ch == "\r":
            start = self._current_pos()
            self._advance()
            if self._peek() == "\n":
                self._advance()
                self._emit(TokenType.NEWLINE, "\n", "\r\n", start)
            else:
                self._emit(TokenType.NEWLINE, "\n", "\r", start)
            return

        if ch in " \t":
            self._lex_ws()
            return

        self._lex_text()

    def _skip_comment(self) -> None:
        # Consume through the next line ending, inclusive
        while self._pos < len(self._source):
            ch = self._advance()
            if ch == "\n":
                return
            if ch == "\r":
                if self._peek() == "\n":
                    self._advance()
                return

    def _lex_backslash(self) -> None:
        start = self._current_pos()
        nxt = self._peek(1)
        if nxt and nxt in ESCAPABLE:
            self._advance()
            self._advance()
            self._emit(TokenType.TEXT, nxt, "\\" + nxt, start)
            return
        self._advance()
        self._emit(TokenType.BACKSLASH, "\\", "\\", start)

    def _lex_ws(self) -> None:
        start = self._current_pos()
        raw = []
        while self._pos < len(self._source) and self._peek() in " \t":
            raw.append(self._advance())
        text = "".join(raw)
        self._emit(TokenType.WS, text, text, start)

    def _lex_text(self) -> None:
        start = self._current_pos()
        chars = []
        # A macro name ends at the first non-alphanumeric character
        first = self._peek()
        name_mode = self._after_backslash() and first.isascii() and first.isalpha()
        while self._pos < len(self._source):
            ch = self._peek()
            if ch in TEXT_STOP:
                break
            if name_mode and not is_name_char(ch):
                break
            chars.append(self._advance())
        text = "".join(chars)
        self._emit(TokenType.TEXT, text, text, start)


def tokenize(source: str, filename: str = "input.Rd") -> list[Token]:
    """Convenience function: tokenize source and return the token list."""
    return Lexer(source, filename).tokenize()
