"""Shared test fixtures and helpers."""

from __future__ import annotations

from pathlib import Path

import pytest

from rd2qmd.ast import RdDocument
from rd2qmd.convert import ConverterOptions, rd_to_mdast
from rd2qmd.lexer import tokenize
from rd2qmd.parser import parse
from rd2qmd.tokens import Token, TokenType
from rd2qmd.writer import WriterOptions, mdast_to_qmd


@pytest.fixture
def lex():
    """Return a helper that tokenizes source and returns tokens (excluding EOF)."""

    def _lex(source: str) -> list[Token]:
        tokens = tokenize(source)
        # Strip trailing EOF for convenience
        return [t for t in tokens if t.type != TokenType.EOF]

    return _lex


@pytest.fixture
def parse_source():
    """Return a helper that parses source and returns an RdDocument."""

    def _parse(source: str, filename: str = "test.Rd") -> RdDocument:
        return parse(source, filename)

    return _parse


@pytest.fixture
def section_content(parse_source):
    """Return a helper that parses source and returns the first section's nodes."""

    def _content(source: str) -> tuple:
        doc = parse_source(source)
        assert doc.sections, "no sections parsed"
        return doc.sections[0].content

    return _content


@pytest.fixture
def convert_source():
    """Return a helper that converts Rd source to Quarto Markdown (no front matter)."""

    def _convert(source: str, **options) -> str:
        conv_options = ConverterOptions(**options)
        root = rd_to_mdast(parse(source, "test.Rd"), conv_options)
        return mdast_to_qmd(
            root, WriterOptions(quarto_code_blocks=conv_options.quarto_code_blocks)
        )

    return _convert


@pytest.fixture
def man_dir(tmp_path: Path):
    """Return a helper that writes Rd files into a fresh man/ directory."""
    root = tmp_path / "man"
    root.mkdir()

    def _write(files: dict[str, str]) -> Path:
        for name, source in files.items():
            path = root / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(source, encoding="utf-8")
        return root

    return _write
