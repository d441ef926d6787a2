"""Rd (R documentation) to Quarto Markdown converter."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from rd2qmd.convert import ConverterOptions
    from rd2qmd.writer import Frontmatter

__version__ = "0.1.0"


def rd_to_qmd(
    source: str,
    filename: str = "input.Rd",
    options: ConverterOptions | None = None,
    frontmatter: Frontmatter | None = None,
) -> str:
    """Parse Rd source and render it as Quarto Markdown."""
    from rd2qmd.convert import rd_to_mdast
    from rd2qmd.parser import parse
    from rd2qmd.writer import WriterOptions, mdast_to_qmd

    doc = parse(source, filename)
    root = rd_to_mdast(doc, options)
    quarto_code_blocks = options.quarto_code_blocks if options is not None else True
    return mdast_to_qmd(
        root, WriterOptions(frontmatter=frontmatter, quarto_code_blocks=quarto_code_blocks)
    )
