"""--debug AST dump to stderr."""

from __future__ import annotations

import dataclasses
import sys
from typing import TextIO

from rd2qmd.ast import RdDocument, RdNode, RdSection, SpecialChar, Text, child_groups


def dump_ast(doc: RdDocument, *, file: TextIO = sys.stderr) -> None:
    """Print a human-readable Rd tree to *file*."""
    file.write("RdDocument\n")
    for section in doc.sections:
        _dump_section(section, 1, file)


def _indent(depth: int) -> str:
    return "  " * depth


def _dump_section(section: RdSection, depth: int, f: TextIO) -> None:
    label = f" {section.name!r}" if section.name else ""
    f.write(f"{_indent(depth)}Section {section.tag.value}{label}\n")
    _dump_nodes(section.content, depth + 1, f)


def _dump_nodes(nodes: tuple[RdNode, ...], depth: int, f: TextIO) -> None:
    for node in nodes:
        _dump_node(node, depth, f)


def _dump_node(node: RdNode, depth: int, f: TextIO) -> None:
    if isinstance(node, Text):
        f.write(f"{_indent(depth)}Text {node.value!r}\n")
        return

    # Scalar fields go on the node's line, nested sequences below it
    attrs = []
    for fld in dataclasses.fields(node):
        value = getattr(node, fld.name)
        if isinstance(value, (str, int)) or value is None:
            if value is not None:
                attrs.append(f"{fld.name}={value!r}")
        elif isinstance(value, SpecialChar):
            attrs.append(f"{fld.name}={value.value!r}")
    suffix = " " + " ".join(attrs) if attrs else ""
    f.write(f"{_indent(depth)}{type(node).__name__}{suffix}\n")

    for group in child_groups(node):
        _dump_nodes(group, depth + 1, f)
