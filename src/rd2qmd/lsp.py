"""Minimal LSP server for Rd files: diagnostics only."""

from __future__ import annotations

from lsprotocol.types import (
    TEXT_DOCUMENT_DID_CHANGE,
    TEXT_DOCUMENT_DID_OPEN,
    Diagnostic,
    DiagnosticSeverity,
    DidChangeTextDocumentParams,
    DidOpenTextDocumentParams,
    Position,
    PublishDiagnosticsParams,
    Range,
    TextDocumentSyncKind,
)
from pygls.lsp.server import LanguageServer

from rd2qmd import __version__
from rd2qmd.ast import RdDocument, SectionTag
from rd2qmd.errors import ParseError
from rd2qmd.parser import parse
from rd2qmd.tokens import Span

server = LanguageServer("rd2qmd-lsp", __version__, text_document_sync_kind=TextDocumentSyncKind.Full)

_REQUIRED = ((SectionTag.NAME, "\\name"), (SectionTag.TITLE, "\\title"))


def _range(span: Span | None) -> Range:
    if span is None:
        return Range(start=Position(line=0, character=0), end=Position(line=0, character=0))
    return Range(
        start=Position(line=span.start.line - 1, character=span.start.column - 1),
        end=Position(line=span.end.line - 1, character=span.end.column - 1),
    )


def _warning(message: str, span: Span | None = None) -> Diagnostic:
    return Diagnostic(
        range=_range(span),
        message=message,
        severity=DiagnosticSeverity.Warning,
        source="rd2qmd",
    )


def check_document(doc: RdDocument) -> list[Diagnostic]:
    """Warnings for a document that parsed: unknown sections, missing \\name or \\title."""
    diagnostics: list[Diagnostic] = []
    for section in doc.sections:
        if section.tag == SectionTag.UNKNOWN:
            name = section.name or "?"
            diagnostics.append(_warning(f"unknown section \\{name}", section.span))
    for tag, macro in _REQUIRED:
        if doc.get_section(tag) is None:
            diagnostics.append(_warning(f"missing {macro} section"))
    return diagnostics


def _validate(ls: LanguageServer, uri: str) -> None:
    """Parse the document and publish diagnostics."""
    doc = ls.workspace.get_text_document(uri)
    source = doc.source
    filename = uri.rsplit("/", 1)[-1] if "/" in uri else uri
    diagnostics: list[Diagnostic] = []

    try:
        rd = parse(source, filename)
    except ParseError as exc:
        diagnostics.append(
            Diagnostic(
                range=_range(exc.span),
                message=exc.message,
                severity=DiagnosticSeverity.Error,
                source="rd2qmd",
            )
        )
    else:
        diagnostics.extend(check_document(rd))

    ls.text_document_publish_diagnostics(
        PublishDiagnosticsParams(uri=uri, diagnostics=diagnostics)
    )


@server.feature(TEXT_DOCUMENT_DID_OPEN)
def did_open(ls: LanguageServer, params: DidOpenTextDocumentParams) -> None:
    _validate(ls, params.text_document.uri)


@server.feature(TEXT_DOCUMENT_DID_CHANGE)
def did_change(ls: LanguageServer, params: DidChangeTextDocumentParams) -> None:
    _validate(ls, params.text_document.uri)


def main() -> None:
    server.start_io()
