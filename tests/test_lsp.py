"""Tests for the LSP server: diagnostic generation."""

from __future__ import annotations

import pytest
from lsprotocol.types import (
    DiagnosticSeverity,
    PublishDiagnosticsParams,
    TextDocumentItem,
    TextDocumentSyncKind,
)
from pygls.lsp.server import LanguageServer
from pygls.workspace import Workspace

from rd2qmd.lsp import _validate, check_document
from rd2qmd.parser import parse

URI = "file:///pkg/man/foo.Rd"


@pytest.fixture
def lsp_env():
    """Create a LanguageServer with an initialized workspace and captured diagnostics."""
    ls = LanguageServer("test", "v0", text_document_sync_kind=TextDocumentSyncKind.Full)
    ws = Workspace(None)
    ls.protocol._workspace = ws

    published: list[PublishDiagnosticsParams] = []
    ls.text_document_publish_diagnostics = lambda params: published.append(params)

    def put(source: str, uri: str = URI) -> None:
        ws.put_text_document(TextDocumentItem(uri=uri, language_id="rd", version=0, text=source))

    return ls, published, put


# ---------------------------------------------------------------------------
# Parse errors -> Error severity
# ---------------------------------------------------------------------------


class TestParseErrors:
    def test_unclosed_brace(self, lsp_env) -> None:
        ls, published, put = lsp_env
        put("\\name{foo}\n\\title{Foo")
        _validate(ls, URI)

        assert len(published) == 1
        assert published[0].uri == URI
        (d,) = published[0].diagnostics
        assert d.severity == DiagnosticSeverity.Error
        assert d.source == "rd2qmd"
        assert d.message.startswith("unexpected end of input")
        assert d.range.start.line == 1

    def test_missing_argument_position(self, lsp_env) -> None:
        ls, published, put = lsp_env
        put("\\description{\\href{u}x}")
        _validate(ls, URI)

        (d,) = published[0].diagnostics
        assert d.message == "expected '{', found text 'x'"
        # 'x' is at column 22 (1-based) -> character 21 (0-based)
        assert d.range.start.line == 0
        assert d.range.start.character == 21


# ---------------------------------------------------------------------------
# Document checks -> Warning severity
# ---------------------------------------------------------------------------


class TestWarnings:
    def test_clean_document(self, lsp_env) -> None:
        ls, published, put = lsp_env
        put("\\name{foo}\n\\title{Foo}\n\\description{Bar.}\n")
        _validate(ls, URI)
        assert published[0].diagnostics == []

    def test_unknown_section(self, lsp_env) -> None:
        ls, published, put = lsp_env
        put("\\name{foo}\n\\title{Foo}\n\\frobnicate{x}\n")
        _validate(ls, URI)

        (d,) = published[0].diagnostics
        assert d.severity == DiagnosticSeverity.Warning
        assert d.message == "unknown section \\frobnicate"
        assert d.range.start.line == 2
        assert d.range.start.character == 0

    def test_missing_name_and_title(self) -> None:
        messages = [d.message for d in check_document(parse("\\description{x}"))]
        assert messages == ["missing \\name section", "missing \\title section"]

    def test_revalidation_replaces_diagnostics(self, lsp_env) -> None:
        ls, published, put = lsp_env
        put("\\name{foo")
        _validate(ls, URI)
        put("\\name{foo}\\title{T}")
        _validate(ls, URI)

        assert len(published) == 2
        assert published[0].diagnostics[0].severity == DiagnosticSeverity.Error
        assert published[1].diagnostics == []
