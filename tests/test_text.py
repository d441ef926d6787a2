"""Tests for plain-text extraction and infix usage formatting."""

import pytest

from rd2qmd import ast
from rd2qmd.ast import Text
from rd2qmd.text import (
    extract_text,
    find_matching_paren,
    format_infix_call,
    is_infix_operator,
    normalize_whitespace,
    split_arguments,
)


class TestNormalizeWhitespace:
    def test_collapses_runs(self) -> None:
        assert normalize_whitespace("a  \n b") == "a b"

    def test_keeps_single_edge_spaces(self) -> None:
        assert normalize_whitespace("  a b\n") == " a b "

    def test_all_whitespace(self) -> None:
        assert normalize_whitespace(" \n\t ") == " "

    def test_empty(self) -> None:
        assert normalize_whitespace("") == ""

    @pytest.mark.parametrize("s", ["a  b", " x\ny ", "\t", "plain"])
    def test_idempotent(self, s: str) -> None:
        once = normalize_whitespace(s)
        assert normalize_whitespace(once) == once


class TestExtractText:
    def test_nested_markup(self) -> None:
        nodes = (Text("a "), ast.Code((ast.Emph((Text("b"),)),)), Text(" c"))
        assert extract_text(nodes) == "a b c"

    def test_links(self) -> None:
        assert extract_text((ast.Link(None, "foo"),)) == "foo"
        assert extract_text((ast.Link("pkg", "foo"),)) == "pkg::foo"
        assert extract_text((ast.Link(None, "foo", (Text("shown"),)),)) == "shown"

    def test_quotes_and_specials(self) -> None:
        nodes = (ast.SQuote((Text("x"),)), Text(" "), ast.Special(ast.SpecialChar.DOTS))
        assert extract_text(nodes) == "'x' ..."

    def test_equation_prefers_ascii(self) -> None:
        assert extract_text((ast.Eqn("\\alpha", "alpha"),)) == "alpha"
        assert extract_text((ast.Eqn("x^2"),)) == "x^2"

    def test_line_break(self) -> None:
        assert extract_text((Text("a"), ast.LineBreak(), Text("b"))) == "a\nb"

    def test_dropped_nodes(self) -> None:
        assert extract_text((ast.Sexpr(None, "1"), ast.Tab())) == ""


class TestMethods:
    def test_s3_method(self) -> None:
        nodes = (ast.Method("print", "data.frame"), Text("(x, ...)"))
        assert extract_text(nodes) == "# S3 method for class 'data.frame'\nprint(x, ...)"

    def test_default_method(self) -> None:
        nodes = (ast.S3Method("summary", "default"), Text("(object)"))
        assert extract_text(nodes) == "# Default S3 method\nsummary(object)"

    def test_s4_method(self) -> None:
        nodes = (ast.S4Method("show", "Foo"), Text("(object)"))
        assert extract_text(nodes) == "# S4 method for signature 'Foo'\nshow(object)"

    def test_infix_operator(self) -> None:
        nodes = (ast.Method("+", "polars_expr"), Text("(e1, e2)"))
        assert extract_text(nodes) == "# S3 method for class 'polars_expr'\ne1 + e2"

    def test_infix_keeps_following_lines(self) -> None:
        nodes = (ast.Method("==", "foo"), Text("(x, y)\nother(z)"))
        assert extract_text(nodes) == "# S3 method for class 'foo'\nx == y\nother(z)"

    def test_extract_operator(self) -> None:
        nodes = (ast.Method("[", "tbl"), Text("(x, i, j)"))
        assert extract_text(nodes) == "# S3 method for class 'tbl'\nx[i, j]"

    def test_user_infix(self) -> None:
        nodes = (ast.Method("%+%", "gg"), Text("(e1, e2)"))
        assert extract_text(nodes).endswith("e1 %+% e2")

    def test_infix_with_wrong_arity_left_alone(self) -> None:
        nodes = (ast.Method("+", "foo"), Text("(e1)"))
        assert extract_text(nodes).endswith("+(e1)")


class TestInfixHelpers:
    def test_is_infix_operator(self) -> None:
        assert is_infix_operator("+")
        assert is_infix_operator("%in%")
        assert is_infix_operator("$")
        assert not is_infix_operator("print")
        assert not is_infix_operator("%")

    def test_find_matching_paren(self) -> None:
        assert find_matching_paren("(a(b)c)d") == 6
        assert find_matching_paren("(a") is None
        assert find_matching_paren("a)") is None

    def test_split_arguments(self) -> None:
        assert split_arguments("x, f(a, b), c = list(1, 2)") == ["x", "f(a, b)", "c = list(1, 2)"]
        assert split_arguments("") == []

    def test_format_infix_call(self) -> None:
        assert format_infix_call("$", ["x", "name"]) == "x$name"
        assert format_infix_call("[[", ["x", "i"]) == "x[[i]]"
        assert format_infix_call("^", ["x", "y"]) == "x^y"
        assert format_infix_call("-", ["a", "b"]) == "a - b"
        assert format_infix_call("$", ["x"]) is None
        assert format_infix_call("[", []) is None
