"""Markdown writer tests."""

from __future__ import annotations

from rd2qmd import mdast as md
from rd2qmd.writer import (
    Frontmatter,
    RdMetadata,
    WriterOptions,
    escape_yaml_string,
    fence_length,
    mdast_to_qmd,
    write_fragment,
)


def render(*blocks: md.MdNode, **options) -> str:
    return mdast_to_qmd(md.Root(tuple(blocks)), WriterOptions(**options))


class TestBlocks:
    def test_blank_line_between_blocks(self) -> None:
        out = render(md.Heading(2, (md.Text("H"),)), md.Paragraph((md.Text("p"),)))
        assert out == "## H\n\np\n"

    def test_empty_root(self) -> None:
        assert render() == ""

    def test_ordered_list_start(self) -> None:
        items = tuple(md.ListItem((md.Paragraph((md.Text(t),)),)) for t in "ab")
        assert render(md.List(True, items, start=3)) == "3. a\n4. b\n"

    def test_list_item_with_code(self) -> None:
        item = md.ListItem((md.Paragraph((md.Text("a"),)), md.Code("x", "r")))
        assert render(md.List(False, (item,))) == "- a\n  ```r\n  x\n  ```\n"

    def test_math_block(self) -> None:
        assert render(md.Math("x")) == "$$\nx\n$$\n"

    def test_table_pads_short_rows(self) -> None:
        table = md.Table(
            (md.Align.CENTER,),
            (
                md.TableRow((md.TableCell((md.Text("a"),)), md.TableCell((md.Text("b"),)))),
                md.TableRow((md.TableCell((md.Text("c"),)),)),
            ),
        )
        assert render(table) == "| a | b |\n|:--:|----|\n| c | |\n"

    def test_table_cell_escapes_pipe(self) -> None:
        table = md.Table((None,), (md.TableRow((md.TableCell((md.Text("a|b"),)),)),))
        assert render(table).startswith("| a\\|b |\n")

    def test_definition_list_with_block(self) -> None:
        dl = md.DefinitionList(
            (
                md.DefinitionTerm((md.Text("t"),)),
                md.DefinitionDescription(
                    (md.Paragraph((md.Text("intro"),)), md.Code("x <- 1", "r"))
                ),
            )
        )
        out = render(dl)
        assert out.startswith("t\n:   intro\n\n")
        assert "    ```r\n    x <- 1\n    ```\n" in out

    def test_nested_definition_list_is_indented(self) -> None:
        inner = md.DefinitionList(
            (
                md.DefinitionTerm((md.Text("one"),)),
                md.DefinitionDescription((md.Paragraph((md.Text("1"),)),)),
            )
        )
        dl = md.DefinitionList(
            (
                md.DefinitionTerm((md.Text("a"),)),
                md.DefinitionDescription((inner,)),
                md.DefinitionTerm((md.Text("b"),)),
                md.DefinitionDescription((md.Paragraph((md.Text("two"),)),)),
            )
        )
        out = render(dl)
        assert out.startswith("a\n:   one\n    :   1\n")
        assert "\nb\n:   two\n" in out

    def test_math_in_definition(self) -> None:
        dl = md.DefinitionList(
            (md.DefinitionTerm((md.Text("t"),)), md.DefinitionDescription((md.Math("x"),)))
        )
        assert render(dl).startswith("t\n:   $$\n    x\n    $$\n")


class TestCode:
    def test_fence_length(self) -> None:
        assert fence_length("plain") == 3
        assert fence_length("a ``` b") == 4
        assert fence_length("````") == 5

    def test_fence_grows_with_content(self) -> None:
        out = render(md.Code("```\nx\n```"))
        assert out.startswith("````\n")
        assert out.endswith("\n````\n")

    def test_executable_r_chunk(self) -> None:
        assert render(md.Code("f()", "r", "executable")) == "```{r}\nf()\n```\n"

    def test_executable_without_quarto(self) -> None:
        out = render(md.Code("f()", "r", "executable"), quarto_code_blocks=False)
        assert out == "```r\nf()\n```\n"

    def test_other_language(self) -> None:
        assert render(md.Code("ls", "sh")) == "```sh\nls\n```\n"


class TestInline:
    def test_marks(self) -> None:
        para = md.Paragraph(
            (
                md.Emphasis((md.Text("e"),)),
                md.Text(" "),
                md.Strong((md.Text("s"),)),
                md.Text(" "),
                md.InlineMath("x"),
            )
        )
        assert render(para) == "*e* **s** $x$\n"

    def test_adjacent_inline_code(self) -> None:
        para = md.Paragraph((md.InlineCode("a"), md.InlineCode("b")))
        assert render(para) == "`a` `b`\n"

    def test_link_and_image_titles(self) -> None:
        para = md.Paragraph(
            (md.Link("u", (md.Text("t"),), "T"), md.Image("i.png", "alt", "I"))
        )
        assert render(para) == '[t](u "T")![alt](i.png "I")\n'

    def test_break(self) -> None:
        para = md.Paragraph((md.Text("a"), md.Break(), md.Text("b")))
        assert render(para) == "a  \nb\n"


class TestFrontmatter:
    def test_full(self) -> None:
        fm = Frontmatter(
            title='Say "hi"',
            pagetitle="Say hi — foo",
            format="html",
            metadata=RdMetadata(
                lifecycle="stable",
                aliases=("foo", "foo2"),
                keywords=("internal",),
                source_files=("R/foo.R",),
            ),
        )
        out = render(md.Paragraph((md.Text("body"),)), frontmatter=fm)
        assert out == (
            "---\n"
            'title: "Say \\"hi\\""\n'
            'pagetitle: "Say hi — foo"\n'
            "format: html\n"
            "lifecycle: stable\n"
            "aliases:\n"
            '  - "foo"\n'
            '  - "foo2"\n'
            "keywords:\n"
            '  - "internal"\n'
            "source-files:\n"
            '  - "R/foo.R"\n'
            "---\n"
            "\n"
            "body\n"
        )

    def test_empty_frontmatter_omitted(self) -> None:
        fm = Frontmatter(metadata=RdMetadata())
        assert fm.is_empty()
        assert render(md.Paragraph((md.Text("x"),)), frontmatter=fm) == "x\n"

    def test_escape_yaml_string(self) -> None:
        assert escape_yaml_string('a\\b"c') == 'a\\\\b\\"c'


def test_write_fragment_without_frontmatter() -> None:
    out = write_fragment([md.Paragraph((md.InlineCode("x"),))])
    assert out == "`x`\n"
