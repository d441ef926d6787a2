"""Package driver tests: discovery, alias index, metadata and batch conversion."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from rd2qmd.convert import ArgumentsFormat
from rd2qmd.errors import DirectoryNotFound
from rd2qmd.package import (
    PackageConvertOptions,
    RdPackage,
    build_alias_index,
    convert_file,
    convert_package,
    converter_options,
    extract_metadata,
    is_internal,
    output_path_for,
)
from rd2qmd.parser import parse

FOO = "\\name{foo}\n\\title{The foo function}\n\\description{Does nothing.}\n"
BAR = "\\name{bar}\n\\alias{bar}\n\\alias{Bar}\n\\title{Bar}\n\\description{Bar.}\n"
LINKER = "\\name{a}\n\\title{A}\n\\description{See \\link{Bar} and \\link{nowhere}.}\n"
INTERNAL = "\\name{hidden}\n\\title{Hidden}\n\\keyword{internal}\n"


class TestDiscovery:
    def test_collects_rd_files_sorted(self, man_dir) -> None:
        root = man_dir({"b.Rd": BAR, "a.Rd": LINKER, "lower.rd": FOO, "README.md": "x"})
        package = RdPackage.from_directory(root)
        assert package.files == (Path("a.Rd"), Path("b.Rd"), Path("lower.rd"))

    def test_not_recursive_by_default(self, man_dir) -> None:
        root = man_dir({"a.Rd": FOO, "sub/b.Rd": BAR})
        assert RdPackage.from_directory(root).files == (Path("a.Rd"),)

    def test_recursive(self, man_dir) -> None:
        root = man_dir({"a.Rd": FOO, "sub/b.Rd": BAR})
        package = RdPackage.from_directory(root, recursive=True)
        assert package.files == (Path("a.Rd"), Path("sub/b.Rd"))

    def test_missing_directory(self, tmp_path: Path) -> None:
        with pytest.raises(DirectoryNotFound, match="directory not found"):
            RdPackage.from_directory(tmp_path / "nope")


class TestAliasIndex:
    def test_names_and_aliases(self, man_dir) -> None:
        root = man_dir({"foo.Rd": FOO, "bar.Rd": BAR})
        package = RdPackage.from_directory(root)
        assert package.alias_map == {"foo": "foo", "bar": "bar", "Bar": "bar"}

    def test_duplicate_alias_later_file_wins(self, man_dir, caplog) -> None:
        root = man_dir(
            {
                "a.Rd": "\\name{a}\\alias{shared}",
                "b.Rd": "\\name{b}\\alias{shared}",
            }
        )
        with caplog.at_level(logging.WARNING, logger="rd2qmd.package"):
            alias_map = build_alias_index(root, (Path("a.Rd"), Path("b.Rd")))
        assert alias_map["shared"] == "b"
        assert "'shared' is defined in both a.Rd and b.Rd" in caplog.text

    def test_unparseable_file_is_skipped(self, man_dir, caplog) -> None:
        root = man_dir({"bad.Rd": "\\name{bad", "foo.Rd": FOO})
        with caplog.at_level(logging.WARNING, logger="rd2qmd.package"):
            package = RdPackage.from_directory(root)
        assert package.alias_map == {"foo": "foo"}
        assert "Skipping bad.Rd" in caplog.text


class TestMetadata:
    def test_fields(self) -> None:
        source = (
            "% Please edit documentation in R/foo.R\n"
            "\\name{foo}\\alias{zeta}\\alias{alpha}\\alias{alpha}\n"
            "\\keyword{utilities}\\concept{misc}\n"
            "\\description{\\figure{lifecycle-experimental.svg}}\n"
        )
        meta = extract_metadata(parse(source), source)
        assert meta.aliases == ("alpha", "zeta")
        assert meta.keywords == ("utilities",)
        assert meta.concepts == ("misc",)
        assert meta.lifecycle == "experimental"
        assert meta.source_files == ("R/foo.R",)

    def test_is_internal(self) -> None:
        assert is_internal(parse(INTERNAL))
        assert is_internal(parse("\\keyword{datasets}\\keyword{Internal}"))
        assert not is_internal(parse(FOO))


class TestOptions:
    def test_link_extension_needs_alias_map(self, tmp_path: Path) -> None:
        options = PackageConvertOptions(tmp_path, output_extension="md")
        assert converter_options(options, None).link_extension is None
        assert converter_options(options, {}).link_extension == "md"

    def test_output_path_mirrors_input(self, tmp_path: Path) -> None:
        options = PackageConvertOptions(tmp_path / "out", output_extension="Rmd")
        assert output_path_for(Path("sub/x.Rd"), options) == tmp_path / "out" / "sub" / "x.Rmd"


class TestConvertPackage:
    def test_single_file_with_frontmatter(self, man_dir, tmp_path: Path) -> None:
        root = man_dir({"foo.Rd": FOO})
        out_dir = tmp_path / "out"
        result = convert_package(RdPackage.from_directory(root), PackageConvertOptions(out_dir))

        assert result.success_count == 1
        assert result.failed_files == ()
        assert result.output_files == (out_dir / "foo.qmd",)
        assert (out_dir / "foo.qmd").read_text(encoding="utf-8") == (
            "---\n"
            'title: "The foo function"\n'
            'pagetitle: "The foo function — foo"\n'
            "---\n"
            "\n"
            "# The foo function\n"
            "\n"
            "## Description\n"
            "\n"
            "Does nothing.\n"
        )

    def test_internal_links_resolve(self, man_dir, tmp_path: Path) -> None:
        root = man_dir({"a.Rd": LINKER, "bar.Rd": BAR})
        options = PackageConvertOptions(
            tmp_path / "out", unresolved_link_url="https://rdrr.io/r/base/{topic}.html"
        )
        convert_package(RdPackage.from_directory(root), options)

        text = (tmp_path / "out" / "a.qmd").read_text(encoding="utf-8")
        assert "See [`Bar`](bar.qmd) and [`nowhere`](https://rdrr.io/r/base/nowhere.html)." in text

    def test_options_flow_through(self, man_dir, tmp_path: Path) -> None:
        root = man_dir({"foo.Rd": FOO + "\\arguments{\\item{x}{X.}}\n"})
        options = PackageConvertOptions(
            tmp_path / "out",
            output_extension="md",
            frontmatter=False,
            quarto_code_blocks=False,
            arguments_format=ArgumentsFormat.PIPE_TABLE,
        )
        result = convert_package(RdPackage.from_directory(root), options)
        text = result.output_files[0].read_text(encoding="utf-8")
        assert result.output_files[0].name == "foo.md"
        assert text.startswith("# The foo function\n")
        assert "| `x` | X. |" in text

    def test_quarto_format_and_no_pagetitle(self, man_dir, tmp_path: Path) -> None:
        root = man_dir({"foo.Rd": FOO})
        options = PackageConvertOptions(tmp_path / "out", pagetitle=False, quarto_format="html")
        result = convert_package(RdPackage.from_directory(root), options)
        text = result.output_files[0].read_text(encoding="utf-8")
        assert "pagetitle" not in text
        assert "format: html\n" in text

    def test_failed_file_does_not_stop_others(self, man_dir, tmp_path: Path) -> None:
        root = man_dir({"bad.Rd": "\\name{bad", "foo.Rd": FOO})
        result = convert_package(
            RdPackage.from_directory(root), PackageConvertOptions(tmp_path / "out", jobs=2)
        )
        assert result.success_count == 1
        ((path, message),) = result.failed_files
        assert path == root / "bad.Rd"
        assert message.startswith("error: unexpected end of input")
        assert str(root / "bad.Rd") in message

    def test_internal_topics_skipped(self, man_dir, tmp_path: Path) -> None:
        root = man_dir({"foo.Rd": FOO, "hidden.Rd": INTERNAL})
        result = convert_package(
            RdPackage.from_directory(root), PackageConvertOptions(tmp_path / "out")
        )
        assert result.success_count == 1
        assert result.skipped_internal == (root / "hidden.Rd",)
        assert not (tmp_path / "out" / "hidden.qmd").exists()

    def test_include_internal(self, man_dir, tmp_path: Path) -> None:
        root = man_dir({"foo.Rd": FOO, "hidden.Rd": INTERNAL})
        options = PackageConvertOptions(tmp_path / "out", include_internal=True)
        result = convert_package(RdPackage.from_directory(root), options)
        assert result.success_count == 2
        assert result.skipped_internal == ()
        text = (tmp_path / "out" / "hidden.qmd").read_text(encoding="utf-8")
        assert 'keywords:\n  - "internal"' in text

    def test_recursive_output_layout(self, man_dir, tmp_path: Path) -> None:
        root = man_dir({"sub/foo.Rd": FOO})
        result = convert_package(
            RdPackage.from_directory(root, recursive=True), PackageConvertOptions(tmp_path / "out")
        )
        assert result.output_files == (tmp_path / "out" / "sub" / "foo.qmd",)

    def test_empty_package(self, man_dir, tmp_path: Path) -> None:
        root = man_dir({})
        result = convert_package(
            RdPackage.from_directory(root), PackageConvertOptions(tmp_path / "out")
        )
        assert result.success_count == 0
        assert result.output_files == ()


class TestConvertFile:
    def test_links_become_code(self, man_dir, tmp_path: Path) -> None:
        root = man_dir({"a.Rd": LINKER})
        out = convert_file(root / "a.Rd", tmp_path / "a.qmd", PackageConvertOptions(tmp_path))
        assert out == tmp_path / "a.qmd"
        assert "See `Bar` and `nowhere`." in out.read_text(encoding="utf-8")

    def test_internal_returns_none(self, man_dir, tmp_path: Path) -> None:
        root = man_dir({"hidden.Rd": INTERNAL})
        out = convert_file(root / "hidden.Rd", tmp_path / "h.qmd", PackageConvertOptions(tmp_path))
        assert out is None
        assert not (tmp_path / "h.qmd").exists()
