"""Package driver: alias index, metadata, and parallel conversion of a man/ directory."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path

from rd2qmd.ast import RdDocument, RdNode, SectionTag
from rd2qmd.convert import ArgumentsFormat, ConverterOptions, document_title, rd_to_mdast
from rd2qmd.errors import DirectoryNotFound, ParseError
from rd2qmd.lifecycle import find_lifecycle
from rd2qmd.parser import parse
from rd2qmd.roxygen import parse_roxygen_comments
from rd2qmd.text import extract_text
from rd2qmd.writer import Frontmatter, RdMetadata, WriterOptions, mdast_to_qmd

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RdPackage:
    """The Rd files of one package and the alias index built over them.

    ``files`` holds paths relative to ``root``; ``alias_map`` maps every
    ``\\alias`` and ``\\name`` to the stem of the file that defines it.
    """

    root: Path
    files: tuple[Path, ...] = ()
    alias_map: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_directory(cls, path: Path, recursive: bool = False) -> RdPackage:
        root = Path(path)
        if not root.is_dir():
            raise DirectoryNotFound(root)
        files = tuple(p.relative_to(root) for p in _collect_rd_files(root, recursive))
        return cls(root, files, build_alias_index(root, files))

    def read(self, relative: Path) -> str:
        return (self.root / relative).read_text(encoding="utf-8")


def _collect_rd_files(root: Path, recursive: bool) -> list[Path]:
    candidates = root.rglob("*") if recursive else root.iterdir()
    return sorted(p for p in candidates if p.is_file() and p.suffix.lower() == ".rd")


def build_alias_index(root: Path, files: tuple[Path, ...]) -> dict[str, str]:
    """Map aliases and names to file stems.

    Files are visited in sorted order, so when two files claim the same
    alias the later one wins. Files that cannot be read or parsed are left
    out; their failure is reported again when they are converted.
    """
    alias_map: dict[str, str] = {}
    owners: dict[str, Path] = {}
    for relative in files:
        try:
            doc = parse((root / relative).read_text(encoding="utf-8"), str(relative))
        except (ParseError, OSError, ValueError) as e:
            logger.warning("Skipping %s in alias index: %s", relative, _first_line(e))
            continue

        stem = relative.stem
        for alias in _topic_names(doc):
            previous = owners.get(alias)
            if previous is not None and previous.stem != stem:
                logger.warning(
                    "Alias %r is defined in both %s and %s; using %s",
                    alias,
                    previous,
                    relative,
                    relative,
                )
            alias_map[alias] = stem
            owners[alias] = relative
    return alias_map


def _topic_names(doc: RdDocument) -> list[str]:
    names = [_section_text(s.content) for s in doc.get_sections(SectionTag.ALIAS)]
    name = doc.get_section(SectionTag.NAME)
    if name is not None:
        names.append(_section_text(name.content))
    return [n for n in names if n]


def _section_text(content: Sequence[RdNode]) -> str:
    return extract_text(content).strip()


# ---------------------------------------------------------------------------
# Metadata
# ---------------------------------------------------------------------------


def extract_metadata(doc: RdDocument, source: str) -> RdMetadata:
    """Collect front matter metadata: lifecycle, aliases, keywords, concepts, sources."""
    lifecycle = find_lifecycle(doc)
    return RdMetadata(
        lifecycle=lifecycle.value if lifecycle is not None else None,
        aliases=_sorted_texts(doc, SectionTag.ALIAS),
        keywords=_sorted_texts(doc, SectionTag.KEYWORD),
        concepts=_sorted_texts(doc, SectionTag.CONCEPT),
        source_files=parse_roxygen_comments(source).source_files,
    )


def _sorted_texts(doc: RdDocument, tag: SectionTag) -> tuple[str, ...]:
    values = {_section_text(s.content) for s in doc.get_sections(tag)}
    values.discard("")
    return tuple(sorted(values))


def document_name(doc: RdDocument) -> str | None:
    section = doc.get_section(SectionTag.NAME)
    if section is None:
        return None
    return _section_text(section.content) or None


def is_internal(doc: RdDocument) -> bool:
    """True when any \\keyword is ``internal`` (case-insensitive)."""
    return any(
        _section_text(s.content).lower() == "internal" for s in doc.get_sections(SectionTag.KEYWORD)
    )


# ---------------------------------------------------------------------------
# Conversion
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PackageConvertOptions:
    output_dir: Path
    output_extension: str = "qmd"
    frontmatter: bool = True
    pagetitle: bool = True
    quarto_format: str | None = None
    quarto_code_blocks: bool = True
    jobs: int | None = None
    unresolved_link_url: str | None = None
    external_package_urls: Mapping[str, str] | None = None
    exec_dontrun: bool = False
    exec_donttest: bool = True
    include_internal: bool = False
    arguments_format: ArgumentsFormat = ArgumentsFormat.GRID_TABLE


@dataclass(frozen=True, slots=True)
class ConvertResult:
    success_count: int = 0
    failed_files: tuple[tuple[Path, str], ...] = ()
    output_files: tuple[Path, ...] = ()
    skipped_internal: tuple[Path, ...] = ()


def converter_options(
    options: PackageConvertOptions, alias_map: Mapping[str, str] | None
) -> ConverterOptions:
    """Derive per-document converter options from the package options."""
    return ConverterOptions(
        link_extension=options.output_extension if alias_map is not None else None,
        alias_map=alias_map,
        unresolved_link_url=options.unresolved_link_url,
        external_package_urls=options.external_package_urls,
        exec_dontrun=options.exec_dontrun,
        exec_donttest=options.exec_donttest,
        quarto_code_blocks=options.quarto_code_blocks,
        arguments_format=options.arguments_format,
    )


def render_document(
    doc: RdDocument,
    source: str,
    options: PackageConvertOptions,
    conv_options: ConverterOptions,
) -> str:
    """Convert a parsed document and serialize it with its front matter."""
    root = rd_to_mdast(doc, conv_options)

    frontmatter = None
    if options.frontmatter:
        title = document_title(doc)
        name = document_name(doc)
        pagetitle = None
        if options.pagetitle and title and name:
            pagetitle = f"{title} — {name}"
        frontmatter = Frontmatter(
            title=title,
            pagetitle=pagetitle,
            format=options.quarto_format,
            metadata=extract_metadata(doc, source),
        )

    writer_options = WriterOptions(
        frontmatter=frontmatter, quarto_code_blocks=options.quarto_code_blocks
    )
    return mdast_to_qmd(root, writer_options)


def convert_file(
    input_path: Path, output_path: Path, options: PackageConvertOptions
) -> Path | None:
    """Convert one file without an alias index.

    Returns the written path, or None when the file is internal and
    internal topics are excluded. Parse and IO errors propagate.
    """
    input_path = Path(input_path)
    return _convert_one(
        input_path, str(input_path), Path(output_path), options, converter_options(options, None)
    )


def _convert_one(
    input_path: Path,
    filename: str,
    output_path: Path,
    options: PackageConvertOptions,
    conv_options: ConverterOptions,
) -> Path | None:
    source = input_path.read_text(encoding="utf-8")
    doc = parse(source, filename)
    if not options.include_internal and is_internal(doc):
        return None
    text = render_document(doc, source, options, conv_options)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(text, encoding="utf-8")
    return output_path


def output_path_for(relative: Path, options: PackageConvertOptions) -> Path:
    """Mirror a relative input path under the output directory."""
    return options.output_dir / relative.with_suffix("." + options.output_extension)


def convert_package(package: RdPackage, options: PackageConvertOptions) -> ConvertResult:
    """Convert every file of a package in parallel.

    Per-file failures are collected in the result and never stop the
    other files. Nothing is printed.
    """
    options.output_dir.mkdir(parents=True, exist_ok=True)
    conv_options = converter_options(options, package.alias_map)

    outputs: list[Path] = []
    failed: list[tuple[Path, str]] = []
    skipped: list[Path] = []

    jobs = options.jobs or os.cpu_count() or 1
    with ThreadPoolExecutor(max_workers=jobs) as executor:
        futures = {
            executor.submit(
                _convert_one,
                package.root / relative,
                str(relative),
                output_path_for(relative, options),
                options,
                conv_options,
            ): relative
            for relative in package.files
        }
        for future in as_completed(futures):
            relative = futures[future]
            path = package.root / relative
            try:
                out = future.result()
            except ParseError as e:
                failed.append((path, e.format(str(path))))
                continue
            except (OSError, ValueError) as e:
                failed.append((path, str(e)))
                continue
            if out is None:
                logger.info("Skipped internal topic %s", relative)
                skipped.append(path)
            else:
                outputs.append(out)

    return ConvertResult(
        success_count=len(outputs),
        failed_files=tuple(sorted(failed)),
        output_files=tuple(sorted(outputs)),
        skipped_internal=tuple(sorted(skipped)),
    )


def _first_line(err: Exception) -> str:
    text = str(err)
    if isinstance(err, ParseError):
        text = err.message
    return text.splitlines()[0] if text else type(err).__name__
