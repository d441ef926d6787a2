"""Command-line interface for rd2qmd."""

from __future__ import annotations

import argparse
import logging
import sys
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from rd2qmd.convert import ArgumentsFormat
from rd2qmd.errors import ConfigError, PackageError, ParseError

if TYPE_CHECKING:
    from rd2qmd.package import PackageConvertOptions, RdPackage

CONFIG_FILE_NAME = "_rd2qmd.toml"
DEFAULT_UNRESOLVED_URL = "https://rdrr.io/r/base/{topic}.html"
DEFAULT_FALLBACK_URL = "https://rdrr.io/pkg/{package}/man/{topic}.html"

# Output format -> file extension
EXTENSIONS = {"qmd": "qmd", "md": "md", "rmd": "Rmd"}

SAMPLE_CONFIG = f"""\
# rd2qmd configuration. Command line flags take precedence.

[output]
# Output format: "qmd", "md" or "rmd"
format = "qmd"
# Write YAML front matter (title, pagetitle, aliases, ...)
frontmatter = true
# Add a "<title> — <name>" pagetitle to the front matter
pagetitle = true
# Quarto output format written to the front matter
# quarto_format = "html"
# Arguments section layout: "grid" or "pipe"
arguments_table = "grid"
# Convert topics marked \\keyword{{internal}}
include_internal = false

[code]
# Write {{r}} executable chunks (default: true for qmd and rmd)
quarto_code_blocks = true
# Execute code wrapped in \\dontrun{{}}
exec_dontrun = false
# Execute code wrapped in \\donttest{{}}
exec_donttest = true

[links]
# URL pattern for links that no topic in the package defines
unresolved_url = "{DEFAULT_UNRESOLVED_URL}"

[external]
# Resolve \\link[pkg]{{topic}} against installed packages
enabled = true
# R library directories to search
lib_paths = []
# cache_dir = "/tmp/rd2qmd"
fallback_url = "{DEFAULT_FALLBACK_URL}"
"""


@dataclass(frozen=True, slots=True)
class CliOptions:
    """Parsed CLI options merged with the configuration file."""

    input_path: Path
    output_path: Path | None
    output_format: str
    quarto_format: str | None
    jobs: int | None
    recursive: bool
    frontmatter: bool
    pagetitle: bool
    quarto_code_blocks: bool
    unresolved_link_url: str | None
    external_links: bool
    lib_paths: tuple[Path, ...]
    cache_dir: Path | None
    fallback_url: str
    exec_dontrun: bool
    exec_donttest: bool
    include_internal: bool
    arguments_format: ArgumentsFormat
    topic_index: Path | None
    verbose: bool
    quiet: bool
    debug: bool

    @property
    def extension(self) -> str:
        return EXTENSIONS[self.output_format]


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser (separate function for testability)."""
    p = argparse.ArgumentParser(
        prog="rd2qmd",
        description="Convert Rd documentation to Quarto Markdown",
        epilog="Subcommands: 'rd2qmd index DIR' prints a topic index, "
        "'rd2qmd init' writes a sample configuration file.",
    )
    p.add_argument("input", help="Input .Rd file or directory")
    p.add_argument("-o", "--output", help="Output file or directory")
    p.add_argument("-f", "--format", choices=sorted(EXTENSIONS), help="Output format")
    p.add_argument("-j", "--jobs", type=int, metavar="N", help="Parallel jobs (default: CPUs)")
    p.add_argument("-r", "--recursive", action="store_true", help="Scan subdirectories")
    p.add_argument(
        "--no-frontmatter",
        dest="frontmatter",
        action="store_false",
        default=None,
        help="Do not write YAML front matter",
    )
    p.add_argument(
        "--no-pagetitle",
        dest="pagetitle",
        action="store_false",
        default=None,
        help="Do not add pagetitle to the front matter",
    )
    p.add_argument(
        "--quarto-code-blocks",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Write examples as executable {r} chunks",
    )
    p.add_argument(
        "--unresolved-link-url",
        metavar="PATTERN",
        help="URL pattern for unresolved links, with {topic}",
    )
    p.add_argument(
        "--no-unresolved-link-url",
        action="store_true",
        help="Render unresolved links as plain code",
    )
    p.add_argument(
        "--r-lib-path",
        action="append",
        default=[],
        metavar="DIR",
        help="R library directory for external links (repeatable)",
    )
    p.add_argument("--cache-dir", metavar="DIR", help="Cache directory for pkgdown.yml files")
    p.add_argument(
        "--no-external-links",
        action="store_true",
        help="Do not resolve links to other packages",
    )
    p.add_argument(
        "--external-package-fallback",
        metavar="PATTERN",
        help="URL pattern for unresolvable packages, with {package} and {topic}",
    )
    p.add_argument("--exec-dontrun", action="store_true", default=None, help="Execute \\dontrun")
    p.add_argument(
        "--no-exec-donttest",
        dest="exec_donttest",
        action="store_false",
        default=None,
        help="Do not execute \\donttest",
    )
    p.add_argument(
        "--include-internal",
        action="store_true",
        default=None,
        help="Convert topics with \\keyword{internal}",
    )
    p.add_argument(
        "--arguments-table",
        choices=[f.value for f in ArgumentsFormat],
        help="Arguments section layout",
    )
    p.add_argument("--topic-index", metavar="FILE", help="Write a topic index JSON file")
    p.add_argument(
        "--config",
        metavar="FILE",
        help=f"Config file (default: auto-discover {CONFIG_FILE_NAME})",
    )
    p.add_argument("--no-config", action="store_true", help="Ignore configuration files")
    verbosity = p.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Only report errors")
    p.add_argument("--debug", action="store_true", help="Dump the Rd AST to stderr")
    return p


def build_index_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="rd2qmd index",
        description="Print a JSON topic index of a directory of Rd files",
    )
    p.add_argument("input", help="Directory of .Rd files")
    p.add_argument("-f", "--format", choices=sorted(EXTENSIONS), default="qmd")
    p.add_argument("-r", "--recursive", action="store_true")
    p.add_argument("--include-internal", action="store_true")
    return p


def build_init_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="rd2qmd init", description="Write a sample configuration")
    p.add_argument("-o", "--output", default=CONFIG_FILE_NAME, help="Output file")
    p.add_argument("--force", action="store_true", help="Overwrite an existing file")
    return p


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


def load_config(config_path: Path | None, search_dir: Path) -> dict[str, Any]:
    """Load a TOML config file, returning an empty dict on missing/absent file."""
    path = config_path if config_path is not None else search_dir / CONFIG_FILE_NAME

    if not path.is_file():
        return {}

    with open(path, "rb") as f:
        try:
            return tomllib.load(f)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"{path}: {exc}") from exc


def _table(config: dict[str, Any], name: str) -> dict[str, Any]:
    value = config.get(name)
    return value if isinstance(value, dict) else {}


def _pick(cli_value: Any, table: dict[str, Any], key: str, kind: type, default: Any) -> Any:
    """CLI value if given, else a config value of the right type, else the default."""
    if cli_value is not None:
        return cli_value
    value = table.get(key)
    if isinstance(value, kind):
        return value
    if value is not None:
        raise ConfigError(f"invalid value for {key!r}: {value!r}")
    return default


def resolve_options(args: argparse.Namespace, search_dir: Path | None = None) -> CliOptions:
    """Merge config file and CLI args into CliOptions.

    Precedence: defaults < config file < CLI flags.
    """
    config: dict[str, Any] = {}
    if not args.no_config:
        config_path = Path(args.config) if args.config else None
        config = load_config(config_path, search_dir or Path("."))

    output = _table(config, "output")
    code = _table(config, "code")
    links = _table(config, "links")
    external = _table(config, "external")

    output_format = _pick(args.format, output, "format", str, "qmd").lower()
    if output_format not in EXTENSIONS:
        raise ConfigError(f"unknown output format: {output_format!r}")

    arguments_value = _pick(args.arguments_table, output, "arguments_table", str, "grid")
    try:
        arguments_format = ArgumentsFormat(arguments_value)
    except ValueError:
        raise ConfigError(f"unknown arguments table format: {arguments_value!r}") from None

    # Plain Markdown has no executable chunks
    quarto_code_blocks = _pick(
        args.quarto_code_blocks, code, "quarto_code_blocks", bool, output_format != "md"
    )

    if args.no_unresolved_link_url:
        unresolved_link_url = None
    elif args.unresolved_link_url is not None:
        unresolved_link_url = args.unresolved_link_url
    else:
        unresolved_link_url = _pick(None, links, "unresolved_url", str, DEFAULT_UNRESOLVED_URL)

    if args.r_lib_path:
        lib_paths = tuple(Path(p) for p in args.r_lib_path)
    else:
        lib_paths = tuple(Path(p) for p in _pick(None, external, "lib_paths", list, []))
    cache_dir = _pick(args.cache_dir, external, "cache_dir", str, None)

    return CliOptions(
        input_path=Path(args.input),
        output_path=Path(args.output) if args.output else None,
        output_format=output_format,
        quarto_format=_pick(None, output, "quarto_format", str, None),
        jobs=args.jobs,
        recursive=args.recursive,
        frontmatter=_pick(args.frontmatter, output, "frontmatter", bool, True),
        pagetitle=_pick(args.pagetitle, output, "pagetitle", bool, True),
        quarto_code_blocks=quarto_code_blocks,
        unresolved_link_url=unresolved_link_url,
        external_links=not args.no_external_links
        and _pick(None, external, "enabled", bool, True),
        lib_paths=lib_paths,
        cache_dir=Path(cache_dir) if cache_dir else None,
        fallback_url=_pick(
            args.external_package_fallback, external, "fallback_url", str, DEFAULT_FALLBACK_URL
        ),
        exec_dontrun=_pick(args.exec_dontrun, code, "exec_dontrun", bool, False),
        exec_donttest=_pick(args.exec_donttest, code, "exec_donttest", bool, True),
        include_internal=_pick(args.include_internal, output, "include_internal", bool, False),
        arguments_format=arguments_format,
        topic_index=Path(args.topic_index) if args.topic_index else None,
        verbose=args.verbose,
        quiet=args.quiet,
        debug=args.debug,
    )


def configure_logging(options: CliOptions) -> None:
    level = logging.WARNING
    if options.verbose:
        level = logging.INFO
    elif options.quiet:
        level = logging.ERROR
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s", stream=sys.stderr)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _package_options(
    options: CliOptions, output_dir: Path, external_urls: dict[str, str] | None = None
) -> PackageConvertOptions:
    from rd2qmd.package import PackageConvertOptions

    return PackageConvertOptions(
        output_dir=output_dir,
        output_extension=options.extension,
        frontmatter=options.frontmatter,
        pagetitle=options.pagetitle,
        quarto_format=options.quarto_format,
        quarto_code_blocks=options.quarto_code_blocks,
        jobs=options.jobs,
        unresolved_link_url=options.unresolved_link_url,
        external_package_urls=external_urls,
        exec_dontrun=options.exec_dontrun,
        exec_donttest=options.exec_donttest,
        include_internal=options.include_internal,
        arguments_format=options.arguments_format,
    )


def convert_single(options: CliOptions) -> int:
    """Convert one file; no alias index is available for its links."""
    from rd2qmd.debug import dump_ast
    from rd2qmd.package import convert_file
    from rd2qmd.parser import parse

    input_path = options.input_path
    output_path = options.output_path or input_path.with_suffix("." + options.extension)

    if options.debug:
        doc = parse(input_path.read_text(encoding="utf-8"), str(input_path))
        dump_ast(doc, file=sys.stderr)

    written = convert_file(input_path, output_path, _package_options(options, output_path.parent))
    if written is None:
        if not options.quiet:
            print(f"Skipped (internal): {input_path}", file=sys.stderr)
        return 0
    if not options.quiet:
        print(written)
    return 0


def _resolve_external(options: CliOptions, package: RdPackage) -> dict[str, str] | None:
    from rd2qmd.external_links import (
        FallbackReason,
        PackageUrlResolver,
        PackageUrlResolverOptions,
        collect_external_packages,
    )

    if not options.external_links:
        return None
    if not options.lib_paths:
        logging.getLogger(__name__).info(
            "No R library paths specified, skipping external link resolution"
        )
        return None

    resolver = PackageUrlResolver(
        PackageUrlResolverOptions(
            lib_paths=options.lib_paths,
            cache_dir=options.cache_dir,
            fallback_url=options.fallback_url,
        )
    )
    result = resolver.resolve_packages(collect_external_packages(package))

    if not options.quiet:
        for reason, label in (
            (FallbackReason.NOT_INSTALLED, "not installed"),
            (FallbackReason.NO_PKGDOWN_SITE, "have no pkgdown site"),
        ):
            names = sorted(p for p, r in result.fallbacks.items() if r is reason)
            if names:
                print(
                    f"Warning: {len(names)} package(s) {label}, "
                    f"using fallback URLs: {', '.join(names)}",
                    file=sys.stderr,
                )
    return result.urls


def convert_directory(options: CliOptions) -> int:
    from rd2qmd.package import RdPackage, convert_package
    from rd2qmd.topics import generate_topic_index

    package = RdPackage.from_directory(options.input_path, options.recursive)
    if not package.files:
        if not options.quiet:
            print(f"No .Rd files found in {options.input_path}", file=sys.stderr)
        return 0

    output_dir = options.output_path or options.input_path
    external_urls = _resolve_external(options, package)
    result = convert_package(package, _package_options(options, output_dir, external_urls))

    if not options.quiet:
        for path in result.output_files:
            print(path)
    for path, error in result.failed_files:
        print(f"Error converting {path}: {error}", file=sys.stderr)
    if options.verbose:
        for path in result.skipped_internal:
            print(f"Skipped (internal): {path}", file=sys.stderr)
    if not options.quiet:
        summary = f"Converted {result.success_count} files, {len(result.failed_files)} failed"
        if result.skipped_internal:
            summary += f", {len(result.skipped_internal)} skipped (internal)"
        print(summary, file=sys.stderr)

    if options.topic_index is not None:
        index = generate_topic_index(package, options.extension, options.include_internal)
        options.topic_index.parent.mkdir(parents=True, exist_ok=True)
        options.topic_index.write_text(index.to_json() + "\n", encoding="utf-8")

    return 1 if result.failed_files else 0


def run_index(argv: list[str]) -> int:
    from rd2qmd.package import RdPackage
    from rd2qmd.topics import generate_topic_index

    args = build_index_parser().parse_args(argv)
    package = RdPackage.from_directory(Path(args.input), args.recursive)
    if not package.files:
        print(f"error: no .Rd files found in {args.input}", file=sys.stderr)
        return 1
    index = generate_topic_index(package, EXTENSIONS[args.format], args.include_internal)
    print(index.to_json())
    return 0


def run_init(argv: list[str]) -> int:
    args = build_init_parser().parse_args(argv)
    path = Path(args.output)
    if path.exists() and not args.force:
        print(
            f"error: configuration file already exists: {path}\nUse --force to overwrite.",
            file=sys.stderr,
        )
        return 1
    path.write_text(SAMPLE_CONFIG, encoding="utf-8")
    print(f"Created configuration file: {path}", file=sys.stderr)
    return 0


def main(argv: list[str] | None = None) -> int:
    """CLI entry point. Returns exit code (0/1/2). Does not call sys.exit()."""
    if argv is None:
        argv = sys.argv[1:]

    try:
        if argv and argv[0] == "index":
            return run_index(argv[1:])
        if argv and argv[0] == "init":
            return run_init(argv[1:])
    except PackageError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        options = resolve_options(args)
    except ConfigError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    configure_logging(options)

    if not options.input_path.exists():
        print(f"error: input not found: {options.input_path}", file=sys.stderr)
        return 1

    try:
        if options.input_path.is_dir():
            return convert_directory(options)
        return convert_single(options)
    except ParseError as exc:
        print(exc.format(str(options.input_path)), file=sys.stderr)
        return 1
    except (PackageError, OSError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
