"""External package link resolution.

Maps package names from ``\\link[pkg]{topic}`` to the base URL of their
reference pages. A package is looked up in the configured R library paths:

1. a ``pkgdown.yml`` installed with the package;
2. the ``URL:`` field of its ``DESCRIPTION``, probing ``<url>/pkgdown.yml``
   over HTTP (cached on disk);
3. ``<first url>/reference``.

Packages that cannot be resolved get the fallback URL pattern.
"""

from __future__ import annotations

import hashlib
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

import requests
import yaml

from rd2qmd.ast import Link, RdDocument, walk
from rd2qmd.errors import ParseError
from rd2qmd.package import RdPackage
from rd2qmd.parser import parse

logger = logging.getLogger(__name__)

DEFAULT_FALLBACK_URL = "https://rdrr.io/pkg/{package}/man/{topic}.html"
HTTP_TIMEOUT = 10

_URL_SEPARATOR = re.compile(r"[,\s]+")


class FallbackReason(Enum):
    NOT_INSTALLED = "not installed"
    NO_PKGDOWN_SITE = "no pkgdown site"


@dataclass(frozen=True, slots=True)
class PackageUrlResolverOptions:
    lib_paths: tuple[Path, ...] = ()
    cache_dir: Path | None = None
    fallback_url: str | None = DEFAULT_FALLBACK_URL
    enable_http: bool = True


@dataclass(frozen=True, slots=True)
class PackageResolveResult:
    urls: dict[str, str] = field(default_factory=dict)
    fallbacks: dict[str, FallbackReason] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# DESCRIPTION and pkgdown.yml
# ---------------------------------------------------------------------------


def parse_dcf(text: str) -> dict[str, str]:
    """Parse a Debian control file record (the format of R's DESCRIPTION).

    Continuation lines start with whitespace and are joined with a space.
    """
    fields: dict[str, str] = {}
    key = None
    for line in text.splitlines():
        if not line.strip():
            continue
        if line[0].isspace():
            if key is not None:
                fields[key] += " " + line.strip()
            continue
        name, sep, value = line.partition(":")
        if not sep:
            continue
        key = name.strip()
        fields[key] = value.strip()
    return fields


def description_urls(text: str) -> list[str]:
    """Return the http(s) URLs listed in a DESCRIPTION ``URL`` field."""
    value = parse_dcf(text).get("URL", "")
    return [u for u in _URL_SEPARATOR.split(value) if u.startswith(("http://", "https://"))]


def reference_url_from_yaml(content: str) -> str | None:
    """Read ``urls.reference``, else ``url`` + ``/reference``, from pkgdown.yml."""
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError:
        return None
    if not isinstance(data, dict):
        return None

    urls = data.get("urls")
    if isinstance(urls, dict) and isinstance(urls.get("reference"), str):
        return urls["reference"]
    if isinstance(data.get("url"), str):
        return data["url"].rstrip("/") + "/reference"
    return None


def fallback_base_url(pattern: str, package: str) -> str:
    """Turn a topic URL pattern into a per-package base URL."""
    return (
        pattern.replace("{package}", package)
        .replace("{topic}.html", "")
        .replace("{topic}", "")
        .rstrip("/")
    )


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class PackageUrlResolver:
    """Resolve package names to reference base URLs; results are memoized."""

    def __init__(self, options: PackageUrlResolverOptions | None = None) -> None:
        self._options = options or PackageUrlResolverOptions()
        self._cache: dict[str, str | None] = {}

    def resolve(self, package: str) -> str | None:
        if package not in self._cache:
            self._cache[package] = self._resolve_uncached(package)
        return self._cache[package]

    def _resolve_uncached(self, package: str) -> str | None:
        pkg_dir = self._find_package_dir(package)
        if pkg_dir is None:
            return None

        local = pkg_dir / "pkgdown.yml"
        if local.is_file():
            url = reference_url_from_yaml(local.read_text(encoding="utf-8"))
            if url is not None:
                return url

        desc = pkg_dir / "DESCRIPTION"
        if not desc.is_file():
            return None
        urls = description_urls(desc.read_text(encoding="utf-8", errors="replace"))

        if self._options.enable_http:
            for base in urls:
                url = self._fetch_pkgdown(base)
                if url is not None:
                    return url

        if urls:
            return urls[0].rstrip("/") + "/reference"
        return None

    def _find_package_dir(self, package: str) -> Path | None:
        for lib in self._options.lib_paths:
            candidate = Path(lib) / package
            if candidate.is_dir():
                return candidate
        return None

    def _cache_path(self, url: str) -> Path | None:
        if self._options.cache_dir is None:
            return None
        digest = hashlib.sha256(url.encode("utf-8")).hexdigest()[:16]
        return Path(self._options.cache_dir) / f"pkgdown_{digest}.yml"

    def _fetch_pkgdown(self, base_url: str) -> str | None:
        base = base_url.rstrip("/")
        url = f"{base}/pkgdown.yml"

        cache_file = self._cache_path(url)
        if cache_file is not None and cache_file.is_file():
            content = cache_file.read_text(encoding="utf-8")
            return reference_url_from_yaml(content) or f"{base}/reference"

        try:
            response = requests.get(url, timeout=HTTP_TIMEOUT)
        except requests.RequestException as e:
            logger.debug("Fetching %s failed: %s", url, e)
            return None
        if response.status_code != 200:
            logger.debug("Fetching %s returned HTTP %d", url, response.status_code)
            return None

        content = response.text
        if cache_file is not None:
            try:
                cache_file.parent.mkdir(parents=True, exist_ok=True)
                cache_file.write_text(content, encoding="utf-8")
            except OSError as e:
                logger.debug("Cannot cache %s: %s", url, e)
        return reference_url_from_yaml(content) or f"{base}/reference"

    def resolve_packages(self, packages: set[str] | list[str]) -> PackageResolveResult:
        """Resolve several packages, using the fallback pattern where needed."""
        result = PackageResolveResult()
        for package in sorted(packages):
            url = self.resolve(package)
            if url is not None:
                result.urls[package] = url
                continue
            pattern = self._options.fallback_url
            if pattern is None:
                continue
            result.urls[package] = fallback_base_url(pattern, package)
            if self._find_package_dir(package) is None:
                reason = FallbackReason.NOT_INSTALLED
            else:
                reason = FallbackReason.NO_PKGDOWN_SITE
            result.fallbacks[package] = reason
            logger.debug("Using fallback URL for %s (%s)", package, reason.value)
        return result

    def topic_url(self, package: str, topic: str) -> str | None:
        base = self.resolve(package)
        if base is not None:
            return f"{base.rstrip('/')}/{topic}.html"
        pattern = self._options.fallback_url
        if pattern is None:
            return None
        return pattern.replace("{package}", package).replace("{topic}", topic)


# ---------------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------------


def document_packages(doc: RdDocument) -> set[str]:
    """Return the packages named by ``\\link[pkg]{...}`` anywhere in a document."""
    packages: set[str] = set()
    for section in doc.sections:
        for node in walk(section.content):
            if isinstance(node, Link) and node.package:
                packages.add(node.package)
    return packages


def collect_external_packages(package: RdPackage) -> set[str]:
    """Scan every file of a package for external package links."""
    packages: set[str] = set()
    for relative in package.files:
        try:
            doc = parse(package.read(relative), str(relative))
        except (ParseError, OSError, ValueError) as e:
            logger.debug("Skipping %s while collecting links: %s", relative, e)
            continue
        packages |= document_packages(doc)
    return packages
