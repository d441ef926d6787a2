"""Lifecycle badge detection."""

from __future__ import annotations

import re
from enum import Enum

from rd2qmd.ast import Figure, RdDocument, SectionTag, walk

_BADGE_RE = re.compile(r"(?:.*/)?lifecycle-([\w-]+?)(?:\.\w+)?")


class Lifecycle(Enum):
    EXPERIMENTAL = "experimental"
    STABLE = "stable"
    SUPERSEDED = "superseded"
    DEPRECATED = "deprecated"
    MATURING = "maturing"
    QUESTIONING = "questioning"
    SOFT_DEPRECATED = "soft-deprecated"
    DEFUNCT = "defunct"
    RETIRED = "retired"

    @classmethod
    def parse(cls, stage: str) -> Lifecycle | None:
        try:
            return cls(stage)
        except ValueError:
            return None


def lifecycle_from_filename(file: str) -> Lifecycle | None:
    """Return the stage named by a badge file such as ``lifecycle-stable.svg``."""
    m = _BADGE_RE.fullmatch(file.strip())
    if m is None:
        return None
    return Lifecycle.parse(m.group(1))


def find_lifecycle(doc: RdDocument) -> Lifecycle | None:
    """Find the lifecycle badge in the description, at any nesting depth.

    Only the first badge figure counts; an unrecognized stage yields None.
    """
    section = doc.get_section(SectionTag.DESCRIPTION)
    if section is None:
        return None
    for node in walk(section.content):
        if isinstance(node, Figure) and _BADGE_RE.fullmatch(node.file.strip()):
            return lifecycle_from_filename(node.file)
    return None
