"""Topic index: one record per converted topic, serialized as JSON."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass

from rd2qmd.convert import document_title
from rd2qmd.errors import ParseError
from rd2qmd.package import RdPackage, document_name, extract_metadata, is_internal
from rd2qmd.parser import parse
from rd2qmd.writer import RdMetadata

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TopicInfo:
    name: str
    file: str
    title: str
    metadata: RdMetadata

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {"name": self.name, "file": self.file, "title": self.title}
        meta = self.metadata
        if meta.lifecycle is not None:
            data["lifecycle"] = meta.lifecycle
        for key, values in (
            ("aliases", meta.aliases),
            ("keywords", meta.keywords),
            ("concepts", meta.concepts),
            ("source_files", meta.source_files),
        ):
            if values:
                data[key] = list(values)
        return data


@dataclass(frozen=True, slots=True)
class TopicIndex:
    topics: tuple[TopicInfo, ...] = ()

    def to_json(self) -> str:
        return json.dumps(
            {"topics": [t.to_dict() for t in self.topics]}, indent=2, ensure_ascii=False
        )


def generate_topic_index(
    package: RdPackage, extension: str = "qmd", include_internal: bool = False
) -> TopicIndex:
    """Build the topic index of a package, sorted by topic name.

    ``file`` is the output path relative to the output directory. Files
    that fail to parse are logged and left out.
    """
    topics: list[TopicInfo] = []
    for relative in package.files:
        try:
            source = package.read(relative)
            doc = parse(source, str(relative))
        except (ParseError, OSError, ValueError) as e:
            logger.warning("Cannot index %s: %s", relative, e)
            continue
        if not include_internal and is_internal(doc):
            continue

        topics.append(
            TopicInfo(
                name=document_name(doc) or relative.stem,
                file=relative.with_suffix("." + extension).as_posix(),
                title=document_title(doc) or "",
                metadata=extract_metadata(doc, source),
            )
        )

    topics.sort(key=lambda t: t.name)
    return TopicIndex(tuple(topics))
