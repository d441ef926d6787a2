"""Topic index tests."""

from __future__ import annotations

import json
import logging

from rd2qmd.package import RdPackage
from rd2qmd.topics import TopicInfo, generate_topic_index
from rd2qmd.writer import RdMetadata

ZED = (
    "% Please edit documentation in R/zed.R\n"
    "\\name{zed}\n\\alias{zed}\n\\title{Last\n  one}\n"
    "\\description{\\figure{lifecycle-deprecated.svg}}\n"
)
ALPHA = "\\name{alpha}\n\\title{First}\n\\concept{greek}\n"
HIDDEN = "\\name{hidden}\n\\title{Hidden}\n\\keyword{internal}\n"


def test_sorted_by_name(man_dir) -> None:
    root = man_dir({"a_zed.Rd": ZED, "b_alpha.Rd": ALPHA})
    index = generate_topic_index(RdPackage.from_directory(root))
    assert [t.name for t in index.topics] == ["alpha", "zed"]
    assert [t.file for t in index.topics] == ["b_alpha.qmd", "a_zed.qmd"]


def test_json_layout(man_dir) -> None:
    root = man_dir({"zed.Rd": ZED})
    data = json.loads(generate_topic_index(RdPackage.from_directory(root), "md").to_json())
    assert data == {
        "topics": [
            {
                "name": "zed",
                "file": "zed.md",
                "title": "Last one",
                "lifecycle": "deprecated",
                "aliases": ["zed"],
                "source_files": ["R/zed.R"],
            }
        ]
    }


def test_internal_topics(man_dir) -> None:
    root = man_dir({"alpha.Rd": ALPHA, "hidden.Rd": HIDDEN})
    package = RdPackage.from_directory(root)
    assert [t.name for t in generate_topic_index(package).topics] == ["alpha"]
    names = [t.name for t in generate_topic_index(package, include_internal=True).topics]
    assert names == ["alpha", "hidden"]


def test_recursive_paths_use_forward_slashes(man_dir) -> None:
    root = man_dir({"sub/alpha.Rd": ALPHA})
    index = generate_topic_index(RdPackage.from_directory(root, recursive=True))
    assert index.topics[0].file == "sub/alpha.qmd"


def test_name_falls_back_to_stem(man_dir) -> None:
    root = man_dir({"untitled.Rd": "\\description{x}"})
    (topic,) = generate_topic_index(RdPackage.from_directory(root)).topics
    assert topic.name == "untitled"
    assert topic.title == ""


def test_unparseable_file_skipped(man_dir, caplog) -> None:
    root = man_dir({"bad.Rd": "\\title{", "alpha.Rd": ALPHA})
    package = RdPackage.from_directory(root)
    with caplog.at_level(logging.WARNING, logger="rd2qmd.topics"):
        index = generate_topic_index(package)
    assert [t.name for t in index.topics] == ["alpha"]
    assert "Cannot index bad.Rd" in caplog.text


def test_to_dict_omits_empty_fields() -> None:
    info = TopicInfo("x", "x.qmd", "X", RdMetadata())
    assert info.to_dict() == {"name": "x", "file": "x.qmd", "title": "X"}


def test_non_ascii_kept(man_dir) -> None:
    root = man_dir({"cafe.Rd": "\\name{cafe}\\title{Café}"})
    text = generate_topic_index(RdPackage.from_directory(root)).to_json()
    assert '"title": "Café"' in text
