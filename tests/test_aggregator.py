"""Tests for the Markdown export layouts."""

import pytest

from doc_export.crawler.scheduler import PageRecord
from doc_export.export.aggregator import (
    DocumentAggregator,
    ExportError,
    SplitDocumentWriter,
    base_name_for,
    folder_for,
    slugify,
)
from doc_export.utils.config import LayoutMode


def page(url, title, body="<p>Body text</p>"):
    return PageRecord(url=url, content=f"<html><body>{body}</body></html>", title=title)


@pytest.fixture
def pages():
    # Deliberately out of URL order
    return [
        page("https://ex.com/guide/intro", "Introduction", "<h2>Setup</h2><p>Run it.</p>"),
        page("https://ex.com/", "Home"),
        page("https://ex.com/about", None),
        page("https://ex.com/guide/", "Guide"),
    ]


@pytest.mark.unit
class TestHelpers:

    @pytest.mark.parametrize("text, expected", [
        ("Getting Started!", "getting-started"),
        ("  API / Reference  ", "api-reference"),
        ("Héllo Wörld", "héllo-wörld"),
        ("!!!", ""),
        (None, ""),
    ])
    def test_slugify(self, text, expected):
        assert slugify(text) == expected

    def test_slugify_truncates_long_titles(self):
        assert len(slugify("word " * 50)) <= 80

    @pytest.mark.parametrize("url, expected", [
        ("https://ex.com/", "root"),
        ("https://ex.com/about", "root"),
        ("https://ex.com/guide/", "guide"),
        ("https://ex.com/guide/intro", "guide"),
        ("https://ex.com/API/v1/users", "api"),
    ])
    def test_folder_for(self, url, expected):
        assert folder_for(url) == expected

    def test_base_name_prefers_title_then_url_then_position(self):
        assert base_name_for(page("https://ex.com/a/b.html", "Nice Title"), 1) == "nice-title"
        assert base_name_for(page("https://ex.com/a/setup.html", None), 1) == "setup"
        assert base_name_for(page("https://ex.com/", "???"), 3) == "page-3"


@pytest.mark.unit
class TestCombinedLayout:

    async def test_writes_single_document_with_toc(self, tmp_path, pages):
        paths = await DocumentAggregator(str(tmp_path), LayoutMode.COMBINED).export(pages)

        assert paths == [tmp_path / "document.md"]
        text = paths[0].read_text(encoding="utf-8")

        assert text.startswith("---\ntitle: Exported Documentation\ndate: ")
        assert "sources: 4 pages\n---\n" in text
        assert "# Table of Contents" in text
        toc = ["1. [Home](#home)", "2. [Page 2](#page-2)", "3. [Guide](#guide)",
               "4. [Introduction](#introduction)"]
        for entry in toc:
            assert entry in text
        assert '<a id="introduction"></a>' in text
        assert "*Source: [https://ex.com/guide/intro](https://ex.com/guide/intro)*" in text
        assert "## Setup" in text

    async def test_sections_follow_url_order(self, tmp_path, pages):
        paths = await DocumentAggregator(str(tmp_path), LayoutMode.COMBINED).export(pages)
        text = paths[0].read_text(encoding="utf-8")

        positions = [text.index(f"\n# {title}\n") for title in ("Home", "Page 2", "Guide", "Introduction")]
        assert positions == sorted(positions)

    async def test_duplicate_titles_get_distinct_anchors(self, tmp_path):
        pages = [page("https://ex.com/a", "Overview"), page("https://ex.com/b", "Overview")]
        paths = await DocumentAggregator(str(tmp_path)).export(pages)
        text = paths[0].read_text(encoding="utf-8")

        assert "(#overview)" in text
        assert "(#overview-2)" in text


@pytest.mark.unit
class TestSubdirectoriesLayout:

    async def test_pages_grouped_by_first_path_segment(self, tmp_path, pages):
        paths = await DocumentAggregator(str(tmp_path), LayoutMode.SUBDIRECTORIES).export(pages)

        assert paths[0] == tmp_path / "index.md"
        assert sorted(p.relative_to(tmp_path).as_posix() for p in paths[1:]) == [
            "guide/guide.md",
            "guide/introduction.md",
            "root/about.md",
            "root/home.md",
        ]

    async def test_page_file_content(self, tmp_path, pages):
        await DocumentAggregator(str(tmp_path), LayoutMode.SUBDIRECTORIES).export(pages)
        text = (tmp_path / "guide" / "introduction.md").read_text(encoding="utf-8")

        assert text.startswith("# Introduction\n\n*Source: [https://ex.com/guide/intro]")
        assert "## Setup" in text
        assert "Run it." in text

    async def test_index_lists_pages_per_folder(self, tmp_path, pages):
        await DocumentAggregator(str(tmp_path), LayoutMode.SUBDIRECTORIES).export(pages)
        index = (tmp_path / "index.md").read_text(encoding="utf-8")

        assert index.startswith("---\ntitle: Exported Documentation\n")
        assert "## root\n\n- [Home](root/home.md)\n- [Page 2](root/about.md)\n" in index
        assert "## guide\n\n- [Guide](guide/guide.md)\n- [Introduction](guide/introduction.md)\n" in index

    async def test_name_collisions_get_numeric_suffixes(self, tmp_path):
        pages = [page("https://ex.com/guide/a", "Overview"), page("https://ex.com/guide/b", "Overview")]
        paths = await DocumentAggregator(str(tmp_path), LayoutMode.SUBDIRECTORIES).export(pages)

        assert [p.relative_to(tmp_path).as_posix() for p in paths[1:]] == [
            "guide/overview.md",
            "guide/overview-2.md",
        ]

    async def test_untitled_root_page_falls_back_to_position(self, tmp_path):
        paths = await DocumentAggregator(str(tmp_path), LayoutMode.SUBDIRECTORIES).export(
            [page("https://ex.com/", None)])

        assert paths[1] == tmp_path / "root" / "page-1.md"
        assert (tmp_path / "root" / "page-1.md").read_text(encoding="utf-8").startswith("# Page 1\n")


@pytest.mark.unit
class TestFlatLayout:

    async def test_folder_becomes_file_prefix(self, tmp_path, pages):
        paths = await DocumentAggregator(str(tmp_path), LayoutMode.FLAT).export(pages)

        assert paths[0] == tmp_path / "index.md"
        assert sorted(p.name for p in paths[1:]) == [
            "about.md",
            "guide-guide.md",
            "guide-introduction.md",
            "home.md",
        ]
        assert all(p.parent == tmp_path for p in paths)

    async def test_index_name_is_reserved(self, tmp_path):
        paths = await DocumentAggregator(str(tmp_path), LayoutMode.FLAT).export(
            [page("https://ex.com/", "Index")])

        assert paths == [tmp_path / "index.md", tmp_path / "index-2.md"]
        assert (tmp_path / "index-2.md").read_text(encoding="utf-8").startswith("# Index\n")

    def test_plan_is_unique_across_folders(self):
        writer = SplitDocumentWriter("unused", flat=True)
        planned = writer.plan([
            page("https://ex.com/guide-x", "Guide X"),
            page("https://ex.com/guide/x", "X"),
        ])

        names = [entry.relative_path.as_posix() for entry in planned]
        assert names == ["guide-x.md", "guide-x-2.md"]


@pytest.mark.unit
class TestExportErrors:

    async def test_no_pages_is_an_error(self, tmp_path):
        with pytest.raises(ExportError):
            await DocumentAggregator(str(tmp_path)).export([])

    async def test_unwritable_output_directory(self, tmp_path, pages):
        blocker = tmp_path / "taken"
        blocker.write_text("not a directory")

        with pytest.raises(ExportError):
            await DocumentAggregator(str(blocker)).export(pages)
