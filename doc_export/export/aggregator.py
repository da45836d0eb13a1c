"""
Writes crawled pages to Markdown documents.

Supports a single combined document, or one file per page either grouped in
subdirectories or flat in the output directory, with an index.
"""

import logging
import re
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Set
from urllib.parse import unquote, urlsplit

from .converter import DocumentConverter
from ..crawler.scheduler import PageRecord
from ..utils.config import LayoutMode


ROOT_FOLDER = 'root'
MAX_NAME_LENGTH = 80

_non_word_pattern = re.compile(r'[^\w]+')


class ExportError(Exception):
    """Raised when output documents cannot be written."""
    pass


def slugify(text: Optional[str]) -> str:
    """Lowercase ``text`` and collapse runs of non-word characters into '-'."""
    if not text:
        return ''
    slug = _non_word_pattern.sub('-', text.lower()).strip('-_')
    return slug[:MAX_NAME_LENGTH].rstrip('-_')


def page_title(page: PageRecord, position: int) -> str:
    """Display title for a page; ``position`` is 1-based."""
    return page.title or f"Page {position}"


def _path_segments(url: str) -> List[str]:
    return [unquote(segment) for segment in urlsplit(url).path.split('/') if segment]


def folder_for(url: str) -> str:
    """
    Group pages by the first segment of their URL path.

    ``/guide/intro`` and ``/guide/`` belong to ``guide``; ``/`` and
    single-segment pages such as ``/about`` belong to the root folder.
    """
    segments = _path_segments(url)
    path = urlsplit(url).path
    if segments and (len(segments) > 1 or path.endswith('/')):
        return slugify(segments[0]) or ROOT_FOLDER
    return ROOT_FOLDER


def base_name_for(page: PageRecord, position: int) -> str:
    """File name stem from the title, else the URL tail, else the position."""
    name = slugify(page.title)
    if not name:
        segments = _path_segments(page.url)
        if segments:
            name = slugify(segments[-1].rsplit('.', 1)[0])
    return name or f"page-{position}"


def _unique(name: str, used: Set[str]) -> str:
    candidate = name
    counter = 2
    while candidate in used:
        candidate = f"{name}-{counter}"
        counter += 1
    used.add(candidate)
    return candidate


def sort_pages(pages: Iterable[PageRecord]) -> List[PageRecord]:
    return sorted(pages, key=lambda page: page.url)


def front_matter(title: str, page_count: int, generated_at: datetime) -> str:
    return (
        '---\n'
        f'title: {title}\n'
        f'date: {generated_at.isoformat()}\n'
        f'sources: {page_count} pages\n'
        '---\n\n'
    )


def source_line(url: str) -> str:
    return f"*Source: [{url}]({url})*\n\n"


@dataclass
class PlannedPage:
    """Where a page will be written in a split layout."""
    page: PageRecord
    title: str
    folder: str
    relative_path: Path


class DocumentWriter:
    """Base class for layout-specific writers."""

    title = 'Exported Documentation'

    def __init__(self, output_dir: Path, converter: Optional[DocumentConverter] = None):
        self.output_dir = Path(output_dir)
        self.converter = converter or DocumentConverter()
        self.logger = logging.getLogger(__name__)

    async def write(self, pages: Sequence[PageRecord]) -> List[Path]:
        """Write ``pages``; returns written paths, main document first."""
        raise NotImplementedError

    def _write_file(self, path: Path, text: str) -> Path:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding='utf-8')
        except OSError as e:
            raise ExportError(f"Failed to write {path}: {e}") from e
        self.logger.debug(f"Wrote {path}")
        return path


class CombinedDocumentWriter(DocumentWriter):
    """Writes every page into a single ``document.md`` with a table of contents."""

    filename = 'document.md'

    async def write(self, pages: Sequence[PageRecord]) -> List[Path]:
        sorted_pages = sort_pages(pages)
        generated_at = datetime.now(timezone.utc)

        titles = [page_title(page, i) for i, page in enumerate(sorted_pages, start=1)]
        used_anchors: Set[str] = set()
        anchors = [_unique(slugify(title) or f"page-{i}", used_anchors)
                   for i, title in enumerate(titles, start=1)]

        parts = [front_matter(self.title, len(sorted_pages), generated_at)]

        parts.append('# Table of Contents\n\n')
        for i, (title, anchor) in enumerate(zip(titles, anchors), start=1):
            parts.append(f"{i}. [{title}](#{anchor})\n")
        parts.append('\n---\n\n')

        for page, title, anchor in zip(sorted_pages, titles, anchors):
            parts.append(f'<a id="{anchor}"></a>\n\n')
            parts.append(f"# {title}\n\n")
            parts.append(source_line(page.url))
            parts.append(self.converter.convert_to_markdown(page.content))
            parts.append('\n\n---\n\n')

        return [self._write_file(self.output_dir / self.filename, ''.join(parts))]


class SplitDocumentWriter(DocumentWriter):
    """Writes one file per page plus an ``index.md``."""

    index_filename = 'index.md'

    def __init__(self, output_dir: Path, flat: bool = False,
                 converter: Optional[DocumentConverter] = None):
        super().__init__(output_dir, converter)
        self.flat = flat

    def plan(self, pages: Sequence[PageRecord]) -> List[PlannedPage]:
        """Assign every page a folder and a unique relative file path."""
        used_names: Dict[str, Set[str]] = {}
        planned = []

        for position, page in enumerate(sort_pages(pages), start=1):
            folder = folder_for(page.url)
            stem = base_name_for(page, position)

            if self.flat:
                if folder != ROOT_FOLDER:
                    stem = f"{folder}-{stem}"
                namespace = used_names.setdefault('', {'index'})
                relative_path = Path(f"{_unique(stem, namespace)}.md")
            else:
                namespace = used_names.setdefault(folder, set())
                relative_path = Path(folder) / f"{_unique(stem, namespace)}.md"

            planned.append(PlannedPage(
                page=page,
                title=page_title(page, position),
                folder=folder,
                relative_path=relative_path
            ))

        return planned

    async def write(self, pages: Sequence[PageRecord]) -> List[Path]:
        planned = self.plan(pages)
        generated_at = datetime.now(timezone.utc)

        written = []
        for entry in planned:
            text = (
                f"# {entry.title}\n\n"
                + source_line(entry.page.url)
                + self.converter.convert_to_markdown(entry.page.content)
                + '\n'
            )
            written.append(self._write_file(self.output_dir / entry.relative_path, text))

        index_path = self._write_file(self.output_dir / self.index_filename,
                                      self._render_index(planned, generated_at))
        return [index_path] + written

    def _render_index(self, planned: Sequence[PlannedPage], generated_at: datetime) -> str:
        folders: Dict[str, List[PlannedPage]] = OrderedDict()
        for entry in planned:
            folders.setdefault(entry.folder, []).append(entry)

        parts = [front_matter(self.title, len(planned), generated_at), '# Table of Contents\n\n']
        for folder, entries in folders.items():
            parts.append(f"## {folder}\n\n")
            for entry in entries:
                parts.append(f"- [{entry.title}]({entry.relative_path.as_posix()})\n")
            parts.append('\n')

        return ''.join(parts)


class DocumentAggregator:
    """Chooses a writer for the configured layout and exports pages with it."""

    def __init__(self, output_dir: str, layout: LayoutMode = LayoutMode.COMBINED,
                 converter: Optional[DocumentConverter] = None):
        self.output_dir = Path(output_dir)
        self.layout = layout
        self.logger = logging.getLogger(__name__)

        if layout is LayoutMode.COMBINED:
            self.writer: DocumentWriter = CombinedDocumentWriter(self.output_dir, converter)
        elif layout is LayoutMode.SUBDIRECTORIES:
            self.writer = SplitDocumentWriter(self.output_dir, flat=False, converter=converter)
        elif layout is LayoutMode.FLAT:
            self.writer = SplitDocumentWriter(self.output_dir, flat=True, converter=converter)
        else:
            raise ExportError(f"Unknown layout mode: {layout}")

    async def export(self, pages: Sequence[PageRecord]) -> List[Path]:
        """Write pages to the output directory; the first returned path is the main document."""
        if not pages:
            raise ExportError("No pages to export")

        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ExportError(f"Cannot create output directory {self.output_dir}: {e}") from e

        paths = await self.writer.write(pages)
        self.logger.info(f"Exported {len(pages)} pages to {paths[0]} ({self.layout.value} layout)")
        return paths
