"""Test doubles and page builders shared by the test modules."""

import asyncio
from typing import Callable, Dict, List, Optional, Union

from doc_export.crawler.fetcher import FetchResult
from doc_export.crawler.parser import ContentParser


def html_page(title: Optional[str], *hrefs: str, body: str = '') -> str:
    """Build a small HTML page with the given title and anchors."""
    head = f"<head><title>{title}</title></head>" if title is not None else "<head></head>"
    anchors = ''.join(f'<a href="{href}">link</a>' for href in hrefs)
    return f"<html>{head}<body>{body}{anchors}</body></html>"


class StubFetcher:
    """
    Fetcher double serving pages from a dict (or a callable) instead of the network.

    A missing page or a ``None`` entry is a connection failure; an exception
    entry is raised from ``fetch``.
    """

    def __init__(self, site: Union[Dict[str, object], Callable[[str], object]], delay: float = 0.0):
        self.site = site
        self.delay = delay
        self.calls: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.parser = ContentParser()

    def _lookup(self, url: str):
        if callable(self.site):
            return self.site(url)
        return self.site.get(url)

    async def fetch(self, url: str, timeout_ms: Optional[int] = None) -> FetchResult:
        self.calls.append(url)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)

            page = self._lookup(url)
            if isinstance(page, Exception):
                raise page
            if page is None:
                return FetchResult(url=url, error="Client error: Cannot connect to host")

            parsed = self.parser.parse(url, page)
            return FetchResult(url=url, status_code=200, content=page,
                               links=parsed.links, title=parsed.title)
        finally:
            self.in_flight -= 1

