"""
HTML parser for extracting page titles and outbound links.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional
from urllib.parse import urljoin, urlsplit

from bs4 import BeautifulSoup


@dataclass
class ParsedContent:
    """Container for parsed web page content."""
    url: str
    title: Optional[str] = None
    links: List[str] = field(default_factory=list)


class ContentParser:
    """
    Parses HTML content to extract the page title and anchor targets.
    """

    def __init__(self, features: str = 'lxml'):
        self.features = features
        self.logger = logging.getLogger(__name__)
        self.whitespace_pattern = re.compile(r'\s+')

    def parse(self, url: str, html_content: str) -> ParsedContent:
        """
        Parse HTML content.

        Args:
            url: The URL of the page, used to resolve relative links
            html_content: Raw HTML content

        Returns:
            ParsedContent with the trimmed title and absolute links in document order
        """
        soup = BeautifulSoup(html_content, self.features)

        parsed_content = ParsedContent(url=url)
        self._extract_title(soup, parsed_content)
        self._extract_links(soup, parsed_content, url)

        self.logger.debug(f"Parsed {url}: title={parsed_content.title!r}, "
                          f"{len(parsed_content.links)} links")
        return parsed_content

    def _extract_title(self, soup: BeautifulSoup, parsed_content: ParsedContent):
        title_tag = soup.find('title')
        if title_tag:
            title = self.whitespace_pattern.sub(' ', title_tag.get_text()).strip()
            parsed_content.title = title or None

    def _extract_links(self, soup: BeautifulSoup, parsed_content: ParsedContent, base_url: str):
        """Resolve every anchor href against the page URL."""
        links = []

        for anchor in soup.find_all('a', href=True):
            href = anchor['href'].strip()
            if not href:
                continue

            try:
                absolute_url = urljoin(base_url, href)
                urlsplit(absolute_url).port
            except ValueError:
                self.logger.debug(f"Dropping malformed href on {base_url}: {href!r}")
                continue

            links.append(absolute_url)

        parsed_content.links = links
