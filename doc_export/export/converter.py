"""
HTML to Markdown conversion for exported pages.
"""

import re

from bs4 import BeautifulSoup, Comment
from markdownify import ATX, markdownify


class DocumentConverter:
    """Converts raw page HTML into Markdown."""

    strip_tags = ('style', 'script', 'noscript')

    def __init__(self, features: str = 'lxml'):
        self.features = features
        self.blank_lines_pattern = re.compile(r'\n{3,}')

    def clean_html(self, html: str) -> str:
        """Remove style and script blocks and comments before conversion."""
        soup = BeautifulSoup(html, self.features)

        for element in soup(list(self.strip_tags)):
            element.decompose()

        for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
            comment.extract()

        # Only the body is rendered; the title is emitted separately as a heading
        body = soup.body or soup
        return str(body)

    def convert_to_markdown(self, html: str) -> str:
        markdown = markdownify(
            self.clean_html(html),
            heading_style=ATX,
            bullets='-',
            strip=['img'],
        )
        return self.blank_lines_pattern.sub('\n\n', markdown).strip()
