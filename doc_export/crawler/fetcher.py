"""
Web page fetcher with per-request timeouts.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import aiohttp
from aiohttp import ClientError, ClientSession, ClientTimeout

from .parser import ContentParser
from ..utils.config import DEFAULT_USER_AGENT


@dataclass
class FetchResult:
    """Result of a fetch operation. ``error`` is set on failure."""
    url: str
    status_code: int = 0
    content: Optional[str] = None
    links: List[str] = field(default_factory=list)
    title: Optional[str] = None
    error: Optional[str] = None
    fetch_time: float = 0.0
    content_type: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and bool(self.content)


class WebFetcher:
    """
    Fetches web pages and parses them, converting every failure into a FetchResult.
    """

    text_types = (
        'text/html',
        'text/plain',
        'text/xml',
        'application/xml',
        'application/xhtml+xml',
    )

    def __init__(self, user_agent: str = DEFAULT_USER_AGENT, request_timeout: int = 5000,
                 max_concurrent_requests: int = 10, parser: Optional[ContentParser] = None,
                 max_content_size: int = 10 * 1024 * 1024):
        self.user_agent = user_agent
        self.request_timeout = request_timeout  # milliseconds
        self.max_concurrent_requests = max_concurrent_requests
        self.max_content_size = max_content_size
        self.parser = parser or ContentParser()

        self.logger = logging.getLogger(__name__)
        self.session: Optional[ClientSession] = None

        self.stats = {
            'total_requests': 0,
            'successful_requests': 0,
            'failed_requests': 0,
            'timeouts': 0,
            'total_bytes_downloaded': 0
        }

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def start(self):
        """Initialize the fetcher session."""
        if self.session is None:
            self.session = aiohttp.ClientSession(
                headers={'User-Agent': self.user_agent},
                connector=aiohttp.TCPConnector(
                    limit=self.max_concurrent_requests * 2,
                    ttl_dns_cache=300,
                )
            )
            self.logger.debug("WebFetcher session started")

    async def close(self):
        """Close the fetcher session."""
        if self.session:
            await self.session.close()
            self.session = None
            self.logger.debug("WebFetcher session closed")

    async def fetch(self, url: str, timeout_ms: Optional[int] = None) -> FetchResult:
        """
        Fetch and parse a single URL.

        Args:
            url: The URL to fetch
            timeout_ms: Overall request timeout; defaults to the fetcher's timeout

        Returns:
            FetchResult with content, title and absolute links, or with ``error`` set
        """
        if self.session is None:
            await self.start()

        timeout = ClientTimeout(total=(timeout_ms or self.request_timeout) / 1000)
        start_time = time.monotonic()
        self.stats['total_requests'] += 1

        try:
            async with self.session.get(url, timeout=timeout) as response:
                content_type = response.headers.get('content-type', '').lower()

                if not self._is_text_content(content_type):
                    return self._failure(url, "Non-text content type", start_time,
                                         status_code=response.status, content_type=content_type)

                content = await self._read_content_safely(response)
                if content is None:
                    return self._failure(url, "Response body too large", start_time,
                                         status_code=response.status, content_type=content_type)
                if not content:
                    return self._failure(url, "Empty response body", start_time,
                                         status_code=response.status, content_type=content_type)

                parsed = self.parser.parse(url, content)
                fetch_time = time.monotonic() - start_time

                self.stats['successful_requests'] += 1
                self.stats['total_bytes_downloaded'] += len(content)
                self.logger.debug(f"Fetched {url}: {response.status} ({len(content)} chars, {fetch_time:.2f}s)")

                return FetchResult(
                    url=url,
                    status_code=response.status,
                    content=content,
                    links=parsed.links,
                    title=parsed.title,
                    fetch_time=fetch_time,
                    content_type=content_type
                )

        except asyncio.TimeoutError:
            self.stats['timeouts'] += 1
            return self._failure(url, "Request timeout", start_time)

        except ClientError as e:
            return self._failure(url, f"Client error: {e}", start_time)

        except Exception as e:
            self.logger.error(f"Unexpected error fetching {url}: {e}")
            return self._failure(url, f"Unexpected error: {e}", start_time)

    def _failure(self, url: str, error: str, start_time: float, status_code: int = 0,
                 content_type: Optional[str] = None) -> FetchResult:
        self.stats['failed_requests'] += 1
        self.logger.warning(f"Failed to fetch {url}: {error}")
        return FetchResult(
            url=url,
            status_code=status_code,
            error=error,
            fetch_time=time.monotonic() - start_time,
            content_type=content_type
        )

    def _is_text_content(self, content_type: str) -> bool:
        """Check if content type is text-based. A missing header counts as text."""
        if not content_type:
            return True
        return any(text_type in content_type for text_type in self.text_types)

    async def _read_content_safely(self, response) -> Optional[str]:
        """
        Read response content with a size limit.

        Returns:
            Content string, or None if the body is too large
        """
        content_length = response.headers.get('content-length')
        if content_length and content_length.isdigit() and int(content_length) > self.max_content_size:
            self.logger.warning(f"Content too large ({content_length} bytes): {response.url}")
            return None

        content_bytes = bytearray()
        async for chunk in response.content.iter_chunked(8192):
            content_bytes.extend(chunk)
            if len(content_bytes) > self.max_content_size:
                self.logger.warning(f"Content exceeded size limit during reading: {response.url}")
                return None

        encoding = response.charset or 'utf-8'
        try:
            return content_bytes.decode(encoding)
        except (UnicodeDecodeError, LookupError):
            for fallback_encoding in ('utf-8', 'cp1252'):
                try:
                    return content_bytes.decode(fallback_encoding)
                except UnicodeDecodeError:
                    continue

            return content_bytes.decode('utf-8', errors='ignore')

    def get_stats(self) -> Dict[str, int]:
        """Get fetcher statistics."""
        return self.stats.copy()
