"""
URL frontier for a single crawl run.

Holds the pending task queue, the visited set and the dispatch counter.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, Optional, Set
from urllib.parse import urlsplit, urlunsplit

from bloom_filter2 import BloomFilter


def normalize_url(url: str) -> str:
    """
    Strip the query string and fragment from a URL.

    The scheme and host are lowercased and an empty path becomes '/', so
    ``https://EX.com`` and ``https://ex.com/`` share one key.
    """
    try:
        parts = urlsplit(url)
    except ValueError:
        return url.split('#', 1)[0].split('?', 1)[0]
    path = parts.path
    if not path and parts.netloc:
        path = '/'
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), path, '', ''))


@dataclass
class URLTask:
    """Represents a URL crawling task."""
    url: str
    depth: int = 0
    parent_url: Optional[str] = None
    discovered_time: float = field(default_factory=time.time)


class VisitedSet:
    """
    Tracks URLs that have been claimed during a run.

    A bloom filter answers the common "never seen" case; the exact set keeps
    the authoritative membership. A bloom filter positive is trusted without
    consulting the exact set, so a false positive skips that URL for the
    rest of the run instead of fetching it twice.
    """

    def __init__(self, capacity: int = 10000, error_rate: float = 0.001):
        self._visited: Set[str] = set()
        self._bloom = BloomFilter(max_elements=capacity, error_rate=error_rate)
        self.false_positives = 0

    def is_visited(self, url: str) -> bool:
        url = normalize_url(url)
        if url not in self._bloom:
            return False
        if url not in self._visited:
            self.false_positives += 1
        return True

    def mark_visited(self, url: str):
        url = normalize_url(url)
        self._visited.add(url)
        self._bloom.add(url)

    def __contains__(self, url: str) -> bool:
        return self.is_visited(url)

    def __len__(self) -> int:
        return len(self._visited)


class URLFrontier:
    """
    Pending URL tasks plus the bookkeeping that decides which URLs get fetched.

    ``claim`` is the only place a URL becomes visited and counts toward the
    URL budget; the check, the mark and the increment happen under one lock.
    """

    def __init__(self, max_urls: int):
        self.max_urls = max_urls
        self.visited = VisitedSet()
        self.dispatched = 0
        self.logger = logging.getLogger(__name__)

        self._queue: asyncio.Queue = asyncio.Queue()
        self._claim_lock = asyncio.Lock()

    @property
    def budget_exhausted(self) -> bool:
        return self.dispatched >= self.max_urls

    async def claim(self, url: str) -> bool:
        """
        Atomically claim a normalized URL for fetching.

        Returns False if the URL was already visited or the URL budget is spent.
        """
        async with self._claim_lock:
            if self.budget_exhausted or self.visited.is_visited(url):
                return False
            self.visited.mark_visited(url)
            self.dispatched += 1
            return True

    def add_url(self, task: URLTask) -> bool:
        """
        Queue a task. Returns False if its URL was already visited.
        """
        if self.visited.is_visited(task.url):
            return False

        self._queue.put_nowait(task)
        self.logger.debug(f"Queued {task.url} (depth {task.depth})")
        return True

    async def get_next_url(self) -> URLTask:
        """Wait for the next pending task."""
        return await self._queue.get()

    def task_done(self):
        self._queue.task_done()

    async def join(self):
        """Wait until every queued task has been processed."""
        await self._queue.join()

    def clear(self) -> int:
        """Discard all pending tasks. Returns how many were dropped."""
        dropped = 0
        while True:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            self._queue.task_done()
            dropped += 1

        if dropped:
            self.logger.debug(f"Dropped {dropped} pending URLs from the frontier")
        return dropped

    def qsize(self) -> int:
        return self._queue.qsize()

    def is_empty(self) -> bool:
        return self._queue.empty()

    def get_stats(self) -> Dict[str, int]:
        """Get frontier statistics."""
        return {
            'total_queued': self._queue.qsize(),
            'total_dispatched': self.dispatched,
            'total_visited': len(self.visited),
            'bloom_false_positives': self.visited.false_positives,
        }
