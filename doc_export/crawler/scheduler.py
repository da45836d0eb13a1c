"""
Crawl engine that drives the frontier with a fixed pool of workers.
"""

import asyncio
import enum
import html
import logging
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlsplit

from . import link_filter
from .fetcher import FetchResult, WebFetcher
from .url_frontier import URLFrontier, URLTask, normalize_url
from ..utils.config import CrawlPolicy
from ..utils.logger import get_crawler_logger
from ..utils.monitoring import CrawlerMonitor


# Extra time granted to in-flight fetches once a stop has been requested
STOP_GRACE_SECONDS = 1.0


@dataclass(frozen=True)
class PageRecord:
    """A successfully fetched page."""
    url: str
    content: str
    links: Tuple[str, ...] = ()
    title: Optional[str] = None


class CrawlState(enum.Enum):
    RUNNING = 'running'
    STOPPING = 'stopping'
    STOPPED = 'stopped'


@dataclass
class CrawlStats:
    """Statistics for one crawl run."""
    start_time: float
    pages_fetched: int = 0
    fetch_failures: int = 0
    errors: int = 0
    links_admitted: int = 0
    links_rejected: int = 0
    max_depth_reached: int = 0
    stop_reason: Optional[str] = None

    @property
    def elapsed_time(self) -> float:
        return time.monotonic() - self.start_time


class CrawlerScheduler:
    """
    Crawls a site from a seed URL within the budgets of a CrawlPolicy.

    The seed is fetched first and anchors the crawl domain; its links are
    then fanned out to ``max_concurrency`` workers. The run ends when the
    queue drains, the URL budget is spent, the run time elapses or
    ``stop()`` is called. Records are collected in completion order.
    """

    def __init__(self, policy: CrawlPolicy, fetcher: Optional[WebFetcher] = None,
                 monitor: Optional[CrawlerMonitor] = None):
        self.policy = policy
        self.logger = logging.getLogger(__name__)
        self.monitor = monitor or CrawlerMonitor()

        self.fetcher = fetcher
        self._owns_fetcher = fetcher is None

        self.state = CrawlState.STOPPED
        self.frontier: Optional[URLFrontier] = None
        self.results: List[PageRecord] = []
        self.stats = CrawlStats(start_time=time.monotonic())
        self.base_domain: Optional[str] = None

        self._stop_event: Optional[asyncio.Event] = None
        self._seed_error: Optional[str] = None
        self._active_workers = 0

    async def __aenter__(self):
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def initialize(self):
        """Create and start the default fetcher if none was supplied."""
        if self.fetcher is None:
            self.fetcher = WebFetcher(
                user_agent=self.policy.user_agent,
                request_timeout=self.policy.request_timeout,
                max_concurrent_requests=self.policy.max_concurrency
            )
        if self._owns_fetcher:
            await self.fetcher.start()

    async def close(self):
        if self._owns_fetcher and self.fetcher:
            await self.fetcher.close()

    def _reset(self):
        self.frontier = URLFrontier(self.policy.max_urls)
        self.results = []
        self.stats = CrawlStats(start_time=time.monotonic())
        self._stop_event = asyncio.Event()
        self._seed_error = None
        self._active_workers = 0

    @property
    def is_running(self) -> bool:
        return self.state is CrawlState.RUNNING

    def stop(self, reason: str):
        """Stop admitting work. In-flight fetches are allowed to finish."""
        if self.state is not CrawlState.RUNNING:
            return
        self.logger.info(f"{reason}. Stopping crawler.")
        self.stats.stop_reason = reason
        self.state = CrawlState.STOPPING
        self._stop_event.set()

    async def crawl(self, seed_url: str) -> List[PageRecord]:
        """
        Crawl from ``seed_url`` and return the fetched pages.

        Never returns an empty list: if nothing could be fetched, a single
        record titled "Error" describes the seed failure.
        """
        if self.fetcher is None:
            await self.initialize()

        self._reset()
        seed_url = normalize_url(seed_url)
        self.base_domain = urlsplit(seed_url).hostname
        self.state = CrawlState.RUNNING

        self.logger.info(f"Starting crawler with max {self.policy.max_urls} URLs and "
                         f"{self.policy.max_concurrency} concurrent requests")
        self.logger.info(f"Request timeout: {self.policy.request_timeout_seconds}s, "
                         f"Max run time: {self.policy.max_run_time_seconds}s")

        timer = asyncio.create_task(self._run_timer())
        try:
            try:
                await self._process_url(URLTask(url=seed_url, depth=0), is_seed=True)
            except Exception as e:
                self.stats.errors += 1
                self._seed_error = str(e) or type(e).__name__
                self.logger.error(f"Error processing seed {seed_url}: {e}", exc_info=True)

            if self.results and self.is_running:
                await self._run_workers()
        finally:
            timer.cancel()
            await asyncio.gather(timer, return_exceptions=True)
            if self.stats.stop_reason is None:
                self.stats.stop_reason = "Frontier exhausted"
            self.state = CrawlState.STOPPED
            self.frontier.clear()

        self._log_final_stats()

        if not self.results:
            return [self._error_record(seed_url)]
        return list(self.results)

    async def _run_timer(self):
        await asyncio.sleep(self.policy.max_run_time_seconds)
        self.stop("Reached maximum run time")

    async def _run_workers(self):
        """Drain the frontier with a fixed pool of workers until it empties or a stop is requested."""
        workers = [
            asyncio.create_task(self._worker(f"worker-{i}"))
            for i in range(self.policy.max_concurrency)
        ]
        self.logger.debug(f"Started {len(workers)} workers")

        drained = asyncio.create_task(self.frontier.join())
        stopped = asyncio.create_task(self._stop_event.wait())
        try:
            await asyncio.wait({drained, stopped}, return_when=asyncio.FIRST_COMPLETED)

            if not drained.done():
                self.frontier.clear()
                grace = self.policy.request_timeout_seconds + STOP_GRACE_SECONDS
                await asyncio.wait({drained}, timeout=grace)
                if not drained.done():
                    self.logger.warning(f"{self._active_workers} fetches still running after stop, "
                                        f"abandoning them")
        finally:
            self.state = CrawlState.STOPPED
            for task in (drained, stopped, *workers):
                task.cancel()
            await asyncio.gather(drained, stopped, *workers, return_exceptions=True)
            self.monitor.update_active_workers(0)

    async def _worker(self, worker_id: str):
        """Worker coroutine that processes URLs from the frontier."""
        logger = get_crawler_logger(__name__, worker=worker_id)
        logger.debug(f"Worker {worker_id} started")

        while True:
            url_task = await self.frontier.get_next_url()
            self._active_workers += 1
            self.monitor.update_active_workers(self._active_workers)
            try:
                await self._process_url(url_task)
            except Exception as e:
                self.stats.errors += 1
                logger.log_url_event(logging.ERROR, url_task.url,
                                     f"Error processing {url_task.url}: {e}", exc_info=True)
            finally:
                self._active_workers -= 1
                self.frontier.task_done()
                self.monitor.update_queue_size(self.frontier.qsize())

    async def _process_url(self, url_task: URLTask, is_seed: bool = False):
        """Fetch one URL and queue the links it admits."""
        url = normalize_url(url_task.url)

        if not self.is_running:
            return
        if not await self.frontier.claim(url):
            return
        if self.frontier.budget_exhausted:
            self.stop("Reached maximum number of URLs")

        self.stats.max_depth_reached = max(self.stats.max_depth_reached, url_task.depth)
        self.logger.info(f"Processing: {self.frontier.dispatched}/{self.policy.max_urls} pages ({url})")

        result: FetchResult = await self.fetcher.fetch(url, self.policy.request_timeout)

        if result.ok:
            self.results.append(PageRecord(
                url=url,
                content=result.content,
                links=tuple(result.links),
                title=result.title
            ))
            self.stats.pages_fetched += 1
            self.monitor.record_page_fetched(url, result.fetch_time)
        else:
            self.stats.fetch_failures += 1
            self.monitor.record_fetch_failure(url, result.error or "Empty content", result.fetch_time)
            if is_seed:
                self._seed_error = result.error or "Empty content"

        if not self.is_running:
            return

        self._queue_new_urls(url, result.links, url_task.depth + 1)

    def _queue_new_urls(self, page_url: str, links: List[str], depth: int):
        """Queue links from a page that pass the link filter."""
        added_count = 0
        for link in links:
            if not self.is_running or self.frontier.budget_exhausted:
                break

            reason = link_filter.rejection_reason(link, page_url, self.base_domain, self.policy)
            if reason is not None:
                self.stats.links_rejected += 1
                self.monitor.record_link_rejected(reason)
                continue

            normalized = normalize_url(link_filter.normalize_link(link, page_url))
            if self.frontier.add_url(URLTask(url=normalized, depth=depth, parent_url=page_url)):
                self.stats.links_admitted += 1
                added_count += 1

        if added_count:
            self.logger.debug(f"Queued {added_count} new URLs from {page_url}")
        self.monitor.update_queue_size(self.frontier.qsize())

    def _error_record(self, seed_url: str) -> PageRecord:
        message = self._seed_error or "The crawler was unable to process this page."
        return PageRecord(
            url=seed_url,
            content=f"<h1>Error</h1><p>An error occurred while crawling: {html.escape(message)}</p>",
            title="Error"
        )

    def _log_final_stats(self):
        frontier_stats = self.frontier.get_stats()

        self.logger.info("=== CRAWL COMPLETED ===")
        self.logger.info(f"Stop reason: {self.stats.stop_reason}")
        self.logger.info(f"Pages fetched: {self.stats.pages_fetched}")
        self.logger.info(f"Fetch failures: {self.stats.fetch_failures}")
        self.logger.info(f"URLs dispatched: {frontier_stats['total_dispatched']}/{self.policy.max_urls}")
        self.logger.info(f"Links admitted/rejected: {self.stats.links_admitted}/{self.stats.links_rejected}")
        self.logger.info(f"Deepest level: {self.stats.max_depth_reached}")
        self.logger.info(f"Total time: {self.stats.elapsed_time:.1f} seconds")
        if self.stats.errors:
            self.logger.warning(f"Errors: {self.stats.errors}")
        if frontier_stats['bloom_false_positives']:
            self.logger.debug(f"Bloom filter false positives: {frontier_stats['bloom_false_positives']}")

    def get_stats(self) -> Dict:
        """Get current crawl statistics."""
        frontier_stats = self.frontier.get_stats() if self.frontier else {}
        return {
            'state': self.state.value,
            'pages_fetched': self.stats.pages_fetched,
            'fetch_failures': self.stats.fetch_failures,
            'errors': self.stats.errors,
            'links_admitted': self.stats.links_admitted,
            'links_rejected': self.stats.links_rejected,
            'max_depth_reached': self.stats.max_depth_reached,
            'elapsed_time': self.stats.elapsed_time,
            'stop_reason': self.stats.stop_reason,
            'urls_dispatched': frontier_stats.get('total_dispatched', 0),
            'urls_in_queue': frontier_stats.get('total_queued', 0),
        }
