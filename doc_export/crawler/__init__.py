"""
Web crawler core components.
"""

from .url_frontier import URLFrontier, URLTask, VisitedSet, normalize_url
from .fetcher import WebFetcher, FetchResult
from .parser import ContentParser, ParsedContent
from .scheduler import CrawlerScheduler, CrawlState, PageRecord

__all__ = [
    'URLFrontier', 'URLTask', 'VisitedSet', 'normalize_url',
    'WebFetcher', 'FetchResult',
    'ContentParser', 'ParsedContent',
    'CrawlerScheduler', 'CrawlState', 'PageRecord'
]
