"""
Link admission rules for discovered hyperlinks.
"""

import posixpath
from typing import Optional
from urllib.parse import urldefrag, urljoin, urlsplit, urlunsplit

from ..utils.config import CrawlPolicy


SKIP_EXTENSIONS = frozenset(['.jpg', '.jpeg', '.png', '.gif', '.pdf', '.zip', '.css', '.js'])

# Longest query string (including the leading '?') a link may carry
MAX_QUERY_LENGTH = 20


def normalize_link(link: str, current_url: str) -> Optional[str]:
    """
    Resolve a link against the page it was found on and drop its fragment.

    Scheme and host are lowercased and an empty path becomes '/', matching
    how browsers serialize URLs before prefixes are compared.
    """
    try:
        absolute_url = urljoin(current_url, link.strip())
        absolute_url, _ = urldefrag(absolute_url)
        parsed = urlsplit(absolute_url)
        # Accessing hostname/port validates the netloc
        if not parsed.hostname:
            return None
        parsed.port
    except ValueError:
        return None
    return urlunsplit((parsed.scheme.lower(), parsed.netloc.lower(), parsed.path or '/',
                       parsed.query, ''))


def rejection_reason(link: str, current_url: str, base_domain: str,
                     policy: CrawlPolicy) -> Optional[str]:
    """
    Return the name of the first rule that rejects ``link``, or None if it is admitted.

    Rules are checked in order: unparsable, scheme, off_domain, extension,
    query, not_allowed, ignored.
    """
    url = normalize_link(link, current_url)
    if url is None:
        return 'unparsable'

    parsed = urlsplit(url)

    if parsed.scheme not in ('http', 'https'):
        return 'scheme'

    if policy.same_domain and parsed.hostname != base_domain:
        return 'off_domain'

    extension = posixpath.splitext(parsed.path)[1].lower()
    if extension in SKIP_EXTENSIONS:
        return 'extension'

    if parsed.query and len(parsed.query) + 1 > MAX_QUERY_LENGTH:
        return 'query'

    if policy.allowed_prefixes and not any(url.startswith(prefix) for prefix in policy.allowed_prefixes):
        return 'not_allowed'

    if policy.ignore_prefixes and any(url.startswith(prefix) for prefix in policy.ignore_prefixes):
        return 'ignored'

    return None


def admit(link: str, current_url: str, base_domain: str, policy: CrawlPolicy) -> bool:
    """Check if a discovered link should be crawled."""
    return rejection_reason(link, current_url, base_domain, policy) is None
