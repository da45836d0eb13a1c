"""Shared test fixtures."""

import pytest

from doc_export.utils.config import CrawlPolicy


@pytest.fixture
def policy():
    """Fast policy for engine tests."""
    return CrawlPolicy(max_concurrency=3, request_timeout=1000, max_run_time=5000)
