"""Tests for WebFetcher against a local aiohttp server."""

import asyncio

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from doc_export.crawler.fetcher import WebFetcher


@pytest_asyncio.fixture
async def docs_server():
    user_agents = []

    async def index(request):
        user_agents.append(request.headers.get('User-Agent'))
        return web.Response(
            text='<html><head><title> Docs Home </title></head><body>'
                 '<a href="/guide">Guide</a><a href="api/ref#x">API</a></body></html>',
            content_type='text/html'
        )

    async def image(request):
        return web.Response(body=b'\x89PNG\r\n', content_type='image/png')

    async def empty(request):
        return web.Response(text='', content_type='text/html')

    async def slow(request):
        await asyncio.sleep(0.5)
        return web.Response(text='<title>late</title>', content_type='text/html')

    async def missing(request):
        return web.Response(status=404, text='<title>Not Found</title>', content_type='text/html')

    app = web.Application()
    app.router.add_get('/', index)
    app.router.add_get('/logo.png', image)
    app.router.add_get('/empty', empty)
    app.router.add_get('/slow', slow)
    app.router.add_get('/missing', missing)
    server = TestServer(app)
    server.user_agents = user_agents
    await server.start_server()
    yield server
    await server.close()


@pytest_asyncio.fixture
async def fetcher():
    async with WebFetcher(user_agent='TestAgent/1.0', request_timeout=2000) as fetcher:
        yield fetcher


@pytest.mark.integration
class TestWebFetcher:

    async def test_fetch_success_parses_title_and_links(self, docs_server, fetcher):
        url = str(docs_server.make_url('/'))
        result = await fetcher.fetch(url)

        assert result.ok
        assert result.status_code == 200
        assert 'Docs Home' in result.content
        assert result.title == 'Docs Home'
        assert result.links == [
            str(docs_server.make_url('/guide')),
            str(docs_server.make_url('/api/ref')) + '#x',
        ]

    async def test_sends_configured_user_agent(self, docs_server, fetcher):
        await fetcher.fetch(str(docs_server.make_url('/')))
        assert docs_server.user_agents == ['TestAgent/1.0']

    async def test_non_text_content_is_a_failure(self, docs_server, fetcher):
        result = await fetcher.fetch(str(docs_server.make_url('/logo.png')))

        assert not result.ok
        assert result.error == 'Non-text content type'
        assert result.content is None
        assert result.links == []

    async def test_empty_body_is_a_failure(self, docs_server, fetcher):
        result = await fetcher.fetch(str(docs_server.make_url('/empty')))

        assert not result.ok
        assert result.error == 'Empty response body'

    async def test_timeout_is_a_failure(self, docs_server, fetcher):
        result = await fetcher.fetch(str(docs_server.make_url('/slow')), timeout_ms=100)

        assert not result.ok
        assert result.error == 'Request timeout'
        assert result.links == []
        assert fetcher.get_stats()['timeouts'] == 1

    async def test_connection_error_is_a_failure(self, fetcher):
        result = await fetcher.fetch('http://127.0.0.1:1/')

        assert not result.ok
        assert result.error.startswith('Client error')
        assert result.links == []

    async def test_error_status_with_text_body_is_kept(self, docs_server, fetcher):
        result = await fetcher.fetch(str(docs_server.make_url('/missing')))

        assert result.ok
        assert result.status_code == 404
        assert result.title == 'Not Found'

    async def test_oversized_body_is_a_failure(self, docs_server):
        async with WebFetcher(max_content_size=10) as small_fetcher:
            result = await small_fetcher.fetch(str(docs_server.make_url('/')))

        assert not result.ok
        assert result.error == 'Response body too large'

    async def test_stats_track_outcomes(self, docs_server, fetcher):
        await fetcher.fetch(str(docs_server.make_url('/')))
        await fetcher.fetch(str(docs_server.make_url('/empty')))

        stats = fetcher.get_stats()
        assert stats['total_requests'] == 2
        assert stats['successful_requests'] == 1
        assert stats['failed_requests'] == 1
