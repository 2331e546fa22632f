from __future__ import annotations

import random

import httpx
import pytest

from pctabot.domain import FetchError
from pctabot.page_fetcher import USER_AGENTS, PageFetcher

URL = "https://portal.permit.pcta.org/availability/mexican-border.php"


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_fetch_sends_no_cache_headers_and_random_user_agent() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text="<html>ok</html>")

    async with _client(handler) as client:
        fetcher = PageFetcher(URL, client=client, rng=random.Random(1))
        text = await fetcher.fetch()

    assert text == "<html>ok</html>"
    assert str(seen[0].url) == URL
    assert seen[0].headers["Cache-Control"] == "no-cache"
    assert seen[0].headers["Pragma"] == "no-cache"
    assert seen[0].headers["User-Agent"] in USER_AGENTS


@pytest.mark.asyncio
async def test_http_error_status_is_fetch_error() -> None:
    async with _client(lambda request: httpx.Response(503)) as client:
        fetcher = PageFetcher(URL, client=client)
        with pytest.raises(FetchError, match="HTTP 503"):
            await fetcher.fetch()


@pytest.mark.asyncio
async def test_transport_error_is_fetch_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler) as client:
        fetcher = PageFetcher(URL, client=client)
        with pytest.raises(FetchError, match="ConnectError"):
            await fetcher.fetch()


@pytest.mark.asyncio
async def test_owned_client_is_closed_on_exit() -> None:
    async with PageFetcher(URL) as fetcher:
        client = fetcher._client
        assert not client.is_closed

    assert client.is_closed
