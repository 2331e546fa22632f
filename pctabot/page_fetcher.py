from __future__ import annotations

import random

import httpx

from pctabot.domain import FetchError

USER_AGENTS: tuple[str, ...] = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.4 Safari/605.1.15",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:125.0) Gecko/20100101 Firefox/125.0",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14.4; rv:125.0) Gecko/20100101 Firefox/125.0",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36 Edg/124.0.0.0",
)


class PageFetcher:
    """Downloads the availability page, reusing one HTTP client across ticks."""

    def __init__(
        self,
        url: str,
        *,
        timeout_seconds: float = 20.0,
        client: httpx.AsyncClient | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.url = url
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds, follow_redirects=True)
        self._rng = rng or random.Random()

    def build_headers(self) -> dict[str, str]:
        return {
            "User-Agent": self._rng.choice(USER_AGENTS),
            "Cache-Control": "no-cache",
            "Pragma": "no-cache",
        }

    async def fetch(self) -> str:
        try:
            r = await self._client.get(self.url, headers=self.build_headers())
            r.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise FetchError(f"GET {self.url} returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise FetchError(f"GET {self.url} failed ({type(e).__name__}: {e})") from e
        return r.text

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> PageFetcher:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
