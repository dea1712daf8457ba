"""Base HTTP crawler with encoding support and retry logic."""

import asyncio
from typing import Optional

import httpx
import structlog
from bs4 import BeautifulSoup

from novel_dl.config import CrawlerConfig, get_config
from novel_dl.utils.encoding import decode_content

logger = structlog.get_logger()


class BaseCrawler:
    """HTTP client with encoding support and retry logic."""

    def __init__(
        self,
        config: Optional[CrawlerConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the crawler.

        Args:
            config: Crawler configuration, uses global config if None
            transport: Optional httpx transport (tests pass a MockTransport)
        """
        self.config = config or get_config().crawler
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "BaseCrawler":
        """Async context manager entry."""
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.config.timeout_seconds),
            headers={"User-Agent": self.config.user_agent},
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the HTTP client, raise if not initialized."""
        if self._client is None:
            raise RuntimeError("Crawler not initialized. Use 'async with' context manager.")
        return self._client

    async def fetch_raw(self, url: str) -> bytes:
        """Fetch URL content as raw bytes.

        Args:
            url: URL to fetch

        Returns:
            Raw bytes content
        """
        last_error = None

        for attempt in range(self.config.max_retries + 1):
            try:
                response = await self.client.get(url)
                response.raise_for_status()
                return response.content

            except httpx.HTTPStatusError as e:
                last_error = e
                logger.warning("http_error", status=e.response.status_code, url=url)
                if e.response.status_code in (403, 404, 410):
                    raise  # Don't retry these

            except (httpx.TimeoutException, httpx.ConnectError) as e:
                last_error = e
                logger.warning("fetch_retry", attempt=attempt + 1, error=str(e), url=url)

            if attempt < self.config.max_retries:
                delay = self.config.delay_ms / 1000 * (attempt + 1)
                await asyncio.sleep(delay)

        raise last_error or RuntimeError(f"Failed to fetch {url}")

    async def fetch(self, url: str, encoding: Optional[str] = None) -> str:
        """Fetch URL content as decoded string.

        Args:
            url: URL to fetch
            encoding: Optional explicit encoding, auto-detect if None

        Returns:
            Decoded string content
        """
        content = await self.fetch_raw(url)
        return decode_content(content, encoding)

    async def fetch_document(self, url: str) -> Optional[BeautifulSoup]:
        """Fetch and parse a page, returning None on any HTTP failure.

        This is the page-fetch primitive handed to the pagination crawler
        and the chapter fetcher; failures are logged, not raised.
        """
        try:
            html = await self.fetch(url)
        except httpx.HTTPError as e:
            logger.warning("fetch_failed", url=url, error=str(e) or type(e).__name__)
            return None

        return BeautifulSoup(html, "lxml")
