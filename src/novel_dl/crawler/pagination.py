"""Chapter link discovery across a paginated listing page."""

import asyncio
from typing import Optional
from urllib.parse import urljoin

import structlog
from bs4 import BeautifulSoup

from novel_dl.crawler.chapter import FetchDocument
from novel_dl.crawler.sanitizer import sanitize_filename
from novel_dl.crawler.sites import SiteConfig, resolve_site

logger = structlog.get_logger()

DEFAULT_PAGE_DELAY_MS = 2000


def extract_episode_links(doc: BeautifulSoup, base_url: str, selector: str) -> list[str]:
    """Collect absolute chapter URLs from a listing page, in page order.

    Args:
        doc: Parsed listing page
        base_url: URL of the page, for resolving relative links
        selector: CSS selector matching the chapter links

    Returns:
        Absolute URLs; duplicates are kept
    """
    links = []
    for link in doc.select(selector):
        href = link.get("href") or link.get("data-href")
        if not href:
            continue
        url = urljoin(base_url, href)
        if "javascript" in url:
            continue
        links.append(url)
    return links


def detect_total_pages(doc: BeautifulSoup, selector: str) -> int:
    """Read the page count from the last entry of the pagination widget."""
    pagination = doc.select_one(selector)
    if pagination is None:
        return 1

    children = pagination.find_all(recursive=False)
    if not children:
        return 1

    try:
        return max(int(children[-1].get_text(strip=True)), 1)
    except ValueError:
        return 1


def build_page_url(base_url: str, page: int) -> str:
    """URL of listing page ``page``: existing query dropped, ``?page=N`` added."""
    return f"{base_url.split('?')[0]}?page={page}"


def extract_novel_title(doc: BeautifulSoup, site: SiteConfig) -> str:
    """Novel title from the listing page, safe for use as a file name."""
    title_elem = doc.select_one(site.title_selector) or doc.find("h1") or doc.find("title")
    if title_elem is None:
        return "Novel"
    title = title_elem.get_text(strip=True)
    return sanitize_filename(title) if title else "Novel"


class PaginationCrawler:
    """Walk every listing page and gather chapter links oldest-first."""

    def __init__(
        self,
        fetch_document: FetchDocument,
        page_delay_ms: int = DEFAULT_PAGE_DELAY_MS,
    ):
        """Initialize the crawler.

        Args:
            fetch_document: Coroutine returning the parsed page or None
            page_delay_ms: Wait before each listing page after the first
        """
        self._fetch_document = fetch_document
        self.page_delay_ms = page_delay_ms

    async def discover_all_links(
        self,
        start_url: str,
        first_page: Optional[BeautifulSoup] = None,
        total_pages: Optional[int] = None,
    ) -> list[str]:
        """Discover chapter links from every listing page.

        Args:
            start_url: URL of the first listing page
            first_page: Already-parsed first page, fetched if None
            total_pages: Page count override, detected from the page if None

        Returns:
            Chapter URLs with the earliest-published chapter first, or an
            empty list when the first page has no chapter links
        """
        site = resolve_site(start_url)

        if first_page is None:
            first_page = await self._fetch_document(start_url)
            if first_page is None:
                logger.error("listing_fetch_failed", url=start_url)
                return []

        links = extract_episode_links(first_page, start_url, site.episode_links_selector)
        if not links:
            logger.warning(
                "no_episode_links", url=start_url, selector=site.episode_links_selector
            )
            return []

        if total_pages is None:
            total_pages = detect_total_pages(first_page, site.pagination_selector)

        logger.info("listing_discovered", url=start_url, pages=total_pages, first_page=len(links))

        for page in range(2, total_pages + 1):
            await asyncio.sleep(self.page_delay_ms / 1000)

            page_url = build_page_url(start_url, page)
            doc = await self._fetch_document(page_url)
            if doc is None:
                logger.warning("page_skipped", page=page, url=page_url)
                continue

            page_links = extract_episode_links(doc, page_url, site.episode_links_selector)
            logger.debug("page_links", page=page, count=len(page_links))
            links.extend(page_links)

        links.reverse()
        logger.info("links_collected", total=len(links))
        return links
