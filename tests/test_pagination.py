"""Tests for chapter link discovery."""

from unittest.mock import AsyncMock, patch

import pytest

from novel_dl.crawler.pagination import (
    PaginationCrawler,
    build_page_url,
    detect_total_pages,
    extract_episode_links,
    extract_novel_title,
)
from novel_dl.crawler.sites import get_site

BASE_URL = "https://novels.example.com/book/42?sort=desc"
SELECTOR = get_site("default").episode_links_selector


def listing_html(chapters: list[str], pages: int = 0) -> str:
    """Listing page with links to ``chapters`` and an optional pager."""
    items = "".join(f'<li><a href="/ch/{c}">Ch {c}</a></li>' for c in chapters)
    pager = ""
    if pages:
        pager = '<div class="pagination">' + "".join(
            f"<a>{n}</a>" for n in range(1, pages + 1)
        ) + "</div>"
    return (
        "<html><head><title>Site title</title></head><body>"
        f'<h1>Book</h1><ul class="chapter-list">{items}</ul>{pager}'
        "</body></html>"
    )


def ch_url(n) -> str:
    return f"https://novels.example.com/ch/{n}"


class TestListingHelpers:
    """Test the listing page helpers."""

    def test_extract_links_resolves_relative(self, parse_html):
        """Relative hrefs become absolute URLs, in page order."""
        doc = parse_html(listing_html(["3", "2", "1"]))
        assert extract_episode_links(doc, BASE_URL, SELECTOR) == [ch_url(3), ch_url(2), ch_url(1)]

    def test_extract_links_data_href_and_filters(self, parse_html):
        """data-href is used as a fallback; javascript and empty links dropped."""
        doc = parse_html(
            '<div class="chapter-list">'
            '<a data-href="/ch/1">one</a>'
            '<a href="javascript:void(0)">js</a>'
            "<a>none</a>"
            '<a href="/ch/1">dup</a>'
            "</div>"
        )
        assert extract_episode_links(doc, BASE_URL, SELECTOR) == [ch_url(1), ch_url(1)]

    def test_detect_total_pages(self, parse_html):
        """The last pager entry gives the page count."""
        doc = parse_html(listing_html(["1"], pages=4))
        assert detect_total_pages(doc, ".pagination") == 4

    @pytest.mark.parametrize(
        "html",
        [
            "<p>no pager</p>",
            '<div class="pagination"></div>',
            '<div class="pagination"><a>1</a><a>Next</a></div>',
        ],
    )
    def test_detect_total_pages_defaults_to_one(self, parse_html, html):
        """Missing or unparsable pagers count as a single page."""
        assert detect_total_pages(parse_html(html), ".pagination") == 1

    def test_build_page_url_strips_query(self):
        """The existing query string is replaced by the page parameter."""
        assert build_page_url(BASE_URL, 3) == "https://novels.example.com/book/42?page=3"

    def test_extract_novel_title(self, parse_html):
        """Falls back to <h1> when the site title selector misses."""
        doc = parse_html(listing_html(["1"]))
        assert extract_novel_title(doc, get_site("default")) == "Book"

    def test_extract_novel_title_sanitized(self, parse_html):
        """The title is made safe for file names."""
        doc = parse_html('<h1 class="title">What? A/B</h1>')
        assert extract_novel_title(doc, get_site("default")) == "What_ A_B"

    def test_extract_novel_title_default(self, parse_html):
        """Pages without any title element use a placeholder."""
        assert extract_novel_title(parse_html("<p>x</p>"), get_site("default")) == "Novel"


class TestPaginationCrawler:
    """Test multi-page discovery."""

    @pytest.mark.asyncio
    async def test_single_page_reversed(self, fake_site):
        """Links of a single page are returned oldest first."""
        site = fake_site({BASE_URL: listing_html(["3", "2", "1"])})
        crawler = PaginationCrawler(site)

        with patch("novel_dl.crawler.pagination.asyncio.sleep", new=AsyncMock()) as sleep:
            links = await crawler.discover_all_links(BASE_URL)

        assert links == [ch_url(1), ch_url(2), ch_url(3)]
        assert site.requested == [BASE_URL]
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_page_is_skipped(self, fake_site):
        """A page that fails to load is skipped; the others still count."""
        site = fake_site(
            {
                BASE_URL: listing_html(["9", "8", "7"], pages=3),
                build_page_url(BASE_URL, 3): listing_html(["3", "2", "1"]),
            }
        )
        crawler = PaginationCrawler(site, page_delay_ms=2000)

        with patch("novel_dl.crawler.pagination.asyncio.sleep", new=AsyncMock()) as sleep:
            links = await crawler.discover_all_links(BASE_URL)

        assert links == [ch_url(n) for n in ("1", "2", "3", "7", "8", "9")]
        assert site.requested == [
            BASE_URL,
            build_page_url(BASE_URL, 2),
            build_page_url(BASE_URL, 3),
        ]
        assert sleep.await_count == 2
        sleep.assert_awaited_with(2.0)

    @pytest.mark.asyncio
    async def test_uses_given_first_page(self, parse_html, fake_site):
        """An already parsed first page is not fetched again."""
        site = fake_site({build_page_url(BASE_URL, 2): listing_html(["1"])})
        crawler = PaginationCrawler(site)
        first = parse_html(listing_html(["2"], pages=2))

        with patch("novel_dl.crawler.pagination.asyncio.sleep", new=AsyncMock()):
            links = await crawler.discover_all_links(BASE_URL, first_page=first)

        assert links == [ch_url(1), ch_url(2)]
        assert site.requested == [build_page_url(BASE_URL, 2)]

    @pytest.mark.asyncio
    async def test_total_pages_override(self, fake_site):
        """An explicit page count beats the detected one."""
        site = fake_site({BASE_URL: listing_html(["2"], pages=5)})
        crawler = PaginationCrawler(site)

        with patch("novel_dl.crawler.pagination.asyncio.sleep", new=AsyncMock()):
            links = await crawler.discover_all_links(BASE_URL, total_pages=2)

        assert links == [ch_url(2)]
        assert len(site.requested) == 2

    @pytest.mark.asyncio
    async def test_empty_seed_returns_nothing(self, fake_site):
        """No links on page one stops the crawl."""
        site = fake_site({BASE_URL: "<html><body><p>nothing</p></body></html>"})
        crawler = PaginationCrawler(site)

        assert await crawler.discover_all_links(BASE_URL) == []
        assert site.requested == [BASE_URL]

    @pytest.mark.asyncio
    async def test_seed_fetch_failure(self, fake_site):
        """A failing first page yields no links."""
        crawler = PaginationCrawler(fake_site())
        assert await crawler.discover_all_links(BASE_URL) == []
