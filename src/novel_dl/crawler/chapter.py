"""Fetch a single chapter page and extract its title and text."""

from enum import Enum
from typing import Awaitable, Callable, Optional

import structlog
from bs4 import BeautifulSoup
from pydantic import BaseModel

from novel_dl.crawler.sanitizer import ENTITY_FORMATTER, sanitize_filename, sanitize_html
from novel_dl.crawler.sites import resolve_site

logger = structlog.get_logger()

UNTITLED_EPISODE = "Untitled Episode"

FetchDocument = Callable[[str], Awaitable[Optional[BeautifulSoup]]]


class FetchFailure(str, Enum):
    """Why a chapter could not be extracted."""

    HTTP_ERROR = "http_error"
    CAPTCHA = "captcha"
    CONTENT_NOT_FOUND = "content_not_found"


class ChapterResult(BaseModel):
    """Extracted chapter, ready for packaging."""

    episode_title: str
    content: str


class ChapterOutcome(BaseModel):
    """Result of one chapter fetch attempt."""

    url: str
    result: Optional[ChapterResult] = None
    failure: Optional[FetchFailure] = None

    @property
    def ok(self) -> bool:
        return self.result is not None


class ChapterFetcher:
    """Extract chapters using the site adapter for each URL."""

    def __init__(self, fetch_document: FetchDocument):
        """Initialize the fetcher.

        Args:
            fetch_document: Coroutine returning the parsed page, or None when
                the request failed
        """
        self._fetch_document = fetch_document

    async def fetch(self, url: str) -> ChapterOutcome:
        """Fetch one chapter and report why it failed, if it did."""
        doc = await self._fetch_document(url)
        if doc is None:
            return ChapterOutcome(url=url, failure=FetchFailure.HTTP_ERROR)

        site = resolve_site(url)

        if site.is_captcha_page(doc):
            logger.warning("captcha_detected", url=url, site=site.name)
            return ChapterOutcome(url=url, failure=FetchFailure.CAPTCHA)

        title_elem = doc.select_one(site.title_selector)
        episode_title = UNTITLED_EPISODE
        if title_elem is not None:
            episode_title = site.process_title(title_elem) or UNTITLED_EPISODE

        content_elem = doc.select_one(site.content_selector)
        if content_elem is None:
            logger.error("content_not_found", url=url, selector=site.content_selector)
            return ChapterOutcome(url=url, failure=FetchFailure.CONTENT_NOT_FOUND)

        raw_html = content_elem.decode_contents(formatter=ENTITY_FORMATTER)
        content = sanitize_html(raw_html, site)
        logger.debug("chapter_extracted", url=url, title=episode_title, chars=len(content))

        return ChapterOutcome(
            url=url,
            result=ChapterResult(
                episode_title=sanitize_filename(episode_title),
                content=content,
            ),
        )

    async def fetch_chapter(self, url: str) -> Optional[ChapterResult]:
        """Fetch one chapter, returning None on any failure."""
        outcome = await self.fetch(url)
        return outcome.result
