"""Crawler module: site adapters, text cleanup, link discovery and chapter fetch."""

from novel_dl.crawler.base import BaseCrawler
from novel_dl.crawler.chapter import ChapterFetcher, ChapterOutcome, ChapterResult, FetchFailure
from novel_dl.crawler.pagination import PaginationCrawler
from novel_dl.crawler.sites import SiteConfig, resolve_site

__all__ = [
    "BaseCrawler",
    "ChapterFetcher",
    "ChapterOutcome",
    "ChapterResult",
    "FetchFailure",
    "PaginationCrawler",
    "SiteConfig",
    "resolve_site",
]
