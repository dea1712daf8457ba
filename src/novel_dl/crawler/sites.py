"""Per-site DOM extraction rules, resolved by hostname."""

import re
from dataclasses import dataclass, fields, replace
from functools import lru_cache
from typing import Any, Callable
from urllib.parse import urlparse

from bs4 import BeautifulSoup, Tag

DEFAULT_SITE = "default"


@dataclass(frozen=True)
class SiteConfig:
    """Extraction rules for one site.

    Selectors are CSS selector strings (comma-separated alternatives are
    allowed). The hooks are pure transforms over the parsed page.
    """

    name: str
    content_selector: str
    title_selector: str
    episode_links_selector: str
    pagination_selector: str
    is_captcha_page: Callable[[BeautifulSoup], bool]
    process_title: Callable[[Tag], str]
    process_content: Callable[[str], str]


def _has_recaptcha(doc: BeautifulSoup) -> bool:
    return doc.select_one(".g-recaptcha, #recaptcha") is not None


def _default_title(element: Tag) -> str:
    title = element.get("title") or element.get_text()
    first_line = title.split("\n")[0].strip()
    return re.sub(r"Capítulo\s+\d+", "", first_line, count=1, flags=re.IGNORECASE).strip()


def _strip(pattern: str) -> Callable[[str], str]:
    """Build a content hook that deletes every occurrence of ``pattern``."""
    compiled = re.compile(pattern)
    return lambda content: compiled.sub("", content)


_DEFAULT = SiteConfig(
    name=DEFAULT_SITE,
    content_selector="#novel_content, .chapter-content, .entry-content, .content, .text",
    title_selector=".toon-title, h1.chapter-title, #chapter-title, .title",
    episode_links_selector=".item-subject, .chapter-list a, .episode-list li a",
    pagination_selector=".pagination, .nav-links, .page-nav",
    is_captcha_page=_has_recaptcha,
    process_title=_default_title,
    process_content=_strip(r"Continuar leyendo"),
)

# Partial overrides merged over the default; registration order decides
# which key wins when several are substrings of the same hostname.
SITE_OVERRIDES: dict[str, dict[str, Any]] = {
    "wuxiaworld": {
        "content_selector": ".chapter-content",
        "title_selector": ".chapter-title",
        "process_title": lambda element: element.get_text().replace("Chapter", "").strip(),
        "process_content": _strip(r"Advertisement"),
    },
    "novelupdates": {
        "content_selector": ".chapter-content",
        "title_selector": ".chapter-title",
        "episode_links_selector": ".chapter-list li a",
        "process_content": _strip(
            r"Please read this chapter at www\.novelupdates\.com for faster releases"
        ),
    },
}

_FIELD_NAMES = {f.name for f in fields(SiteConfig)}


@lru_cache(maxsize=None)
def get_site(key: str) -> SiteConfig:
    """Return the merged config for a registered key (or the default)."""
    if key == DEFAULT_SITE or key not in SITE_OVERRIDES:
        return _DEFAULT

    overrides = SITE_OVERRIDES[key]
    unknown = set(overrides) - _FIELD_NAMES
    if unknown:
        raise ValueError(f"Unknown site config fields for {key}: {sorted(unknown)}")

    return replace(_DEFAULT, name=key, **overrides)


def resolve_site(url: str) -> SiteConfig:
    """Resolve the extraction rules for a page URL.

    The first registered key that appears in the hostname wins (plain,
    case-sensitive substring match). Unknown hosts get the default rules.
    """
    hostname = urlparse(url).hostname or ""
    for key in SITE_OVERRIDES:
        if key != DEFAULT_SITE and key in hostname:
            return get_site(key)
    return _DEFAULT


def list_sites() -> list[str]:
    """Registered site keys, default first."""
    return [DEFAULT_SITE, *SITE_OVERRIDES]
