"""Pytest configuration and fixtures."""

from typing import Optional

import pytest
from bs4 import BeautifulSoup


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "integration: mark test as integration test")


class FakeSite:
    """In-memory stand-in for the ``fetch_document`` capability.

    Pages map URL -> HTML; a value of None (or a missing URL) simulates a
    failed request. Every requested URL is recorded in ``requested``.
    """

    def __init__(self, pages: Optional[dict] = None):
        self.pages = dict(pages or {})
        self.requested: list[str] = []

    async def __call__(self, url: str) -> Optional[BeautifulSoup]:
        self.requested.append(url)
        html = self.pages.get(url)
        if html is None:
            return None
        if callable(html):
            html = html()
        return BeautifulSoup(html, "lxml")


def _chapter_html(title: str, body: str) -> str:
    return (
        "<html><body>"
        f'<h1 class="chapter-title">{title}</h1>'
        f'<div class="chapter-content">{body}</div>'
        "</body></html>"
    )


@pytest.fixture
def fake_site():
    """Factory for FakeSite instances."""
    return FakeSite


@pytest.fixture
def chapter_page():
    """Builder for a minimal chapter page matching the default site adapter."""
    return _chapter_html


@pytest.fixture
def captcha_html():
    """Page carrying a reCAPTCHA widget."""
    return '<html><body><div class="g-recaptcha"></div></body></html>'


@pytest.fixture
def parse_html():
    """Parse HTML the same way the crawler does."""
    return lambda html: BeautifulSoup(html, "lxml")
