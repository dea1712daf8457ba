"""Tests for the command line interface."""

import asyncio
import threading
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner

from novel_dl.cli import ConsolePrompt, cli
from novel_dl.crawler.base import BaseCrawler

LIST_URL = "https://novels.example.com/book/7"


def listing_html(numbers) -> str:
    items = "".join(f'<a href="/ch/{n}">Ch {n}</a>' for n in numbers)
    return f'<html><body><h1>Test Book</h1><div class="chapter-list">{items}</div></body></html>'


@pytest.fixture
def site(fake_site, chapter_page):
    """Listing with three chapters, newest first."""
    pages = {LIST_URL: listing_html([3, 2, 1])}
    for n in (1, 2, 3):
        pages[f"https://novels.example.com/ch/{n}"] = chapter_page(f"Ep {n}", f"<p>Body {n}</p>")
    return fake_site(pages)


@pytest.fixture
def patched(site):
    """Route all page fetches to the fake site and skip delays."""
    with patch.object(BaseCrawler, "fetch_document", new=site), patch(
        "novel_dl.pipeline.orchestrator.asyncio.sleep", new=AsyncMock()
    ), patch("novel_dl.crawler.pagination.asyncio.sleep", new=AsyncMock()):
        yield site


class TestCli:
    """Test CLI commands."""

    def test_sites(self):
        """The adapter table lists every registered site."""
        result = CliRunner().invoke(cli, ["sites"])
        assert result.exit_code == 0
        assert "wuxiaworld" in result.output
        assert "novelupdates" in result.output

    def test_config(self):
        """The config command prints the effective settings."""
        result = CliRunner().invoke(cli, ["config"])
        assert result.exit_code == 0
        assert "CRAWLER_DELAY_MS" in result.output

    def test_links(self, patched):
        """Links are printed oldest first with episode numbers."""
        result = CliRunner().invoke(cli, ["-q", "links", LIST_URL])
        assert result.exit_code == 0
        lines = result.output.strip().split("\n")
        assert lines[0] == "Test Book"
        assert lines[1].split() == ["1", "https://novels.example.com/ch/1"]
        assert lines[3].split() == ["3", "https://novels.example.com/ch/3"]

    def test_download_text(self, patched, tmp_path):
        """A text download writes one file with the requested episodes."""
        result = CliRunner().invoke(
            cli,
            ["download", LIST_URL, "--start", "2", "--end", "3", "--output-dir", str(tmp_path)],
        )
        assert result.exit_code == 0, result.output
        output = tmp_path / "Test Book(2~3).txt"
        text = output.read_text(encoding="utf-8")
        assert "Body 1" not in text
        assert text.index("Body 2") < text.index("Body 3")

    def test_download_zip(self, patched, tmp_path):
        """Zip downloads write an archive named after the book."""
        result = CliRunner().invoke(
            cli,
            [
                "download", LIST_URL, "--start", "1", "--end", "3",
                "--format", "zip", "--output-dir", str(tmp_path),
            ],
        )
        assert result.exit_code == 0, result.output
        assert (tmp_path / "Test Book.zip").exists()

    def test_download_rejects_short_delay(self, patched):
        """Delays under the minimum abort before any request."""
        result = CliRunner().invoke(cli, ["download", LIST_URL, "--delay", "10"])
        assert result.exit_code == 1
        assert patched.requested == []

    def test_download_rejects_bad_range(self, patched, tmp_path):
        """Ranges beyond the discovered links abort before chapter fetches."""
        result = CliRunner().invoke(
            cli, ["download", LIST_URL, "--start", "2", "--end", "9", "--output-dir", str(tmp_path)]
        )
        assert result.exit_code == 1
        assert patched.requested == [LIST_URL]

    def test_invalid_output_format_setting(self):
        """A bad DOWNLOAD_OUTPUT_FORMAT stops the CLI with status 1."""
        result = CliRunner().invoke(cli, ["sites"], env={"DOWNLOAD_OUTPUT_FORMAT": "pdf"})
        assert result.exit_code == 1
        assert "wuxiaworld" not in result.output


class TestConsolePrompt:
    """Test the terminal CAPTCHA prompt."""

    @pytest.mark.asyncio
    async def test_auto_retry(self):
        """--yes accepts without asking."""
        with patch("novel_dl.cli.click.confirm") as confirm:
            assert await ConsolePrompt(auto_retry=True)("retry?") is True
        confirm.assert_not_called()

    @pytest.mark.asyncio
    async def test_asks_operator(self):
        """Without --yes the operator is asked."""
        with patch("novel_dl.cli.click.confirm", return_value=False) as confirm:
            assert await ConsolePrompt()("retry?") is False
        confirm.assert_called_once()

    @pytest.mark.asyncio
    async def test_progress_paused_while_asking(self):
        """The live progress bar is stopped for the question and restarted."""
        progress = MagicMock()
        with patch("novel_dl.cli.click.confirm", return_value=True):
            assert await ConsolePrompt(progress=progress)("retry?") is True
        progress.stop.assert_called_once()
        progress.start.assert_called_once()

    @pytest.mark.asyncio
    async def test_unanswered_read_is_reused(self):
        """A timed-out prompt leaves one stdin reader, shared by the next prompt."""
        release = threading.Event()

        def slow_confirm(*args, **kwargs):
            release.wait(5)
            return True

        prompt = ConsolePrompt()
        with patch("novel_dl.cli.click.confirm", side_effect=slow_confirm) as confirm:
            with pytest.raises(asyncio.TimeoutError):
                await asyncio.wait_for(prompt("retry?"), 0.05)

            second = asyncio.ensure_future(prompt("retry?"))
            await asyncio.sleep(0)
            release.set()

            assert await second is True
        assert confirm.call_count == 1

    def test_reader_thread_is_daemon(self):
        """An abandoned read never blocks interpreter exit."""
        release = threading.Event()
        started = []

        def slow_confirm(*args, **kwargs):
            started.append(threading.current_thread())
            release.wait(5)
            return False

        with patch("novel_dl.cli.click.confirm", side_effect=slow_confirm):
            answer = ConsolePrompt()._start_read("retry?")
            release.set()
            assert answer.result(timeout=5) is False
        assert started[0].daemon
