"""Main CLI entry point for novel-dl."""

import asyncio
import concurrent.futures
import threading
from pathlib import Path
from typing import Optional

import click
import structlog
from pydantic import ValidationError
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from novel_dl import __version__
from novel_dl.config import MIN_DELAY_MS, AppConfig, get_config, set_config
from novel_dl.log import configure_logging, console as log_console

logger = structlog.get_logger()
console = Console()


def setup_config(env_file: Optional[Path] = None) -> None:
    """Load configuration from environment."""
    try:
        config = AppConfig.load(env_file)
    except ValidationError as e:
        for error in e.errors():
            field = ".".join(str(part) for part in error["loc"])
            logger.error("invalid_config", field=field, detail=error["msg"])
        raise SystemExit(1)
    set_config(config)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option("--quiet", "-q", is_flag=True, help="Minimal output")
@click.option("--log-file", type=click.Path(), help="Write JSON logs to file")
@click.option("--env-file", type=click.Path(exists=True), help="Path to .env file")
@click.version_option(version=__version__)
@click.pass_context
def cli(ctx, verbose: bool, quiet: bool, log_file: Optional[str], env_file: Optional[str]) -> None:
    """Web novel downloader.

    Crawl a chapter listing page and save the chapters as one text file
    or a zip archive with one file per chapter.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet

    verbosity = 1 if verbose else (-1 if quiet else 0)
    log_path = Path(log_file) if log_file else None
    configure_logging(verbosity=verbosity, log_file=log_path)

    setup_config(Path(env_file) if env_file else None)


class RichProgressReporter:
    """Progress sink that drives a rich progress bar."""

    def __init__(self, progress: Progress, task_id):
        self.progress = progress
        self.task_id = task_id

    def __call__(self, snapshot) -> None:
        self.progress.update(
            self.task_id,
            completed=snapshot.completed,
            description=(
                f"{snapshot.completed}/{snapshot.total}"
                f" | elapsed {snapshot.elapsed_display}"
                f" | ETA {snapshot.eta_display}"
                f" | {snapshot.rate_display}"
            ),
        )


class ConsolePrompt:
    """CAPTCHA retry prompt answered on the terminal.

    ``click.confirm`` blocks, so it runs in a daemon thread: a prompt the
    orchestrator gave up on never keeps the process alive at exit. While
    that read is still pending, the next prompt waits on it instead of
    starting a second reader on stdin.
    """

    def __init__(self, auto_retry: bool = False, progress: Optional[Progress] = None):
        self.auto_retry = auto_retry
        self.progress = progress
        self._pending: Optional[concurrent.futures.Future] = None

    def _start_read(self, question: str) -> concurrent.futures.Future:
        answer: concurrent.futures.Future = concurrent.futures.Future()

        def read() -> None:
            try:
                answer.set_result(click.confirm(f"\n{question}", default=True))
            except BaseException as e:
                answer.set_exception(e)

        threading.Thread(target=read, name="captcha-prompt", daemon=True).start()
        return answer

    async def __call__(self, question: str) -> bool:
        if self.auto_retry:
            logger.info("retry_auto_accepted")
            return True

        if self._pending is None or self._pending.done():
            self._pending = self._start_read(question)

        if self.progress is not None:
            self.progress.stop()
        try:
            # shield: a timed-out prompt must not cancel the pending read
            return await asyncio.shield(asyncio.wrap_future(self._pending))
        finally:
            if self.progress is not None:
                self.progress.start()


async def discover(crawler, url: str, pages: Optional[int]):
    """Fetch the listing page and return (title, chronological links)."""
    from novel_dl.crawler.pagination import PaginationCrawler, extract_novel_title
    from novel_dl.crawler.sites import resolve_site

    first_page = await crawler.fetch_document(url)
    if first_page is None:
        logger.error("listing_fetch_failed", url=url)
        raise SystemExit(1)

    title = extract_novel_title(first_page, resolve_site(url))
    pagination = PaginationCrawler(
        crawler.fetch_document, page_delay_ms=crawler.config.page_delay_ms
    )
    links = await pagination.discover_all_links(url, first_page=first_page, total_pages=pages)
    if not links:
        logger.error("no_episodes_found", url=url, detail="Is this a chapter listing page?")
        raise SystemExit(1)

    return title, links


# =============================================================================
# Download Command (Main Workflow)
# =============================================================================


@cli.command()
@click.argument("url")
@click.option("--start", type=int, help="First episode to download (1 = oldest)")
@click.option("--end", type=int, help="Last episode to download (inclusive)")
@click.option("--delay", type=int, help=f"Delay between chapters in ms (min {MIN_DELAY_MS})")
@click.option("--pages", type=int, help="Listing page count (auto-detected if omitted)")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["txt", "zip"]),
    help="Single text file or one file per chapter in a zip",
)
@click.option("--output-dir", type=click.Path(), help="Directory for the output file")
@click.option("--yes", "-y", is_flag=True, help="Retry CAPTCHA-blocked chapters without asking")
def download(
    url: str,
    start: Optional[int],
    end: Optional[int],
    delay: Optional[int],
    pages: Optional[int],
    output_format: Optional[str],
    output_dir: Optional[str],
    yes: bool,
) -> None:
    """Download chapters from a listing page URL.

    Examples:

        # Download everything as one text file
        novel-dl download "https://example.com/novel/list" --start 1 --end 50

        # One file per chapter, slower pace
        novel-dl download "https://..." --format zip --delay 3000
    """
    from novel_dl.crawler.base import BaseCrawler
    from novel_dl.crawler.chapter import ChapterFetcher
    from novel_dl.exporter.packager import OutputPackager
    from novel_dl.pipeline.orchestrator import (
        DownloadOrchestrator,
        OutputMode,
        validate_request,
    )

    config = get_config()
    delay_ms = delay if delay is not None else config.crawler.delay_ms
    mode = OutputMode(output_format or config.download.output_format)
    target_dir = Path(output_dir) if output_dir else config.output_dir
    prompt_timeout = config.download.captcha_prompt_timeout_seconds or None

    if delay_ms < MIN_DELAY_MS:
        logger.error("invalid_delay", delay_ms=delay_ms, minimum=MIN_DELAY_MS)
        raise SystemExit(1)

    async def run():
        async with BaseCrawler(config.crawler) as crawler:
            title, links = await discover(crawler, url, pages)
            console.print(f"[green]{title}[/green]: {len(links)} episodes found")

            first = start if start is not None else click.prompt("First episode", default=1)
            last = end if end is not None else click.prompt("Last episode", default=len(links))

            try:
                validate_request(links, first, last, delay_ms)
            except ValueError as e:
                logger.error("invalid_request", detail=str(e))
                raise SystemExit(1)

            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                TaskProgressColumn(),
                console=log_console,
            ) as pbar:
                task = pbar.add_task("please wait", total=last - first + 1)
                orchestrator = DownloadOrchestrator(
                    ChapterFetcher(crawler.fetch_document),
                    prompt_user=ConsolePrompt(auto_retry=yes, progress=pbar),
                    report_progress=RichProgressReporter(pbar, task),
                    captcha_prompt_timeout=prompt_timeout,
                )
                session = await orchestrator.run(title, links, first, last, delay_ms, mode)

        if session.completed_episodes == 0:
            logger.error("nothing_downloaded", failed=session.failed_episodes)
            raise SystemExit(1)

        output_path = OutputPackager(session).write(target_dir)

        console.print("\n[green]Download complete![/green]")
        console.print(f"  Downloaded: {session.completed_episodes}")
        console.print(f"  Failed: {session.failed_episodes}")
        console.print(f"  CAPTCHAs: {session.captcha_count}")
        console.print(f"  Saved to: {output_path}")
        for error in session.errors:
            console.print(f"  [red]{error}[/red]")

    asyncio.run(run())


@cli.command()
@click.argument("url")
@click.option("--pages", type=int, help="Listing page count (auto-detected if omitted)")
def links(url: str, pages: Optional[int]) -> None:
    """List discovered chapter links, numbered oldest first."""
    from novel_dl.crawler.base import BaseCrawler

    async def run():
        async with BaseCrawler(get_config().crawler) as crawler:
            return await discover(crawler, url, pages)

    title, found = asyncio.run(run())
    click.echo(title)
    for episode, link in enumerate(found, start=1):
        click.echo(f"{episode:>5}  {link}")


@cli.command()
def sites() -> None:
    """Show the registered site adapters."""
    from novel_dl.crawler.sites import get_site, list_sites

    table = Table(show_header=True, header_style="bold blue")
    table.add_column("Site", style="cyan", no_wrap=True)
    table.add_column("Content")
    table.add_column("Title")
    table.add_column("Episode links")
    table.add_column("Pagination")

    for key in list_sites():
        site = get_site(key)
        table.add_row(
            key,
            site.content_selector,
            site.title_selector,
            site.episode_links_selector,
            site.pagination_selector,
        )

    console.print(table)


@cli.command("config")
def show_config() -> None:
    """Show the effective configuration."""
    from novel_dl.config import print_config_summary

    print_config_summary(console)


if __name__ == "__main__":
    cli()
