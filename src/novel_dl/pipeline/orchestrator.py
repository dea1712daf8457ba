"""Sequential chapter download with CAPTCHA retry and rate limiting."""

import asyncio
from enum import Enum
from typing import Awaitable, Callable, Optional

import structlog
from pydantic import BaseModel

from novel_dl.config import MIN_DELAY_MS
from novel_dl.crawler.chapter import ChapterFetcher, ChapterOutcome, ChapterResult, FetchFailure
from novel_dl.utils.progress import ProgressEstimator, ProgressSnapshot

logger = structlog.get_logger()

PromptUser = Callable[[str], Awaitable[bool]]
ReportProgress = Callable[[ProgressSnapshot], None]

CAPTCHA_QUESTION = (
    "CAPTCHA or blocked page on episode {episode}:\n{url}\n\n"
    "Solve it in your browser, then retry this episode?"
)


class InvalidRangeError(ValueError):
    """Requested episode range is outside the discovered links."""


class InvalidDelayError(ValueError):
    """Requested inter-chapter delay is below the allowed minimum."""


class OutputMode(str, Enum):
    """How collected chapters are packaged."""

    TEXT = "txt"
    ARCHIVE = "zip"


class DownloadSession(BaseModel):
    """State of one download run.

    ``text`` accumulates in TEXT mode, ``entries`` in ARCHIVE mode.
    """

    title: str
    start: int
    end: int
    mode: OutputMode = OutputMode.TEXT
    total_episodes: int = 0
    completed_episodes: int = 0
    failed_episodes: int = 0
    captcha_count: int = 0
    text: str = ""
    entries: list[ChapterResult] = []
    errors: list[str] = []

    @property
    def processed_episodes(self) -> int:
        return self.completed_episodes + self.failed_episodes


def validate_request(links: list[str], start: int, end: int, delay_ms: int) -> None:
    """Reject bad ranges and delays before any request is made.

    Args:
        links: Chapter URLs, oldest first
        start: First episode number (1-based, inclusive)
        end: Last episode number (1-based, inclusive)
        delay_ms: Delay between chapters in ms

    Raises:
        InvalidRangeError: Range is empty or outside ``1..len(links)``
        InvalidDelayError: Delay is below MIN_DELAY_MS
    """
    if not 1 <= start <= end <= len(links):
        raise InvalidRangeError(
            f"Invalid episode range {start}-{end}: must satisfy 1 <= start <= end <= {len(links)}"
        )
    if delay_ms < MIN_DELAY_MS:
        raise InvalidDelayError(f"Delay must be at least {MIN_DELAY_MS} ms, got {delay_ms}")


class DownloadOrchestrator:
    """Download a range of chapters one at a time.

    Episodes are numbered from 1 in publication order: episode ``n`` is
    ``links[n - 1]`` of the oldest-first list built by PaginationCrawler.
    """

    def __init__(
        self,
        fetcher: ChapterFetcher,
        prompt_user: PromptUser,
        report_progress: Optional[ReportProgress] = None,
        captcha_prompt_timeout: Optional[float] = None,
    ):
        """Initialize the orchestrator.

        Args:
            fetcher: Chapter fetcher
            prompt_user: Asks the operator whether to retry a blocked chapter
            report_progress: Receives a snapshot after every chapter
            captcha_prompt_timeout: Seconds to wait for an answer; no answer
                counts as "no". None waits forever.
        """
        self.fetcher = fetcher
        self.prompt_user = prompt_user
        self.report_progress = report_progress
        self.captcha_prompt_timeout = captcha_prompt_timeout

    async def run(
        self,
        title: str,
        links: list[str],
        start: int,
        end: int,
        delay_ms: int,
        mode: OutputMode = OutputMode.TEXT,
    ) -> DownloadSession:
        """Download episodes ``start..end`` (inclusive).

        Every episode in the range is attempted; failures are counted and
        the run continues.

        Returns:
            The finished session; ``completed + failed == total``
        """
        validate_request(links, start, end, delay_ms)

        session = DownloadSession(
            title=title,
            start=start,
            end=end,
            mode=mode,
            total_episodes=end - start + 1,
        )
        estimator = ProgressEstimator(session.total_episodes)

        logger.info(
            "session_start",
            title=title,
            start=start,
            end=end,
            total=session.total_episodes,
            delay_ms=delay_ms,
            mode=mode.value,
        )

        for episode in range(start, end + 1):
            url = links[episode - 1]
            outcome = await self._fetch_with_retry(session, episode, url)

            if outcome.result is not None:
                self._accumulate(session, outcome.result)
                session.completed_episodes += 1
                logger.info(
                    "chapter_downloaded", episode=episode, title=outcome.result.episode_title
                )
            else:
                session.failed_episodes += 1
                session.errors.append(f"Episode {episode}: {outcome.failure.value} ({url})")
                logger.error(
                    "chapter_failed", episode=episode, url=url, reason=outcome.failure.value
                )

            snapshot = estimator.update(session.processed_episodes)
            if self.report_progress is not None:
                self.report_progress(snapshot)

            if episode < end:
                await asyncio.sleep(delay_ms / 1000)

        logger.info(
            "session_complete",
            title=title,
            completed=session.completed_episodes,
            failed=session.failed_episodes,
            captchas=session.captcha_count,
        )
        return session

    async def _fetch_with_retry(
        self, session: DownloadSession, episode: int, url: str
    ) -> ChapterOutcome:
        """Fetch a chapter, offering one operator-approved retry when blocked."""
        outcome = await self.fetcher.fetch(url)
        if outcome.ok or outcome.failure == FetchFailure.CONTENT_NOT_FOUND:
            return outcome

        session.captcha_count += 1
        if not await self._ask_retry(CAPTCHA_QUESTION.format(episode=episode, url=url)):
            logger.info("retry_declined", episode=episode)
            return outcome

        logger.info("retry_accepted", episode=episode)
        return await self.fetcher.fetch(url)

    async def _ask_retry(self, question: str) -> bool:
        if self.captcha_prompt_timeout is None:
            return bool(await self.prompt_user(question))
        try:
            return bool(
                await asyncio.wait_for(self.prompt_user(question), self.captcha_prompt_timeout)
            )
        except asyncio.TimeoutError:
            logger.warning("retry_prompt_timeout", timeout=self.captcha_prompt_timeout)
            return False

    @staticmethod
    def _accumulate(session: DownloadSession, result: ChapterResult) -> None:
        if session.mode == OutputMode.TEXT:
            session.text += f"{result.episode_title}\n\n{result.content}\n\n"
        else:
            session.entries.append(result)
