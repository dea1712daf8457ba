"""Moving-average progress and ETA estimation for download sessions."""

import time
from collections import deque
from typing import Callable, Optional

from pydantic import BaseModel

HISTORY_SIZE = 5
PLEASE_WAIT = "please wait"


def format_duration(seconds: Optional[float]) -> str:
    """Render a duration for humans.

    Examples:
        0.4 -> "please wait"
        75 -> "1m 15s"
        3725 -> "1h 02m 05s"
    """
    if seconds is None or seconds < 1:
        return PLEASE_WAIT

    total = int(round(seconds))
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}h {minutes:02d}m {secs:02d}s"
    if minutes:
        return f"{minutes}m {secs:02d}s"
    return f"{secs}s"


class ProgressSnapshot(BaseModel):
    """Point-in-time view of a download session's progress."""

    completed: int
    total: int
    progress_pct: float
    elapsed_seconds: float
    eta_seconds: Optional[float] = None
    rate: Optional[float] = None  # items per second

    @property
    def eta_display(self) -> str:
        return format_duration(self.eta_seconds)

    @property
    def elapsed_display(self) -> str:
        return format_duration(self.elapsed_seconds)

    @property
    def rate_display(self) -> str:
        return f"{self.rate:.2f}/s" if self.rate is not None else "-"


class ProgressEstimator:
    """ETA from the mean of the last few seconds-per-item samples.

    Each update records ``elapsed / completed``; the average of the newest
    ``history_size`` samples times the remaining item count is the ETA.
    """

    def __init__(
        self,
        total: int,
        clock: Callable[[], float] = time.monotonic,
        history_size: int = HISTORY_SIZE,
    ):
        self.total = total
        self._clock = clock
        self._started = clock()
        self._history: deque[float] = deque(maxlen=history_size)

    @property
    def history(self) -> list[float]:
        return list(self._history)

    def update(self, completed: int) -> ProgressSnapshot:
        """Record progress and return the derived statistics.

        Args:
            completed: Items processed so far in this session

        Returns:
            Snapshot with percentage, elapsed time, ETA and rate
        """
        elapsed = self._clock() - self._started
        progress_pct = (completed / self.total * 100) if self.total else 100.0

        if completed <= 0:
            return ProgressSnapshot(
                completed=completed,
                total=self.total,
                progress_pct=progress_pct,
                elapsed_seconds=elapsed,
            )

        self._history.append(elapsed / completed)
        average = sum(self._history) / len(self._history)
        remaining = max(self.total - completed, 0)

        return ProgressSnapshot(
            completed=completed,
            total=self.total,
            progress_pct=progress_pct,
            elapsed_seconds=elapsed,
            eta_seconds=average * remaining,
            rate=(1 / average) if average > 0 else None,
        )
