"""
commitboard.engine.streaks — Per-user streak statistics
=========================================================

A streak is a run of consecutive calendar days (in the user's timezone)
with at least one commit.  The current streak only counts while it is
still alive: its last day must be today or yesterday.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from zoneinfo import ZoneInfo

from commitboard.engine.dates import Instant, day_key

__all__ = ["StreakSummary", "calculate_streaks"]


@dataclass(frozen=True, slots=True)
class StreakSummary:
    current_streak: int = 0
    longest_streak: int = 0
    total_days: int = 0


def calculate_streaks(
    instants: Iterable[Instant],
    tz: str | ZoneInfo | None,
    now: datetime | None = None,
) -> StreakSummary:
    """Summarise the commit days of one user.

    Days are compared as dates, so runs cross month and year boundaries.
    """
    days = sorted({date.fromisoformat(day_key(i, tz)) for i in instants})
    if not days:
        return StreakSummary()

    one_day = timedelta(days=1)
    longest = run = 1
    for previous, current in zip(days, days[1:]):
        run = run + 1 if current - previous == one_day else 1
        longest = max(longest, run)

    today = date.fromisoformat(day_key(now or datetime.now(UTC), tz))
    current_streak = run if today - days[-1] <= one_day else 0

    return StreakSummary(
        current_streak=current_streak,
        longest_streak=longest,
        total_days=len(days),
    )
