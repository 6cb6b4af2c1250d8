"""
commitboard.engine.dates — Day keys, date ranges & event progress
==================================================================

A commit counts toward the calendar day *as observed in its author's
timezone*.  :func:`day_key` is the only place that decision is made; the
histogram, streaks and "commits today" all go through it.

Instants may be aware datetimes, naive datetimes (taken as UTC) or
ISO-8601 strings as stored by the row store (``...Z`` accepted).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from commitboard.config import DEFAULT_TIMEZONE

logger = logging.getLogger(__name__)

Instant = datetime | str

_DAY = timedelta(days=1)


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------
def parse_instant(value: Instant) -> datetime:
    """Return *value* as an aware UTC datetime."""
    if isinstance(value, str):
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        value = datetime.fromisoformat(raw)
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


@lru_cache(maxsize=256)
def _zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def resolve_timezone(name: str | ZoneInfo | None, default: str = DEFAULT_TIMEZONE) -> ZoneInfo:
    """Look up an IANA zone, falling back to *default* for blank/unknown names."""
    if isinstance(name, ZoneInfo):
        return name
    if name:
        try:
            return _zone(name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown timezone %r — using %s", name, default)
    return _zone(default)


# ---------------------------------------------------------------------------
# Day keys
# ---------------------------------------------------------------------------
def day_key(instant: Instant, tz: str | ZoneInfo | None = None) -> str:
    """Calendar date (``YYYY-MM-DD``) of *instant* in timezone *tz*."""
    return parse_instant(instant).astimezone(resolve_timezone(tz)).date().isoformat()


def today_key(tz: str | ZoneInfo | None = None, now: datetime | None = None) -> str:
    return day_key(now or datetime.now(UTC), tz)


def date_range(
    start: Instant | date,
    end: Instant | date,
    tz: str | ZoneInfo | None = None,
) -> list[str]:
    """Every day key from *start* to *end*, both inclusive.

    Instants are converted to days in *tz* first; plain dates (and
    ``YYYY-MM-DD`` strings) are used as-is.
    An *end* before *start* yields an empty list.
    """
    first = _as_date(start, tz)
    last = _as_date(end, tz)
    days: list[str] = []
    current = first
    while current <= last:
        days.append(current.isoformat())
        current += _DAY
    return days


def _as_date(value: Instant | date, tz: str | ZoneInfo | None) -> date:
    if isinstance(value, str) and len(value.strip()) == 10:
        return date.fromisoformat(value.strip())
    if isinstance(value, (str, datetime)):
        return date.fromisoformat(day_key(value, tz))
    return value


# ---------------------------------------------------------------------------
# Event progress
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class EventProgress:
    current_day: int
    total_days: int
    days_remaining: int

    def to_dict(self) -> dict[str, int]:
        return {
            "currentDay": self.current_day,
            "totalDays": self.total_days,
            "daysRemaining": self.days_remaining,
        }


def event_progress(now: datetime, start: datetime, total_days: int) -> EventProgress:
    """Day index of *now* within the event, clamped to ``[1, total_days]``."""
    elapsed = parse_instant(now) - parse_instant(start)
    current = elapsed // _DAY + 1
    current = max(1, min(total_days, current))
    return EventProgress(
        current_day=current,
        total_days=total_days,
        days_remaining=max(0, total_days - current),
    )


# ---------------------------------------------------------------------------
# Relative time labels
# ---------------------------------------------------------------------------
def relative_time(instant: Instant, now: datetime | None = None) -> str:
    """Coarse "time ago" label: ``just now``, ``5m ago``, ``3h ago``, ``2d ago``."""
    now = parse_instant(now) if now is not None else datetime.now(UTC)
    seconds = int((now - parse_instant(instant)).total_seconds())
    if seconds < 60:
        return "just now"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes}m ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h ago"
    return f"{hours // 24}d ago"
