"""
commitboard.services.stats_service — Dashboard payload aggregation
===================================================================

Builds the two responses the dashboard polls:

* ``GET /api/stats``   — event progress, counters, commits-per-day
  histogram, leaderboards and the recent-commit feed.
* ``GET /api/commits`` — the paginated commit feed.

Privacy rules:

* The histogram and the commit counters use *every* approved commit.
* Leaderboards only use users whose profile is not private.
* Feed items additionally require the commit itself to be neither
  ``is_private`` nor ``is_explicitly_private``.

Each aggregation cycle first issues its independent reads concurrently and
waits for all of them; derived numbers are only computed from that
snapshot.  Row-store errors propagate; Discord failures only degrade the
affected feed item.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from typing import Any

from commitboard.config import CommitboardConfig
from commitboard.database.engine import RowStore
from commitboard.engine.cache import CacheStore
from commitboard.engine.dates import (
    date_range,
    day_key,
    event_progress,
    relative_time,
    today_key,
)
from commitboard.engine.records import (
    Attachment,
    CommitRecord,
    FeedItem,
    LeaderboardEntry,
    ProfileRecord,
    UserRecord,
    UserStats,
)
from commitboard.engine.streaks import calculate_streaks
from commitboard.engine.transform import ContentRenderer
from commitboard.engine.truncate import smart_truncate
from commitboard.services.discord_service import (
    MESSAGE_REFERENCE_FORWARD,
    DiscordResolver,
    Found,
)

logger = logging.getLogger(__name__)

# Leaderboard key → UserStats attribute it is sorted by
LEADERBOARD_METRICS: dict[str, str] = {
    "commits": "total_commits",
    "days": "total_days_active",
    "streak": "current_streak",
}
DEFAULT_METRICS: tuple[str, ...] = ("commits", "days", "streak")

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 50

STATS_CACHE_KEY = "stats:response"

# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------
COMMITS_SQL = """
    SELECT user_id, committed_at, message_id, is_private, is_explicitly_private, approved_at
    FROM commits
    WHERE approved_at IS NOT NULL
    ORDER BY committed_at DESC, id DESC
"""

PROFILES_SQL = "SELECT user_id, timezone, thread_id, is_private FROM commit_overflow_profiles"

USERS_SQL = "SELECT id AS user_id, discord_username AS display_name FROM users"

_FEED_FILTER = "approved_at IS NOT NULL AND NOT is_private AND NOT is_explicitly_private"

FEED_PAGE_SQL = f"""
    SELECT user_id, committed_at, message_id, is_private, is_explicitly_private, approved_at
    FROM commits
    WHERE {_FEED_FILTER}
    ORDER BY committed_at DESC, id DESC
    LIMIT :limit OFFSET :offset
"""

FEED_COUNT_SQL = f"SELECT COUNT(*) AS count FROM commits WHERE {_FEED_FILTER}"


def avatar_path(user_id: str) -> str:
    """Dashboard-relative avatar URL (served by ``/api/avatar/{id}.png``)."""
    return f"/api/avatar/{user_id}.png"


# ---------------------------------------------------------------------------
# Pure aggregation helpers
# ---------------------------------------------------------------------------
def build_commits_by_day(
    commits: Iterable[CommitRecord],
    timezones: dict[str, str | None],
    days: Sequence[str],
    default_tz: str,
) -> dict[str, int]:
    """Commit count per event day, zero-seeded.

    Unapproved commits and commits outside *days* are ignored.
    """
    by_day = dict.fromkeys(days, 0)
    for commit in commits:
        if not commit.approved:
            continue
        key = day_key(commit.committed_at, timezones.get(commit.user_id) or default_tz)
        if key in by_day:
            by_day[key] += 1
    return by_day


def build_user_stats(
    commits: Iterable[CommitRecord],
    profiles: Iterable[ProfileRecord],
    user_names: dict[str, str],
    default_tz: str,
    now: datetime | None = None,
) -> list[UserStats]:
    """Per-user totals and streaks over approved commits of leaderboard-eligible users.

    Users appear in the order of their first commit in *commits*.
    """
    profiles = list(profiles)
    public_ids = {p.user_id for p in profiles if not p.is_private}
    timezones = {p.user_id: p.timezone for p in profiles}

    grouped: dict[str, list[datetime]] = {}
    for commit in commits:
        if commit.approved and commit.user_id in public_ids:
            grouped.setdefault(commit.user_id, []).append(commit.committed_at)

    stats: list[UserStats] = []
    for user_id, instants in grouped.items():
        summary = calculate_streaks(instants, timezones.get(user_id) or default_tz, now)
        stats.append(UserStats(
            user_id=user_id,
            display_name=user_names.get(user_id, "Unknown"),
            total_commits=len(instants),
            total_days_active=summary.total_days,
            current_streak=summary.current_streak,
            longest_streak=summary.longest_streak,
        ))
    return stats


def build_leaderboard(
    stats: Sequence[UserStats], metric: str, size: int
) -> list[LeaderboardEntry]:
    """Top *size* users by *metric*, ranked 1..n; ties keep their input order."""
    try:
        attr = LEADERBOARD_METRICS[metric]
    except KeyError:
        raise ValueError(
            f"Unknown leaderboard metric: {metric!r}. "
            f"Allowed: {sorted(LEADERBOARD_METRICS)}"
        ) from None

    ranked = sorted(stats, key=lambda s: getattr(s, attr), reverse=True)[:size]
    return [
        LeaderboardEntry(
            rank=index + 1,
            user_id=s.user_id,
            display_name=s.display_name,
            avatar_url=avatar_path(s.user_id),
            total_commits=s.total_commits,
            total_days_active=s.total_days_active,
            current_streak=s.current_streak,
        )
        for index, s in enumerate(ranked)
    ]


def clamp_page_params(page: Any, limit: Any) -> tuple[int, int]:
    """Coerce raw query values into ``page >= 1`` and ``1 <= limit <= 50``.

    Missing or non-numeric values fall back to page 1 / the default size.
    """
    def _to_int(value: Any, default: int) -> int:
        try:
            parsed = int(value)
        except (TypeError, ValueError):
            return default
        return parsed or default

    return (
        max(1, _to_int(page, 1)),
        min(MAX_PAGE_SIZE, max(1, _to_int(limit, DEFAULT_PAGE_SIZE))),
    )


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------
class StatsService:
    """Aggregates row-store data and Discord lookups into dashboard payloads."""

    def __init__(
        self,
        rows: RowStore,
        resolver: DiscordResolver,
        renderer: ContentRenderer,
        cache: CacheStore,
        config: CommitboardConfig,
    ) -> None:
        self.rows = rows
        self.resolver = resolver
        self.renderer = renderer
        self.cache = cache
        self.config = config

    # -------------------------------------------------------------------
    # Feed enrichment
    # -------------------------------------------------------------------
    async def build_feed_item(
        self,
        commit: CommitRecord,
        user_names: dict[str, str],
        thread_ids: dict[str, str | None],
        now: datetime,
    ) -> FeedItem:
        """Fetch, unwrap, truncate and render the Discord message behind *commit*."""
        thread_id = thread_ids.get(commit.user_id) or ""

        message: dict | None = None
        if thread_id:
            lookup = await self.resolver.get_message(thread_id, commit.message_id)
            if isinstance(lookup, Found):
                message = lookup.value
            else:
                logger.debug(
                    "Message %s unavailable (%s); rendering empty body",
                    commit.message_id, lookup.reason,
                )

        forwarded: dict | None = None
        if message and (message.get("message_reference") or {}).get("type") == MESSAGE_REFERENCE_FORWARD:
            snapshots = message.get("message_snapshots") or []
            if snapshots:
                forwarded = snapshots[0].get("message")

        forwarded = forwarded or {}
        message = message or {}
        raw_text = forwarded.get("content") or message.get("content") or ""
        raw_attachments = forwarded.get("attachments") or message.get("attachments") or []

        html = await self.renderer.render(smart_truncate(raw_text, self.config.truncate_words))

        return FeedItem(
            user_id=commit.user_id,
            display_name=user_names.get(commit.user_id, "Unknown"),
            avatar_url=avatar_path(commit.user_id),
            thread_id=thread_id,
            message_id=commit.message_id,
            rendered_html=html,
            committed_at=commit.committed_at,
            relative_time=relative_time(commit.committed_at, now),
            attachments=tuple(Attachment.from_discord(a) for a in raw_attachments),
        )

    async def _build_feed(
        self,
        commits: Sequence[CommitRecord],
        users: Sequence[UserRecord],
        profiles: Sequence[ProfileRecord],
        now: datetime,
    ) -> list[FeedItem]:
        user_names = {u.user_id: u.display_name for u in users}
        thread_ids = {p.user_id: p.thread_id for p in profiles}
        return list(await asyncio.gather(
            *(self.build_feed_item(c, user_names, thread_ids, now) for c in commits)
        ))

    # -------------------------------------------------------------------
    # Stats payload
    # -------------------------------------------------------------------
    async def compute_stats(
        self,
        metrics: Sequence[str] = DEFAULT_METRICS,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """Build the full stats payload from a fresh snapshot."""
        now = now or datetime.now(UTC)
        cfg = self.config

        commit_rows, profile_rows, user_rows, event_stats = await asyncio.gather(
            self.rows.query(COMMITS_SQL),
            self.rows.query(PROFILES_SQL),
            self.rows.query(USERS_SQL),
            self.resolver.get_event_stats(),
        )

        commits = [CommitRecord.from_row(r) for r in commit_rows]
        profiles = [ProfileRecord.from_row(r) for r in profile_rows]
        users = [UserRecord.from_row(r) for r in user_rows]
        user_names = {u.user_id: u.display_name for u in users}
        timezones = {p.user_id: p.timezone for p in profiles}

        days = date_range(cfg.event_start, cfg.event_end, cfg.default_timezone)
        commits_by_day = build_commits_by_day(commits, timezones, days, cfg.default_timezone)

        user_stats = build_user_stats(commits, profiles, user_names, cfg.default_timezone, now)
        leaderboards = {
            metric: [e.to_dict() for e in build_leaderboard(user_stats, metric, cfg.leaderboard_size)]
            for metric in metrics
        }

        feed_commits = [c for c in commits if c.feed_eligible][:cfg.feed_size]
        feed = await self._build_feed(feed_commits, users, profiles, now)

        logger.info(
            "Stats computed: %d commits, %d ranked users, %d feed items",
            len(commits), len(user_stats), len(feed),
        )

        return {
            "event": event_progress(now, cfg.event_start, cfg.total_days).to_dict(),
            "stats": {
                "totalCommits": len(commits),
                "activeHackers": event_stats.active_hackers,
                "messagesSent": event_stats.total_messages,
                "commitsToday": commits_by_day.get(today_key(cfg.default_timezone, now), 0),
            },
            "commitsByDay": commits_by_day,
            "leaderboards": leaderboards,
            "recentCommits": [item.to_dict() for item in feed],
            "lastUpdated": now.isoformat(),
        }

    async def get_stats(self) -> dict[str, Any]:
        """Cached stats payload (short TTL)."""
        return await self.cache.cached(
            STATS_CACHE_KEY, self.compute_stats, self.config.stats_cache_ttl
        )

    # -------------------------------------------------------------------
    # Paginated feed
    # -------------------------------------------------------------------
    async def fetch_commit_page(
        self, page: int, limit: int, now: datetime | None = None
    ) -> dict[str, Any]:
        """One page of the feed; fetches ``limit + 1`` rows to detect more pages."""
        now = now or datetime.now(UTC)
        offset = (page - 1) * limit

        page_rows, count_rows, profile_rows, user_rows = await asyncio.gather(
            self.rows.query(FEED_PAGE_SQL, {"limit": limit + 1, "offset": offset}),
            self.rows.query(FEED_COUNT_SQL),
            self.rows.query(PROFILES_SQL),
            self.rows.query(USERS_SQL),
        )

        has_more = len(page_rows) > limit
        commits = [CommitRecord.from_row(r) for r in page_rows[:limit]]
        total = int(count_rows[0]["count"]) if count_rows else 0

        feed = await self._build_feed(
            commits,
            [UserRecord.from_row(r) for r in user_rows],
            [ProfileRecord.from_row(r) for r in profile_rows],
            now,
        )

        return {
            "commits": [item.to_dict() for item in feed],
            "pagination": {
                "page": page,
                "limit": limit,
                "hasMore": has_more,
                "total": total,
            },
        }

    async def get_commit_page(self, page: Any = 1, limit: Any = DEFAULT_PAGE_SIZE) -> dict[str, Any]:
        """Cached, clamped variant of :meth:`fetch_commit_page`."""
        page, limit = clamp_page_params(page, limit)
        return await self.cache.cached(
            f"commits:page:{page}:limit:{limit}",
            lambda: self.fetch_commit_page(page, limit),
            self.config.commits_cache_ttl,
        )
