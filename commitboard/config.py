"""
commitboard.config — YAML Configuration Loader
===============================================

**Why this file exists:**
The event window, the Discord guild/forum identity and the cache tuning
are fixed for the lifetime of an event, so they live in ``config.yaml``
rather than in the database.  Secrets (``DATABASE_URL``,
``DISCORD_BOT_TOKEN``) stay in the environment.

Usage::

    from commitboard.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.event_name)        # "Commit Overflow"
    print(cfg.total_days)        # 20
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from commitboard.exceptions import ConfigError

DEFAULT_EVENT_START = "2025-12-23T06:00:00-05:00"
DEFAULT_TIMEZONE = "America/New_York"


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class CommitboardConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    event_name: str

    # Discord
    guild_id: str
    forum_id: str

    # Event window
    event_start: datetime
    total_days: int = 20
    default_timezone: str = DEFAULT_TIMEZONE

    # Presentation
    leaderboard_size: int = 10
    feed_size: int = 10
    truncate_words: int = 50

    # Cache TTLs (seconds) for whole responses
    stats_cache_ttl: int = 15
    commits_cache_ttl: int = 15

    @property
    def event_end(self) -> datetime:
        """Instant falling on the last day of the event."""
        return self.event_start + timedelta(days=self.total_days - 1)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> CommitboardConfig:
    """Read *path* and return a :class:`CommitboardConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.
        Defaults to ``config.yaml`` in the current working directory.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    ConfigError
        If a value is present but unusable (bad date, unknown timezone).
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    return config_from_dict(raw)


def config_from_dict(raw: dict) -> CommitboardConfig:
    """Build a config from an already-parsed mapping (used by tests too)."""
    start_raw = raw.get("event_start", DEFAULT_EVENT_START)
    try:
        event_start = (
            start_raw if isinstance(start_raw, datetime)
            else datetime.fromisoformat(str(start_raw))
        )
    except ValueError as exc:
        raise ConfigError(f"event_start is not an ISO-8601 datetime: {start_raw!r}") from exc
    if event_start.tzinfo is None:
        raise ConfigError("event_start must include a UTC offset")

    default_tz = raw.get("default_timezone", DEFAULT_TIMEZONE)
    try:
        ZoneInfo(default_tz)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigError(f"Unknown default_timezone: {default_tz!r}") from exc

    total_days = int(raw.get("total_days", 20))
    if total_days < 1:
        raise ConfigError("total_days must be at least 1")

    return CommitboardConfig(
        event_name=raw["event_name"],
        guild_id=str(raw["guild_id"]),
        forum_id=str(raw["forum_id"]),
        event_start=event_start,
        total_days=total_days,
        default_timezone=default_tz,
        leaderboard_size=int(raw.get("leaderboard_size", 10)),
        feed_size=int(raw.get("feed_size", 10)),
        truncate_words=int(raw.get("truncate_words", 50)),
        stats_cache_ttl=int(raw.get("stats_cache_ttl", 15)),
        commits_cache_ttl=int(raw.get("commits_cache_ttl", 15)),
    )
