"""
Commitboard — Live leaderboard & activity dashboard for Commit Overflow
=========================================================================
Reads the commits, participant profiles and users recorded by the event
bot, enriches them with Discord lookups, and serves the event progress,
leaderboards and a rendered commit feed to the dashboard frontend.

Package layout::

    commitboard/
    ├── config.py          # YAML → typed Python config
    ├── exceptions.py      # CommitboardError hierarchy
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine, RowStore + async helper
    │   └── models.py      # users, profiles, commits, cache_entries
    ├── engine/
    │   ├── cache.py       # Cache-aside store (memory + SQL backends)
    │   ├── dates.py       # Day keys, event progress, relative time
    │   ├── streaks.py     # Current / longest streak calculation
    │   ├── mentions.py    # Discord mention tokenizer
    │   ├── transform.py   # Markdown → sanitised HTML pipeline
    │   ├── truncate.py    # Sentence-aware preview truncation
    │   └── records.py     # Row records + payload dataclasses
    ├── services/
    │   ├── discord_service.py  # Cached Discord REST lookups
    │   └── stats_service.py    # Stats payload + paginated feed
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # Dependency wiring
        └── routes/        # Public read-only endpoints
"""

__version__ = "0.1.0"
