"""
commitboard.api.deps — FastAPI dependency injection
====================================================

Process-wide singletons (engine, cache, resolver, stats service) are built
lazily on first use.  Tests swap them out with
``app.dependency_overrides``.
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache

from sqlalchemy import Engine

from commitboard.config import CommitboardConfig, load_config
from commitboard.database.engine import RowStore, create_db_engine
from commitboard.engine.cache import CacheStore, MemoryCacheStore, SqlCacheStore
from commitboard.engine.transform import ContentRenderer
from commitboard.services.discord_service import DiscordResolver
from commitboard.services.stats_service import StatsService

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_config() -> CommitboardConfig:
    return load_config(os.getenv("CONFIG_PATH", "config.yaml"))


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_cache() -> CacheStore:
    """``CACHE_BACKEND=sql`` shares the cache between workers via the database."""
    backend = os.getenv("CACHE_BACKEND", "memory").strip().lower()
    if backend == "sql":
        logger.info("Using SQL cache backend")
        return SqlCacheStore(get_engine())
    if backend != "memory":
        logger.warning("Unknown CACHE_BACKEND %r — using in-memory cache", backend)
    return MemoryCacheStore()


@lru_cache(maxsize=1)
def get_resolver() -> DiscordResolver:
    cfg = get_config()
    token = os.getenv("DISCORD_BOT_TOKEN", "")
    if not token:
        logger.warning("DISCORD_BOT_TOKEN is not set — Discord lookups will fail")
    return DiscordResolver(get_cache(), token, cfg.guild_id, cfg.forum_id)


@lru_cache(maxsize=1)
def get_stats_service() -> StatsService:
    resolver = get_resolver()
    return StatsService(
        rows=RowStore(get_engine()),
        resolver=resolver,
        renderer=ContentRenderer(resolver),
        cache=get_cache(),
        config=get_config(),
    )
