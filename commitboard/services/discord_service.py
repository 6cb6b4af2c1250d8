"""
commitboard.services.discord_service — Cached Discord REST lookups
===================================================================

Only the handful of Discord lookups the dashboard needs: users, channels,
guild roles, forum threads and single messages.

Every lookup returns :class:`Found` or :class:`Unavailable`.  A timeout,
network error or non-2xx response is *not* an exception here — it is an
``Unavailable`` result, and the caller decides which fallback label to
show.  Successful lookups are cached under resolver-owned keys
(``discord:<kind>:<id>``); failures are never cached.

Usage::

    resolver = DiscordResolver(cache, token, guild_id, forum_id)
    user = await resolver.get_user("123")
    name = display_name(user.value) if isinstance(user, Found) else "user"
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

import httpx

from commitboard.engine.cache import CacheStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

DISCORD_API = "https://discord.com/api/v10"
FETCH_TIMEOUT_SECONDS = 10.0

# Cache TTLs (seconds)
TTL_USER = 86_400        # 24 hours
TTL_CHANNEL = 86_400     # 24 hours
TTL_ROLES = 86_400       # 24 hours
TTL_MESSAGE = 43_200     # 12 hours
TTL_FORUM_THREADS = 3_600  # 1 hour; new threads appear during the event

# message_reference.type value Discord uses for forwarded messages
MESSAGE_REFERENCE_FORWARD = 1


# ---------------------------------------------------------------------------
# Lookup results
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class Found(Generic[T]):
    value: T


@dataclass(frozen=True, slots=True)
class Unavailable:
    reason: str = ""


@dataclass(frozen=True, slots=True)
class EventStats:
    total_messages: int = 0
    active_hackers: int = 0
    thread_count: int = 0


# ---------------------------------------------------------------------------
# Presentation helpers
# ---------------------------------------------------------------------------
def display_name(user: dict) -> str:
    """Prefer the global display name over the account username."""
    return user.get("global_name") or user.get("username") or "user"


def avatar_url(user_id: str | int, avatar_hash: str | None = None, size: int = 32) -> str:
    """Construct a Discord CDN avatar URL."""
    if avatar_hash:
        ext = "gif" if avatar_hash.startswith("a_") else "png"
        return f"https://cdn.discordapp.com/avatars/{user_id}/{avatar_hash}.{ext}?size={size}"
    # Default avatar (index based on the snowflake's timestamp bits)
    return f"https://cdn.discordapp.com/embed/avatars/{(int(user_id) >> 22) % 6}.png"


def role_color_hex(role: dict) -> str | None:
    """``#rrggbb`` for a role colour, or None when the role is uncoloured."""
    color = role.get("color") or 0
    if not color:
        return None
    return f"#{color:06x}"


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------
class DiscordResolver:
    """Fetch-and-cache Discord entities for one guild and its event forum.

    Parameters
    ----------
    cache : CacheStore
        Where successful lookups are kept.
    token : str
        Bot token, sent as ``Authorization: Bot <token>``.
    guild_id, forum_id : str
        The event guild and the forum channel holding participant threads.
    client : httpx.AsyncClient, optional
        Injected client (tests pass one with a ``MockTransport``).  When
        omitted, one is created with a fixed 10 s timeout and no retries.
    """

    def __init__(
        self,
        cache: CacheStore,
        token: str,
        guild_id: str,
        forum_id: str,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.cache = cache
        self.guild_id = guild_id
        self.forum_id = forum_id
        self._client = client or httpx.AsyncClient(
            base_url=DISCORD_API,
            timeout=FETCH_TIMEOUT_SECONDS,
        )
        self._headers = {"Authorization": f"Bot {token}"}

    async def aclose(self) -> None:
        await self._client.aclose()

    # -------------------------------------------------------------------
    # HTTP
    # -------------------------------------------------------------------
    async def _get_json(self, path: str, params: dict | None = None) -> Found[Any] | Unavailable:
        try:
            resp = await self._client.get(path, params=params, headers=self._headers)
        except httpx.HTTPError as exc:
            logger.warning("Discord GET %s failed: %s", path, exc.__class__.__name__)
            return Unavailable(exc.__class__.__name__)

        if not resp.is_success:
            logger.warning("Discord GET %s returned %d", path, resp.status_code)
            return Unavailable(f"HTTP {resp.status_code}")

        try:
            return Found(resp.json())
        except ValueError:
            logger.warning("Discord GET %s returned invalid JSON", path)
            return Unavailable("invalid JSON")

    async def _cached_get(self, key: str, path: str, ttl: int) -> Found[Any] | Unavailable:
        cached = await self.cache.get(key)
        if cached is not None:
            return Found(cached)

        result = await self._get_json(path)
        if isinstance(result, Found):
            await self.cache.set(key, result.value, ttl)
        return result

    # -------------------------------------------------------------------
    # Entities
    # -------------------------------------------------------------------
    async def get_user(self, user_id: str) -> Found[dict] | Unavailable:
        return await self._cached_get(f"discord:user:{user_id}", f"/users/{user_id}", TTL_USER)

    async def get_channel(self, channel_id: str) -> Found[dict] | Unavailable:
        return await self._cached_get(
            f"discord:channel:{channel_id}", f"/channels/{channel_id}", TTL_CHANNEL
        )

    async def get_guild_roles(self, guild_id: str | None = None) -> Found[list[dict]] | Unavailable:
        guild_id = guild_id or self.guild_id
        return await self._cached_get(
            f"discord:roles:{guild_id}", f"/guilds/{guild_id}/roles", TTL_ROLES
        )

    async def get_role(self, role_id: str) -> Found[dict] | Unavailable:
        """Look a role up in the (cached) role list of the event guild."""
        roles = await self.get_guild_roles()
        if isinstance(roles, Unavailable):
            return roles
        for role in roles.value:
            if str(role.get("id")) == role_id:
                return Found(role)
        return Unavailable("unknown role")

    async def get_message(self, channel_id: str, message_id: str) -> Found[dict] | Unavailable:
        return await self._cached_get(
            f"discord:message:{channel_id}:{message_id}",
            f"/channels/{channel_id}/messages/{message_id}",
            TTL_MESSAGE,
        )

    # -------------------------------------------------------------------
    # Forum threads
    # -------------------------------------------------------------------
    async def get_forum_threads(self) -> Found[list[dict]] | Unavailable:
        """Active + archived threads of the event forum, de-duplicated by id.

        Best-effort: if only one of the two listings succeeds its threads are
        still returned (and cached).
        """
        key = "discord:threads:forum"
        cached = await self.cache.get(key)
        if cached is not None:
            return Found(cached)

        active, archived = await asyncio.gather(
            self._get_json(f"/guilds/{self.guild_id}/threads/active"),
            self._get_json(
                f"/channels/{self.forum_id}/threads/archived/public",
                params={"limit": 100},
            ),
        )
        if isinstance(active, Unavailable) and isinstance(archived, Unavailable):
            return Unavailable(f"active: {active.reason}; archived: {archived.reason}")

        threads: list[dict] = []
        if isinstance(active, Found):
            # The active listing spans the whole guild.
            threads.extend(
                t for t in active.value.get("threads") or []
                if str(t.get("parent_id")) == self.forum_id
            )
        if isinstance(archived, Found):
            threads.extend(archived.value.get("threads") or [])

        unique: dict[str, dict] = {}
        for thread in threads:
            unique[str(thread["id"])] = thread
        result = list(unique.values())

        await self.cache.set(key, result, TTL_FORUM_THREADS)
        return Found(result)

    async def get_event_stats(self) -> EventStats:
        """Message and participant counts derived from the forum threads."""
        threads = await self.get_forum_threads()
        if isinstance(threads, Unavailable):
            return EventStats()
        return EventStats(
            total_messages=sum(t.get("message_count") or 0 for t in threads.value),
            active_hackers=len({t.get("owner_id") for t in threads.value}),
            thread_count=len(threads.value),
        )
