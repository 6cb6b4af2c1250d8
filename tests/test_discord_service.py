"""
tests/test_discord_service.py — Discord resolver tests
=======================================================

Covers the Found/Unavailable contract, caching of successful lookups only,
forum-thread merging and the presentation helpers.
"""

from __future__ import annotations

import httpx
import pytest
from conftest import FORUM_ID, GUILD_ID, FakeClock, run_async

from commitboard.services.discord_service import (
    TTL_FORUM_THREADS,
    TTL_USER,
    EventStats,
    Found,
    Unavailable,
    avatar_url,
    display_name,
    role_color_hex,
)

ACTIVE_PATH = f"/guilds/{GUILD_ID}/threads/active"
ARCHIVED_PATH = f"/channels/{FORUM_ID}/threads/archived/public"


def _thread(thread_id: str, owner: str, count: int, parent: str = FORUM_ID) -> dict:
    return {"id": thread_id, "parent_id": parent, "owner_id": owner, "message_count": count}


# ===========================================================================
# Entity lookups
# ===========================================================================
class TestUserLookup:
    def test_found(self, resolver, discord):
        discord.users["1"] = {"id": "1", "username": "ada"}
        result = run_async(resolver.get_user("1"))
        assert result == Found({"id": "1", "username": "ada"})

    def test_sends_bot_token(self, resolver, discord):
        discord.users["1"] = {"id": "1", "username": "ada"}
        run_async(resolver.get_user("1"))
        assert discord.requests[0].headers["Authorization"] == "Bot test-token"

    def test_success_is_cached(self, resolver, discord):
        discord.users["1"] = {"id": "1", "username": "ada"}
        run_async(resolver.get_user("1"))
        discord.users["1"] = {"id": "1", "username": "renamed"}
        assert run_async(resolver.get_user("1")).value["username"] == "ada"
        assert discord.calls("/users/1") == 1

    def test_cache_entry_expires(self, resolver, discord, clock: FakeClock):
        discord.users["1"] = {"id": "1", "username": "ada"}
        run_async(resolver.get_user("1"))
        clock.advance(TTL_USER)
        run_async(resolver.get_user("1"))
        assert discord.calls("/users/1") == 2

    def test_not_found_is_unavailable_and_not_cached(self, resolver, discord):
        result = run_async(resolver.get_user("404"))
        assert isinstance(result, Unavailable)
        assert result.reason == "HTTP 404"
        run_async(resolver.get_user("404"))
        assert discord.calls("/users/404") == 2

    def test_recovers_after_failure(self, resolver, discord):
        discord.failures["/users/1"] = 502
        assert isinstance(run_async(resolver.get_user("1")), Unavailable)
        del discord.failures["/users/1"]
        discord.users["1"] = {"id": "1", "username": "ada"}
        assert isinstance(run_async(resolver.get_user("1")), Found)

    def test_network_error_is_unavailable(self, resolver, discord, caplog):
        discord.failures["/users/1"] = httpx.ConnectError("connection refused")
        result = run_async(resolver.get_user("1"))
        assert result == Unavailable("ConnectError")
        assert "ConnectError" in caplog.text

    def test_timeout_is_unavailable(self, resolver, discord):
        discord.failures["/users/1"] = httpx.ReadTimeout("slow")
        assert run_async(resolver.get_user("1")) == Unavailable("ReadTimeout")

    def test_cache_key_namespace(self, resolver, discord, cache):
        discord.users["1"] = {"id": "1", "username": "ada"}
        run_async(resolver.get_user("1"))
        assert run_async(cache.get("discord:user:1")) == {"id": "1", "username": "ada"}


class TestOtherLookups:
    def test_channel(self, resolver, discord):
        discord.channels["9"] = {"id": "9", "name": "general"}
        assert run_async(resolver.get_channel("9")).value["name"] == "general"

    def test_role_found_in_guild_roles(self, resolver, discord):
        discord.roles = [{"id": "1", "name": "A"}, {"id": "2", "name": "B"}]
        assert run_async(resolver.get_role("2")) == Found({"id": "2", "name": "B"})

    def test_unknown_role(self, resolver, discord):
        discord.roles = [{"id": "1", "name": "A"}]
        assert run_async(resolver.get_role("3")) == Unavailable("unknown role")

    def test_role_when_roles_unavailable(self, resolver, discord):
        discord.failures[f"/guilds/{GUILD_ID}/roles"] = 403
        assert run_async(resolver.get_role("1")) == Unavailable("HTTP 403")

    def test_message(self, resolver, discord, cache):
        discord.messages[("t1", "m1")] = {"id": "m1", "content": "hello"}
        assert run_async(resolver.get_message("t1", "m1")).value["content"] == "hello"
        assert run_async(cache.get("discord:message:t1:m1")) is not None


# ===========================================================================
# Forum threads & event stats
# ===========================================================================
class TestForumThreads:
    def test_merges_filters_and_dedupes(self, resolver, discord):
        discord.active_threads = [
            _thread("a", "1", 5),
            _thread("elsewhere", "9", 50, parent="123"),
        ]
        discord.archived_threads = [_thread("b", "2", 3), _thread("a", "1", 5)]
        threads = run_async(resolver.get_forum_threads()).value
        assert sorted(t["id"] for t in threads) == ["a", "b"]

    def test_archived_listing_requested_with_limit(self, resolver, discord):
        run_async(resolver.get_forum_threads())
        archived = [r for r in discord.requests if r.url.path.endswith("/archived/public")]
        assert archived[0].url.params["limit"] == "100"

    def test_one_side_failing_still_returns_threads(self, resolver, discord):
        discord.failures[ACTIVE_PATH] = 500
        discord.archived_threads = [_thread("b", "2", 3)]
        result = run_async(resolver.get_forum_threads())
        assert isinstance(result, Found)
        assert [t["id"] for t in result.value] == ["b"]

    def test_both_failing_is_unavailable_and_not_cached(self, resolver, discord):
        discord.failures[ACTIVE_PATH] = 500
        discord.failures[ARCHIVED_PATH] = httpx.ConnectError("down")
        assert isinstance(run_async(resolver.get_forum_threads()), Unavailable)
        run_async(resolver.get_forum_threads())
        assert discord.calls(ACTIVE_PATH) == 2

    def test_cached_for_an_hour(self, resolver, discord, clock: FakeClock):
        run_async(resolver.get_forum_threads())
        clock.advance(TTL_FORUM_THREADS - 1)
        run_async(resolver.get_forum_threads())
        assert discord.calls(ACTIVE_PATH) == 1

    def test_event_stats(self, resolver, discord):
        discord.active_threads = [_thread("a", "1", 5), _thread("c", "1", 2)]
        discord.archived_threads = [_thread("b", "2", 3)]
        stats = run_async(resolver.get_event_stats())
        assert stats == EventStats(total_messages=10, active_hackers=2, thread_count=3)

    def test_event_stats_zero_when_unavailable(self, resolver, discord):
        discord.failures[ACTIVE_PATH] = 500
        discord.failures[ARCHIVED_PATH] = 500
        assert run_async(resolver.get_event_stats()) == EventStats(0, 0, 0)


# ===========================================================================
# Helpers
# ===========================================================================
class TestHelpers:
    @pytest.mark.parametrize(
        "user, expected",
        [
            ({"username": "ada", "global_name": "Ada"}, "Ada"),
            ({"username": "ada", "global_name": None}, "ada"),
            ({}, "user"),
        ],
    )
    def test_display_name(self, user, expected):
        assert display_name(user) == expected

    def test_avatar_url_with_hash(self):
        assert avatar_url("42", "abc", size=64) == (
            "https://cdn.discordapp.com/avatars/42/abc.png?size=64"
        )

    def test_avatar_url_animated(self):
        assert avatar_url("42", "a_abc").endswith("/a_abc.gif?size=32")

    def test_default_avatar(self):
        user_id = 772576325897945119
        expected = f"https://cdn.discordapp.com/embed/avatars/{(user_id >> 22) % 6}.png"
        assert avatar_url(str(user_id)) == expected

    def test_role_color_hex(self):
        assert role_color_hex({"color": 0xFF0000}) == "#ff0000"
        assert role_color_hex({"color": 0x00000A}) == "#00000a"
        assert role_color_hex({"color": 0}) is None
        assert role_color_hex({}) is None
