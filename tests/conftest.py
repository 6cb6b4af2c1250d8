"""
tests/conftest.py — Shared Test Fixtures
=========================================

In-memory SQLite row store, a steppable clock for TTL tests, and a fake
Discord REST API served through ``httpx.MockTransport``.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import httpx
import pytest
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from commitboard.config import CommitboardConfig, config_from_dict
from commitboard.database.engine import RowStore, init_db
from commitboard.database.models import Commit, CommitOverflowProfile, User
from commitboard.engine.cache import MemoryCacheStore
from commitboard.engine.transform import ContentRenderer
from commitboard.services.discord_service import DISCORD_API, DiscordResolver
from commitboard.services.stats_service import StatsService

GUILD_ID = "772576325897945119"
FORUM_ID = "1452388241796894941"


# Helper to run async tests without pytest-asyncio
def run_async(coro):
    """Run an async coroutine in a new event loop."""
    return asyncio.get_event_loop_policy().new_event_loop().run_until_complete(coro)


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------
class FakeClock:
    """Callable clock for cache stores; ``advance()`` steps it forward."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Fake Discord REST API
# ---------------------------------------------------------------------------
class FakeDiscord:
    """Scriptable stand-in for the handful of Discord endpoints we call.

    Unknown entities answer 404.  Paths listed in ``failures`` answer with
    the given status code, or raise the given exception (network error).
    """

    def __init__(self) -> None:
        self.users: dict[str, dict] = {}
        self.channels: dict[str, dict] = {}
        self.roles: list[dict] = []
        self.messages: dict[tuple[str, str], dict] = {}
        self.active_threads: list[dict] = []
        self.archived_threads: list[dict] = []
        self.failures: dict[str, int | Exception] = {}
        self.requests: list[httpx.Request] = []

    def calls(self, path: str) -> int:
        return sum(1 for r in self.requests if _api_path(r) == path)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = _api_path(request)

        failure = self.failures.get(path)
        if isinstance(failure, Exception):
            raise failure
        if failure is not None:
            return httpx.Response(failure, json={"message": "error"})

        parts = path.strip("/").split("/")
        body: object | None = None
        if len(parts) == 2 and parts[0] == "users":
            body = self.users.get(parts[1])
        elif len(parts) == 2 and parts[0] == "channels":
            body = self.channels.get(parts[1])
        elif parts[0] == "guilds" and parts[2:] == ["roles"]:
            body = self.roles
        elif parts[0] == "guilds" and parts[2:] == ["threads", "active"]:
            body = {"threads": self.active_threads}
        elif parts[0] == "channels" and parts[2:] == ["threads", "archived", "public"]:
            body = {"threads": self.archived_threads, "has_more": False}
        elif len(parts) == 4 and parts[0] == "channels" and parts[2] == "messages":
            body = self.messages.get((parts[1], parts[3]))

        if body is None:
            return httpx.Response(404, json={"message": "Unknown", "code": 10000})
        return httpx.Response(200, json=body)

    def resolver(self, cache, token: str = "test-token") -> DiscordResolver:
        client = httpx.AsyncClient(
            base_url=DISCORD_API, transport=httpx.MockTransport(self.handler)
        )
        return DiscordResolver(cache, token, GUILD_ID, FORUM_ID, client=client)


def _api_path(request: httpx.Request) -> str:
    return request.url.path.removeprefix("/api/v10")


# ---------------------------------------------------------------------------
# Row-store seeding
# ---------------------------------------------------------------------------
def seed_user(
    engine: Engine,
    user_id: str,
    name: str,
    *,
    timezone: str = "America/New_York",
    thread_id: str | None = None,
    is_private: bool = False,
    with_profile: bool = True,
) -> None:
    with Session(engine) as session:
        session.add(User(id=user_id, discord_username=name))
        if with_profile:
            session.add(CommitOverflowProfile(
                user_id=user_id,
                timezone=timezone,
                thread_id=thread_id,
                is_private=is_private,
            ))
        session.commit()


def seed_commit(
    engine: Engine,
    user_id: str,
    committed_at: datetime,
    *,
    message_id: str | None = None,
    approved: bool = True,
    is_private: bool = False,
    is_explicitly_private: bool = False,
) -> None:
    """Insert one commit.  Instants are stored as UTC."""
    committed_at = committed_at.astimezone(UTC)
    with Session(engine) as session:
        session.add(Commit(
            user_id=user_id,
            message_id=message_id or f"m{int(committed_at.timestamp())}",
            committed_at=committed_at,
            approved_at=committed_at if approved else None,
            is_private=is_private,
            is_explicitly_private=is_explicitly_private,
        ))
        session.commit()


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all Commitboard tables.

    Uses StaticPool so all threads share the same in-memory database
    (required by ``asyncio.to_thread`` used in ``run_db``).
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    return engine


@pytest.fixture
def rows(db_engine: Engine) -> RowStore:
    return RowStore(db_engine)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> MemoryCacheStore:
    return MemoryCacheStore(clock=clock)


@pytest.fixture
def config() -> CommitboardConfig:
    return config_from_dict({
        "event_name": "Commit Overflow",
        "guild_id": GUILD_ID,
        "forum_id": FORUM_ID,
    })


@pytest.fixture
def discord() -> FakeDiscord:
    return FakeDiscord()


@pytest.fixture
def resolver(discord: FakeDiscord, cache: MemoryCacheStore) -> DiscordResolver:
    return discord.resolver(cache)


@pytest.fixture
def renderer(resolver: DiscordResolver) -> ContentRenderer:
    return ContentRenderer(resolver)


@pytest.fixture
def stats_service(rows, resolver, renderer, cache, config) -> StatsService:
    return StatsService(rows, resolver, renderer, cache, config)


@pytest.fixture
def client(stats_service: StatsService, resolver: DiscordResolver):
    """FastAPI TestClient with the service singletons swapped for test ones."""
    from fastapi.testclient import TestClient

    from commitboard.api.deps import get_resolver, get_stats_service
    from commitboard.api.main import app

    app.dependency_overrides[get_stats_service] = lambda: stats_service
    app.dependency_overrides[get_resolver] = lambda: resolver
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()
