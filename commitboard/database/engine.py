"""
commitboard.database.engine — Database Connection, Row Store & Async Helper
============================================================================

**Why this file exists:**
The API runs on an ``asyncio`` event loop while SQLAlchemy + psycopg2 is
**synchronous**.  Every query is shipped to a worker thread with
:func:`run_db` so the loop stays free to overlap the other reads of an
aggregation cycle.

The aggregator never touches ORM objects: it asks a :class:`RowStore`
for plain ``dict`` rows via parameterised SQL.  A failed query raises
:class:`~commitboard.exceptions.RowStoreError`, which is distinct from an
empty result.

Usage::

    from commitboard.database.engine import RowStore, create_db_engine

    engine = create_db_engine()          # reads DATABASE_URL from .env
    rows = RowStore(engine)
    commits = await rows.query(
        "SELECT user_id FROM commits WHERE user_id = :uid", {"uid": "42"}
    )
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable, Mapping
from typing import Any, ParamSpec, TypeVar

from sqlalchemy import Engine, create_engine, text
from sqlalchemy.exc import SQLAlchemyError

from commitboard.database.models import Base
from commitboard.exceptions import RowStoreError

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


# ---------------------------------------------------------------------------
# Engine creation
# ---------------------------------------------------------------------------
def create_db_engine(url: str | None = None) -> Engine:
    """Build a SQLAlchemy :class:`Engine` from *url* or ``DATABASE_URL``.

    The pool is sized for a read-mostly dashboard:
    * ``pool_size=5`` — five persistent connections (one per bulk read).
    * ``max_overflow=10`` — extra connections for paginated feed bursts.
    * ``pool_timeout=10`` — fail after 10 s if no connection is available.
    * ``pool_recycle=3600`` — recycle connections after 1 hour.

    Raises
    ------
    RuntimeError
        If neither *url* nor ``DATABASE_URL`` is set.
    """
    url = url or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set.  "
            "Copy .env.example → .env and set a valid PostgreSQL URL."
        )

    engine = create_engine(
        url,
        echo=False,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
        pool_timeout=10,
        pool_recycle=3600,
    )
    logger.info("Database engine created → %s", engine.url.host)
    return engine


# ---------------------------------------------------------------------------
# Schema initialization
# ---------------------------------------------------------------------------
def init_db(engine: Engine) -> None:
    """Create all tables defined in :mod:`commitboard.database.models`.

    .. note::

        In production the schema is managed by Alembic (``alembic upgrade
        head``).  ``create_all`` is retained for dev/test environments.
    """
    Base.metadata.create_all(engine)
    logger.info("Database tables verified / created.")


# ---------------------------------------------------------------------------
# Async bridge
# ---------------------------------------------------------------------------
async def run_db(func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
    """Run a **synchronous** database function on a background thread.

    Under the hood it calls :func:`asyncio.to_thread`, which schedules
    *func* on the default ``ThreadPoolExecutor`` so the event loop is
    never blocked.
    """
    return await asyncio.to_thread(func, *args, **kwargs)


# ---------------------------------------------------------------------------
# Row store — parameterised SQL → list of dict rows
# ---------------------------------------------------------------------------
class RowStore:
    """Thin query interface over an :class:`Engine`.

    Parameters use SQLAlchemy named binds (``:name``).  Rows come back as
    plain dictionaries keyed by column label, in the order the query
    returns them.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def query_sync(
        self, sql: str, params: Mapping[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        try:
            with self._engine.connect() as conn:
                result = conn.execute(text(sql), dict(params or {}))
                return [dict(row) for row in result.mappings()]
        except SQLAlchemyError as exc:
            logger.error("Row store query failed: %s", exc.__class__.__name__)
            raise RowStoreError(f"Row store query failed: {exc}", sql=sql) from exc

    async def query(
        self, sql: str, params: Mapping[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """Run *sql* on a worker thread and return its rows."""
        return await run_db(self.query_sync, sql, params)
