"""
commitboard.database.models — SQLAlchemy 2.0 Data Models
=========================================================

Tables read by the dashboard.  The commit/profile/user rows are written by
the event bot; this package only reads them.

Tables:
- users                     — Discord members known to the event
- commit_overflow_profiles  — Per-participant timezone, forum thread, privacy
- commits                   — One row per submitted commit message
- cache_entries             — Durable cache-aside storage (SqlCacheStore)
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Commitboard ORM models."""


# ---------------------------------------------------------------------------
# Users — one row per Discord member
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)  # Discord snowflake
    discord_username: Mapped[str] = mapped_column(String(100), nullable=False)

    def __repr__(self) -> str:
        return f"<User id={self.id} name={self.discord_username!r}>"


# ---------------------------------------------------------------------------
# CommitOverflowProfile — event participation settings
# ---------------------------------------------------------------------------
class CommitOverflowProfile(Base):
    """Per-participant settings for the event.

    ``timezone`` decides which calendar day each commit counts toward.
    ``is_private`` keeps the participant off the leaderboards.  The feed
    filters on the per-commit privacy flags instead.
    """
    __tablename__ = "commit_overflow_profiles"

    user_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="America/New_York")
    thread_id: Mapped[str | None] = mapped_column(String(32), default=None)
    is_private: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return (
            f"<CommitOverflowProfile user={self.user_id} tz={self.timezone!r} "
            f"private={self.is_private}>"
        )


# ---------------------------------------------------------------------------
# Commits — approved rows feed every statistic on the dashboard
# ---------------------------------------------------------------------------
class Commit(Base):
    __tablename__ = "commits"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    message_id: Mapped[str] = mapped_column(String(32), nullable=False)
    committed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    is_private: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # Set when the author flags a single commit as private, independent of
    # the profile-level flag.
    is_explicitly_private: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("ix_commits_committed_at", committed_at.desc()),
        Index("ix_commits_user_id", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<Commit id={self.id} user={self.user_id} at={self.committed_at}>"


# ---------------------------------------------------------------------------
# CacheEntry — key/value rows with optional expiry
# ---------------------------------------------------------------------------
class CacheEntry(Base):
    """Serialized cache value.  ``expires_at`` is NULL for entries without a TTL."""
    __tablename__ = "cache_entries"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value_json: Mapped[str] = mapped_column(Text, nullable=False)
    expires_at: Mapped[float | None] = mapped_column(default=None)

    __table_args__ = (
        Index("ix_cache_entries_expires_at", "expires_at"),
    )

    def __repr__(self) -> str:
        return f"<CacheEntry key={self.key!r} expires_at={self.expires_at}>"
