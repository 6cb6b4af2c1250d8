"""
commitboard.engine.records — Row records and derived payload types
===================================================================

Input records are built from row-store dicts and never mutated.
Derived types carry ``to_dict()`` producing the camelCase shapes the
dashboard frontend consumes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from commitboard.engine.dates import parse_instant

__all__ = [
    "Attachment",
    "CommitRecord",
    "FeedItem",
    "LeaderboardEntry",
    "ProfileRecord",
    "UserRecord",
    "UserStats",
]


# ---------------------------------------------------------------------------
# Input rows
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class CommitRecord:
    user_id: str
    committed_at: datetime
    message_id: str
    is_private: bool = False
    is_explicitly_private: bool = False
    approved: bool = True

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> CommitRecord:
        # Booleans arrive as 0/1 from SQLite and as bool from PostgreSQL.
        return cls(
            user_id=str(row["user_id"]),
            committed_at=parse_instant(row["committed_at"]),
            message_id=str(row["message_id"]),
            is_private=bool(row.get("is_private")),
            is_explicitly_private=bool(row.get("is_explicitly_private")),
            approved=row.get("approved_at", True) is not None,
        )

    @property
    def feed_eligible(self) -> bool:
        return self.approved and not self.is_private and not self.is_explicitly_private


@dataclass(frozen=True, slots=True)
class ProfileRecord:
    user_id: str
    timezone: str | None
    thread_id: str | None
    is_private: bool = False

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> ProfileRecord:
        thread_id = row.get("thread_id")
        return cls(
            user_id=str(row["user_id"]),
            timezone=row.get("timezone"),
            thread_id=str(thread_id) if thread_id else None,
            is_private=bool(row.get("is_private")),
        )


@dataclass(frozen=True, slots=True)
class UserRecord:
    user_id: str
    display_name: str

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> UserRecord:
        return cls(user_id=str(row["user_id"]), display_name=row["display_name"])


# ---------------------------------------------------------------------------
# Derived
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class UserStats:
    user_id: str
    display_name: str
    total_commits: int
    total_days_active: int
    current_streak: int
    longest_streak: int


@dataclass(frozen=True, slots=True)
class LeaderboardEntry:
    rank: int
    user_id: str
    display_name: str
    avatar_url: str
    total_commits: int
    total_days_active: int
    current_streak: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "rank": self.rank,
            "userId": self.user_id,
            "displayName": self.display_name,
            "avatarUrl": self.avatar_url,
            "totalCommits": self.total_commits,
            "totalDaysActive": self.total_days_active,
            "currentStreak": self.current_streak,
        }


@dataclass(frozen=True, slots=True)
class Attachment:
    url: str
    mime_type: str
    filename: str

    @classmethod
    def from_discord(cls, raw: dict[str, Any]) -> Attachment:
        return cls(
            url=raw.get("url") or "",
            mime_type=raw.get("content_type") or "",
            filename=raw.get("filename") or "",
        )

    def to_dict(self) -> dict[str, str]:
        return {"url": self.url, "mimeType": self.mime_type, "filename": self.filename}


@dataclass(frozen=True, slots=True)
class FeedItem:
    user_id: str
    display_name: str
    avatar_url: str
    thread_id: str
    message_id: str
    rendered_html: str
    committed_at: datetime
    relative_time: str
    attachments: tuple[Attachment, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "userId": self.user_id,
            "displayName": self.display_name,
            "avatarUrl": self.avatar_url,
            "threadId": self.thread_id,
            "messageId": self.message_id,
            "renderedHtml": self.rendered_html,
            "attachments": [a.to_dict() for a in self.attachments],
            "committedAt": self.committed_at.isoformat(),
            "relativeTime": self.relative_time,
        }
