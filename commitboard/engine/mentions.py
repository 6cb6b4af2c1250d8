"""
commitboard.engine.mentions — Discord inline token parsing
============================================================

Splits free text into plain strings and typed mention tokens in a single
left-to-right scan.  Recognised syntaxes::

    <@123> <@!123>     user
    <#123>             channel
    <@&123>            role
    <:name:123>        emoji (``<a:name:123>`` when animated)
    <t:1700000000:R>   timestamp, optional style letter

Resolving tokens into display names is the renderer's job; nothing here
performs I/O.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, datetime

from commitboard.engine.dates import relative_time

__all__ = [
    "ChannelMention",
    "EmojiMention",
    "Mention",
    "RoleMention",
    "TimestampMention",
    "UserMention",
    "format_timestamp",
    "tokenize",
]


@dataclass(frozen=True, slots=True)
class UserMention:
    id: str


@dataclass(frozen=True, slots=True)
class ChannelMention:
    id: str


@dataclass(frozen=True, slots=True)
class RoleMention:
    id: str


@dataclass(frozen=True, slots=True)
class EmojiMention:
    name: str
    id: str
    animated: bool = False

    @property
    def url(self) -> str:
        ext = "gif" if self.animated else "png"
        return f"https://cdn.discordapp.com/emojis/{self.id}.{ext}"


@dataclass(frozen=True, slots=True)
class TimestampMention:
    epoch_seconds: int
    style: str | None = None

    @property
    def instant(self) -> datetime:
        return datetime.fromtimestamp(self.epoch_seconds, tz=UTC)


Mention = UserMention | ChannelMention | RoleMention | EmojiMention | TimestampMention

_TOKEN_RE = re.compile(
    r"<(?P<prefix>@!?|#|@&)(?P<entity_id>\d+)>"
    r"|<(?P<animated>a?):(?P<emoji_name>\w+):(?P<emoji_id>\d+)>"
    r"|<t:(?P<epoch>-?\d+)(?::(?P<style>[tTdDfFR]))?>"
)


def _to_mention(match: re.Match[str]) -> Mention:
    prefix = match.group("prefix")
    if prefix is not None:
        entity_id = match.group("entity_id")
        if prefix == "#":
            return ChannelMention(entity_id)
        if prefix == "@&":
            return RoleMention(entity_id)
        return UserMention(entity_id)
    if match.group("emoji_id") is not None:
        return EmojiMention(
            name=match.group("emoji_name"),
            id=match.group("emoji_id"),
            animated=match.group("animated") == "a",
        )
    return TimestampMention(int(match.group("epoch")), match.group("style"))


def tokenize(text: str) -> list[str | Mention]:
    """Split *text* into literal strings and mention tokens, in order.

    Empty literal segments are omitted; text without tokens comes back as
    ``[text]`` (or ``[]`` for an empty string).
    """
    parts: list[str | Mention] = []
    last_end = 0
    for match in _TOKEN_RE.finditer(text):
        if match.start() > last_end:
            parts.append(text[last_end:match.start()])
        parts.append(_to_mention(match))
        last_end = match.end()
    if last_end < len(text):
        parts.append(text[last_end:])
    return parts


def has_mentions(text: str) -> bool:
    return _TOKEN_RE.search(text) is not None


# Discord timestamp styles → strftime patterns (rendered in UTC).
_TIMESTAMP_FORMATS: dict[str, str] = {
    "t": "%H:%M",
    "T": "%H:%M:%S",
    "d": "%m/%d/%Y",
    "D": "%B %d, %Y",
    "f": "%B %d, %Y %H:%M",
    "F": "%A, %B %d, %Y %H:%M",
}


def format_timestamp(mention: TimestampMention, now: datetime | None = None) -> str:
    """Human-readable text for a ``<t:...>`` token."""
    try:
        instant = mention.instant
    except (OverflowError, OSError, ValueError):
        return str(mention.epoch_seconds)
    if mention.style == "R":
        return relative_time(instant, now)
    pattern = _TIMESTAMP_FORMATS.get(mention.style or "f", _TIMESTAMP_FORMATS["f"])
    return instant.strftime(pattern) + " UTC"
