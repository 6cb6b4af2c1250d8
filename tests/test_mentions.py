"""
tests/test_mentions.py — Discord mention tokenizer tests
=========================================================
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from commitboard.engine.mentions import (
    ChannelMention,
    EmojiMention,
    RoleMention,
    TimestampMention,
    UserMention,
    format_timestamp,
    has_mentions,
    tokenize,
)


class TestTokenize:
    def test_plain_text(self):
        assert tokenize("just text") == ["just text"]

    def test_empty(self):
        assert tokenize("") == []

    def test_user_mentions_with_and_without_nickname_marker(self):
        assert tokenize("hi <@123> and <@!456>") == [
            "hi ", UserMention("123"), " and ", UserMention("456"),
        ]

    def test_channel_and_role(self):
        assert tokenize("<#10><@&20>") == [ChannelMention("10"), RoleMention("20")]

    def test_emoji(self):
        assert tokenize("nice <:party_parrot:999>!") == [
            "nice ", EmojiMention("party_parrot", "999", animated=False), "!",
        ]

    def test_animated_emoji(self):
        assert tokenize("<a:dance:1000>") == [EmojiMention("dance", "1000", animated=True)]

    def test_timestamp_with_and_without_style(self):
        assert tokenize("<t:1700000000:R> <t:1700000000>") == [
            TimestampMention(1700000000, "R"), " ", TimestampMention(1700000000, None),
        ]

    @pytest.mark.parametrize("text", ["<@abc>", "<#>", "<t:12:Q>", "<:no_id:>", "@123"])
    def test_malformed_tokens_stay_literal(self, text):
        assert tokenize(text) == [text]
        assert not has_mentions(text)

    def test_has_mentions(self):
        assert has_mentions("ping <@1>")

    def test_mentions_are_hashable_for_dedupe(self):
        assert len({UserMention("1"), UserMention("1"), RoleMention("1")}) == 2


class TestEmojiUrl:
    def test_static_png(self):
        assert EmojiMention("x", "5").url == "https://cdn.discordapp.com/emojis/5.png"

    def test_animated_gif(self):
        assert EmojiMention("x", "5", animated=True).url == "https://cdn.discordapp.com/emojis/5.gif"


class TestFormatTimestamp:
    def test_default_style(self):
        assert format_timestamp(TimestampMention(0)) == "January 01, 1970 00:00 UTC"

    @pytest.mark.parametrize(
        "style, expected",
        [
            ("t", "00:00 UTC"),
            ("T", "00:00:00 UTC"),
            ("d", "01/01/1970 UTC"),
            ("D", "January 01, 1970 UTC"),
            ("F", "Thursday, January 01, 1970 00:00 UTC"),
        ],
    )
    def test_styles(self, style, expected):
        assert format_timestamp(TimestampMention(0, style)) == expected

    def test_relative_style(self):
        mention = TimestampMention(1_766_750_400, "R")
        now = mention.instant + timedelta(hours=2)
        assert format_timestamp(mention, now) == "2h ago"

    def test_instant_is_utc(self):
        assert TimestampMention(0).instant == datetime(1970, 1, 1, tzinfo=UTC)

    def test_out_of_range_epoch_renders_raw_number(self):
        assert format_timestamp(TimestampMention(10 ** 20)) == str(10 ** 20)
