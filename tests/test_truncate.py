"""
tests/test_truncate.py — Smart truncation tests
================================================
"""

from __future__ import annotations

import pytest

from commitboard.engine.truncate import AWKWARD_END_WORDS, ELLIPSIS, smart_truncate


def _words(n: int) -> list[str]:
    return [f"w{i}" for i in range(n)]


class TestWithinBudget:
    def test_short_text_unchanged(self):
        assert smart_truncate("fixed the build", 50) == "fixed the build"

    def test_whitespace_preserved_when_not_truncated(self):
        text = "  line one\n\nline   two  "
        assert smart_truncate(text, 50) == text

    def test_exactly_max_words_unchanged(self):
        text = " ".join(_words(50))
        assert smart_truncate(text, 50) == text

    def test_empty(self):
        assert smart_truncate("", 50) == ""


class TestSentenceBoundary:
    def test_cuts_after_sentence_end_in_window(self):
        words = _words(60)
        words[44] = "done."
        assert smart_truncate(" ".join(words), 50) == " ".join(words[:45]) + ELLIPSIS

    def test_stops_at_first_boundary_near_budget(self):
        words = _words(60)
        words[46] = "first!"
        words[52] = "second."
        assert smart_truncate(" ".join(words), 50) == " ".join(words[:47]) + ELLIPSIS

    def test_prefers_latest_early_boundary(self):
        words = _words(60)
        words[41] = "early."
        words[43] = "later?"
        assert smart_truncate(" ".join(words), 50) == " ".join(words[:44]) + ELLIPSIS

    def test_boundary_beyond_budget_within_window(self):
        words = _words(60)
        words[53] = "finally."
        assert smart_truncate(" ".join(words), 50) == " ".join(words[:54]) + ELLIPSIS

    def test_boundary_outside_window_ignored(self):
        words = _words(70)
        words[20] = "ignored."
        words[60] = "ignored."
        assert smart_truncate(" ".join(words), 50) == " ".join(words[:50]) + ELLIPSIS

    @pytest.mark.parametrize("ending", ['done."', "done.)", "done!'"])
    def test_closing_quote_or_paren_counts(self, ending):
        words = _words(60)
        words[47] = ending
        assert smart_truncate(" ".join(words), 50).endswith(ending + ELLIPSIS)


class TestAwkwardWords:
    def test_backs_off_past_awkward_words(self):
        words = _words(60)
        words[48] = "and"
        words[49] = "the"
        assert smart_truncate(" ".join(words), 50) == " ".join(words[:48]) + ELLIPSIS

    def test_awkward_check_ignores_case_and_punctuation(self):
        words = _words(60)
        words[49] = "The,"
        assert smart_truncate(" ".join(words), 50) == " ".join(words[:49]) + ELLIPSIS

    def test_all_awkward_falls_back_to_hard_cut(self):
        text = " ".join(["the"] * 60)
        assert smart_truncate(text, 50) == " ".join(["the"] * 50) + ELLIPSIS

    def test_stop_list_contents(self):
        for word in ("the", "and", "with", "could", "their", "also"):
            assert word in AWKWARD_END_WORDS
        assert "shipped" not in AWKWARD_END_WORDS


class TestOutputShape:
    def test_whitespace_collapsed_when_truncated(self):
        text = "\n\n".join(_words(60))
        result = smart_truncate(text, 50)
        assert "\n" not in result
        assert result.endswith(ELLIPSIS)

    def test_small_budget(self):
        assert smart_truncate("alpha beta gamma delta", 2) == "alpha beta" + ELLIPSIS
