"""
commitboard.engine.truncate — Sentence-aware message truncation
================================================================

Feed previews are cut to roughly ``max_words`` words.  The cut prefers a
sentence boundary near the budget; failing that it backs off past
function words so a preview never ends on "the" or "and".
"""

from __future__ import annotations

import re

ELLIPSIS = "..."

# Words a preview should not end on: articles, conjunctions, prepositions,
# pronouns, auxiliaries and common determiners.
AWKWARD_END_WORDS: frozenset[str] = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "from", "as", "is", "was", "are", "were", "been",
    "be", "have", "has", "had", "do", "does", "did", "will", "would",
    "could", "should", "may", "might", "must", "shall", "can", "need",
    "dare", "ought", "used", "this", "that", "these", "those", "i", "you",
    "he", "she", "it", "we", "they", "my", "your", "his", "her", "its",
    "our", "their", "what", "which", "who", "whom", "whose", "where",
    "when", "why", "how", "if", "then", "so", "than", "such", "both",
    "each", "few", "more", "most", "other", "some", "any", "no", "not",
    "only", "own", "same", "just", "also", "very", "even", "still",
})

_SENTENCE_END = re.compile(r"[.!?][\"')]?$")
_NON_ALPHA = re.compile(r"[^a-z]")


def smart_truncate(text: str, max_words: int = 50) -> str:
    """Shorten *text* to about *max_words* words.

    Text within budget is returned unchanged (whitespace included).
    Otherwise the words are re-joined with single spaces and
    :data:`ELLIPSIS` is appended.
    """
    words = text.split()
    if len(words) <= max_words:
        return text

    window_start = max(0, max_words - 10)
    window_end = min(len(words), max_words + 5)

    # Last sentence end in the window, stopping at the first one that is
    # already close enough to the budget.
    best_end = -1
    for i in range(window_start, window_end):
        if _SENTENCE_END.search(words[i]):
            best_end = i
            if i >= max_words - 5:
                break

    if best_end == -1:
        for i in range(max_words, window_start, -1):
            normalized = _NON_ALPHA.sub("", words[i - 1].lower())
            if normalized not in AWKWARD_END_WORDS:
                best_end = i - 1
                break

    if best_end == -1:
        best_end = max_words - 1

    return " ".join(words[:best_end + 1]) + ELLIPSIS
