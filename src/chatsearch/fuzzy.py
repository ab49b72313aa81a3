"""Typo-tolerant matching of a query against labelled candidates."""

from __future__ import annotations

from typing import Iterable, List

from .models import FuzzyCandidate, FuzzyMatch, normalize_query

DEFAULT_SIMILARITY_FLOOR = 0.4


def edit_distance(left: str, right: str) -> int:
    """Optimal string alignment distance (Levenshtein plus adjacent swaps)."""

    if left == right:
        return 0
    if not left:
        return len(right)
    if not right:
        return len(left)

    previous_previous: list[int] = []
    previous = list(range(len(right) + 1))
    for i, left_char in enumerate(left, start=1):
        current = [i] + [0] * len(right)
        for j, right_char in enumerate(right, start=1):
            cost = 0 if left_char == right_char else 1
            current[j] = min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + cost,
            )
            if (
                i > 1
                and j > 1
                and left_char == right[j - 2]
                and left[i - 2] == right_char
            ):
                current[j] = min(current[j], previous_previous[j - 2] + 1)
        previous_previous, previous = previous, current
    return previous[-1]


def similarity(label: str, query: str) -> float:
    """Return a 0..1 similarity between ``label`` and ``query``.

    The whole strings are compared, and so is every query word against its
    closest label word; the better of the two wins. A label that contains the
    query verbatim is a perfect match.
    """

    needle = normalize_query(query)
    haystack = (label or "").strip().lower()
    if not needle or not haystack:
        return 0.0
    if needle in haystack:
        return 1.0

    full_score = _ratio(needle, haystack)

    label_words = haystack.split()
    word_scores = [
        max((_ratio(query_word, label_word) for label_word in label_words), default=0.0)
        for query_word in needle.split()
    ]
    word_score = sum(word_scores) / len(word_scores) if word_scores else 0.0
    return max(full_score, word_score)


def fuzzy_match(
    candidates: Iterable[FuzzyCandidate],
    query: str,
    *,
    floor: float = DEFAULT_SIMILARITY_FLOOR,
    limit: int | None = None,
) -> List[FuzzyMatch]:
    """Return candidates at or above ``floor``, most similar first."""

    if not normalize_query(query):
        return []

    matches: list[FuzzyMatch] = []
    for candidate in candidates:
        score = similarity(candidate.label, query)
        if score <= 0.0 or score < floor:
            continue
        matches.append(
            FuzzyMatch(
                id=candidate.id,
                label=candidate.label,
                similarity=round(score, 4),
                payload=candidate.payload,
            )
        )
    # stable: equal similarities keep candidate order
    matches.sort(key=lambda item: item.similarity, reverse=True)
    if limit is not None and limit >= 0:
        return matches[:limit]
    return matches


def _ratio(left: str, right: str) -> float:
    longest = max(len(left), len(right))
    if longest == 0:
        return 0.0
    return 1.0 - edit_distance(left, right) / longest
