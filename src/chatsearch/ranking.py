"""Ordering and fuzzy-merge helpers for search results."""

from __future__ import annotations

from typing import Callable, Iterable, List, Sequence

from .models import FuzzyMatch, SearchResult

DEFAULT_FUZZY_DISCOUNT = 0.8


def sort_results(results: Iterable[SearchResult]) -> List[SearchResult]:
    """Order by score, then most recent first, then id for a stable result."""

    ordered = sorted(results, key=lambda result: result.id)
    ordered.sort(key=lambda result: (result.score, result.recency), reverse=True)
    return ordered


def merge_results(
    primary: Sequence[SearchResult],
    matches: Sequence[FuzzyMatch],
    limit: int,
    *,
    to_result: Callable[[FuzzyMatch], SearchResult | None],
    discount: float = DEFAULT_FUZZY_DISCOUNT,
) -> List[SearchResult]:
    """Top up ``primary`` with fuzzy-only matches until ``limit`` is reached.

    A full ``primary`` list is returned untouched. Otherwise each match whose
    id is not already present is converted with ``to_result`` and its score
    scaled by ``discount`` and by the match similarity. The extras are ranked
    with :func:`sort_results` before the top ones are taken, so a larger
    ``limit`` only ever extends a smaller one.
    """

    if len(primary) >= limit:
        return list(primary)

    seen = {result.id for result in primary}
    extras: list[SearchResult] = []
    for match in matches:
        if match.id in seen:
            continue
        result = to_result(match)
        if result is None:
            continue
        result.score = round(result.score * discount * match.similarity, 4)
        extras.append(result)
        seen.add(match.id)
    selected = sort_results(extras)[: limit - len(primary)]
    return sort_results([*primary, *selected])
