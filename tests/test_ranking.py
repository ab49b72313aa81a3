from __future__ import annotations

from datetime import timedelta

from chatsearch.models import FuzzyMatch, ResultKind, SearchResult
from chatsearch.ranking import merge_results, sort_results

from conftest import BASE_TIME


def _result(result_id: str, score: float, *, hours: int = 0, updated: bool = True) -> SearchResult:
    created = BASE_TIME + timedelta(hours=hours)
    return SearchResult(
        id=result_id,
        kind=ResultKind.CHAT,
        title=result_id,
        snippet=result_id,
        target_url=f"/chat/{result_id}",
        score=score,
        created_at=created,
        updated_at=created if updated else None,
    )


def test_sort_results_orders_by_score_then_recency() -> None:
    ordered = sort_results(
        [
            _result("old", 40.0, hours=1),
            _result("top", 80.0, hours=0),
            _result("new", 40.0, hours=5),
            _result("created-only", 40.0, hours=3, updated=False),
        ]
    )
    assert [item.id for item in ordered] == ["top", "new", "created-only", "old"]


def test_sort_results_breaks_full_ties_by_id() -> None:
    ordered = sort_results([_result("b", 40.0), _result("a", 40.0)])
    assert [item.id for item in ordered] == ["a", "b"]


def test_merge_skips_fuzzy_when_primary_is_full() -> None:
    primary = [_result("one", 80.0), _result("two", 60.0)]
    calls: list[str] = []

    def to_result(match: FuzzyMatch) -> SearchResult:
        calls.append(match.id)
        return _result(match.id, 30.0)

    merged = merge_results(
        primary,
        [FuzzyMatch(id="three", label="three", similarity=0.9)],
        2,
        to_result=to_result,
    )
    assert [item.id for item in merged] == ["one", "two"]
    assert calls == []


def test_merge_discounts_and_dedupes_fuzzy_matches() -> None:
    primary = [_result("exact", 60.0)]
    fuzzy = {
        "exact": _result("exact", 60.0),
        "typo": _result("typo", 30.0, hours=2),
        "other": _result("other", 30.0, hours=1),
        "extra": _result("extra", 30.0),
    }
    matches = [
        FuzzyMatch(id="exact", label="exact", similarity=1.0),
        FuzzyMatch(id="typo", label="typo", similarity=0.8),
        FuzzyMatch(id="other", label="other", similarity=0.6),
        FuzzyMatch(id="extra", label="extra", similarity=0.5),
    ]

    merged = merge_results(primary, matches, 3, to_result=lambda match: fuzzy[match.id])

    assert [item.id for item in merged] == ["exact", "typo", "other"]
    assert merged[0].score == 60.0
    assert merged[1].score == 19.2
    assert merged[2].score == 14.4


def test_merge_uses_configured_discount_and_skips_unresolvable() -> None:
    matches = [
        FuzzyMatch(id="missing", label="missing", similarity=0.9),
        FuzzyMatch(id="found", label="found", similarity=0.5),
    ]
    merged = merge_results(
        [],
        matches,
        5,
        to_result=lambda match: None if match.id == "missing" else _result(match.id, 40.0),
        discount=0.5,
    )
    assert [(item.id, item.score) for item in merged] == [("found", 10.0)]


def test_merge_with_larger_limit_extends_smaller_one() -> None:
    hours = {"far": 9, "near": 1, "tied": 5}
    matches = [
        FuzzyMatch(id="far", label="far", similarity=0.5),
        FuzzyMatch(id="near", label="near", similarity=0.9),
        FuzzyMatch(id="tied", label="tied", similarity=0.9),
    ]

    def merged_ids(limit: int) -> list[str]:
        merged = merge_results(
            [],
            matches,
            limit,
            to_result=lambda match: _result(match.id, 30.0, hours=hours[match.id]),
        )
        return [item.id for item in merged]

    assert merged_ids(1) == ["tied"]
    assert merged_ids(2) == ["tied", "near"]
    assert merged_ids(3) == ["tied", "near", "far"]
