from __future__ import annotations

import pytest

from chatsearch.matcher import score_message, score_title


@pytest.mark.parametrize(
    ("title", "expected"),
    [
        ("Alpha", 100.0),
        ("Alpha Notes", 80.0),
        ("Project Alpha", 60.0),
        ("My alpha plan", 40.0),
        ("Beta release", 30.0),
        (None, 30.0),
    ],
)
def test_title_bands(title, expected) -> None:
    assert score_title(title, "alpha") == expected


def test_message_bands_sit_ten_points_higher() -> None:
    assert score_message("alpha", "alpha") == 110.0
    assert score_message("alpha release notes", "alpha") == 90.0
    assert score_message("welcome to alpha", "alpha") == 70.0
    assert score_message("the alpha build", "alpha") == 50.0
    assert score_message("nothing here", "alpha") == 40.0


def test_matching_ignores_case_and_query_padding() -> None:
    assert score_title("PROJECT ALPHA", "  Alpha ") == 60.0
    assert score_message("Alpha Centauri", "ALPHA") == 90.0


def test_blank_query_never_matches() -> None:
    assert score_title("anything", "   ") == 30.0
