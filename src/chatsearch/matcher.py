"""Band scoring for title and message-body matches.

A candidate is compared with the query after lower-casing both. The relation
between the two strings selects one of a few fixed bands:

==================  ==========  ============
relation            chat title  message body
==================  ==========  ============
equal               100         110
prefix              80          90
suffix              60          70
other containment   40          50
no containment      30          40
==================  ==========  ============

Message bodies sit ten points above titles so the two kinds remain
distinguishable once merged into one ranking. The "no containment" band is a
floor for rows the store returned without a literal match; fuzzy-only hits
are priced from it.
"""

from __future__ import annotations

from typing import Final

from .models import normalize_query

TITLE_EXACT: Final[float] = 100.0
TITLE_PREFIX: Final[float] = 80.0
TITLE_SUFFIX: Final[float] = 60.0
TITLE_CONTAINS: Final[float] = 40.0
TITLE_NO_MATCH: Final[float] = 30.0

MESSAGE_BAND_OFFSET: Final[float] = 10.0


def score_title(label: str | None, query: str) -> float:
    """Score a chat title against ``query``."""

    return _band(label, query)


def score_message(content: str | None, query: str) -> float:
    """Score a message body against ``query`` on the message scale."""

    return _band(content, query) + MESSAGE_BAND_OFFSET


def _band(candidate: str | None, query: str) -> float:
    needle = normalize_query(query)
    haystack = (candidate or "").lower()
    if not needle or needle not in haystack:
        return TITLE_NO_MATCH
    if haystack == needle:
        return TITLE_EXACT
    if haystack.startswith(needle):
        return TITLE_PREFIX
    if haystack.endswith(needle):
        return TITLE_SUFFIX
    return TITLE_CONTAINS
