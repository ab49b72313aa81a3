"""Validation of search request parameters from query strings or JSON bodies."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping

from .errors import FieldError, InvalidArgumentError
from .models import SearchFilters, SearchQuery, SearchType


@dataclass(slots=True)
class SuggestionRequest:
    query: str
    limit: int


@dataclass(slots=True)
class PopularTermsRequest:
    limit: int
    days: int


def parse_search_request(
    params: Mapping[str, Any],
    *,
    owner_id: str,
    default_limit: int = 20,
    max_limit: int = 100,
) -> SearchQuery:
    """Build a :class:`SearchQuery` or raise with every offending field."""

    errors: list[FieldError] = []
    text = _required_text(params, "q", errors)

    raw_type = params.get("type")
    search_type = SearchType.ALL
    if raw_type not in (None, ""):
        try:
            search_type = SearchType(str(raw_type).strip().lower())
        except ValueError:
            allowed = ", ".join(item.value for item in SearchType)
            errors.append(FieldError("type", f"Expected one of: {allowed}"))

    limit = _bounded_int(params, "limit", default_limit, errors, minimum=1, maximum=max_limit)
    offset = _bounded_int(params, "offset", 0, errors, minimum=0)
    date_from = _optional_datetime(params, "dateFrom", errors)
    date_to = _optional_datetime(params, "dateTo", errors)
    if date_from and date_to and date_from > date_to:
        errors.append(FieldError("dateTo", "Must not be earlier than dateFrom"))

    collection_id = params.get("collectionId")
    if collection_id is not None and not isinstance(collection_id, str):
        errors.append(FieldError("collectionId", "Expected a string"))
        collection_id = None

    if errors:
        raise InvalidArgumentError(errors)

    return SearchQuery(
        text=text,
        type=search_type,
        limit=limit,
        offset=offset,
        filters=SearchFilters(
            owner_id=owner_id,
            collection_id=(collection_id or "").strip() or None,
            date_from=date_from,
            date_to=date_to,
        ),
    )


def parse_suggestion_request(
    params: Mapping[str, Any],
    *,
    default_limit: int = 5,
    max_limit: int = 20,
) -> SuggestionRequest:
    errors: list[FieldError] = []
    text = _required_text(params, "q", errors)
    limit = _bounded_int(params, "limit", default_limit, errors, minimum=1, maximum=max_limit)
    if errors:
        raise InvalidArgumentError(errors)
    return SuggestionRequest(query=text, limit=limit)


def parse_popular_terms_request(params: Mapping[str, Any]) -> PopularTermsRequest:
    errors: list[FieldError] = []
    limit = _bounded_int(params, "limit", 10, errors, minimum=1, maximum=50)
    days = _bounded_int(params, "days", 30, errors, minimum=1, maximum=365)
    if errors:
        raise InvalidArgumentError(errors)
    return PopularTermsRequest(limit=limit, days=days)


def _required_text(params: Mapping[str, Any], name: str, errors: list[FieldError]) -> str:
    value = params.get(name)
    if value is None or value == "":
        errors.append(FieldError(name, "Query is required"))
        return ""
    if not isinstance(value, str):
        errors.append(FieldError(name, "Expected a string"))
        return ""
    return value


def _bounded_int(
    params: Mapping[str, Any],
    name: str,
    default: int,
    errors: list[FieldError],
    *,
    minimum: int | None = None,
    maximum: int | None = None,
) -> int:
    raw = params.get(name)
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return default
    if isinstance(raw, bool):
        errors.append(FieldError(name, "Expected integer value"))
        return default
    try:
        if isinstance(raw, float):
            if not raw.is_integer():
                raise ValueError(raw)
            value = int(raw)
        else:
            value = int(str(raw).strip())
    except ValueError:
        errors.append(FieldError(name, "Expected integer value"))
        return default
    if minimum is not None and value < minimum:
        errors.append(FieldError(name, f"Value must be ≥ {minimum}"))
        return default
    if maximum is not None and value > maximum:
        errors.append(FieldError(name, f"Value must be ≤ {maximum}"))
        return default
    return value


def _optional_datetime(params: Mapping[str, Any], name: str, errors: list[FieldError]) -> datetime | None:
    raw = params.get(name)
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None
    if not isinstance(raw, str):
        errors.append(FieldError(name, "Expected an ISO 8601 timestamp"))
        return None
    value = raw.strip()
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        errors.append(FieldError(name, "Expected an ISO 8601 timestamp"))
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
