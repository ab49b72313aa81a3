"""Search history logging and popular-term analytics."""

from __future__ import annotations

import json
import logging
import re
import threading
from collections import Counter
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Iterator, Sequence, TYPE_CHECKING
from uuid import uuid4

if TYPE_CHECKING:  # pragma: no cover - type hints only
    from .observability import MetricsRecorder

logger = logging.getLogger(__name__)

_EMAIL_PATTERN = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")
_PHONE_PATTERN = re.compile(r"(?:(?:\+\d{1,3}[\s.-]?)?(?:\(\d{2,4}\)|\d{2,4})[\s.-]?){2,4}\d{2,4}")
_WHITESPACE_PATTERN = re.compile(r"\s+")
_SENSITIVE_REPLACEMENTS = {
    _EMAIL_PATTERN: "[email]",
    _PHONE_PATTERN: "[phone]",
}


@dataclass(slots=True)
class SearchLogRecord:
    """One executed search, with the query text redacted."""

    id: str
    owner_id: str
    query: str
    type: str
    result_count: int
    duration_ms: float | None
    created_at: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SearchLogRecord":
        return cls(
            id=data.get("id", uuid4().hex),
            owner_id=data.get("owner_id", "unknown"),
            query=data.get("query", ""),
            type=data.get("type", "all"),
            result_count=int(data.get("result_count", 0)),
            duration_ms=data.get("duration_ms"),
            created_at=data.get("created_at", _utc_now().isoformat()),
        )


class SearchLogStore:
    """JSON-lines persistence for search records, one file per owner."""

    def __init__(self, root: Path) -> None:
        self._root = root
        self._lock = threading.Lock()
        self._root.mkdir(parents=True, exist_ok=True)

    def append(self, record: SearchLogRecord) -> None:
        path = self._path_for(record.owner_id)
        with self._lock:
            with path.open("a", encoding="utf-8") as handle:
                json.dump(record.to_dict(), handle)
                handle.write("\n")

    def iter_records(self, owner_id: str) -> Iterator[SearchLogRecord]:
        path = self._path_for(owner_id)
        if not path.exists():
            return
        with path.open("r", encoding="utf-8") as handle:
            for line in handle:
                line = line.strip()
                if not line:
                    continue
                try:
                    data = json.loads(line)
                except json.JSONDecodeError:
                    logger.warning("search.log.decode_failed path=%s", path)
                    continue
                yield SearchLogRecord.from_dict(data)

    def rewrite_records(self, owner_id: str, records: Sequence[SearchLogRecord]) -> None:
        path = self._path_for(owner_id)
        with self._lock:
            if not records:
                path.unlink(missing_ok=True)
                return
            with path.open("w", encoding="utf-8") as handle:
                for record in records:
                    json.dump(record.to_dict(), handle)
                    handle.write("\n")

    def _path_for(self, owner_id: str) -> Path:
        safe_id = re.sub(r"[^A-Za-z0-9_.-]", "-", owner_id) or "anonymous"
        return self._root / f"{safe_id}.jsonl"


class SearchLogger:
    """Record executed searches and report the terms an owner uses most."""

    def __init__(
        self,
        store: SearchLogStore,
        *,
        enabled: bool = True,
        retention_days: int = 30,
        metrics: "MetricsRecorder" | None = None,
    ) -> None:
        self._store = store
        self._enabled = enabled
        self._retention_days = max(retention_days, 0)
        self._metrics = metrics

    def log_search(
        self,
        *,
        owner_id: str,
        query: str,
        search_type: str,
        result_count: int,
        duration_ms: float | None = None,
        timestamp: datetime | None = None,
    ) -> SearchLogRecord | None:
        if not self._enabled:
            return None
        sanitized = _sanitize_text(query)
        if not sanitized:
            return None

        recorded_at = timestamp or _utc_now()
        record = SearchLogRecord(
            id=uuid4().hex,
            owner_id=owner_id,
            query=sanitized,
            type=search_type,
            result_count=max(int(result_count), 0),
            duration_ms=round(duration_ms, 4) if duration_ms is not None else None,
            created_at=recorded_at.isoformat(),
        )
        self._store.append(record)
        logger.debug("search.log.appended owner=%s type=%s results=%s", owner_id, search_type, result_count)
        if self._metrics:
            self._metrics.increment("search.logged", type=search_type)
            if record.result_count == 0:
                self._metrics.increment("search.logged_empty", type=search_type)
        if self._retention_days > 0:
            self._enforce_retention(owner_id, recorded_at - timedelta(days=self._retention_days))
        return record

    def popular_terms(self, owner_id: str, *, limit: int = 10, days: int = 30) -> list[dict[str, Any]]:
        """Most frequent queries in the last ``days`` days, ties by latest use."""

        cutoff = _utc_now() - timedelta(days=days) if days > 0 else None
        counts: Counter[str] = Counter()
        last_used: dict[str, datetime] = {}
        for record in self._store.iter_records(owner_id):
            created = _coerce_datetime(record.created_at)
            if created is None or (cutoff is not None and created < cutoff):
                continue
            term = record.query.lower()
            counts[term] += 1
            if term not in last_used or created > last_used[term]:
                last_used[term] = created

        ranked = sorted(counts, key=lambda term: (counts[term], last_used[term]), reverse=True)
        return [{"term": term, "count": counts[term]} for term in ranked[: max(limit, 0)]]

    def _enforce_retention(self, owner_id: str, cutoff: datetime) -> None:
        retained: list[SearchLogRecord] = []
        pruned = 0
        for record in self._store.iter_records(owner_id):
            created = _coerce_datetime(record.created_at)
            if created is None or created >= cutoff:
                retained.append(record)
            else:
                pruned += 1
        if pruned:
            self._store.rewrite_records(owner_id, retained)
            logger.info("search.log.pruned owner=%s removed=%s", owner_id, pruned)


def _sanitize_text(value: Any) -> str:
    if value is None:
        return ""
    text = str(value)
    for pattern, replacement in _SENSITIVE_REPLACEMENTS.items():
        text = pattern.sub(replacement, text)
    return _WHITESPACE_PATTERN.sub(" ", text).strip()


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _coerce_datetime(value: str | datetime | None) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
