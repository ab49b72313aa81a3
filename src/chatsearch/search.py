"""Ranked search over a user's chats and messages."""

from __future__ import annotations

import asyncio
import logging
import math
import time
from typing import List

from .fuzzy import DEFAULT_SIMILARITY_FLOOR, fuzzy_match
from .matcher import score_message, score_title
from .models import (
    Chat,
    FuzzyCandidate,
    FuzzyMatch,
    MessageHit,
    ResultKind,
    SearchFilters,
    SearchQuery,
    SearchResponse,
    SearchResult,
    SearchResultMetadata,
    SearchType,
    UNTITLED_CHAT,
    normalize_query,
)
from .observability import MetricsRecorder
from .ranking import DEFAULT_FUZZY_DISCOUNT, merge_results, sort_results
from .store import ChatStoreProtocol

logger = logging.getLogger(__name__)

SNIPPET_MAX_CHARS = 200
_SNIPPET_ELLIPSIS = "..."
_MIN_SUGGESTION_CHARS = 2
# titles fetched per requested suggestion, to leave room for duplicates
_SUGGESTION_OVERFETCH = 4


class SearchService:
    """Score, merge and paginate chat and message matches for one owner."""

    def __init__(
        self,
        store: ChatStoreProtocol,
        *,
        fuzzy_floor: float = DEFAULT_SIMILARITY_FLOOR,
        fuzzy_discount: float = DEFAULT_FUZZY_DISCOUNT,
        fuzzy_pool_size: int = 1000,
        candidate_limit: int = 500,
        metrics: MetricsRecorder | None = None,
    ) -> None:
        self._store = store
        self._fuzzy_floor = fuzzy_floor
        self._fuzzy_discount = fuzzy_discount
        self._fuzzy_pool_size = max(1, fuzzy_pool_size)
        self._candidate_limit = max(1, candidate_limit)
        self._metrics = metrics

    async def search(self, query: SearchQuery) -> SearchResponse:
        if query.type is SearchType.CHATS:
            results = await self.search_chats(query.text, query.filters, query.limit, query.offset)
        elif query.type is SearchType.MESSAGES:
            results = await self.search_messages(query.text, query.filters, query.limit, query.offset)
        else:
            results = await self.search_all(query.text, query.filters, query.limit, query.offset)
        return SearchResponse(
            results=results,
            query=query.text,
            type=query.type,
            has_more=len(results) == query.limit,
        )

    async def search_chats(
        self,
        text: str,
        filters: SearchFilters,
        limit: int = 20,
        offset: int = 0,
    ) -> List[SearchResult]:
        terms = normalize_query(text)
        if not terms:
            return []

        start = time.perf_counter()
        window = offset + limit
        chats = await asyncio.to_thread(
            self._store.find_chats, filters, terms, limit=max(window, self._candidate_limit)
        )
        primary = sort_results(self._chat_result(chat, terms) for chat in chats)

        fuzzy_added = 0
        if len(primary) < window:
            pool = await asyncio.to_thread(self._store.list_chats, filters, limit=self._fuzzy_pool_size)
            candidates = [
                FuzzyCandidate(id=chat.id, label=chat.title or "", payload=chat) for chat in pool
            ]
            matches = fuzzy_match(candidates, terms, floor=self._fuzzy_floor)
            merged = merge_results(
                primary,
                matches,
                window,
                to_result=lambda match: self._fuzzy_chat_result(match, terms),
                discount=self._fuzzy_discount,
            )
            fuzzy_added = len(merged) - len(primary)
            primary = merged
            if fuzzy_added and self._metrics:
                self._metrics.increment("search.fuzzy_fallback", value=fuzzy_added)

        results = primary[offset:window]
        logger.info(
            "search.chats.completed owner=%s matches=%s fuzzy=%s returned=%s",
            filters.owner_id,
            len(chats),
            fuzzy_added,
            len(results),
        )
        self._record("chats", start)
        return results

    async def search_messages(
        self,
        text: str,
        filters: SearchFilters,
        limit: int = 20,
        offset: int = 0,
    ) -> List[SearchResult]:
        terms = normalize_query(text)
        if not terms:
            return []

        start = time.perf_counter()
        window = offset + limit
        hits = await asyncio.to_thread(
            self._store.find_messages, filters, terms, limit=max(window, self._candidate_limit)
        )
        ranked = sort_results(self._message_result(hit, terms) for hit in hits)
        results = ranked[offset:window]
        logger.info(
            "search.messages.completed owner=%s matches=%s returned=%s",
            filters.owner_id,
            len(hits),
            len(results),
        )
        self._record("messages", start)
        return results

    async def search_all(
        self,
        text: str,
        filters: SearchFilters,
        limit: int = 20,
        offset: int = 0,
    ) -> List[SearchResult]:
        """Search both kinds concurrently and keep the best ``limit`` overall.

        Each side is asked for half of ``limit`` (rounded up) from the top of its
        own ranking, so ``offset`` is not applied in this mode. A failure on
        either side fails the whole call.
        """

        if not normalize_query(text):
            return []

        per_kind = math.ceil(limit / 2)
        chat_results, message_results = await asyncio.gather(
            self.search_chats(text, filters, per_kind, 0),
            self.search_messages(text, filters, per_kind, 0),
        )
        combined = sort_results([*chat_results, *message_results])[:limit]
        logger.debug(
            "search.all.completed owner=%s chats=%s messages=%s offset_ignored=%s",
            filters.owner_id,
            len(chat_results),
            len(message_results),
            offset,
        )
        return combined

    async def suggest(self, owner_id: str, text: str, limit: int = 5) -> List[str]:
        """Return distinct chat titles containing ``text``, newest first."""

        terms = (text or "").strip()
        if len(terms) < _MIN_SUGGESTION_CHARS or limit <= 0:
            return []

        titles = await asyncio.to_thread(
            self._store.find_chat_titles, owner_id, terms, limit=limit * _SUGGESTION_OVERFETCH
        )
        suggestions: list[str] = []
        for title in titles:
            if not title or title in suggestions:
                continue
            suggestions.append(title)
            if len(suggestions) >= limit:
                break
        return suggestions

    def _chat_result(self, chat: Chat, terms: str) -> SearchResult:
        title = chat.title or UNTITLED_CHAT
        return SearchResult(
            id=chat.id,
            kind=ResultKind.CHAT,
            title=title,
            snippet=title,
            target_url=f"/chat/{chat.id}",
            score=score_title(chat.title, terms),
            created_at=chat.created_at,
            updated_at=chat.updated_at,
            metadata=SearchResultMetadata(collection_id=chat.collection_id),
        )

    def _fuzzy_chat_result(self, match: FuzzyMatch, terms: str) -> SearchResult | None:
        chat = match.payload
        if not isinstance(chat, Chat):
            return None
        return self._chat_result(chat, terms)

    def _message_result(self, hit: MessageHit, terms: str) -> SearchResult:
        message, chat = hit.message, hit.chat
        return SearchResult(
            id=message.id,
            kind=ResultKind.MESSAGE,
            title=f'Message in "{chat.title or UNTITLED_CHAT}"',
            snippet=truncate_snippet(message.content),
            target_url=f"/chat/{chat.id}?messageId={message.id}",
            score=score_message(message.content, terms),
            created_at=message.created_at,
            metadata=SearchResultMetadata(
                parent_chat_id=chat.id,
                parent_chat_title=chat.title,
                author_role=message.role,
                collection_id=chat.collection_id,
            ),
        )

    def _record(self, kind: str, start: float) -> None:
        metrics = self._metrics
        if not metrics:
            return
        metrics.increment("search.requests", kind=kind)
        metrics.record_timing("search.duration", time.perf_counter() - start, kind=kind)


def truncate_snippet(content: str, max_chars: int = SNIPPET_MAX_CHARS) -> str:
    if len(content) <= max_chars:
        return content
    return content[:max_chars] + _SNIPPET_ELLIPSIS
