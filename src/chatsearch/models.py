"""Data types shared by the search core, the chat store and the HTTP layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

UNTITLED_CHAT = "Untitled Chat"


class SearchType(str, Enum):
    ALL = "all"
    CHATS = "chats"
    MESSAGES = "messages"


class ResultKind(str, Enum):
    CHAT = "chat"
    MESSAGE = "message"


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


SEARCHABLE_ROLES: frozenset[MessageRole] = frozenset({MessageRole.USER, MessageRole.ASSISTANT})


@dataclass(slots=True)
class Chat:
    """A chat thread owned by a single user."""

    id: str
    owner_id: str
    title: str | None
    created_at: datetime
    updated_at: datetime
    collection_id: str | None = None


@dataclass(slots=True)
class Message:
    id: str
    chat_id: str
    role: MessageRole
    content: str
    created_at: datetime


@dataclass(slots=True)
class MessageHit:
    """A message joined to the chat it belongs to."""

    message: Message
    chat: Chat


@dataclass(slots=True)
class SearchFilters:
    """Ownership and scoping filters applied at the store boundary."""

    owner_id: str
    collection_id: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None


@dataclass(slots=True)
class SearchQuery:
    text: str
    filters: SearchFilters
    type: SearchType = SearchType.ALL
    limit: int = 20
    offset: int = 0


@dataclass(slots=True)
class SearchResultMetadata:
    parent_chat_id: str | None = None
    parent_chat_title: str | None = None
    author_role: MessageRole | None = None
    collection_id: str | None = None

    def to_dict(self) -> dict[str, str]:
        payload: dict[str, str] = {}
        if self.parent_chat_id is not None:
            payload["parentChatId"] = self.parent_chat_id
        if self.parent_chat_title is not None:
            payload["parentChatTitle"] = self.parent_chat_title
        if self.author_role is not None:
            payload["authorRole"] = self.author_role.value
        if self.collection_id is not None:
            payload["collectionId"] = self.collection_id
        return payload


@dataclass(slots=True)
class SearchResult:
    """A single ranked hit, either a chat or a message."""

    id: str
    kind: ResultKind
    title: str
    snippet: str
    target_url: str
    score: float
    created_at: datetime
    updated_at: datetime | None = None
    metadata: SearchResultMetadata = field(default_factory=SearchResultMetadata)

    @property
    def recency(self) -> datetime:
        return self.updated_at or self.created_at

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "kind": self.kind.value,
            "title": self.title,
            "snippet": self.snippet,
            "targetUrl": self.target_url,
            "score": self.score,
            "createdAt": self.created_at.isoformat(),
            "metadata": self.metadata.to_dict(),
        }
        if self.updated_at is not None:
            payload["updatedAt"] = self.updated_at.isoformat()
        return payload


@dataclass(slots=True)
class SearchResponse:
    results: list[SearchResult]
    query: str
    type: SearchType
    has_more: bool

    @property
    def total(self) -> int:
        return len(self.results)

    def to_dict(self) -> dict[str, Any]:
        return {
            "results": [result.to_dict() for result in self.results],
            "query": self.query,
            "type": self.type.value,
            "total": self.total,
            "hasMore": self.has_more,
        }


@dataclass(slots=True)
class FuzzyCandidate:
    id: str
    label: str
    payload: Any = None


@dataclass(slots=True)
class FuzzyMatch:
    id: str
    label: str
    similarity: float
    payload: Any = None


def normalize_query(text: str | None) -> str:
    return (text or "").strip().lower()
