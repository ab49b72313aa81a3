"""Ranked search over chat threads and messages."""

from __future__ import annotations

from .config import Settings
from .models import SearchFilters, SearchQuery, SearchResult, SearchType

__all__ = [
    "Settings",
    "SearchFilters",
    "SearchQuery",
    "SearchResult",
    "SearchType",
    "SearchService",
    "ChatStore",
    "create_app",
]


def __getattr__(name: str):  # pragma: no cover - small helper
    if name == "SearchService":
        from .search import SearchService

        return SearchService
    if name == "ChatStore":
        from .store import ChatStore

        return ChatStore
    if name == "create_app":
        from .app import create_app

        return create_app
    raise AttributeError(f"module 'chatsearch' has no attribute {name}")
