from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from chatsearch.models import Chat, Message, MessageRole
from chatsearch.store import ChatStore

BASE_TIME = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class Seeder:
    """Write chats and messages with predictable timestamps."""

    def __init__(self, store: ChatStore, owner_id: str = "user-1") -> None:
        self.store = store
        self.owner_id = owner_id
        self._counter = 0

    def chat(
        self,
        title: str | None,
        *,
        chat_id: str | None = None,
        owner_id: str | None = None,
        collection_id: str | None = None,
        hours: int | None = None,
    ) -> Chat:
        self._counter += 1
        offset = timedelta(hours=hours if hours is not None else self._counter)
        chat = Chat(
            id=chat_id or f"chat-{self._counter}",
            owner_id=owner_id or self.owner_id,
            title=title,
            collection_id=collection_id,
            created_at=BASE_TIME + offset,
            updated_at=BASE_TIME + offset + timedelta(minutes=30),
        )
        self.store.upsert_chat(chat)
        return chat

    def message(
        self,
        chat: Chat,
        content: str,
        *,
        role: MessageRole = MessageRole.USER,
        message_id: str | None = None,
        hours: int | None = None,
    ) -> Message:
        self._counter += 1
        offset = timedelta(hours=hours if hours is not None else self._counter)
        message = Message(
            id=message_id or f"msg-{self._counter}",
            chat_id=chat.id,
            role=role,
            content=content,
            created_at=BASE_TIME + offset,
        )
        self.store.add_message(message)
        return message


class RecordingStore:
    """Wrap a store and remember which read operations were used."""

    def __init__(self, inner=None) -> None:
        self._inner = inner
        self.calls: list[str] = []

    def _forward(self, name: str, *args, **kwargs):
        self.calls.append(name)
        if self._inner is None:
            raise AssertionError(f"unexpected store access: {name}")
        return getattr(self._inner, name)(*args, **kwargs)

    def find_chats(self, filters, text, *, limit):
        return self._forward("find_chats", filters, text, limit=limit)

    def list_chats(self, filters, *, limit):
        return self._forward("list_chats", filters, limit=limit)

    def find_messages(self, filters, text, *, limit):
        return self._forward("find_messages", filters, text, limit=limit)

    def find_chat_titles(self, owner_id, text, *, limit):
        return self._forward("find_chat_titles", owner_id, text, limit=limit)


@pytest.fixture
def chat_store(tmp_path: Path) -> ChatStore:
    return ChatStore(tmp_path / "chats.sqlite")


@pytest.fixture
def seed(chat_store: ChatStore) -> Seeder:
    return Seeder(chat_store)
