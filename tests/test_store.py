from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest

from chatsearch.errors import StoreUnavailableError
from chatsearch.models import MessageRole, SearchFilters
from chatsearch.store import ChatStore

from conftest import BASE_TIME, Seeder


def test_find_chats_matches_title_case_insensitively(chat_store: ChatStore, seed: Seeder) -> None:
    seed.chat("Project ALPHA")
    seed.chat("Ünïcode Alpha Notes")
    seed.chat("Beta plan")
    seed.chat(None)
    seed.chat("Alpha elsewhere", owner_id="user-2")

    chats = chat_store.find_chats(SearchFilters(owner_id="user-1"), "alpha", limit=10)

    assert sorted(chat.title for chat in chats) == ["Project ALPHA", "Ünïcode Alpha Notes"]
    assert chat_store.find_chats(SearchFilters(owner_id="user-1"), "ünï", limit=10)[0].title.startswith("Ün")


def test_find_chats_applies_collection_and_date_filters(chat_store: ChatStore, seed: Seeder) -> None:
    seed.chat("Plan one", collection_id="work", hours=1)
    seed.chat("Plan two", collection_id="work", hours=10)
    seed.chat("Plan three", collection_id="home", hours=5)

    by_collection = chat_store.find_chats(
        SearchFilters(owner_id="user-1", collection_id="work"), "plan", limit=10
    )
    assert {chat.title for chat in by_collection} == {"Plan one", "Plan two"}

    by_date = chat_store.find_chats(
        SearchFilters(
            owner_id="user-1",
            date_from=BASE_TIME + timedelta(hours=2),
            date_to=BASE_TIME + timedelta(hours=6),
        ),
        "plan",
        limit=10,
    )
    assert [chat.title for chat in by_date] == ["Plan three"]


def test_list_chats_returns_newest_first(chat_store: ChatStore, seed: Seeder) -> None:
    seed.chat("First", hours=1)
    seed.chat("Second", hours=2)
    seed.chat("Third", hours=3)

    chats = chat_store.list_chats(SearchFilters(owner_id="user-1"), limit=2)
    assert [chat.title for chat in chats] == ["Third", "Second"]


def test_find_messages_excludes_system_role_and_joins_chat(chat_store: ChatStore, seed: Seeder) -> None:
    chat = seed.chat("Deploy notes", collection_id="ops")
    seed.message(chat, "How do I deploy?", role=MessageRole.USER)
    seed.message(chat, "Deploy with the CLI.", role=MessageRole.ASSISTANT)
    seed.message(chat, "deploy instructions for the model", role=MessageRole.SYSTEM)

    hits = chat_store.find_messages(SearchFilters(owner_id="user-1"), "deploy", limit=10)

    assert len(hits) == 2
    assert {hit.message.role for hit in hits} == {MessageRole.USER, MessageRole.ASSISTANT}
    assert all(hit.chat.id == chat.id and hit.chat.collection_id == "ops" for hit in hits)


def test_find_messages_filters_by_owner_of_parent_chat(chat_store: ChatStore, seed: Seeder) -> None:
    mine = seed.chat("Mine")
    theirs = seed.chat("Theirs", owner_id="user-2")
    seed.message(mine, "shared keyword")
    seed.message(theirs, "shared keyword")

    hits = chat_store.find_messages(SearchFilters(owner_id="user-2"), "keyword", limit=10)
    assert [hit.chat.id for hit in hits] == [theirs.id]


def test_find_chat_titles_orders_by_update(chat_store: ChatStore, seed: Seeder) -> None:
    seed.chat("Weekly sync", hours=1)
    seed.chat("Sync issues", hours=3)
    seed.chat("Unrelated", hours=2)

    assert chat_store.find_chat_titles("user-1", "SYNC", limit=5) == ["Sync issues", "Weekly sync"]


def test_delete_chat_removes_messages(chat_store: ChatStore, seed: Seeder) -> None:
    chat = seed.chat("Temporary")
    seed.message(chat, "temporary content")

    chat_store.delete_chat(chat.id)

    filters = SearchFilters(owner_id="user-1")
    assert chat_store.find_chats(filters, "temporary", limit=5) == []
    assert chat_store.find_messages(filters, "temporary", limit=5) == []


def test_unusable_database_raises_store_unavailable(tmp_path: Path) -> None:
    blocked = tmp_path / "blocked"
    blocked.mkdir()
    with pytest.raises(StoreUnavailableError):
        ChatStore(blocked)


def test_find_chats_puts_closest_relation_first(chat_store: ChatStore, seed: Seeder) -> None:
    seed.chat("The alpha plan", hours=9)
    seed.chat("Project Alpha", hours=8)
    seed.chat("Alpha notes", hours=7)
    seed.chat("ALPHA", hours=1)

    chats = chat_store.find_chats(SearchFilters(owner_id="user-1"), "alpha", limit=4)
    assert [chat.title for chat in chats] == ["ALPHA", "Alpha notes", "Project Alpha", "The alpha plan"]

    capped = chat_store.find_chats(SearchFilters(owner_id="user-1"), "alpha", limit=2)
    assert [chat.title for chat in capped] == ["ALPHA", "Alpha notes"]


def test_find_messages_puts_closest_relation_first(chat_store: ChatStore, seed: Seeder) -> None:
    chat = seed.chat("Ops")
    seed.message(chat, "we deploy today", hours=9)
    seed.message(chat, "deploy now", hours=8)
    seed.message(chat, "Deploy", hours=1)

    hits = chat_store.find_messages(SearchFilters(owner_id="user-1"), "deploy", limit=2)
    assert [hit.message.content for hit in hits] == ["Deploy", "deploy now"]
