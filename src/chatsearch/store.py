"""SQLite-backed chat store used as the search data source.

The store only filters rows (ownership, collection, date range, role and
case-insensitive containment). Ranking is left to the search service.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Protocol, Sequence

from .errors import StoreUnavailableError
from .models import Chat, Message, MessageHit, MessageRole, SEARCHABLE_ROLES, SearchFilters

logger = logging.getLogger(__name__)

_CHAT_COLUMNS = "c.id, c.owner_id, c.title, c.collection_id, c.created_at, c.updated_at"


class ChatStoreProtocol(Protocol):
    """Read operations the search service needs from a chat store."""

    def find_chats(self, filters: SearchFilters, text: str, *, limit: int) -> List[Chat]:
        ...

    def list_chats(self, filters: SearchFilters, *, limit: int) -> List[Chat]:
        ...

    def find_messages(self, filters: SearchFilters, text: str, *, limit: int) -> List[MessageHit]:
        ...

    def find_chat_titles(self, owner_id: str, text: str, *, limit: int) -> List[str | None]:
        ...


class ChatStore:
    def __init__(self, db_path: Path, *, timeout: float = 5.0) -> None:
        self._db_path = Path(db_path)
        self._timeout = timeout
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=self._timeout, check_same_thread=False)
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")
        conn.create_function("py_lower", 1, _lower, deterministic=True)
        return conn

    @contextmanager
    def _session(self, operation: str) -> Iterator[sqlite3.Connection]:
        try:
            conn = self._connect()
        except sqlite3.Error as exc:
            logger.warning("store.connect.failed operation=%s error=%s", operation, exc)
            raise StoreUnavailableError(f"chat store unavailable during {operation}") from exc
        try:
            with conn:
                yield conn
        except sqlite3.Error as exc:
            logger.warning("store.query.failed operation=%s error=%s", operation, exc)
            raise StoreUnavailableError(f"chat store unavailable during {operation}") from exc
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self._session("schema") as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS chats (
                    id TEXT PRIMARY KEY,
                    owner_id TEXT NOT NULL,
                    title TEXT,
                    collection_id TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );
                CREATE INDEX IF NOT EXISTS chats_owner_updated
                    ON chats (owner_id, updated_at);
                CREATE TABLE IF NOT EXISTS messages (
                    id TEXT PRIMARY KEY,
                    chat_id TEXT NOT NULL REFERENCES chats (id) ON DELETE CASCADE,
                    role TEXT NOT NULL,
                    content TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );
                CREATE INDEX IF NOT EXISTS messages_chat_created
                    ON messages (chat_id, created_at);
                """
            )

    def upsert_chat(self, chat: Chat) -> None:
        with self._session("upsert_chat") as conn:
            conn.execute(
                """
                INSERT INTO chats (id, owner_id, title, collection_id, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT (id) DO UPDATE SET
                    owner_id = excluded.owner_id,
                    title = excluded.title,
                    collection_id = excluded.collection_id,
                    created_at = excluded.created_at,
                    updated_at = excluded.updated_at
                """,
                (
                    chat.id,
                    chat.owner_id,
                    chat.title,
                    chat.collection_id,
                    _to_db(chat.created_at),
                    _to_db(chat.updated_at),
                ),
            )
        logger.debug("store.chat.upserted id=%s owner=%s", chat.id, chat.owner_id)

    def add_message(self, message: Message) -> None:
        with self._session("add_message") as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO messages (id, chat_id, role, content, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    message.id,
                    message.chat_id,
                    MessageRole(message.role).value,
                    message.content,
                    _to_db(message.created_at),
                ),
            )

    def delete_chat(self, chat_id: str) -> None:
        with self._session("delete_chat") as conn:
            conn.execute("DELETE FROM messages WHERE chat_id = ?", (chat_id,))
            conn.execute("DELETE FROM chats WHERE id = ?", (chat_id,))

    def find_chats(self, filters: SearchFilters, text: str, *, limit: int) -> List[Chat]:
        """Chats whose title contains ``text``, closest relation first.

        Rows are ordered equal, prefix, suffix, other containment and then
        newest first, so ``limit`` keeps the rows that rank highest.
        """

        needle = _lower(text)
        clauses, params = _chat_filter_clauses(filters)
        clauses.append("instr(py_lower(c.title), ?) > 0")
        params.append(needle)
        relation, relation_params = _relation_order("py_lower(c.title)", needle)
        return self._select_chats(
            "find_chats",
            clauses,
            params,
            limit,
            order_by=f"{relation}, c.updated_at DESC, c.id",
            order_params=relation_params,
        )

    def list_chats(self, filters: SearchFilters, *, limit: int) -> List[Chat]:
        clauses, params = _chat_filter_clauses(filters)
        return self._select_chats("list_chats", clauses, params, limit)

    def find_messages(self, filters: SearchFilters, text: str, *, limit: int) -> List[MessageHit]:
        clauses = ["c.owner_id = ?"]
        params: list[object] = [filters.owner_id]
        if filters.collection_id:
            clauses.append("c.collection_id = ?")
            params.append(filters.collection_id)
        if filters.date_from:
            clauses.append("m.created_at >= ?")
            params.append(_to_db(filters.date_from))
        if filters.date_to:
            clauses.append("m.created_at <= ?")
            params.append(_to_db(filters.date_to))
        roles = sorted(role.value for role in SEARCHABLE_ROLES)
        clauses.append(f"m.role IN ({', '.join('?' for _ in roles)})")
        params.extend(roles)
        needle = _lower(text)
        clauses.append("instr(py_lower(m.content), ?) > 0")
        params.append(needle)
        relation, relation_params = _relation_order("py_lower(m.content)", needle)

        with self._session("find_messages") as conn:
            rows = conn.execute(
                f"""
                SELECT m.id, m.chat_id, m.role, m.content, m.created_at, {_CHAT_COLUMNS}
                FROM messages AS m
                JOIN chats AS c ON c.id = m.chat_id
                WHERE {' AND '.join(clauses)}
                ORDER BY {relation}, m.created_at DESC, m.id
                LIMIT ?
                """,
                [*params, *relation_params, limit],
            ).fetchall()
        return [
            MessageHit(
                message=Message(
                    id=row[0],
                    chat_id=row[1],
                    role=MessageRole(row[2]),
                    content=row[3],
                    created_at=_from_db(row[4]),
                ),
                chat=_row_to_chat(row[5:]),
            )
            for row in rows
        ]

    def find_chat_titles(self, owner_id: str, text: str, *, limit: int) -> List[str | None]:
        with self._session("find_chat_titles") as conn:
            rows = conn.execute(
                """
                SELECT title FROM chats
                WHERE owner_id = ? AND instr(py_lower(title), ?) > 0
                ORDER BY updated_at DESC, id
                LIMIT ?
                """,
                (owner_id, _lower(text), limit),
            ).fetchall()
        return [row[0] for row in rows]

    def _select_chats(
        self,
        operation: str,
        clauses: Sequence[str],
        params: list[object],
        limit: int,
        *,
        order_by: str = "c.updated_at DESC, c.id",
        order_params: Sequence[object] = (),
    ) -> List[Chat]:
        with self._session(operation) as conn:
            rows = conn.execute(
                f"""
                SELECT {_CHAT_COLUMNS}
                FROM chats AS c
                WHERE {' AND '.join(clauses)}
                ORDER BY {order_by}
                LIMIT ?
                """,
                [*params, *order_params, limit],
            ).fetchall()
        return [_row_to_chat(row) for row in rows]


def _relation_order(column: str, needle: str | None) -> tuple[str, list[object]]:
    # 0 equal, 1 prefix, 2 suffix, 3 other containment; mirrors the matcher bands
    expression = (
        f"CASE WHEN {column} = ? THEN 0"
        f" WHEN instr({column}, ?) = 1 THEN 1"
        f" WHEN substr({column}, -length(?)) = ? THEN 2"
        " ELSE 3 END"
    )
    return expression, [needle, needle, needle, needle]


def _chat_filter_clauses(filters: SearchFilters) -> tuple[list[str], list[object]]:
    clauses = ["c.owner_id = ?"]
    params: list[object] = [filters.owner_id]
    if filters.collection_id:
        clauses.append("c.collection_id = ?")
        params.append(filters.collection_id)
    if filters.date_from:
        clauses.append("c.created_at >= ?")
        params.append(_to_db(filters.date_from))
    if filters.date_to:
        clauses.append("c.created_at <= ?")
        params.append(_to_db(filters.date_to))
    return clauses, params


def _row_to_chat(row: Sequence) -> Chat:
    return Chat(
        id=row[0],
        owner_id=row[1],
        title=row[2],
        collection_id=row[3],
        created_at=_from_db(row[4]),
        updated_at=_from_db(row[5]),
    )


def _lower(value: str | None) -> str | None:
    if value is None:
        return None
    return str(value).lower()


def _to_db(value: datetime) -> str:
    # fixed-width UTC text so lexical order matches time order
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _from_db(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
