"""
PostgreSQL + pgvector storage backend (asyncpg).

Both repositories share one 'PostgreSQLConnection' (an asyncpg pool). The
ranking query runs entirely in SQL: pgvector's '<=>' operator is the cosine
distance, so similarity is '1 - (embedding <=> query)'. The strict threshold,
the '(similarity DESC, created_at, id)' ordering and the limit-after-filter
are spelled out in '_MATCH_MESSAGES_SQL' and must stay in line with
'retriever.similarity.rank_by_similarity'. pgvector returns NaN as the
distance to a zero-norm vector, and PostgreSQL sorts NaN above every number,
so those rows are filtered out explicitly.

asyncpg and connection errors are converted to 'StorageError' so callers only
ever see the package error taxonomy.
"""

import json
import pkgutil
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Sequence

import asyncpg
from loguru import logger

from conversation_search.conversation_database.data_models.conversation import Conversation, ConversationDatabase
from conversation_search.conversation_database.data_models.message import (
    Message,
    MessageDatabase,
    MessageDraft,
    MessageMatch,
    MessageRecord,
)
from conversation_search.errors import ConversationNotFoundError, StorageError

_DRIVER_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)

_CONVERSATION_COLUMNS = "id, conversation_ref, title, summary, metadata, created_at"
_MESSAGE_COLUMNS = "id, conversation_id, role, content, created_at, token_count, metadata"

_MATCH_MESSAGES_SQL = """
    SELECT id, conversation_id, role, content, created_at, similarity
    FROM (
        SELECT id, conversation_id, role, content, created_at,
               1 - (embedding <=> $1::vector) AS similarity
        FROM conversation_message
        WHERE embedding IS NOT NULL
          AND ($4::bigint IS NULL OR conversation_id = $4::bigint)
          AND NOT (embedding <=> $1::vector) = 'NaN'
    ) AS scored
    WHERE similarity > $2
    ORDER BY similarity DESC, created_at ASC, id ASC
    LIMIT $3
"""


def _dump_json(value: dict[str, Any] | None) -> str | None:
    return None if value is None else json.dumps(value)


def _load_json(value: Any) -> Any:
    if isinstance(value, str):
        return json.loads(value)
    return value


def _vector_literal(embedding: Sequence[float]) -> str:
    return "[" + ",".join(repr(float(x)) for x in embedding) + "]"


class PostgreSQLConnection:
    """
    Owns the asyncpg pool shared by the PostgreSQL repositories.

    Pass an existing 'pool' to share it with the rest of an application; in
    that case 'close' leaves it open.
    """

    def __init__(self, dsn: str, pool: asyncpg.Pool | None = None) -> None:
        self.dsn = dsn
        self._pool = pool
        self.shared_pool = pool is not None

    async def init(self) -> None:
        if self._pool is None:
            try:
                self._pool = await asyncpg.create_pool(dsn=self.dsn)
            except _DRIVER_ERRORS as exc:
                raise StorageError("Failed to connect to PostgreSQL", data=str(exc)) from exc
            logger.info("Connected to PostgreSQL")

    async def close(self) -> None:
        if self._pool is not None and not self.shared_pool:
            await self._pool.close()
            self._pool = None

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise StorageError("PostgreSQL connection is not initialised, call 'init()' first")
        return self._pool

    @asynccontextmanager
    async def acquire(self, action: str) -> AsyncIterator[asyncpg.Connection]:
        try:
            async with self.pool.acquire() as con:
                yield con
        except _DRIVER_ERRORS as exc:
            logger.error(f"PostgreSQL error while trying to {action}: {exc}")
            raise StorageError(f"Failed to {action}", data=str(exc)) from exc

    async def ensure_schema(self, embedding_size: int) -> None:
        data = pkgutil.get_data(__package__, "schema.sql")
        if not data:
            raise FileNotFoundError("schema.sql not found in package")
        sql = data.decode().replace("<DIMENSION>", str(int(embedding_size)))
        async with self.acquire("create schema") as con:
            for statement in [s.strip() for s in sql.split(";") if s.strip()]:
                await con.execute(statement)


def _conversation_from_row(row: asyncpg.Record) -> Conversation:
    return Conversation(
        id=row["id"],
        conversation_ref=row["conversation_ref"],
        title=row["title"],
        summary=row["summary"],
        metadata=_load_json(row["metadata"]),
        created_at=row["created_at"],
    )


def _message_from_row(row: asyncpg.Record) -> Message:
    return Message(
        id=row["id"],
        conversation_id=row["conversation_id"],
        role=row["role"],
        content=row["content"],
        created_at=row["created_at"],
        token_count=row["token_count"],
        metadata=_load_json(row["metadata"]),
    )


class PostgreSQLConversationDatabase(ConversationDatabase):
    def __init__(self, connection: PostgreSQLConnection) -> None:
        self.connection = connection

    async def upsert_conversation(
        self,
        conversation_ref: str,
        title: str | None = None,
        summary: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Conversation:
        query = f"""
            INSERT INTO conversation_history (conversation_ref, title, summary, metadata)
            VALUES ($1, $2, $3, $4::jsonb)
            ON CONFLICT (conversation_ref) DO UPDATE
            SET title = COALESCE(EXCLUDED.title, conversation_history.title),
                summary = COALESCE(EXCLUDED.summary, conversation_history.summary),
                metadata = COALESCE(EXCLUDED.metadata, conversation_history.metadata)
            RETURNING {_CONVERSATION_COLUMNS}
        """
        async with self.connection.acquire("upsert conversation") as con:
            row = await con.fetchrow(query, conversation_ref, title, summary, _dump_json(metadata))
        return _conversation_from_row(row)

    async def get_conversation_by_ref(self, conversation_ref: str) -> Conversation | None:
        query = f"SELECT {_CONVERSATION_COLUMNS} FROM conversation_history WHERE conversation_ref = $1"
        async with self.connection.acquire("fetch conversation") as con:
            row = await con.fetchrow(query, conversation_ref)
        return _conversation_from_row(row) if row else None

    async def get_conversation_by_id(self, conversation_id: int) -> Conversation:
        query = f"SELECT {_CONVERSATION_COLUMNS} FROM conversation_history WHERE id = $1"
        async with self.connection.acquire("fetch conversation") as con:
            row = await con.fetchrow(query, conversation_id)
        if row is None:
            raise ConversationNotFoundError(f"Conversation with id {conversation_id} not found")
        return _conversation_from_row(row)

    async def get_conversations(self) -> list[Conversation]:
        query = f"SELECT {_CONVERSATION_COLUMNS} FROM conversation_history ORDER BY created_at DESC, id DESC"
        async with self.connection.acquire("list conversations") as con:
            rows = await con.fetch(query)
        return [_conversation_from_row(row) for row in rows]

    async def delete_conversation(self, conversation_id: int) -> bool:
        async with self.connection.acquire("delete conversation") as con:
            status = await con.execute("DELETE FROM conversation_history WHERE id = $1", conversation_id)
        return status != "DELETE 0"


class PostgreSQLMessageDatabase(MessageDatabase):
    def __init__(self, connection: PostgreSQLConnection) -> None:
        self.connection = connection

    async def create_messages(self, drafts: Sequence[MessageDraft]) -> list[MessageRecord]:
        query = f"""
            INSERT INTO conversation_message (conversation_id, role, content, token_count, embedding, metadata)
            VALUES ($1, $2, $3, $4, $5::vector, $6::jsonb)
            RETURNING {_MESSAGE_COLUMNS}
        """
        records: list[MessageRecord] = []
        async with self.connection.acquire("store conversation messages") as con:
            async with con.transaction():
                for draft in drafts:
                    row = await con.fetchrow(
                        query,
                        draft.conversation_id,
                        draft.role.value,
                        draft.content,
                        draft.token_count,
                        _vector_literal(draft.embedding) if draft.embedding is not None else None,
                        _dump_json(draft.metadata),
                    )
                    message = _message_from_row(row)
                    records.append(MessageRecord(**message.model_dump(), embedding=draft.embedding))
        return records

    async def get_messages_by_conversation_id(self, conversation_id: int) -> list[Message]:
        query = f"""
            SELECT {_MESSAGE_COLUMNS} FROM conversation_message
            WHERE conversation_id = $1
            ORDER BY created_at ASC, id ASC
        """
        async with self.connection.acquire("fetch conversation messages") as con:
            rows = await con.fetch(query, conversation_id)
        return [_message_from_row(row) for row in rows]

    async def match_messages(
        self,
        query_embedding: Sequence[float],
        match_threshold: float,
        match_count: int,
        conversation_id: int | None = None,
    ) -> list[MessageMatch]:
        async with self.connection.acquire("match conversation messages") as con:
            rows = await con.fetch(
                _MATCH_MESSAGES_SQL,
                _vector_literal(query_embedding),
                match_threshold,
                match_count,
                conversation_id,
            )
        return [
            MessageMatch(
                id=row["id"],
                conversation_id=row["conversation_id"],
                role=row["role"],
                content=row["content"],
                created_at=row["created_at"],
                similarity=row["similarity"],
            )
            for row in rows
        ]

    async def delete_messages_by_conversation_id(self, conversation_id: int) -> int:
        async with self.connection.acquire("delete conversation messages") as con:
            status = await con.execute("DELETE FROM conversation_message WHERE conversation_id = $1", conversation_id)
        return int(status.split()[-1])
