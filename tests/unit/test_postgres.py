"""Unit tests for the PostgreSQL backend against a fake asyncpg pool."""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import asyncpg
import pytest

from conversation_search.conversation_database.data_models.message import MessageDraft, Roles
from conversation_search.conversation_database.postgres import (
    _MATCH_MESSAGES_SQL,
    PostgreSQLConnection,
    PostgreSQLConversationDatabase,
    PostgreSQLMessageDatabase,
    _vector_literal,
)
from conversation_search.errors import ConversationNotFoundError, StorageError

NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeConnection:
    def __init__(self):
        self.fetchrow = AsyncMock()
        self.fetch = AsyncMock(return_value=[])
        self.execute = AsyncMock(return_value="OK")
        self.transactions = 0

    @asynccontextmanager
    async def transaction(self):
        self.transactions += 1
        yield


class FakePool:
    def __init__(self, connection):
        self.connection = connection
        self.close = AsyncMock()

    @asynccontextmanager
    async def acquire(self):
        yield self.connection


@pytest.fixture
def con():
    return FakeConnection()


@pytest.fixture
def connection(con):
    return PostgreSQLConnection("postgresql://test", pool=FakePool(con))


def conversation_row(**overrides):
    row = {
        "id": 1,
        "conversation_ref": "ref-1",
        "title": "Title",
        "summary": None,
        "metadata": '{"channel": "web"}',
        "created_at": NOW,
    }
    row.update(overrides)
    return row


def message_row(message_id, content="hello"):
    return {
        "id": message_id,
        "conversation_id": 1,
        "role": "user",
        "content": content,
        "created_at": NOW,
        "token_count": 1,
        "metadata": None,
    }


class TestVectorLiteral:
    def test_format(self):
        assert _vector_literal([1, 0.5, -2]) == "[1.0,0.5,-2.0]"

    def test_match_sql_keeps_strict_threshold_and_tie_break(self):
        assert "similarity > $2" in _MATCH_MESSAGES_SQL
        assert "ORDER BY similarity DESC, created_at ASC, id ASC" in _MATCH_MESSAGES_SQL
        assert "1 - (embedding <=> $1::vector)" in _MATCH_MESSAGES_SQL

    def test_match_sql_excludes_zero_norm_vectors(self):
        assert "AND NOT (embedding <=> $1::vector) = 'NaN'" in _MATCH_MESSAGES_SQL


class TestPostgreSQLConnection:
    def test_uninitialised_pool(self):
        with pytest.raises(StorageError, match="not initialised"):
            PostgreSQLConnection("postgresql://test").pool

    @pytest.mark.asyncio
    async def test_driver_errors_become_storage_errors(self, connection, con):
        con.fetch.side_effect = asyncpg.InterfaceError("connection closed")
        db = PostgreSQLConversationDatabase(connection)

        with pytest.raises(StorageError, match="Failed to list conversations"):
            await db.get_conversations()

    @pytest.mark.asyncio
    async def test_shared_pool_is_not_closed(self, connection):
        await connection.close()
        connection.pool.close.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_ensure_schema_substitutes_dimension(self, connection, con):
        await connection.ensure_schema(1536)

        statements = [call.args[0] for call in con.execute.await_args_list]
        assert any("vector(1536)" in s for s in statements)
        assert not any("<DIMENSION>" in s for s in statements)


class TestPostgreSQLConversationDatabase:
    @pytest.mark.asyncio
    async def test_upsert_serialises_metadata(self, connection, con):
        con.fetchrow.return_value = conversation_row()
        db = PostgreSQLConversationDatabase(connection)

        conversation = await db.upsert_conversation("ref-1", title="Title", metadata={"channel": "web"})

        args = con.fetchrow.await_args.args
        assert "ON CONFLICT (conversation_ref) DO UPDATE" in args[0]
        assert "COALESCE(EXCLUDED.title, conversation_history.title)" in args[0]
        assert "COALESCE(EXCLUDED.summary, conversation_history.summary)" in args[0]
        assert "COALESCE(EXCLUDED.metadata, conversation_history.metadata)" in args[0]
        assert args[1:] == ("ref-1", "Title", None, '{"channel": "web"}')
        assert conversation.metadata == {"channel": "web"}

    @pytest.mark.asyncio
    async def test_missing_lookups(self, connection, con):
        con.fetchrow.return_value = None
        db = PostgreSQLConversationDatabase(connection)

        assert await db.get_conversation_by_ref("missing") is None
        with pytest.raises(ConversationNotFoundError):
            await db.get_conversation_by_id(42)

    @pytest.mark.asyncio
    async def test_delete_reports_whether_a_row_was_removed(self, connection, con):
        db = PostgreSQLConversationDatabase(connection)

        con.execute.return_value = "DELETE 1"
        assert await db.delete_conversation(1) is True
        con.execute.return_value = "DELETE 0"
        assert await db.delete_conversation(1) is False


class TestPostgreSQLMessageDatabase:
    @pytest.mark.asyncio
    async def test_create_messages_in_one_transaction(self, connection, con):
        con.fetchrow.side_effect = [message_row(10, "a"), message_row(11, "b")]
        db = PostgreSQLMessageDatabase(connection)
        drafts = [
            MessageDraft(conversation_id=1, role=Roles.USER, content="a", embedding=[1.0, 0.0]),
            MessageDraft(conversation_id=1, role=Roles.ASSISTANT, content="b"),
        ]

        records = await db.create_messages(drafts)

        assert con.transactions == 1
        assert [r.id for r in records] == [10, 11]
        assert records[0].embedding == [1.0, 0.0]
        first_args, second_args = (call.args for call in con.fetchrow.await_args_list)
        assert first_args[2] == "user"
        assert first_args[5] == "[1.0,0.0]"
        assert second_args[5] is None

    @pytest.mark.asyncio
    async def test_match_messages_passes_parameters(self, connection, con):
        con.fetch.return_value = [{**message_row(5), "similarity": 0.92}]
        db = PostgreSQLMessageDatabase(connection)

        matches = await db.match_messages([1.0, 0.0], match_threshold=0.7, match_count=3, conversation_id=1)

        assert con.fetch.await_args.args[1:] == ("[1.0,0.0]", 0.7, 3, 1)
        assert [(m.id, m.similarity) for m in matches] == [(5, 0.92)]

    @pytest.mark.asyncio
    async def test_delete_messages_returns_count(self, connection, con):
        con.execute.return_value = "DELETE 4"
        db = PostgreSQLMessageDatabase(connection)

        assert await db.delete_messages_by_conversation_id(1) == 4

    @pytest.mark.asyncio
    async def test_postgres_error_wrapped(self, connection, con):
        con.fetch.side_effect = asyncpg.PostgresError("boom")
        db = PostgreSQLMessageDatabase(connection)

        with pytest.raises(StorageError, match="Failed to fetch conversation messages"):
            await db.get_messages_by_conversation_id(1)
