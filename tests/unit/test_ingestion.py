"""Unit tests for the ingestion pipeline."""

from unittest.mock import AsyncMock

import pytest

from conversation_search.conversation_database.data_models.message import Roles
from conversation_search.errors import ApplicationError, EmbeddingProviderError, StorageError, UserError
from conversation_search.ingestion.pipeline import IngestionPipeline, IngestMessage
from tests.fixtures import FakeEmbeddings


@pytest.fixture
def pipeline(conversation_db, message_db, fake_embeddings):
    return IngestionPipeline(conversation_db, message_db, fake_embeddings)


def user(content):
    return IngestMessage(role=Roles.USER, content=content)


class TestIngestionPipeline:
    @pytest.mark.asyncio
    async def test_stores_messages_in_order(self, pipeline, conversation_db, message_db):
        messages = [user("hello"), IngestMessage(role=Roles.ASSISTANT, content="hi there"), user("bye")]

        result = await pipeline.ingest("conv-1", messages, title="Greeting")

        assert result.conversation_ref == "conv-1"
        assert result.stored_count == 3
        conversation = await conversation_db.get_conversation_by_ref("conv-1")
        stored = await message_db.get_messages_by_conversation_id(conversation.id)
        assert [(m.role, m.content) for m in stored] == [
            (Roles.USER, "hello"),
            (Roles.ASSISTANT, "hi there"),
            (Roles.USER, "bye"),
        ]
        assert [m.token_count for m in stored] == [1, 2, 1]

    @pytest.mark.asyncio
    async def test_skips_entries_without_content_or_role(self, pipeline, fake_embeddings):
        messages = [
            user("kept"),
            user(""),
            IngestMessage(role=Roles.USER),
            IngestMessage(content="no role"),
            user("also kept"),
        ]

        result = await pipeline.ingest("conv-1", messages)

        assert result.stored_count == 2
        assert fake_embeddings.calls == ["kept", "also kept"]

    @pytest.mark.asyncio
    async def test_all_entries_skipped_still_upserts_conversation(self, pipeline, conversation_db):
        result = await pipeline.ingest("conv-1", [user(""), IngestMessage()], title="Empty")

        assert result.stored_count == 0
        conversation = await conversation_db.get_conversation_by_ref("conv-1")
        assert conversation.title == "Empty"

    @pytest.mark.asyncio
    async def test_newlines_normalised_for_embedding_only(self, pipeline, conversation_db, message_db, fake_embeddings):
        await pipeline.ingest("conv-1", [user("line one\nline two\r\nline three")])

        assert fake_embeddings.calls == ["line one line two line three"]
        conversation = await conversation_db.get_conversation_by_ref("conv-1")
        stored = await message_db.get_messages_by_conversation_id(conversation.id)
        assert stored[0].content == "line one\nline two\r\nline three"

    @pytest.mark.asyncio
    async def test_repeat_ingest_reuses_conversation(self, pipeline, conversation_db, message_db):
        await pipeline.ingest("conv-1", [user("first")], title="Old title")
        await pipeline.ingest("conv-1", [user("second")], title="New title", summary="Summary")

        conversations = await conversation_db.get_conversations()
        assert len(conversations) == 1
        assert conversations[0].title == "New title"
        assert conversations[0].summary == "Summary"
        stored = await message_db.get_messages_by_conversation_id(conversations[0].id)
        assert [m.content for m in stored] == ["first", "second"]

    @pytest.mark.asyncio
    async def test_repeat_ingest_without_fields_keeps_stored_ones(self, pipeline, conversation_db):
        await pipeline.ingest("conv-1", [user("first")], title="Keep me", summary="S", metadata={"channel": "web"})
        await pipeline.ingest("conv-1", [user("second")])

        conversation = await conversation_db.get_conversation_by_ref("conv-1")
        assert conversation.title == "Keep me"
        assert conversation.summary == "S"
        assert conversation.metadata == {"channel": "web"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("conversation_ref", ["", None])
    async def test_missing_conversation_ref(self, pipeline, conversation_ref):
        with pytest.raises(UserError, match="conversationRef"):
            await pipeline.ingest(conversation_ref, [user("hello")])

    @pytest.mark.asyncio
    async def test_missing_messages(self, pipeline):
        with pytest.raises(UserError, match="messages"):
            await pipeline.ingest("conv-1", [])

    @pytest.mark.asyncio
    async def test_embedding_failure_persists_nothing(self, conversation_db, message_db):
        embeddings = FakeEmbeddings(fail_on={"second"})
        pipeline = IngestionPipeline(conversation_db, message_db, embeddings)

        with pytest.raises(ApplicationError) as exc_info:
            await pipeline.ingest("conv-1", [user("first"), user("second"), user("third")])

        assert isinstance(exc_info.value, EmbeddingProviderError)
        assert embeddings.calls == ["first", "second"]
        assert await conversation_db.get_conversation_by_ref("conv-1") is None
        assert await message_db.match_messages([0.0, 0.0, 0.0, 0.0, 1.0], 0.0, 10) == []

    @pytest.mark.asyncio
    async def test_storage_failure_propagates(self, conversation_db, message_db, fake_embeddings):
        message_db.create_messages = AsyncMock(side_effect=StorageError("insert failed"))
        pipeline = IngestionPipeline(conversation_db, message_db, fake_embeddings)

        with pytest.raises(StorageError):
            await pipeline.ingest("conv-1", [user("hello")])

    @pytest.mark.asyncio
    async def test_message_metadata_is_stored(self, pipeline, conversation_db, message_db):
        message = IngestMessage(role=Roles.USER, content="hello", metadata={"source": "chat"})

        await pipeline.ingest("conv-1", [message], metadata={"channel": "web"})

        conversation = await conversation_db.get_conversation_by_ref("conv-1")
        stored = await message_db.get_messages_by_conversation_id(conversation.id)
        assert conversation.metadata == {"channel": "web"}
        assert stored[0].metadata == {"source": "chat"}
