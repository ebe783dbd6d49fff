"""
Ingestion pipeline.

Stores a conversation and embeds its messages. Ingestion is all-or-nothing
across messages and runs in two phases:

    1. stage  - every usable message is normalised and embedded, in input
                order. The first failure raises and nothing has been written.
    2. commit - the conversation is upserted by its external reference and
                all staged drafts are stored in one atomic 'create_messages'
                call.

Entries with empty content or no role are skipped: they are neither stored
nor counted.
"""

from collections.abc import Sequence
from typing import Any

from loguru import logger
from pydantic import BaseModel

from conversation_search.conversation_database.data_models.conversation import ConversationDatabase
from conversation_search.conversation_database.data_models.message import MessageDatabase, MessageDraft, Roles
from conversation_search.embeddings.base import Embedding, EmbeddingsModel
from conversation_search.errors import ApplicationError, UserError
from conversation_search.utils.text import normalize_text


class IngestMessage(BaseModel):
    role: Roles | None = None
    content: str | None = None
    metadata: dict[str, Any] | None = None


class IngestionResult(BaseModel):
    conversation_ref: str
    stored_count: int


class _StagedMessage(BaseModel):
    role: Roles
    content: str
    metadata: dict[str, Any] | None
    embedding: Embedding


class IngestionPipeline:
    def __init__(
        self,
        conversation_db: ConversationDatabase,
        message_db: MessageDatabase,
        embeddings_model: EmbeddingsModel,
    ) -> None:
        self.conversation_db = conversation_db
        self.message_db = message_db
        self.embeddings_model = embeddings_model

    async def ingest(
        self,
        conversation_ref: str,
        messages: Sequence[IngestMessage],
        title: str | None = None,
        summary: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> IngestionResult:
        if not conversation_ref:
            raise UserError("Missing conversationRef in request data")
        if not messages:
            raise UserError("Missing or invalid messages in request data")

        logger.info(f"Ingesting conversation {conversation_ref!r} with {len(messages)} messages")
        staged = await self._stage(messages)

        conversation = await self.conversation_db.upsert_conversation(
            conversation_ref, title=title, summary=summary, metadata=metadata
        )
        drafts = [
            MessageDraft(
                conversation_id=conversation.id,
                role=message.role,
                content=message.content,
                token_count=message.embedding.token_count,
                embedding=message.embedding.vector,
                metadata=message.metadata,
            )
            for message in staged
        ]
        stored = await self.message_db.create_messages(drafts) if drafts else []

        logger.info(f"Stored {len(stored)} messages for conversation {conversation_ref!r}")
        return IngestionResult(conversation_ref=conversation.conversation_ref, stored_count=len(stored))

    async def _stage(self, messages: Sequence[IngestMessage]) -> list[_StagedMessage]:
        staged: list[_StagedMessage] = []
        for position, message in enumerate(messages):
            if not message.content or message.role is None:
                logger.debug(f"Skipping message {position}: missing content or role")
                continue

            try:
                embedding = await self.embeddings_model.embed(normalize_text(message.content))
            except ApplicationError:
                logger.error(f"Failed to generate embeddings for message: {message.content[:50]}...")
                raise

            staged.append(
                _StagedMessage(
                    role=message.role,
                    content=message.content,
                    metadata=message.metadata,
                    embedding=embedding,
                )
            )
        return staged
