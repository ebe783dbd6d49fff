"""
In-memory storage backend.

Keeps conversations and messages in process memory. Useful for tests, demos
and local development; nothing survives a restart. Integer ids are assigned
from monotonically increasing counters so they double as the insertion-order
tie-break for messages created within the same timestamp.

Upserts and message batches run under an 'asyncio.Lock', which gives the same
per-ref upsert atomicity and all-or-nothing batch commit that the PostgreSQL
backend gets from 'ON CONFLICT' and transactions.
"""

import asyncio
import itertools
from collections.abc import Callable
from datetime import datetime
from typing import Any, Sequence

from loguru import logger

from conversation_search.conversation_database.data_models.conversation import Conversation, ConversationDatabase
from conversation_search.conversation_database.data_models.message import (
    Message,
    MessageDatabase,
    MessageDraft,
    MessageMatch,
    MessageRecord,
    message_sort_key,
)
from conversation_search.errors import ConversationNotFoundError, StorageError
from conversation_search.retriever.similarity import rank_by_similarity
from conversation_search.utils.text import get_current_timestamp


class InMemoryConversationDatabase(ConversationDatabase):
    def __init__(self, clock: Callable[[], datetime] = get_current_timestamp) -> None:
        self._clock = clock
        self._ids = itertools.count(1)
        self._conversations: dict[int, Conversation] = {}
        self._lock = asyncio.Lock()

    async def upsert_conversation(
        self,
        conversation_ref: str,
        title: str | None = None,
        summary: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Conversation:
        async with self._lock:
            existing = self._find_by_ref(conversation_ref)
            if existing is not None:
                fields = {"title": title, "summary": summary, "metadata": metadata}
                updated = existing.model_copy(update={k: v for k, v in fields.items() if v is not None})
                self._conversations[existing.id] = updated
                return updated

            conversation = Conversation(
                id=next(self._ids),
                conversation_ref=conversation_ref,
                title=title,
                summary=summary,
                metadata=metadata,
                created_at=self._clock(),
            )
            self._conversations[conversation.id] = conversation
            return conversation

    def _find_by_ref(self, conversation_ref: str) -> Conversation | None:
        return next(
            (c for c in self._conversations.values() if c.conversation_ref == conversation_ref),
            None,
        )

    async def get_conversation_by_ref(self, conversation_ref: str) -> Conversation | None:
        return self._find_by_ref(conversation_ref)

    async def get_conversation_by_id(self, conversation_id: int) -> Conversation:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(f"Conversation with id {conversation_id} not found")
        return conversation

    async def get_conversations(self) -> list[Conversation]:
        return sorted(self._conversations.values(), key=lambda c: (c.created_at, c.id), reverse=True)

    async def delete_conversation(self, conversation_id: int) -> bool:
        async with self._lock:
            return self._conversations.pop(conversation_id, None) is not None


class InMemoryMessageDatabase(MessageDatabase):
    """
    Message store backed by a dict of 'MessageRecord' objects.

    Attributes:
        embedding_size: When set, drafts whose embedding has a different
            dimensionality are rejected, mirroring the fixed-width vector
            column of the PostgreSQL schema.
    """

    def __init__(
        self,
        embedding_size: int | None = None,
        clock: Callable[[], datetime] = get_current_timestamp,
    ) -> None:
        self.embedding_size = embedding_size
        self._clock = clock
        self._ids = itertools.count(1)
        self._messages: dict[int, MessageRecord] = {}
        self._lock = asyncio.Lock()

    async def create_messages(self, drafts: Sequence[MessageDraft]) -> list[MessageRecord]:
        async with self._lock:
            for draft in drafts:
                self._validate(draft)

            records = []
            for draft in drafts:
                record = MessageRecord(id=next(self._ids), created_at=self._clock(), **draft.model_dump())
                records.append(record)
            self._messages.update((record.id, record) for record in records)

        logger.debug(f"Stored {len(records)} messages in memory")
        return records

    def _validate(self, draft: MessageDraft) -> None:
        if not draft.content:
            raise StorageError("Message content must not be empty")
        if draft.embedding is not None and self.embedding_size is not None:
            if len(draft.embedding) != self.embedding_size:
                raise StorageError(
                    f"Expected embedding of size {self.embedding_size}, got {len(draft.embedding)}",
                )

    async def get_messages_by_conversation_id(self, conversation_id: int) -> list[Message]:
        records = [r for r in self._messages.values() if r.conversation_id == conversation_id]
        return [Message(**r.model_dump(exclude={"embedding"})) for r in sorted(records, key=message_sort_key)]

    async def match_messages(
        self,
        query_embedding: Sequence[float],
        match_threshold: float,
        match_count: int,
        conversation_id: int | None = None,
    ) -> list[MessageMatch]:
        records = [
            r for r in self._messages.values() if conversation_id is None or r.conversation_id == conversation_id
        ]
        try:
            return rank_by_similarity(query_embedding, records, match_threshold, match_count)
        except ValueError as exc:
            raise StorageError(f"Failed to match conversation messages: {exc}") from exc

    async def delete_messages_by_conversation_id(self, conversation_id: int) -> int:
        async with self._lock:
            ids = [i for i, r in self._messages.items() if r.conversation_id == conversation_id]
            for message_id in ids:
                del self._messages[message_id]
        return len(ids)
