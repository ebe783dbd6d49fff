"""
Message data model and storage interface.

'Message' is the stored unit of a conversation. 'MessageRecord' extends it
with the embedding vector, representing a message as it exists in the store.
'MessageMatch' is the projection returned by a similarity search: the
identifying fields of a message plus its similarity to the query.
'MessageDraft' is a message that has been embedded but not yet stored.

Within a conversation, messages are totally ordered by '(created_at, id)'; the
storage-assigned 'id' breaks timestamp ties.

The 'MessageDatabase' ABC is the pluggable storage backend. Concrete
implementations: 'InMemoryMessageDatabase', 'PostgreSQLMessageDatabase'.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from enum import StrEnum
from typing import Any, Sequence

from pydantic import BaseModel


class Roles(StrEnum):
    """Conversation roles accepted for stored messages."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class Message(BaseModel):
    """A single stored message within a conversation."""

    id: int
    conversation_id: int
    role: Roles
    content: str
    created_at: datetime
    token_count: int | None = None
    metadata: dict[str, Any] | None = None


class MessageRecord(Message):
    """A 'Message' as it is stored, with its embedding. 'None' when the message was never embedded."""

    embedding: list[float] | None = None


class MessageMatch(BaseModel):
    """A message returned from a similarity search, augmented with its similarity to the query."""

    id: int
    conversation_id: int
    role: Roles
    content: str
    created_at: datetime
    similarity: float


class MessageDraft(BaseModel):
    """An embedded message waiting to be committed to storage."""

    conversation_id: int
    role: Roles
    content: str
    token_count: int | None = None
    embedding: list[float] | None = None
    metadata: dict[str, Any] | None = None


def message_sort_key(message: Message) -> tuple[datetime, int]:
    return message.created_at, message.id


class MessageDatabase(ABC):
    """Abstract repository for 'Message' records."""

    @abstractmethod
    async def create_messages(self, drafts: Sequence[MessageDraft]) -> list[MessageRecord]:
        """Store all 'drafts' atomically, in order: either every draft is stored or none is."""
        pass

    @abstractmethod
    async def get_messages_by_conversation_id(self, conversation_id: int) -> list[Message]:
        """Return the conversation's messages sorted ascending by '(created_at, id)'."""
        pass

    @abstractmethod
    async def match_messages(
        self,
        query_embedding: Sequence[float],
        match_threshold: float,
        match_count: int,
        conversation_id: int | None = None,
    ) -> list[MessageMatch]:
        """
        Rank stored messages against 'query_embedding'.

        Similarity is '1 - cosine_distance'. Only messages with an embedding and
        a similarity strictly greater than 'match_threshold' qualify, optionally
        restricted to one conversation. Results are ordered by similarity
        descending, then '(created_at, id)' ascending, and truncated to
        'match_count' after filtering.
        """
        pass

    @abstractmethod
    async def delete_messages_by_conversation_id(self, conversation_id: int) -> int:
        """Delete every message of a conversation and return how many were removed."""
        pass
