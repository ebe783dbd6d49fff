"""
Conversation data model and storage interface.

A conversation is identified externally by 'conversation_ref', a caller-chosen
string that stays stable across ingestion calls, and internally by the
storage-assigned integer 'id' that messages point at. Re-ingesting a ref
updates the title, summary and metadata in place instead of creating a second
row.

The 'ConversationDatabase' ABC is the pluggable storage backend. Concrete
implementations ('InMemoryConversationDatabase',
'PostgreSQLConversationDatabase') are interchangeable at construction time,
keeping the controller and API layer free of storage-specific code.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from pydantic import BaseModel


class Conversation(BaseModel):
    """A stored conversation and its descriptive fields."""

    id: int
    conversation_ref: str
    title: str | None = None
    summary: str | None = None
    metadata: dict[str, Any] | None = None
    created_at: datetime


class ConversationDatabase(ABC):
    """Abstract repository for 'Conversation' records."""

    @abstractmethod
    async def upsert_conversation(
        self,
        conversation_ref: str,
        title: str | None = None,
        summary: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Conversation:
        """Insert the conversation, or update title/summary/metadata if 'conversation_ref' exists.

        Fields passed as None keep their stored value.

        Must be atomic per ref: two concurrent calls for the same ref leave exactly one row.
        """
        pass

    @abstractmethod
    async def get_conversation_by_ref(self, conversation_ref: str) -> Conversation | None:
        pass

    @abstractmethod
    async def get_conversation_by_id(self, conversation_id: int) -> Conversation:
        """Raise 'ConversationNotFoundError' if no conversation has this internal id."""
        pass

    @abstractmethod
    async def get_conversations(self) -> list[Conversation]:
        """Return all conversations, newest first."""
        pass

    @abstractmethod
    async def delete_conversation(self, conversation_id: int) -> bool:
        pass
