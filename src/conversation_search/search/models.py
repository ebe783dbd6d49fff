"""
Search result models.

A search returns one of two shapes per match, selected by the request's
'include_context' flag. They form a discriminated union on 'kind' so
consumers can branch on the variant instead of probing optional fields:

    'SearchMatch'   - kind="match": the ranked message and its similarity.
    'EnrichedMatch' - kind="enriched": additionally carries the parent
                      conversation's summary and the surrounding context window.
"""

from datetime import datetime
from typing import Annotated, Literal

from pydantic import Field

from conversation_search.conversation_database.data_models.conversation import Conversation
from conversation_search.conversation_database.data_models.message import Message, MessageMatch, Roles
from conversation_search.utils.models import ApiModel


class ConversationSummary(ApiModel):
    conversation_ref: str
    title: str | None
    created_at: datetime

    @classmethod
    def from_conversation(cls, conversation: Conversation) -> "ConversationSummary":
        return cls(
            conversation_ref=conversation.conversation_ref,
            title=conversation.title,
            created_at=conversation.created_at,
        )


class ContextMessage(ApiModel):
    id: int
    role: Roles
    content: str
    created_at: datetime

    @classmethod
    def from_message(cls, message: Message) -> "ContextMessage":
        return cls(id=message.id, role=message.role, content=message.content, created_at=message.created_at)


class _MatchFields(ApiModel):
    id: int
    conversation_internal_id: int
    role: Roles
    content: str
    created_at: datetime
    similarity: float


class SearchMatch(_MatchFields):
    kind: Literal["match"] = "match"

    @classmethod
    def from_match(cls, match: MessageMatch) -> "SearchMatch":
        return cls(
            id=match.id,
            conversation_internal_id=match.conversation_id,
            role=match.role,
            content=match.content,
            created_at=match.created_at,
            similarity=match.similarity,
        )


class EnrichedMatch(_MatchFields):
    kind: Literal["enriched"] = "enriched"
    conversation: ConversationSummary
    context: list[ContextMessage] = Field(default_factory=list)


SearchResult = Annotated[SearchMatch | EnrichedMatch, Field(discriminator="kind")]
