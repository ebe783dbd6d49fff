"""
Similarity ranker.

Validates the ranking parameters, resolves the optional conversation scope
from its external reference to the internal id, and delegates the
filter/order/limit scan to the storage backend's 'match_messages'.

An unknown scope is a hard 'InvalidScope' error rather than an empty result,
so callers can tell "conversation not found" apart from "conversation has no
matches".
"""

from typing import Sequence

from loguru import logger

from conversation_search.conversation_database.data_models.conversation import ConversationDatabase
from conversation_search.conversation_database.data_models.message import MessageDatabase, MessageMatch
from conversation_search.errors import InvalidParameter, InvalidScope


class SimilarityRanker:
    def __init__(self, conversation_db: ConversationDatabase, message_db: MessageDatabase) -> None:
        self.conversation_db = conversation_db
        self.message_db = message_db

    async def rank(
        self,
        query_embedding: Sequence[float],
        match_threshold: float,
        match_count: int,
        conversation_ref: str | None = None,
    ) -> list[MessageMatch]:
        """Return at most 'match_count' messages scoring strictly above 'match_threshold', best first."""
        if not 0.0 <= match_threshold <= 1.0:
            raise InvalidParameter(f"match_threshold must be within [0, 1], got {match_threshold}")
        if match_count <= 0:
            raise InvalidParameter(f"match_count must be positive, got {match_count}")
        if len(query_embedding) == 0:
            raise InvalidParameter("query_embedding must not be empty")

        conversation_id = None
        if conversation_ref is not None:
            conversation = await self.conversation_db.get_conversation_by_ref(conversation_ref)
            if conversation is None:
                raise InvalidScope(
                    f"Conversation {conversation_ref!r} not found", data={"conversationRef": conversation_ref}
                )
            conversation_id = conversation.id

        matches = await self.message_db.match_messages(
            query_embedding,
            match_threshold=match_threshold,
            match_count=match_count,
            conversation_id=conversation_id,
        )
        logger.debug(
            f"Ranked {len(matches)} messages (threshold={match_threshold}, count={match_count}, scope={conversation_ref})"
        )
        return matches
