"""
Result enricher.

Attaches the parent conversation's summary and, on request, a context window
to each ranked match. Enrichment tolerates partial failure: when the
conversation or its messages cannot be fetched for one match, that match is
logged and dropped, and the remaining matches are still returned. Input
order is preserved.
"""

from typing import Sequence

from loguru import logger

from conversation_search.conversation_database.data_models.conversation import Conversation, ConversationDatabase
from conversation_search.conversation_database.data_models.message import Message, MessageDatabase, MessageMatch
from conversation_search.search.context_window import DEFAULT_CONTEXT_RADIUS, build_context
from conversation_search.search.models import ContextMessage, ConversationSummary, EnrichedMatch


class ResultEnricher:
    """
    Merges ranked matches with conversation summaries and context windows.

    Attributes:
        context_radius: Number of messages taken on each side of a match.
    """

    def __init__(
        self,
        conversation_db: ConversationDatabase,
        message_db: MessageDatabase,
        context_radius: int = DEFAULT_CONTEXT_RADIUS,
    ) -> None:
        self.conversation_db = conversation_db
        self.message_db = message_db
        self.context_radius = context_radius

    async def enrich(self, matches: Sequence[MessageMatch], include_context: bool) -> list[EnrichedMatch]:
        conversations: dict[int, Conversation] = {}
        histories: dict[int, list[Message]] = {}
        enriched: list[EnrichedMatch] = []

        for match in matches:
            conversation_id = match.conversation_id
            try:
                if conversation_id not in conversations:
                    conversations[conversation_id] = await self.conversation_db.get_conversation_by_id(conversation_id)
            except Exception as exc:
                logger.warning(f"Dropping match {match.id}: error fetching conversation {conversation_id}: {exc}")
                continue

            context: list[ContextMessage] = []
            if include_context:
                try:
                    if conversation_id not in histories:
                        histories[conversation_id] = await self.message_db.get_messages_by_conversation_id(
                            conversation_id
                        )
                except Exception as exc:
                    logger.warning(f"Dropping match {match.id}: error fetching context messages: {exc}")
                    continue
                window = build_context(histories[conversation_id], match.id, radius=self.context_radius)
                if not window:
                    logger.debug(f"Match {match.id} not found in conversation {conversation_id}, returning no context")
                context = [ContextMessage.from_message(message) for message in window]

            enriched.append(
                EnrichedMatch(
                    id=match.id,
                    conversation_internal_id=conversation_id,
                    role=match.role,
                    content=match.content,
                    created_at=match.created_at,
                    similarity=match.similarity,
                    conversation=ConversationSummary.from_conversation(conversations[conversation_id]),
                    context=context,
                )
            )

        return enriched
