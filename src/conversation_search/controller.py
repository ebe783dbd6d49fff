"""
Conversation search controller (Facade).

'ConversationSearchController' is the single entry point for application
logic. It wires the two storage repositories and the embeddings model into
the retrieval engine (ranker, retriever, enricher) and the ingestion
pipeline, and exposes them through request/response models that the HTTP
layer serialises as-is:

    'search'                    - semantic search, optionally with context windows.
    'ingest'                    - upsert a conversation and embed its messages.
    'get_conversations'         - list stored conversations, newest first.
    'get_conversation_messages' - ordered messages of one conversation.
    'delete_conversation'       - remove a conversation and its messages.

'open_controller' builds a controller from an 'AppConfig' and owns the
lifetime of the storage connection.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

from loguru import logger

from conversation_search.config import AppConfig, build_embeddings_model
from conversation_search.conversation_database.data_models.conversation import Conversation, ConversationDatabase
from conversation_search.conversation_database.data_models.message import Message, MessageDatabase, Roles
from conversation_search.embeddings.base import EmbeddingsModel
from conversation_search.errors import ConfigurationError, InvalidScope
from conversation_search.ingestion.pipeline import IngestionPipeline, IngestMessage
from conversation_search.retriever.message_retriever import MessageRetriever
from conversation_search.retriever.ranker import SimilarityRanker
from conversation_search.search.context_window import DEFAULT_CONTEXT_RADIUS
from conversation_search.search.enricher import ResultEnricher
from conversation_search.search.models import SearchMatch, SearchResult
from conversation_search.utils.models import ApiModel

DEFAULT_MATCH_COUNT = 5
DEFAULT_MATCH_THRESHOLD = 0.7


class SearchRequest(ApiModel):
    query: str
    conversation_ref: str | None = None
    match_count: int = DEFAULT_MATCH_COUNT
    match_threshold: float = DEFAULT_MATCH_THRESHOLD
    include_context: bool = False


class SearchResponse(ApiModel):
    success: bool = True
    matches: list[SearchResult]


class IngestRequest(ApiModel):
    conversation_ref: str
    title: str | None = None
    summary: str | None = None
    messages: list[IngestMessage]
    metadata: dict[str, Any] | None = None


class IngestResponse(ApiModel):
    success: bool = True
    conversation_ref: str
    stored_count: int


class ConversationView(ApiModel):
    id: int
    conversation_ref: str
    title: str | None
    summary: str | None
    metadata: dict[str, Any] | None
    created_at: datetime

    @classmethod
    def from_conversation(cls, conversation: Conversation) -> "ConversationView":
        return cls(**conversation.model_dump())


class MessageView(ApiModel):
    id: int
    role: Roles
    content: str
    created_at: datetime
    token_count: int | None
    metadata: dict[str, Any] | None

    @classmethod
    def from_message(cls, message: Message) -> "MessageView":
        return cls(**message.model_dump(exclude={"conversation_id"}))


class ConversationListResponse(ApiModel):
    success: bool = True
    conversations: list[ConversationView]


class MessageListResponse(ApiModel):
    success: bool = True
    messages: list[MessageView]


class ConversationSearchController:
    def __init__(
        self,
        conversation_db: ConversationDatabase,
        message_db: MessageDatabase,
        embeddings_model: EmbeddingsModel,
        context_radius: int = DEFAULT_CONTEXT_RADIUS,
    ):
        self.conversation_db = conversation_db
        self.message_db = message_db
        self.embeddings_model = embeddings_model
        self.ranker = SimilarityRanker(conversation_db, message_db)
        self.enricher = ResultEnricher(conversation_db, message_db, context_radius=context_radius)
        self.ingestion = IngestionPipeline(conversation_db, message_db, embeddings_model)

    async def search(self, request: SearchRequest) -> SearchResponse:
        retriever = MessageRetriever(
            self.ranker,
            self.embeddings_model,
            top_k=request.match_count,
            match_threshold=request.match_threshold,
        )
        matches = await retriever.retrieve(request.query, conversation_ref=request.conversation_ref)

        results: list[SearchResult]
        if request.include_context:
            results = list(await self.enricher.enrich(matches, include_context=True))
        else:
            results = [SearchMatch.from_match(match) for match in matches]

        logger.info(f"Search returned {len(results)} of {len(matches)} matches (context={request.include_context})")
        return SearchResponse(matches=results)

    async def ingest(self, request: IngestRequest) -> IngestResponse:
        result = await self.ingestion.ingest(
            request.conversation_ref,
            request.messages,
            title=request.title,
            summary=request.summary,
            metadata=request.metadata,
        )
        return IngestResponse(conversation_ref=result.conversation_ref, stored_count=result.stored_count)

    async def _resolve(self, conversation_ref: str) -> Conversation:
        conversation = await self.conversation_db.get_conversation_by_ref(conversation_ref)
        if conversation is None:
            raise InvalidScope(f"Conversation {conversation_ref!r} not found", data={"conversationRef": conversation_ref})
        return conversation

    async def get_conversations(self) -> ConversationListResponse:
        conversations = await self.conversation_db.get_conversations()
        return ConversationListResponse(conversations=[ConversationView.from_conversation(c) for c in conversations])

    async def get_conversation_messages(self, conversation_ref: str) -> MessageListResponse:
        conversation = await self._resolve(conversation_ref)
        messages = await self.message_db.get_messages_by_conversation_id(conversation.id)
        return MessageListResponse(messages=[MessageView.from_message(m) for m in messages])

    async def delete_conversation(self, conversation_ref: str) -> bool:
        conversation = await self._resolve(conversation_ref)
        removed = await self.message_db.delete_messages_by_conversation_id(conversation.id)
        deleted = await self.conversation_db.delete_conversation(conversation.id)
        logger.info(f"Deleted conversation {conversation_ref!r} and {removed} messages")
        return deleted


@asynccontextmanager
async def open_controller(config: AppConfig) -> AsyncIterator[ConversationSearchController]:
    """Build a controller for 'config', closing the storage connection on exit."""
    embeddings_model = build_embeddings_model(config)

    match config.storage_backend:
        case "memory":
            from conversation_search.conversation_database.in_memory import (
                InMemoryConversationDatabase,
                InMemoryMessageDatabase,
            )

            logger.info("Storage backend: in-memory")
            yield ConversationSearchController(
                InMemoryConversationDatabase(),
                InMemoryMessageDatabase(embedding_size=embeddings_model.embedding_size),
                embeddings_model,
                context_radius=config.context_radius,
            )
        case "postgres":
            from conversation_search.conversation_database.postgres import (
                PostgreSQLConnection,
                PostgreSQLConversationDatabase,
                PostgreSQLMessageDatabase,
            )

            if config.database_url is None:
                raise ConfigurationError("Missing environment variable DATABASE_URL")
            logger.info("Storage backend: PostgreSQL")
            connection = PostgreSQLConnection(config.database_url.get_secret_value())
            await connection.init()
            try:
                await connection.ensure_schema(embeddings_model.embedding_size)
                yield ConversationSearchController(
                    PostgreSQLConversationDatabase(connection),
                    PostgreSQLMessageDatabase(connection),
                    embeddings_model,
                    context_radius=config.context_radius,
                )
            finally:
                await connection.close()
        case _:
            raise ConfigurationError(f"Unsupported storage backend {config.storage_backend!r}")
