"""Test fixtures for the conversation search tests."""

import itertools
from datetime import datetime, timedelta, timezone

from conversation_search.conversation_database.data_models.message import MessageDraft, Roles
from conversation_search.embeddings.base import Embedding, EmbeddingsModel
from conversation_search.errors import EmbeddingProviderError

EMBEDDING_SIZE = 5
QUERY_VECTOR = [1.0, 0.0, 0.0, 0.0, 0.0]
DEFAULT_VECTOR = [0.0, 0.0, 0.0, 0.0, 1.0]

# Integer vectors with whole-number norms, so their cosine similarity to
# QUERY_VECTOR is exactly the float literal used as the key.
VECTORS_BY_SIMILARITY = {
    0.92: [23.0, 4.0, 4.0, 8.0, 0.0],
    0.81: [81.0, 58.0, 7.0, 5.0, 1.0],
    0.70: [7.0, 7.0, 1.0, 1.0, 0.0],
    0.65: [13.0, 15.0, 2.0, 1.0, 1.0],
    0.40: [2.0, 4.0, 2.0, 1.0, 0.0],
}


class FakeEmbeddings(EmbeddingsModel):
    """Deterministic embeddings: known texts map to fixed vectors, anything else to DEFAULT_VECTOR."""

    def __init__(self, vectors: dict[str, list[float]] | None = None, fail_on: set[str] | None = None):
        super().__init__("fake-embeddings", EMBEDDING_SIZE)
        self.vectors = vectors or {}
        self.fail_on = fail_on or set()
        self.calls: list[str] = []

    async def embed(self, text: str) -> Embedding:
        self.calls.append(text)
        if text in self.fail_on:
            raise EmbeddingProviderError("Failed to create embedding", data={"text": text})
        vector = self.vectors.get(text, DEFAULT_VECTOR)
        return Embedding(vector=vector, token_count=len(text.split()))


class StepClock:
    """Returns timestamps one second apart, starting at a fixed instant."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)):
        self._ticks = itertools.count()
        self.start = start

    def __call__(self) -> datetime:
        return self.start + timedelta(seconds=next(self._ticks))


SUPPORT_CONVERSATION = [
    ("user", "I can't sign in to my account"),
    ("assistant", "Sorry to hear that. What error do you see?"),
    ("user", "It says my password is wrong"),
    ("assistant", "Let's reset it. Check your inbox for a reset link."),
    ("user", "Thanks, that worked"),
]

SUPPORT_QUERY = "account login problems"


def support_embeddings(**kwargs) -> FakeEmbeddings:
    """Embeddings where the support conversation scores [0.92, 0.81, 0.70, 0.65, 0.40] against SUPPORT_QUERY."""
    vectors = {SUPPORT_QUERY: QUERY_VECTOR}
    for (_, content), vector in zip(SUPPORT_CONVERSATION, VECTORS_BY_SIMILARITY.values()):
        vectors[content] = vector
    return FakeEmbeddings(vectors=vectors, **kwargs)


async def seed_conversation(conversation_db, message_db, conversation_ref, vectors, title=None):
    """Store a conversation with one user message per vector; returns (conversation, records)."""
    conversation = await conversation_db.upsert_conversation(conversation_ref, title=title)
    drafts = [
        MessageDraft(
            conversation_id=conversation.id,
            role=Roles.USER,
            content=f"{conversation_ref} message {position}",
            embedding=vector,
        )
        for position, vector in enumerate(vectors)
    ]
    records = await message_db.create_messages(drafts)
    return conversation, records
