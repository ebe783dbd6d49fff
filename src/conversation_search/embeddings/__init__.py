from conversation_search.embeddings.base import Embedding, EmbeddingsModel

__all__ = [
    "Embedding",
    "EmbeddingsModel",
]
