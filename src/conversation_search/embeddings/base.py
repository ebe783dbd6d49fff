"""
Embeddings model abstractions.

Every provider returns an 'Embedding': the vector plus the number of tokens
the provider consumed, which is stored alongside each ingested message.
Providers are responsible for turning their client library's failures and
malformed responses into 'EmbeddingProviderError'.

Concrete implementations: 'OpenAIEmbeddings', 'SentenceTransformerEmbeddings'.
"""

from abc import ABC, abstractmethod

import numpy as np
from numpy.typing import NDArray
from pydantic import BaseModel

from conversation_search.errors import EmbeddingProviderError


class Embedding(BaseModel):
    """A single embedding vector and the token count reported for its input."""

    vector: list[float]
    token_count: int


class EmbeddingsModel(ABC):
    """
    Abstract base class for text embedding models.

    Attributes:
        model_name: Identifier of the underlying model.
        embedding_size: Dimensionality of the returned embedding vectors.
    """

    def __init__(self, model_name: str, embedding_size: int) -> None:
        self.model_name = model_name
        self.embedding_size = embedding_size

    @abstractmethod
    async def embed(self, text: str) -> Embedding:
        """Embed a single text."""
        pass

    async def get_embeddings(self, texts: str | list[str]) -> NDArray[np.float64]:
        """Embed one or more texts and return a float64 array of shape '(n, embedding_size)'."""
        if isinstance(texts, str):
            texts = [texts]
        vectors = [(await self.embed(text)).vector for text in texts]
        return np.array(vectors, dtype=np.float64).reshape(len(texts), self.embedding_size)

    def _check_vector(self, vector: list[float] | None) -> list[float]:
        if not vector:
            raise EmbeddingProviderError("Missing embedding in response data", data={"model": self.model_name})
        if len(vector) != self.embedding_size:
            raise EmbeddingProviderError(
                f"Expected embedding of size {self.embedding_size}, got {len(vector)}",
                data={"model": self.model_name},
            )
        return vector
