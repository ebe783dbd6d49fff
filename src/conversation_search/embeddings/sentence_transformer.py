"""
Local embeddings with 'sentence-transformers'.

The model is loaded once at construction time and encoding runs in a worker
thread so the event loop is not blocked. Token counts come from the model's
own tokenizer. Install with the 'local' extra.
"""

import asyncio

from loguru import logger
from sentence_transformers import SentenceTransformer

from conversation_search.embeddings.base import Embedding, EmbeddingsModel
from conversation_search.errors import EmbeddingProviderError

DEFAULT_SENTENCE_TRANSFORMER_MODEL = "sentence-transformers/all-MiniLM-L6-v2"


class SentenceTransformerEmbeddings(EmbeddingsModel):
    def __init__(self, model_name: str = DEFAULT_SENTENCE_TRANSFORMER_MODEL, embedding_size: int | None = None) -> None:
        self.model = SentenceTransformer(model_name)
        dimension = self.model.get_sentence_embedding_dimension()
        if embedding_size is not None and dimension != embedding_size:
            raise EmbeddingProviderError(
                f"Model {model_name} produces {dimension}-dimensional embeddings, configured size is {embedding_size}"
            )
        super().__init__(model_name, int(dimension))
        logger.info(f"Loaded sentence-transformers model: {model_name} ({self.embedding_size} dims)")

    def _encode(self, text: str) -> Embedding:
        vector = self.model.encode(text, convert_to_numpy=True).astype(float).tolist()
        token_count = len(self.model.tokenizer(text)["input_ids"])
        return Embedding(vector=self._check_vector(vector), token_count=token_count)

    async def embed(self, text: str) -> Embedding:
        try:
            return await asyncio.to_thread(self._encode, text)
        except EmbeddingProviderError:
            raise
        except Exception as exc:
            logger.error(f"Local embedding failed: {exc}")
            raise EmbeddingProviderError("Failed to create embedding", data=str(exc)) from exc
