"""
OpenAI embeddings backed by the official 'openai' SDK.

The token count stored with each message comes from the response's
'usage.total_tokens'. Every SDK error, and every response without a usable
vector, is raised as 'EmbeddingProviderError'.
"""

import openai
from loguru import logger
from openai import AsyncOpenAI

from conversation_search.embeddings.base import Embedding, EmbeddingsModel
from conversation_search.errors import EmbeddingProviderError

DEFAULT_OPENAI_EMBEDDING_MODEL = "text-embedding-ada-002"
DEFAULT_OPENAI_EMBEDDING_SIZE = 1536


class OpenAIEmbeddings(EmbeddingsModel):
    def __init__(
        self,
        api_key: str,
        model_name: str = DEFAULT_OPENAI_EMBEDDING_MODEL,
        embedding_size: int = DEFAULT_OPENAI_EMBEDDING_SIZE,
        timeout: float = 30.0,
        client: AsyncOpenAI | None = None,
    ) -> None:
        super().__init__(model_name, embedding_size)
        self.client = client or AsyncOpenAI(api_key=api_key, timeout=timeout)

    async def embed(self, text: str) -> Embedding:
        try:
            response = await self.client.embeddings.create(model=self.model_name, input=text)
        except openai.OpenAIError as exc:
            logger.error(f"OpenAI embedding request failed: {exc}")
            raise EmbeddingProviderError("Failed to create embedding", data=str(exc)) from exc

        if not response.data:
            raise EmbeddingProviderError("Invalid embedding response format", data=response.model_dump())

        vector = self._check_vector(response.data[0].embedding)
        token_count = response.usage.total_tokens if response.usage else 0
        return Embedding(vector=vector, token_count=token_count)
