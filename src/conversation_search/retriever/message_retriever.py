"""
Text-level message retriever.

Turns a natural-language query into a ranked list of 'MessageMatch' objects:
the query is trimmed and flattened onto one line, embedded with the
configured 'EmbeddingsModel', and handed to the 'SimilarityRanker'.
"""

from conversation_search.conversation_database.data_models.message import MessageMatch
from conversation_search.embeddings.base import EmbeddingsModel
from conversation_search.errors import UserError
from conversation_search.retriever.base import Retriever
from conversation_search.retriever.ranker import SimilarityRanker
from conversation_search.utils.text import normalize_query


class MessageRetriever(Retriever[MessageMatch]):
    """
    Semantic retriever over stored conversation messages.

    Attributes:
        ranker: Performs the thresholded similarity ranking.
        embeddings_model: Embeds the query text.
        match_threshold: Minimum similarity (exclusive) a message must exceed.
    """

    def __init__(
        self,
        ranker: SimilarityRanker,
        embeddings_model: EmbeddingsModel,
        top_k: int = 5,
        match_threshold: float = 0.7,
    ) -> None:
        super().__init__(top_k)
        self.ranker = ranker
        self.embeddings_model = embeddings_model
        self.match_threshold = match_threshold

    async def retrieve(self, query: str, conversation_ref: str | None = None) -> list[MessageMatch]:
        sanitized_query = normalize_query(query)
        if not sanitized_query:
            raise UserError("Missing query in request data")

        embedding = await self.embeddings_model.embed(sanitized_query)
        return await self.ranker.rank(
            embedding.vector,
            match_threshold=self.match_threshold,
            match_count=self.top_k,
            conversation_ref=conversation_ref,
        )
