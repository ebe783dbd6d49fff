from conversation_search.retriever.base import Retriever
from conversation_search.retriever.message_retriever import MessageRetriever
from conversation_search.retriever.ranker import SimilarityRanker
from conversation_search.retriever.similarity import cosine_similarity, rank_by_similarity

__all__ = [
    "MessageRetriever",
    "Retriever",
    "SimilarityRanker",
    "cosine_similarity",
    "rank_by_similarity",
]
