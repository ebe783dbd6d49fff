"""
Retriever abstractions.

A retriever accepts a natural-language query and returns a ranked list of
messages. 'Retriever' is generic over 'T_co' (covariant) so that a retriever
producing a more specific match type can be used wherever a more general one
is expected.

Concrete implementations: 'MessageRetriever'.
"""

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

T_co = TypeVar("T_co", covariant=True)


class Retriever(ABC, Generic[T_co]):
    """
    Abstract base class for message retrievers.

    Attributes:
        top_k: Maximum number of results to return per query.
    """

    def __init__(self, top_k: int):
        self.top_k = top_k

    @abstractmethod
    async def retrieve(self, query: str, conversation_ref: str | None = None) -> list[T_co]:
        """Return up to 'top_k' results most relevant to 'query', optionally within one conversation."""
        pass
