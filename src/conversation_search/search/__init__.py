from conversation_search.search.context_window import build_context
from conversation_search.search.enricher import ResultEnricher
from conversation_search.search.models import (
    ContextMessage,
    ConversationSummary,
    EnrichedMatch,
    SearchMatch,
    SearchResult,
)

__all__ = [
    "ContextMessage",
    "ConversationSummary",
    "EnrichedMatch",
    "ResultEnricher",
    "SearchMatch",
    "SearchResult",
    "build_context",
]
