"""
Semantic search over stored conversation histories.

Messages are embedded at ingestion time; at query time the most similar
messages are ranked by cosine similarity and optionally expanded into the
surrounding context window of their conversation:

    from conversation_search.controller import ConversationSearchController, SearchRequest

The HTTP surface lives in 'conversation_search.api.app'.
"""
