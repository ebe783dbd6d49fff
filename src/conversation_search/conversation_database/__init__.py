from conversation_search.conversation_database.data_models.conversation import Conversation, ConversationDatabase
from conversation_search.conversation_database.data_models.message import (
    Message,
    MessageDatabase,
    MessageDraft,
    MessageMatch,
    MessageRecord,
    Roles,
)

__all__ = [
    "Conversation",
    "ConversationDatabase",
    "Message",
    "MessageDatabase",
    "MessageDraft",
    "MessageMatch",
    "MessageRecord",
    "Roles",
]
