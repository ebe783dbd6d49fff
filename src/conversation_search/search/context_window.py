from typing import Sequence, TypeVar

from conversation_search.conversation_database.data_models.message import Message
from conversation_search.errors import InvalidParameter

DEFAULT_CONTEXT_RADIUS = 2

M = TypeVar("M", bound=Message)


def build_context(
    conversation_messages: Sequence[M],
    matched_message_id: int,
    radius: int = DEFAULT_CONTEXT_RADIUS,
) -> list[M]:
    """
    Return the run of messages surrounding 'matched_message_id'.

    'conversation_messages' must already be sorted ascending by
    '(created_at, id)'. The window is the closed range
    '[max(0, i - radius), min(n - 1, i + radius)]' around the matched index 'i',
    so windows at either end of a conversation are shorter than
    '2 * radius + 1'. An id that is not in the sequence yields an empty list.
    """
    if radius < 0:
        raise InvalidParameter(f"radius must not be negative, got {radius}")

    match_index = next(
        (index for index, message in enumerate(conversation_messages) if message.id == matched_message_id),
        None,
    )
    if match_index is None:
        return []

    start = max(0, match_index - radius)
    end = min(len(conversation_messages) - 1, match_index + radius)
    return list(conversation_messages[start : end + 1])
