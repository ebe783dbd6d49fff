import re
from datetime import datetime, timezone

_NEWLINES = re.compile(r"\r?\n")


def normalize_text(text: str) -> str:
    """Replace every embedded newline with a single space."""
    return _NEWLINES.sub(" ", text)


def normalize_query(query: str) -> str:
    """Trim a search query and flatten it onto one line."""
    return normalize_text(query.strip())


def get_current_timestamp() -> datetime:
    return datetime.now(timezone.utc)
