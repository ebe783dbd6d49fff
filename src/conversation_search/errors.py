"""
Error taxonomy.

'UserError' covers invalid caller input and is returned to the caller verbatim
(HTTP 400). 'ApplicationError' covers collaborator failures (embedding
provider, storage, configuration); the detail is logged server-side and the
caller only sees a generic failure. Partial enrichment failures are not
exceptions at all: the enricher logs and drops the affected match.
"""

from typing import Any


class ConversationSearchError(Exception):
    """Base class for all errors raised by the package."""

    def __init__(self, message: str, data: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.data = data


class UserError(ConversationSearchError):
    """Caller-supplied input is invalid."""


class InvalidParameter(UserError):
    """A search or windowing parameter is out of range."""


class InvalidScope(UserError):
    """A conversation reference does not resolve to a stored conversation."""


class ApplicationError(ConversationSearchError):
    """A collaborator failed; never shown to the caller in detail."""


class EmbeddingProviderError(ApplicationError):
    """The embedding provider failed or returned a malformed response."""


class StorageError(ApplicationError):
    """The storage backend failed."""


class ConversationNotFoundError(StorageError):
    """No conversation exists for an internal id."""


class ConfigurationError(ApplicationError):
    """Required configuration is missing or invalid."""
