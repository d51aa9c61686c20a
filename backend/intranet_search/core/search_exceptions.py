"""
Custom exceptions for the search service.

Every exception here derives from SearchError, which the API layer maps to an
HTTP 400 response carrying ``{"error": <message>}``. Which failures are fatal
and which only degrade a response is decided by the caller, see
``DEGRADATION_POLICY`` in ``core.search_engine``.
"""


class SearchError(Exception):
    """Base class for errors surfaced to API callers."""
    pass


class SearchValidationError(SearchError):
    """
    Raised when a request is rejected before any work is performed.

    Examples: a query shorter than two characters, a single-item index
    request without ``content_type``/``content_id``/``title``.
    """
    pass


class ConfigurationError(SearchError):
    """Raised when a required credential or setting is missing."""
    pass


class EmbeddingError(SearchError):
    """
    Raised when the hosted embedding API fails or returns an unusable vector.

    Fatal for a query; item-scoped during an index rebuild.
    """
    pass


class ChatCompletionError(SearchError):
    """Raised when the hosted chat-completion API fails or returns no text."""
    pass
