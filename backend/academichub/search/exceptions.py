"""Search module exceptions.

Only ``InvalidQueryError`` and ``SearchUnavailableError`` leave the search
engine. Embedding failures are absorbed by the orchestrator and reported
through the ``semantic_search_enabled`` flag of the response.
"""

from enum import Enum
from typing import Optional


class SearchError(Exception):
    """Base exception for search errors."""

    def __init__(self, message: str, code: str = "SEARCH_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class InvalidQueryError(SearchError):
    """The query text is missing, blank, or a filter value is not recognised.

    User-correctable; mapped to HTTP 400.
    """

    def __init__(self, message: str = "Search query is required", field: Optional[str] = None):
        self.field = field
        super().__init__(message=message, code="INVALID_QUERY")


class SearchUnavailableError(SearchError):
    """The relational store failed while retrieving candidates.

    Fatal to the request: a partial multi-type result set would misreport
    ``total``. Mapped to HTTP 500.
    """

    def __init__(self, entity_type: Optional[str] = None, message: str = "Search is temporarily unavailable"):
        self.entity_type = entity_type
        super().__init__(message=message, code="SEARCH_UNAVAILABLE")


class EmbeddingGenerationFailedError(SearchError):
    """The embedding provider kept failing after all retry attempts."""

    def __init__(self, attempts: int, last_error: Optional[str] = None):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            message=f"Embedding generation failed after {attempts} attempts: {last_error}",
            code="EMBEDDING_GENERATION_FAILED",
        )


class EmbeddingErrorKind(str, Enum):
    """Reasons a query embedding is unavailable. Never surfaced as an error."""

    NOT_CONFIGURED = "not_configured"
    EMPTY_TEXT = "empty_text"
    GENERATION_FAILED = "generation_failed"
    TIMEOUT = "timeout"
