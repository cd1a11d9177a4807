"""Hybrid keyword and semantic search over projects, tasks and documents.

The entry point is ``academichub.search.orchestrator.SearchOrchestrator``.
"""

from academichub.search.exceptions import (
    InvalidQueryError,
    SearchError,
    SearchUnavailableError,
)
from academichub.search.schemas import Principal, SearchQuery, SearchResponse, SearchResult

__all__ = [
    "InvalidQueryError",
    "Principal",
    "SearchError",
    "SearchQuery",
    "SearchResponse",
    "SearchResult",
    "SearchUnavailableError",
]
