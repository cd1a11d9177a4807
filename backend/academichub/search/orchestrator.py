"""Hybrid search orchestration.

One query runs in two phases: an optional query embedding (a barrier), then
one retriever per requested entity type, concurrently. Results are merged,
ranked and truncated into a single response.
"""

import asyncio
from datetime import datetime, timezone

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from academichub.config import Settings, get_settings
from academichub.search.exceptions import (
    EmbeddingErrorKind,
    InvalidQueryError,
    SearchUnavailableError,
)
from academichub.search.filters import CandidateFilter
from academichub.search.retrievers import EntityRetriever, default_retrievers
from academichub.search.schemas import (
    ENTITY_TYPES,
    EntityType,
    SearchQuery,
    SearchResponse,
    SearchResult,
)
from academichub.search.scoring import ScoreFusion, SearchWeights
from academichub.search.text import normalize_text
from academichub.services.embedding import EmbeddingService

logger = structlog.get_logger()


def rank_key(result: SearchResult) -> tuple:
    """Relevance desc, then most recently updated, then type and id."""
    return (-result.relevance_score, -result.updated_at.timestamp(), result.type, str(result.id))


class SearchOrchestrator:
    """Run a search query end to end.

    Stateless between calls; one instance serves all concurrent queries.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        embedding_service: EmbeddingService,
        settings: Settings | None = None,
        retrievers: dict[EntityType, EntityRetriever] | None = None,
    ):
        self.settings = settings or get_settings()
        self.session_factory = session_factory
        self.embedding_service = embedding_service
        self.weights = SearchWeights.from_settings(self.settings)
        self.retrievers = retrievers or default_retrievers(
            CandidateFilter(), ScoreFusion(self.weights)
        )

    async def search(self, query: SearchQuery) -> SearchResponse:
        """Execute a search and return ranked results.

        Raises:
            InvalidQueryError: If the query text is blank after normalization.
            SearchUnavailableError: If any retriever fails or times out.
        """
        text = normalize_text(query.text)
        if not text:
            raise InvalidQueryError()
        query = query.model_copy(update={"text": text})

        query_embedding = await self._embed_query(text)
        semantic_enabled = query_embedding is not None
        keyword_enabled = query.force_keyword or not semantic_enabled

        entity_types = [t for t in ENTITY_TYPES if t in query.requested_types]
        now = datetime.now(timezone.utc)

        try:
            batches = await asyncio.wait_for(
                self._fan_out(entity_types, query, query_embedding, keyword_enabled, now),
                timeout=self.settings.search_retrieval_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            logger.error(
                "search_retrieval_timeout",
                timeout=self.settings.search_retrieval_timeout_seconds,
                entity_types=entity_types,
            )
            raise SearchUnavailableError() from e

        merged = [result for batch in batches for result in batch]
        merged.sort(key=rank_key)
        results = merged[: self.weights.result_limit]

        logger.info(
            "search_completed",
            principal_id=str(query.principal.id),
            entity_types=entity_types,
            total=len(merged),
            returned=len(results),
            semantic_search_enabled=semantic_enabled,
            keyword_search_enabled=keyword_enabled,
        )

        return SearchResponse(
            query=text,
            results=results,
            total=len(merged),
            semantic_search_enabled=semantic_enabled,
            keyword_search_enabled=keyword_enabled,
        )

    async def _embed_query(self, text: str) -> tuple[float, ...] | None:
        """Query embedding, or None when semantic search is unavailable."""
        if not self.embedding_service.is_available():
            logger.info("semantic_search_disabled", reason=EmbeddingErrorKind.NOT_CONFIGURED.value)
            return None

        try:
            outcome = await asyncio.wait_for(
                self.embedding_service.try_generate_embedding(text),
                timeout=self.settings.search_embedding_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "semantic_search_disabled",
                reason=EmbeddingErrorKind.TIMEOUT.value,
                timeout=self.settings.search_embedding_timeout_seconds,
            )
            return None

        if not outcome.ok:
            logger.warning(
                "semantic_search_disabled",
                reason=outcome.error.value if outcome.error else None,
                detail=outcome.detail,
            )
            return None
        return outcome.embedding

    async def _fan_out(
        self,
        entity_types: list[EntityType],
        query: SearchQuery,
        query_embedding: tuple[float, ...] | None,
        keyword_enabled: bool,
        now: datetime,
    ) -> list[list[SearchResult]]:
        """Run one retriever per entity type; the first failure cancels the rest."""
        try:
            async with asyncio.TaskGroup() as group:
                tasks = [
                    group.create_task(
                        self._retrieve(entity_type, query, query_embedding, keyword_enabled, now)
                    )
                    for entity_type in entity_types
                ]
        except ExceptionGroup as group_error:
            raise group_error.exceptions[0]
        return [task.result() for task in tasks]

    async def _retrieve(
        self,
        entity_type: EntityType,
        query: SearchQuery,
        query_embedding: tuple[float, ...] | None,
        keyword_enabled: bool,
        now: datetime,
    ) -> list[SearchResult]:
        retriever = self.retrievers[entity_type]
        try:
            async with self.session_factory() as session:
                return await retriever.retrieve(
                    session, query, query_embedding, keyword_enabled, now=now
                )
        except (SQLAlchemyError, OSError) as e:
            logger.error("search_retrieval_failed", entity_type=entity_type, error=str(e))
            raise SearchUnavailableError(entity_type=entity_type) from e
