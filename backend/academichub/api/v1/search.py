"""Search API endpoints."""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from academichub.api.v1.auth import CurrentPrincipal
from academichub.db.session import DBSession, SessionFactory
from academichub.models import Project
from academichub.search.exceptions import InvalidQueryError, SearchError, SearchUnavailableError
from academichub.search.filters import LIKE_ESCAPE, VisibilityFilter, escape_like
from academichub.search.orchestrator import SearchOrchestrator
from academichub.search.schemas import (
    DATE_RANGES,
    ENTITY_TYPES,
    PRIORITIES,
    STATUSES,
    SearchQuery,
    SearchResponse,
    SearchSuggestion,
)
from academichub.services.embedding import EmbeddingService, get_embedding_service

logger = structlog.get_logger()

router = APIRouter()

SEARCH_PARAMS = frozenset({"q", "types", "status", "priority", "dateRange", "keyword"})
SUGGESTION_PARAMS = frozenset({"q", "limit"})

_TRUE_VALUES = {"true", "1"}
_FALSE_VALUES = {"false", "0"}


def handle_search_error(error: SearchError) -> HTTPException:
    """Convert search errors to HTTP exceptions."""
    if isinstance(error, InvalidQueryError):
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=error.message,
        )
    elif isinstance(error, SearchUnavailableError):
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=error.message,
        )
    else:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Search failed",
        )


def get_search_orchestrator(
    session_factory: SessionFactory,
    embedding_service: EmbeddingService = Depends(get_embedding_service),
) -> SearchOrchestrator:
    return SearchOrchestrator(session_factory, embedding_service)


Orchestrator = Annotated[SearchOrchestrator, Depends(get_search_orchestrator)]


def reject_unknown_params(request: Request, allowed: frozenset[str]) -> None:
    unknown = sorted(set(request.query_params.keys()) - allowed)
    if unknown:
        raise InvalidQueryError(f"Unknown query parameter: {', '.join(unknown)}", field=unknown[0])


def parse_types(raw: str | None) -> frozenset[str]:
    """Parse the CSV ``types`` parameter; absent or empty means all types."""
    if raw is None:
        return frozenset(ENTITY_TYPES)
    values = {value.strip().lower() for value in raw.split(",") if value.strip()}
    if not values:
        return frozenset(ENTITY_TYPES)
    unknown = sorted(values - set(ENTITY_TYPES))
    if unknown:
        raise InvalidQueryError(f"Unknown entity type: {', '.join(unknown)}", field="types")
    return frozenset(values)


def parse_choice(raw: str | None, choices: tuple[str, ...], field: str) -> str | None:
    if raw is None or not raw.strip():
        return None
    value = raw.strip()
    if value not in choices:
        raise InvalidQueryError(f"Invalid {field}: {value}", field=field)
    return value


def parse_flag(raw: str | None, field: str) -> bool:
    if raw is None:
        return False
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise InvalidQueryError(f"Invalid {field}: {raw}", field=field)


@router.get("", response_model=SearchResponse)
async def search(
    request: Request,
    principal: CurrentPrincipal,
    orchestrator: Orchestrator,
    q: str | None = Query(None, description="Search query"),
    types: str | None = Query(None, description="Comma-separated subset of project,task,document"),
    status_filter: str | None = Query(None, alias="status"),
    priority: str | None = Query(None, description="Task priority; ignored for other types"),
    date_range: str | None = Query(None, alias="dateRange"),
    keyword: str | None = Query(None, description="Force hybrid keyword scoring"),
):
    """
    Hybrid search across projects, tasks and documents.

    Keyword relevance is always available. When the embedding provider is
    configured the query is also embedded and ranked by semantic similarity;
    ``keyword=true`` blends both signals instead of using semantic only.
    Results are limited to the caller's visible projects.
    """
    try:
        reject_unknown_params(request, SEARCH_PARAMS)
        if q is None:
            raise InvalidQueryError(field="q")

        query = SearchQuery(
            text=q,
            principal=principal,
            requested_types=parse_types(types),
            status=parse_choice(status_filter, STATUSES, "status"),
            priority=parse_choice(priority, PRIORITIES, "priority"),
            date_range=parse_choice(date_range, DATE_RANGES, "dateRange"),
            force_keyword=parse_flag(keyword, "keyword"),
        )
        return await orchestrator.search(query)
    except SearchError as e:
        logger.warning("search_request_rejected", code=e.code, error=e.message)
        raise handle_search_error(e)


@router.get("/suggestions", response_model=list[SearchSuggestion])
async def search_suggestions(
    request: Request,
    principal: CurrentPrincipal,
    db: DBSession,
    q: str | None = Query(None, description="Optional title prefix"),
    limit: int = Query(5, ge=1, le=20),
):
    """Titles of the caller's most recently updated projects."""
    try:
        reject_unknown_params(request, SUGGESTION_PARAMS)
    except SearchError as e:
        raise handle_search_error(e)

    stmt = (
        select(Project.id, Project.title)
        .where(VisibilityFilter().predicate(principal, "project"))
        .order_by(Project.updated_at.desc())
        .limit(limit)
    )
    prefix = (q or "").strip()
    if prefix:
        stmt = stmt.where(Project.title.ilike(f"{escape_like(prefix)}%", escape=LIKE_ESCAPE))

    try:
        result = await db.execute(stmt)
    except SQLAlchemyError as e:
        logger.error("search_suggestions_failed", error=str(e))
        raise handle_search_error(SearchUnavailableError(entity_type="project"))

    return [SearchSuggestion(id=project_id, text=title) for project_id, title in result.all()]
