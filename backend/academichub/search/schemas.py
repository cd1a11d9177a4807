"""Pydantic schemas for search requests and responses."""

from datetime import datetime
from typing import Literal, get_args
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

EntityType = Literal["project", "task", "document"]
Role = Literal["ADMIN", "LECTURER", "STUDENT"]
DateRange = Literal["today", "this_week", "this_month", "this_year"]
Priority = Literal["LOW", "MEDIUM", "HIGH", "URGENT"]

ProjectStatus = Literal["NOT_STARTED", "IN_PROGRESS", "UNDER_REVIEW", "COMPLETED", "CANCELLED"]
TaskStatus = Literal["TODO", "IN_PROGRESS", "REVIEW", "COMPLETED"]
DocumentStatus = Literal["PENDING", "APPROVED", "REJECTED"]

# The status filter is shared by all entity types, so any known status is accepted
Status = Literal[
    "NOT_STARTED",
    "IN_PROGRESS",
    "UNDER_REVIEW",
    "COMPLETED",
    "CANCELLED",
    "TODO",
    "REVIEW",
    "PENDING",
    "APPROVED",
    "REJECTED",
]

ENTITY_TYPES: tuple[str, ...] = get_args(EntityType)
STATUSES: tuple[str, ...] = get_args(Status)
PRIORITIES: tuple[str, ...] = get_args(Priority)
DATE_RANGES: tuple[str, ...] = get_args(DateRange)


class Principal(BaseModel):
    """The authenticated actor issuing a query."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    role: Role


class SearchQuery(BaseModel):
    """One search request. Lives only for the duration of a search call."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    text: str
    principal: Principal
    requested_types: frozenset[EntityType] = frozenset(ENTITY_TYPES)
    status: Status | None = None
    priority: Priority | None = None  # tasks only
    date_range: DateRange | None = None
    force_keyword: bool = False


class CamelModel(BaseModel):
    """Response model serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SearchResult(CamelModel):
    """One ranked entity."""

    id: UUID
    type: EntityType
    title: str
    description: str | None = None
    status: str
    created_at: datetime
    updated_at: datetime

    # Type-specific denormalized fields
    lecturer: str | None = None
    priority: str | None = None
    assignee: str | None = None
    uploader: str | None = None
    project_id: UUID | None = None
    project_title: str | None = None

    relevance_score: float = Field(ge=0, le=1)
    keyword_score: float = Field(ge=0, le=1)
    semantic_score: float = Field(ge=0, le=1)


class SearchResponse(CamelModel):
    """Ranked, truncated results plus the search-mode flags."""

    query: str
    results: list[SearchResult]
    total: int
    semantic_search_enabled: bool
    keyword_search_enabled: bool


class SearchSuggestion(CamelModel):
    """Autocomplete suggestion."""

    id: UUID
    text: str
    type: EntityType = "project"
