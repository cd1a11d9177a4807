"""Per-entity-type candidate retrieval and scoring.

Each retriever fetches visible, filtered candidates of one entity type, scores
them and returns the ones above the relevance floor. Retrievers hold no
per-query state; the orchestrator hands each one its own session so the three
can run concurrently.
"""

from collections.abc import Sequence
from datetime import datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import Row, Select, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from academichub.models import Document, Project, Task, User
from academichub.search.filters import CandidateFilter
from academichub.search.schemas import EntityType, SearchQuery, SearchResult
from academichub.search.scoring import ScoreFusion, entity_keyword_score, semantic_score

logger = structlog.get_logger()


class EntityRetriever:
    """Shared retrieve-score-filter pipeline. Subclasses supply the statement."""

    entity_type: EntityType
    model: Any

    def __init__(
        self,
        candidate_filter: CandidateFilter | None = None,
        fusion: ScoreFusion | None = None,
    ):
        self.candidate_filter = candidate_filter or CandidateFilter()
        self.fusion = fusion or ScoreFusion()

    def base_statement(self) -> Select:
        """SELECT of the entity plus its denormalized display columns."""
        raise NotImplementedError

    def text_fields(self, entity: Any) -> tuple[str, str | None]:
        return entity.title, entity.description

    def build_result(self, row: Row, **scores: float) -> SearchResult:
        raise NotImplementedError

    async def retrieve(
        self,
        session: AsyncSession,
        query: SearchQuery,
        query_embedding: Sequence[float] | None,
        keyword_enabled: bool,
        now: datetime | None = None,
    ) -> list[SearchResult]:
        """Return scored results for this entity type, floor already applied.

        Args:
            session: Session owned by this call.
            query: Query with normalized text.
            query_embedding: Query vector, or None when semantic search is off.
            keyword_enabled: Whether keyword relevance takes part in fusion.
            now: Reference time for date range filters.
        """
        embedding_present = query_embedding is not None
        conditions = self.candidate_filter.conditions(
            query,
            self.entity_type,
            push_keyword=not embedding_present,
            now=now,
        )
        cap = self.fusion.weights.candidate_cap(embedding_present)

        stmt = (
            self.base_statement()
            .where(*conditions)
            .order_by(self.model.updated_at.desc(), self.model.id)
            .limit(cap)
        )
        rows = (await session.execute(stmt)).all()
        if not rows:
            return []

        embeddings: dict[UUID, Any] = {}
        if embedding_present:
            embeddings = await self._load_embeddings(session, [row[0].id for row in rows])

        results = []
        for row in rows:
            entity = row[0]
            title, description = self.text_fields(entity)
            keyword = entity_keyword_score(title, description, query.text)
            semantic = semantic_score(query_embedding, embeddings.get(entity.id))
            relevance = self.fusion.fuse(keyword, semantic, embedding_present, keyword_enabled)

            if self.fusion.passes_floor(relevance):
                results.append(
                    self.build_result(
                        row,
                        relevance_score=relevance,
                        keyword_score=keyword,
                        semantic_score=semantic,
                    )
                )

        logger.debug(
            "search_candidates_scored",
            entity_type=self.entity_type,
            candidates=len(rows),
            matched=len(results),
            semantic=embedding_present,
        )
        return results

    async def _load_embeddings(self, session: AsyncSession, ids: list[UUID]) -> dict[UUID, Any]:
        """Stored vectors of the candidates; candidates without one are absent."""
        stmt = select(self.model.id, self.model.embedding).where(
            self.model.id.in_(ids),
            self.model.embedding.is_not(None),
        )
        result = await session.execute(stmt)
        return {entity_id: embedding for entity_id, embedding in result.all()}


class ProjectRetriever(EntityRetriever):
    entity_type = "project"
    model = Project

    def base_statement(self) -> Select:
        return select(Project, User.full_name).join(User, Project.lecturer_id == User.id)

    def build_result(self, row: Row, **scores: float) -> SearchResult:
        project, lecturer_name = row
        return SearchResult(
            id=project.id,
            type="project",
            title=project.title,
            description=project.description,
            status=project.status,
            created_at=project.created_at,
            updated_at=project.updated_at,
            lecturer=lecturer_name,
            **scores,
        )


class TaskRetriever(EntityRetriever):
    entity_type = "task"
    model = Task

    def base_statement(self) -> Select:
        assignee = aliased(User)
        return (
            select(Task, Project.title, assignee.full_name)
            .join(Project, Task.project_id == Project.id)
            .outerjoin(assignee, Task.assignee_id == assignee.id)
        )

    def build_result(self, row: Row, **scores: float) -> SearchResult:
        task, project_title, assignee_name = row
        return SearchResult(
            id=task.id,
            type="task",
            title=task.title,
            description=task.description,
            status=task.status,
            created_at=task.created_at,
            updated_at=task.updated_at,
            priority=task.priority,
            assignee=assignee_name,
            project_id=task.project_id,
            project_title=project_title,
            **scores,
        )


class DocumentRetriever(EntityRetriever):
    entity_type = "document"
    model = Document

    def base_statement(self) -> Select:
        uploader = aliased(User)
        return (
            select(Document, Project.title, uploader.full_name)
            .join(Project, Document.project_id == Project.id)
            .outerjoin(uploader, Document.uploaded_by_id == uploader.id)
        )

    def text_fields(self, entity: Document) -> tuple[str, str | None]:
        return entity.file_name, entity.description

    def build_result(self, row: Row, **scores: float) -> SearchResult:
        document, project_title, uploader_name = row
        return SearchResult(
            id=document.id,
            type="document",
            title=document.file_name,
            description=document.description,
            status=document.status,
            created_at=document.created_at,
            updated_at=document.updated_at,
            uploader=uploader_name,
            project_id=document.project_id,
            project_title=project_title,
            **scores,
        )


def default_retrievers(
    candidate_filter: CandidateFilter | None = None,
    fusion: ScoreFusion | None = None,
) -> dict[EntityType, EntityRetriever]:
    """One retriever per entity type sharing the same filter and fusion."""
    candidate_filter = candidate_filter or CandidateFilter()
    fusion = fusion or ScoreFusion()
    return {
        "project": ProjectRetriever(candidate_filter, fusion),
        "task": TaskRetriever(candidate_filter, fusion),
        "document": DocumentRetriever(candidate_filter, fusion),
    }
