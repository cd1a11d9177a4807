"""Role-based visibility and caller filters for search candidates.

Visibility is decided per project and inherited by the project's tasks and
documents:

- ADMIN: every project
- LECTURER: projects the principal supervises
- STUDENT: projects the principal is enrolled in

Entities outside the principal's visible projects are never fetched, so they
can't reach scoring at all. They are invisible, not forbidden.
"""

from datetime import datetime, timedelta, timezone

from sqlalchemy import ColumnElement, Select, or_, select, true

from academichub.models import Document, Project, ProjectStudent, Task
from academichub.search.schemas import DateRange, EntityType, Principal, SearchQuery

ENTITY_MODELS: dict[str, type[Project] | type[Task] | type[Document]] = {
    "project": Project,
    "task": Task,
    "document": Document,
}

# Column holding the id of the project that owns the entity
PROJECT_KEY_COLUMNS = {
    "project": Project.id,
    "task": Task.project_id,
    "document": Document.project_id,
}

# Title-like and description-like text columns used for keyword matching
TEXT_COLUMNS = {
    "project": (Project.title, Project.description),
    "task": (Task.title, Task.description),
    "document": (Document.file_name, Document.description),
}

LIKE_ESCAPE = "\\"


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so user input matches literally."""
    return (
        value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", f"{LIKE_ESCAPE}%")
        .replace("_", f"{LIKE_ESCAPE}_")
    )


def keyword_pattern(text: str) -> str:
    """LIKE pattern matching the query words in order, with any gap between them."""
    return "%" + "%".join(escape_like(word) for word in text.split()) + "%"


def date_range_start(date_range: DateRange, now: datetime | None = None) -> datetime:
    """Earliest ``created_at`` admitted by a date range filter."""
    now = now or datetime.now(timezone.utc)
    start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)

    if date_range == "today":
        return start_of_day
    if date_range == "this_week":
        return now - timedelta(days=7)
    if date_range == "this_month":
        return start_of_day.replace(day=1)
    if date_range == "this_year":
        return start_of_day.replace(month=1, day=1)
    raise ValueError(f"Unknown date range: {date_range}")


class VisibilityFilter:
    """Build SQL predicates restricting entities to the principal's projects."""

    def visible_project_ids(self, principal: Principal) -> Select | None:
        """Subquery of visible project ids, or None when unrestricted.

        Correlation is disabled: the outer statement selects from ``projects``
        too, and the subquery must stay self-contained.
        """
        if principal.role == "ADMIN":
            return None
        if principal.role == "LECTURER":
            return (
                select(Project.id)
                .where(Project.lecturer_id == principal.id)
                .correlate(None)
            )
        if principal.role == "STUDENT":
            return (
                select(ProjectStudent.project_id)
                .where(ProjectStudent.student_id == principal.id)
                .correlate(None)
            )
        raise ValueError(f"Unknown role: {principal.role}")

    def predicate(self, principal: Principal, entity_type: EntityType) -> ColumnElement[bool]:
        visible = self.visible_project_ids(principal)
        if visible is None:
            return true()
        return PROJECT_KEY_COLUMNS[entity_type].in_(visible)


class CandidateFilter:
    """Combine visibility with the caller-supplied filters of a query."""

    def __init__(self, visibility: VisibilityFilter | None = None):
        self.visibility = visibility or VisibilityFilter()

    def conditions(
        self,
        query: SearchQuery,
        entity_type: EntityType,
        push_keyword: bool,
        now: datetime | None = None,
    ) -> list[ColumnElement[bool]]:
        """All WHERE conditions for one retriever, to be ANDed together.

        ``push_keyword`` adds a substring match on the full query text. It is
        only set when no query embedding exists; in semantic mode candidates
        are scored in-process instead.
        """
        model = ENTITY_MODELS[entity_type]
        conditions = [self.visibility.predicate(query.principal, entity_type)]

        if query.status:
            conditions.append(model.status == query.status)
        if query.priority and entity_type == "task":
            conditions.append(Task.priority == query.priority)
        if query.date_range:
            conditions.append(model.created_at >= date_range_start(query.date_range, now))
        if push_keyword:
            conditions.append(self.keyword_condition(entity_type, query.text))

        return conditions

    def keyword_condition(self, entity_type: EntityType, text: str) -> ColumnElement[bool]:
        """Substring match of the query, in order, across any whitespace.

        Stored text is not normalized, so each gap between query words matches
        any run of characters ("Machine\\n  Learning" matches "machine learning").
        """
        pattern = keyword_pattern(text)
        primary, secondary = TEXT_COLUMNS[entity_type]
        return or_(
            primary.ilike(pattern, escape=LIKE_ESCAPE),
            secondary.ilike(pattern, escape=LIKE_ESCAPE),
        )
