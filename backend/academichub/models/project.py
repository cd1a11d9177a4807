"""Project, enrollment and Task models."""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from academichub.db.base import Base, BaseModel, EmbeddableMixin

if TYPE_CHECKING:
    from academichub.models.document import Document
    from academichub.models.user import User


class Project(BaseModel, EmbeddableMixin):
    """Academic project supervised by one lecturer."""

    __tablename__ = "projects"

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(50), nullable=False, default="IN_PROGRESS", index=True
    )  # NOT_STARTED, IN_PROGRESS, UNDER_REVIEW, COMPLETED, CANCELLED

    lecturer_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    # Relationships
    lecturer: Mapped["User"] = relationship("User", foreign_keys=[lecturer_id])
    students: Mapped[list["ProjectStudent"]] = relationship(
        "ProjectStudent", back_populates="project", cascade="all, delete-orphan"
    )
    tasks: Mapped[list["Task"]] = relationship("Task", back_populates="project")
    documents: Mapped[list["Document"]] = relationship("Document", back_populates="project")

    def __repr__(self) -> str:
        return f"<Project {self.title}>"


class ProjectStudent(Base):
    """Enrollment of a student in a project."""

    __tablename__ = "project_students"

    project_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        primary_key=True,
    )
    student_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="MEMBER")
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    project: Mapped["Project"] = relationship("Project", back_populates="students")


class Task(BaseModel, EmbeddableMixin):
    """Task within a project, assigned to one user."""

    __tablename__ = "tasks"

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(50), nullable=False, default="TODO", index=True
    )  # TODO, IN_PROGRESS, REVIEW, COMPLETED
    priority: Mapped[str] = mapped_column(
        String(20), nullable=False, default="MEDIUM"
    )  # LOW, MEDIUM, HIGH, URGENT
    due_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    project_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    assignee_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    project: Mapped["Project"] = relationship("Project", back_populates="tasks")
    assignee: Mapped["User | None"] = relationship("User", foreign_keys=[assignee_id])

    def __repr__(self) -> str:
        return f"<Task {self.title}>"
