"""Document model for files uploaded to a project."""

from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from academichub.db.base import BaseModel, EmbeddableMixin

if TYPE_CHECKING:
    from academichub.models.project import Project
    from academichub.models.user import User


class Document(BaseModel, EmbeddableMixin):
    """Uploaded project document. Search matches on file name and description."""

    __tablename__ = "documents"

    file_name: Mapped[str] = mapped_column(String(500), nullable=False)
    file_url: Mapped[str] = mapped_column(String(1000), nullable=False, default="")
    file_size: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    mime_type: Mapped[str] = mapped_column(
        String(255), nullable=False, default="application/octet-stream"
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(50), nullable=False, default="PENDING", index=True
    )  # PENDING, APPROVED, REJECTED

    project_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    uploaded_by_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    project: Mapped["Project"] = relationship("Project", back_populates="documents")
    uploaded_by: Mapped["User | None"] = relationship("User", foreign_keys=[uploaded_by_id])

    def __repr__(self) -> str:
        return f"<Document {self.file_name}>"
