"""SQLAlchemy models."""

from academichub.models.document import Document
from academichub.models.project import Project, ProjectStudent, Task
from academichub.models.user import User

__all__ = ["Document", "Project", "ProjectStudent", "Task", "User"]
