"""Database package."""

from academichub.db.base import Base, BaseModel, EmbeddableMixin

__all__ = ["Base", "BaseModel", "EmbeddableMixin"]
