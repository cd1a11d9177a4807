"""Service layer."""

from academichub.services.embedding import EmbeddingService, get_embedding_service

__all__ = ["EmbeddingService", "get_embedding_service"]
