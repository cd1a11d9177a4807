"""Health check endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from academichub.config import get_settings
from academichub.db.session import DBSession
from academichub.services.embedding import EmbeddingService, get_embedding_service

router = APIRouter()


@router.get("/health/ready")
async def readiness_check(
    db: DBSession,
    embedding_service: EmbeddingService = Depends(get_embedding_service),
) -> dict[str, str | dict[str, str]]:
    """Readiness check including database connectivity.

    The embedding provider is reported but never makes the service unready:
    search keeps working in keyword mode without it.
    """
    settings = get_settings()
    checks: dict[str, str] = {}

    # Check database
    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = "healthy"
    except (SQLAlchemyError, OSError) as e:
        checks["database"] = f"unhealthy: {str(e)}"

    overall_status = "healthy" if checks["database"] == "healthy" else "unhealthy"
    checks["embeddings"] = "available" if embedding_service.is_available() else "unavailable"

    return {
        "status": overall_status,
        "version": settings.app_version,
        "checks": checks,
    }
