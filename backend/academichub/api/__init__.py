"""API router package."""

from fastapi import APIRouter

from academichub.api.v1 import health, search

router = APIRouter()

# Include all API routers
router.include_router(health.router, tags=["Health"])
router.include_router(search.router, prefix="/search", tags=["Search"])
