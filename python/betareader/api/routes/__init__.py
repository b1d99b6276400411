"""API route definitions.

Uses a factory pattern to avoid import-time settings loading.
This allows tests to import modules without requiring all environment
variables to be configured upfront.
"""

from fastapi import APIRouter

from betareader.api.routes.auth import router as auth_router
from betareader.api.routes.books import router as books_router
from betareader.api.routes.chapters import router as chapters_router
from betareader.api.routes.health import router as health_router
from betareader.api.routes.parts import router as parts_router
from betareader.api.routes.profiles import router as profiles_router
from betareader.api.routes.reviews import router as reviews_router
from betareader.api.routes.wiki import router as wiki_router


def create_api_router() -> APIRouter:
    """Create and configure the API router.

    Returns:
        Configured APIRouter with all routes registered.
    """
    api_router = APIRouter()
    api_router.include_router(health_router, tags=["health"])
    api_router.include_router(auth_router, tags=["auth"])
    api_router.include_router(books_router, tags=["books"])
    api_router.include_router(chapters_router, tags=["chapters"])
    api_router.include_router(parts_router, tags=["parts"])
    api_router.include_router(reviews_router, tags=["reviews"])
    api_router.include_router(profiles_router, tags=["profiles"])
    api_router.include_router(wiki_router, tags=["wiki"])
    return api_router


__all__ = ["create_api_router"]
