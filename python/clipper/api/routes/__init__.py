"""API route definitions.

Uses a factory pattern to avoid import-time settings loading.
"""

from fastapi import APIRouter

from clipper.api.routes.auth import router as auth_router
from clipper.api.routes.clip import router as clip_router
from clipper.api.routes.health import router as health_router
from clipper.api.routes.preview import router as preview_router
from clipper.api.routes.spaces import router as spaces_router


def create_api_router() -> APIRouter:
    """Create and configure the API router."""
    api_router = APIRouter()
    api_router.include_router(health_router, tags=["health"])
    api_router.include_router(auth_router)
    api_router.include_router(clip_router)
    api_router.include_router(preview_router)
    api_router.include_router(spaces_router)
    return api_router


__all__ = ["create_api_router"]
