"""API route definitions.

Uses a factory so importing route modules does not load settings.
"""

from fastapi import APIRouter

from warmlight.api.routes.health import router as health_router
from warmlight.api.routes.webhook import router as webhook_router


def create_api_router() -> APIRouter:
    """Create the router with every route registered."""
    api_router = APIRouter()
    api_router.include_router(health_router, tags=["health"])
    api_router.include_router(webhook_router, tags=["telegram"])
    return api_router


__all__ = ["create_api_router"]
